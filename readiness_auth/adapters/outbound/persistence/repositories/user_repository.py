# readiness_auth/adapters/outbound/persistence/repositories/user_repository.py

"""
Repository for user operations.

Lookups by email and reset token, account creation with
default team membership, and the guest assessment hand-over.
"""

from typing import Any, Dict, Optional
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.exc import SQLAlchemyError

from readiness_auth.adapters.outbound.persistence.models import Assessment, Team, User
from readiness_auth.adapters.outbound.persistence.repositories.base_repository import AsyncCRUDBase
from readiness_auth.domain.exceptions import InternalServerError


class AsyncUserCRUD(AsyncCRUDBase[User]):
    """
    Async implementation of CRUD repository for the User entity.
    """

    async def get_by_email(self, db: AsyncSession, email: str) -> Optional[User]:
        """
        Find a user by email (case-insensitive, emails are stored lowercase).

        Args:
            db: Async database session
            email: User's email

        Returns:
            User found or None if doesn't exist
        """
        return await self.get_by_field(db, "email", email.strip().lower())

    async def get_by_reset_token(self, db: AsyncSession, token: str) -> Optional[User]:
        return await self.get_by_field(db, "reset_token", token)

    async def create_with_team(self, db: AsyncSession, *, obj_in: Dict[str, Any], team: Team) -> User:
        """
        Create a user and make them a member of the given team.

        Args:
            db: Async database session
            obj_in: Column values (password must already be hashed)
            team: Team the new user joins

        Returns:
            New User created

        Raises:
            ConflictError: If the email or an OAuth id is already in use
            InternalServerError: In case of database error
        """
        db_obj = User(**obj_in)
        db_obj.teams.append(team)
        db_obj = await self.save(db, db_obj)
        self.logger.info(f"User created with ID: {db_obj.id}")
        return db_obj

    async def transfer_guest_assessments(self, db: AsyncSession, user: User) -> int:
        """
        Assign assessments taken as a guest with this email to the user.

        Returns:
            Number of assessments transferred
        """
        try:
            result = await db.execute(
                update(Assessment)
                .where(Assessment.guest_email == user.email, Assessment.user_id.is_(None))
                .values(user_id=user.id, guest_email=None)
            )
            await db.commit()
            return result.rowcount or 0
        except SQLAlchemyError as e:
            await db.rollback()
            self.logger.error(f"Error transferring guest assessments: {str(e)}")
            raise InternalServerError(
                message="Error transferring guest assessments",
                original_error=e
            )


user_repository = AsyncUserCRUD(User)
