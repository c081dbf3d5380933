# readiness_auth/adapters/outbound/persistence/repositories/team_repository.py

from sqlalchemy.ext.asyncio import AsyncSession

from readiness_auth.adapters.outbound.persistence.models import Team
from readiness_auth.adapters.outbound.persistence.repositories.base_repository import AsyncCRUDBase
from readiness_auth.domain.exceptions import ConflictError


class AsyncTeamCRUD(AsyncCRUDBase[Team]):

    async def get_or_create_by_name(self, db: AsyncSession, name: str) -> Team:
        """Return the team with this name, creating it if needed."""
        team = await self.get_by_field(db, "name", name)
        if team:
            return team
        self.logger.info(f"Creating team '{name}'")
        try:
            return await self.create(db, obj_in={"name": name})
        except ConflictError:
            # Created concurrently by another request
            return await self.get_by_field(db, "name", name)


team_repository = AsyncTeamCRUD(Team)
