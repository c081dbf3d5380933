# readiness_auth/adapters/outbound/persistence/repositories/base_repository.py

from typing import Any, Dict, Generic, Optional, Type, TypeVar
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError, IntegrityError
from sqlalchemy.future import select
import logging

from readiness_auth.adapters.outbound.persistence.models.base_model import Base
from readiness_auth.domain.exceptions import ConflictError, InternalServerError

# Define generic type for SQLAlchemy models
ModelType = TypeVar("ModelType", bound=Base)

logger = logging.getLogger(__name__)


class AsyncCRUDBase(Generic[ModelType]):
    """
    Async base class for implementing the Repository pattern.

    Provides generic CRUD operations that can be used by any entity.
    Database errors are logged and re-raised as domain exceptions.

    Attributes:
        model: SQLAlchemy model class
        logger: Configured logger for the class
    """

    def __init__(self, model: Type[ModelType]):
        """
        Initialize the repository with an SQLAlchemy model.

        Args:
            model: SQLAlchemy model class associated with this repository
        """
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    async def get(self, db: AsyncSession, id: Any) -> Optional[ModelType]:
        """
        Get an entity by ID.

        Args:
            db: Async database session
            id: ID of the entity

        Returns:
            Entity found or None if it doesn't exist

        Raises:
            InternalServerError: If an error occurs in the query
        """
        try:
            query = select(self.model).where(self.model.id == id)
            result = await db.execute(query)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            self.logger.error(f"Error fetching {self.model.__name__} with ID {id}: {str(e)}")
            raise InternalServerError(
                message=f"Error fetching {self.model.__name__}",
                original_error=e
            )

    async def get_by_field(self, db: AsyncSession, field_name: str, value: Any) -> Optional[ModelType]:
        """
        Get an entity by the value of a specific field.

        Raises:
            InternalServerError: If an error occurs in the query
        """
        try:
            query = select(self.model).where(getattr(self.model, field_name) == value)
            result = await db.execute(query)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            self.logger.error(f"Error fetching {self.model.__name__} by {field_name}: {str(e)}")
            raise InternalServerError(
                message=f"Error fetching {self.model.__name__} by {field_name}",
                original_error=e
            )

    async def save(self, db: AsyncSession, db_obj: ModelType) -> ModelType:
        """
        Add and commit an entity, then refresh it from the database.

        Raises:
            ConflictError: If the write violates a uniqueness constraint
            InternalServerError: If another database error occurs
        """
        try:
            db.add(db_obj)
            await db.commit()
            await db.refresh(db_obj)
            return db_obj

        except IntegrityError as e:
            await db.rollback()
            error_msg = str(e).lower()
            if 'unique' in error_msg or 'duplicate' in error_msg:
                self.logger.warning(f"Uniqueness violation saving {self.model.__name__}")
                raise ConflictError(f"{self.model.__name__} with these data already exists")
            self.logger.error(f"Integrity error saving {self.model.__name__}: {str(e)}")
            raise InternalServerError(original_error=e)

        except SQLAlchemyError as e:
            await db.rollback()
            self.logger.error(f"Error saving {self.model.__name__}: {str(e)}")
            raise InternalServerError(
                message=f"Error saving {self.model.__name__}",
                original_error=e
            )

    async def create(self, db: AsyncSession, *, obj_in: Dict[str, Any]) -> ModelType:
        """Create a new entity from a dictionary of column values."""
        db_obj = await self.save(db, self.model(**obj_in))
        self.logger.info(f"{self.model.__name__} created with ID: {db_obj.id}")
        return db_obj

    async def update(self, db: AsyncSession, *, db_obj: ModelType, obj_in: Dict[str, Any]) -> ModelType:
        """
        Update an existing entity.

        Args:
            db: Async database session
            db_obj: Model instance to update
            obj_in: Column values to change

        Returns:
            Updated entity
        """
        for field, value in obj_in.items():
            if hasattr(db_obj, field):
                setattr(db_obj, field, value)

        db_obj = await self.save(db, db_obj)
        self.logger.info(f"{self.model.__name__} with ID {db_obj.id} updated")
        return db_obj
