"""Base CRUD class shared by model-specific CRUD singletons."""

from typing import Generic, Optional, Type, TypeVar
from uuid import UUID

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from billsync.models._base import Base

ModelType = TypeVar("ModelType", bound=Base)
CreateSchemaType = TypeVar("CreateSchemaType", bound=BaseModel)


class CRUDBase(Generic[ModelType, CreateSchemaType]):
    """CRUD object with default read and create methods."""

    def __init__(self, model: Type[ModelType]):
        """Initialize the CRUD object.

        Args:
        ----
            model (Type[ModelType]): The SQLAlchemy model class.

        """
        self.model = model

    async def get(self, db: AsyncSession, id: UUID) -> Optional[ModelType]:
        """Get a single object by ID.

        Args:
        ----
            db (AsyncSession): The database session.
            id (UUID): The ID of the object to get.

        Returns:
        -------
            Optional[ModelType]: The object with the given ID.

        """
        query = select(self.model).where(self.model.id == id)
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def create(
        self,
        db: AsyncSession,
        *,
        obj_in: CreateSchemaType,
        auto_commit: bool = True,
    ) -> ModelType:
        """Create a new object.

        Args:
        ----
            db (AsyncSession): The database session.
            obj_in (CreateSchemaType): The object to create.
            auto_commit (bool): Commit and refresh immediately. Pass False to let the
                caller own the transaction.

        Returns:
        -------
            ModelType: The created object.

        """
        db_obj = self.model(**obj_in.model_dump())
        db.add(db_obj)
        if auto_commit:
            await db.commit()
            await db.refresh(db_obj)
        else:
            await db.flush()
        return db_obj
