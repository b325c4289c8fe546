"""
Base repository with standardized data access operations.

Repositories never commit: the owning service decides the unit of work.
"""

from typing import Any, Generic, List, Optional, Type, TypeVar

from sqlalchemy import select
from sqlalchemy.orm import Session

from hostel_outing.core.exceptions import ResourceNotFoundError
from hostel_outing.core.logging import get_logger
from hostel_outing.models.base import BaseModel

logger = get_logger(__name__)

# Type variable for model classes
ModelType = TypeVar("ModelType", bound=BaseModel)


class BaseRepository(Generic[ModelType]):
    """
    Generic repository providing lookup, persistence and removal.
    """

    def __init__(self, model: Type[ModelType], db: Session):
        """
        Initialize repository.

        Args:
            model: SQLAlchemy model class
            db: Database session
        """
        self.model = model
        self.db = db

    # ==================== Read Operations ====================

    def find_by_id(self, entity_id: Any) -> Optional[ModelType]:
        """Get entity by primary key, or None."""
        return self.db.get(self.model, entity_id)

    def get_by_id(self, entity_id: Any) -> ModelType:
        """
        Get entity by primary key.

        Raises:
            ResourceNotFoundError: If no entity has this ID
        """
        entity = self.find_by_id(entity_id)
        if entity is None:
            raise ResourceNotFoundError(self.model.__name__, str(entity_id))
        return entity

    def find_all(self, limit: Optional[int] = None) -> List[ModelType]:
        stmt = select(self.model)
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.db.scalars(stmt))

    # ==================== Write Operations ====================

    def add(self, entity: ModelType) -> ModelType:
        """Stage a new entity and flush so defaults and the primary key are populated."""
        self.db.add(entity)
        self.db.flush()
        logger.debug(f"Added {self.model.__name__} {entity.id}")
        return entity

    def remove(self, entity: ModelType) -> None:
        """Stage deletion of an entity and flush."""
        self.db.delete(entity)
        self.db.flush()
        logger.debug(f"Removed {self.model.__name__} {entity.id}")
