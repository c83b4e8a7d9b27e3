"""
Base repository class for data access layer.

Repositories keep query logic out of the services and are bound to the
session of the current unit of work, so everything a service does through
them commits or rolls back together.

Example:
    class TableRepository(BaseRepository[PokerTable]):
        def find_open(self) -> List[PokerTable]:
            return self.where(PokerTable.status == "open")
"""
from abc import ABC
from typing import TypeVar, Generic, Type, Optional, List
from sqlalchemy import func
from sqlalchemy.orm import Query, Session

T = TypeVar("T")


class BaseRepository(Generic[T], ABC):
    """
    Base repository class providing common data access methods.

    Attributes:
        model_type: The SQLAlchemy model class this repository manages
        db: The database session
    """

    def __init__(self, model_type: Type[T], db: Session):
        self.model_type = model_type
        self.db = db

    # ========================================================================
    # CRUD Operations
    # ========================================================================

    def find_by_id(self, id, for_update: bool = False) -> Optional[T]:
        """
        Find a single record by ID.

        Args:
            id: Primary key value
            for_update: Take a row lock (``SELECT ... FOR UPDATE``) where the
                backend supports it

        Returns:
            The record, or None if not found
        """
        query = self.query().filter(self.model_type.id == id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def create(self, **kwargs) -> T:
        """
        Create a new record.

        Returns:
            The created record (flushed, not committed)
        """
        instance = self.model_type(**kwargs)
        self.db.add(instance)
        self.db.flush()
        return instance

    # ========================================================================
    # Query Builders
    # ========================================================================

    def query(self) -> Query:
        """Get a new query object for this model."""
        return self.db.query(self.model_type)

    def where(self, *criterion) -> List[T]:
        """Filter records using SQLAlchemy expressions."""
        return self.query().filter(*criterion).all()

    def where_first(self, *criterion) -> Optional[T]:
        """Filter records using SQLAlchemy expressions and return first match."""
        return self.query().filter(*criterion).first()

    def count(self, *criterion) -> int:
        """Count records matching optional criterion."""
        query = self.db.query(func.count(self.model_type.id))
        if criterion:
            query = query.filter(*criterion)
        return query.scalar() or 0

    # ========================================================================
    # Save Operations
    # ========================================================================

    def flush(self) -> None:
        """Flush pending changes without committing."""
        self.db.flush()
