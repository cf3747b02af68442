"""
Base repository class for data access layer.

The repository pattern provides:
1. Separation of data access logic from business logic
2. Single place for query logic (easier to maintain)
3. Easier testing (can mock repositories)
4. Consistent interface for data operations

Example:
    class MatchRepository(BaseRepository[EventMatch]):
        def find_by_key(self, match_key: str) -> Optional[EventMatch]:
            return self.where_first(EventMatch.match_key == match_key)
"""
from abc import ABC
from typing import TypeVar, Generic, Type, Optional, List, Any, Callable, Dict, Sequence

from sqlalchemy import func
from sqlalchemy.orm import Query, Session

from app.utils.timezone import utc_now

T = TypeVar("T")


class BaseRepository(Generic[T], ABC):
    """
    Base repository class providing common data access methods.

    All repositories should extend this class and specify their model type.

    Attributes:
        model_type: The SQLAlchemy model class this repository manages
        db: The database session
    """

    def __init__(self, model_type: Type[T], db: Session):
        """
        Initialize the repository.

        Args:
            model_type: The SQLAlchemy model class
            db: The database session
        """
        self.model_type = model_type
        self.db = db

    # ========================================================================
    # CRUD Operations - Basic Create, Read, Update, Delete
    # ========================================================================

    def find_by_id(self, id: int) -> Optional[T]:
        """Find a single record by ID."""
        return self.db.query(self.model_type).filter(self.model_type.id == id).first()

    def create(self, **kwargs) -> T:
        """
        Create a new record.

        Returns:
            The created record (not yet committed to database)
        """
        instance = self.model_type(**kwargs)
        self.db.add(instance)
        return instance

    # ========================================================================
    # Query Builders - Flexible query construction
    # ========================================================================

    def query(self) -> Query:
        """Get a new query object for this model."""
        return self.db.query(self.model_type)

    def where(self, *criterion) -> List[T]:
        """Filter records using SQLAlchemy expressions."""
        return self.db.query(self.model_type).filter(*criterion).all()

    def where_first(self, *criterion) -> Optional[T]:
        """Filter records using SQLAlchemy expressions and return first match."""
        return self.db.query(self.model_type).filter(*criterion).first()

    def count(self, *criterion) -> int:
        """Count records matching optional criterion."""
        query = self.db.query(func.count(self.model_type.id))
        if criterion:
            query = query.filter(*criterion)
        return query.scalar() or 0

    # ========================================================================
    # Upsert
    # ========================================================================

    def upsert(
        self,
        values: Dict[str, Any],
        conflict_keys: Sequence[str],
        update_fields: Optional[Sequence[str]] = None,
        set_overrides: Optional[Callable[[Any], Dict[str, Any]]] = None,
    ) -> T:
        """
        Insert a row or update the existing row with the same natural key.

        Uses INSERT ... ON CONFLICT DO UPDATE on PostgreSQL and SQLite, and
        a query-then-write fallback on other dialects. Does not commit.

        Args:
            values: Column values for the row
            conflict_keys: Columns of the unique constraint to upsert on
            update_fields: Columns to overwrite on conflict (default: every
                column in `values` except the conflict keys)
            set_overrides: Callable taking the insert statement and returning
                extra SET expressions for the conflict branch

        Returns:
            The persisted instance, refreshed from the database
        """
        if update_fields is None:
            update_fields = [k for k in values if k not in conflict_keys]

        table = self.model_type.__table__
        now = utc_now()
        has_updated_at = "updated_at" in table.c
        if has_updated_at:
            values = {**values, "updated_at": now}

        dialect = self.db.get_bind().dialect.name
        if dialect in ("postgresql", "sqlite"):
            if dialect == "postgresql":
                from sqlalchemy.dialects.postgresql import insert
            else:
                from sqlalchemy.dialects.sqlite import insert

            stmt = insert(table).values(**values)
            set_ = {field: stmt.excluded[field] for field in update_fields}
            if has_updated_at:
                set_["updated_at"] = now
            if set_overrides:
                set_.update(set_overrides(stmt))

            if set_:
                stmt = stmt.on_conflict_do_update(index_elements=list(conflict_keys), set_=set_)
            else:
                stmt = stmt.on_conflict_do_nothing(index_elements=list(conflict_keys))
            self.db.execute(stmt)
        else:
            existing = self.where_first(
                *[getattr(self.model_type, key) == values[key] for key in conflict_keys]
            )
            if existing is None:
                self.db.add(self.model_type(**values))
            else:
                for field in update_fields:
                    setattr(existing, field, values.get(field))
                if has_updated_at:
                    existing.updated_at = now
            self.db.flush()

        return (
            self.db.query(self.model_type)
            .populate_existing()
            .filter(*[getattr(self.model_type, key) == values[key] for key in conflict_keys])
            .one()
        )

    # ========================================================================
    # Save Operations
    # ========================================================================

    def save(self) -> None:
        """Commit pending changes to the database."""
        self.db.commit()

    def refresh(self, instance: T) -> T:
        """Refresh an instance from the database."""
        self.db.refresh(instance)
        return instance

    def rollback(self) -> None:
        """Rollback pending changes."""
        self.db.rollback()
