"""
Module: base
Purpose: Generic repository shared by the portal's data access classes

Repositories only flush. Committing (and rolling back on failure) is the
job of the service that owns the unit of work.
"""

from contextlib import contextmanager
from typing import Generic, Iterator, List, Optional, Type, TypeVar

from sqlalchemy import asc, desc, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Query, Session

from portal.core.exceptions import (
    ResourceConflictException, ResourceNotFoundException, ValidationException,
    handle_database_exception
)
from portal.db.base import BaseModel
from portal.utils.logger import get_logger

ModelType = TypeVar("ModelType", bound=BaseModel)


class BaseRepository(Generic[ModelType]):
    """CRUD over one model. Subclasses add the queries their service needs."""

    # Used in not-found and conflict messages; defaults to the model name
    resource_name: Optional[str] = None

    def __init__(self, model: Type[ModelType], db: Session):
        self.model = model
        self.db = db
        self.logger = get_logger(self.__class__.__name__)

    @property
    def resource_type(self) -> str:
        return self.resource_name or self.model.__name__

    @contextmanager
    def _guard(self, operation: str, writes: bool = False) -> Iterator[None]:
        """
        Translate SQLAlchemy failures into portal exceptions.

        Write operations also roll the session back, and map model
        validator errors to 400 and unique violations to 409.
        """
        try:
            yield
        except ValueError as e:
            if not writes:
                raise
            self.db.rollback()
            raise ValidationException(str(e))
        except IntegrityError as e:
            self.db.rollback()
            self.logger.error(f"Integrity error during {operation}: {e.orig}")
            raise ResourceConflictException(self.resource_type, str(e.orig))
        except SQLAlchemyError as e:
            if writes:
                self.db.rollback()
            self.logger.error(f"Database error during {operation}: {e}")
            raise handle_database_exception(e, operation)

    def _filtered(self, query: Query, **filters) -> Query:
        for field, value in filters.items():
            query = query.filter(getattr(self.model, field) == value)
        return query

    # Writes

    def create(self, **values) -> ModelType:
        with self._guard(f"create {self.model.__name__}", writes=True):
            instance = self.model(**values)
            self.db.add(instance)
            self.db.flush()
        self.logger.debug(f"Created {self.model.__name__} {instance.id}")
        return instance

    def update(self, record: ModelType, **values) -> ModelType:
        """Set the given attributes on a loaded record and flush."""
        with self._guard(f"update {self.model.__name__}", writes=True):
            for field, value in values.items():
                setattr(record, field, value)
            self.db.flush()
        self.logger.debug(f"Updated {self.model.__name__} {record.id}")
        return record

    def delete(self, record: ModelType) -> None:
        with self._guard(f"delete {self.model.__name__}", writes=True):
            self.db.delete(record)
            self.db.flush()
        self.logger.debug(f"Deleted {self.model.__name__} {record.id}")

    # Reads

    def get_by_id(self, record_id: str) -> Optional[ModelType]:
        with self._guard(f"get {self.model.__name__}"):
            return self.db.get(self.model, record_id)

    def get_by_id_or_raise(self, record_id: str) -> ModelType:
        record = self.get_by_id(record_id)
        if record is None:
            raise ResourceNotFoundException(self.resource_type, str(record_id))
        return record

    def get_all(
        self,
        skip: int = 0,
        limit: Optional[int] = 100,
        order_by: Optional[str] = None,
        order_desc: bool = False
    ) -> List[ModelType]:
        """
        Page through every row.

        Ordered by ``order_by`` when the model has that column, newest
        first otherwise. ``limit=None`` returns everything.
        """
        column = getattr(self.model, order_by) if order_by and hasattr(self.model, order_by) else None
        if column is None:
            ordering = desc(self.model.created_at)
        else:
            ordering = desc(column) if order_desc else asc(column)

        with self._guard(f"list {self.model.__name__}"):
            query = self.db.query(self.model).order_by(ordering).offset(skip)
            if limit is not None:
                query = query.limit(limit)
            return query.all()

    def count(self, **filters) -> int:
        with self._guard(f"count {self.model.__name__}"):
            return self._filtered(self.db.query(func.count(self.model.id)), **filters).scalar() or 0

    def exists(self, **filters) -> bool:
        with self._guard(f"check {self.model.__name__}"):
            return self._filtered(self.db.query(self.model.id), **filters).first() is not None
