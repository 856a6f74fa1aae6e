# backend/borkin/repositories/base_repository.py
"""
Shared row access for Borkin repositories.

Bookings, profiles and bans are always read and written as whole rows by
primary key, plus a handful of filtered listings built on ``_build_query``.

Repositories flush but never commit; ``BaseService.transaction`` owns the
commit/rollback boundary. Driver errors surface as RepositoryException.
"""

from contextlib import contextmanager
import logging
from typing import Any, Generic, Iterator, List, Optional, Type, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Query, Session

from ..core.exceptions import RepositoryException

T = TypeVar("T")

logger = logging.getLogger(__name__)


class BaseRepository(Generic[T]):
    """
    Generic repository over a single SQLAlchemy model.

    Attributes:
        db: SQLAlchemy session shared with the owning service
        model: Mapped class this repository reads and writes
    """

    def __init__(self, db: Session, model: Type[T]):
        self.db = db
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    @contextmanager
    def _guard(self, action: str) -> Iterator[None]:
        try:
            yield
        except IntegrityError as exc:
            self.logger.error(
                "Integrity error while trying to %s %s: %s", action, self.model.__name__, exc
            )
            raise RepositoryException(
                f"Cannot {action} {self.model.__name__}: constraint violated"
            ) from exc
        except SQLAlchemyError as exc:
            self.logger.error(f"Failed to {action} {self.model.__name__}: {str(exc)}")
            raise RepositoryException(f"Failed to {action} {self.model.__name__}: {str(exc)}") from exc

    def get_by_id(self, id: str) -> Optional[T]:
        with self._guard("load"):
            return self.db.get(self.model, id)

    def find_one_by(self, **criteria: Any) -> Optional[T]:
        """First row matching every keyword exactly, or None."""
        with self._guard("look up"):
            return self.db.query(self.model).filter_by(**criteria).first()

    def create(self, **fields: Any) -> T:
        """Insert a row and flush so generated ids are available."""
        with self._guard("create"):
            entity = self.model(**fields)
            self.db.add(entity)
            self.db.flush()
            return entity

    def apply(self, entity: T, **fields: Any) -> T:
        """Set fields on a loaded row and flush; unknown attribute names are ignored."""
        with self._guard("update"):
            for key, value in fields.items():
                if hasattr(entity, key):
                    setattr(entity, key, value)
            self.db.flush()
            return entity

    def delete(self, id: str) -> bool:
        """Delete by primary key. Returns False when there was nothing to delete."""
        entity = self.get_by_id(id)
        if entity is None:
            return False
        with self._guard("delete"):
            self.db.delete(entity)
            self.db.flush()
        return True

    def _build_query(self) -> Query:
        return self.db.query(self.model)

    def _execute_query(self, query: Query) -> List[T]:
        with self._guard("list"):
            return query.all()
