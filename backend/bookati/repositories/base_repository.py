# backend/bookati/repositories/base_repository.py
"""
Base repository for the booking core.

Repositories own every query and every row lock; services own transactions.
Nothing in this layer commits. Writes are flushed so that generated ids and
constraint failures surface inside the caller's transaction.

Row locks go through ``lock_rows`` so that every pessimistic lock in the
system has the same bounded wait (``settings.slot_lock_timeout_ms``) and the
same error when that wait expires.
"""

import logging
from typing import Any, Generic, List, Optional, Type, TypeVar

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Query, Session

from ..core.config import settings
from ..core.exceptions import LockTimeoutException, RepositoryException
from ..database.session_utils import get_dialect_name, is_deadlock_error, is_lock_timeout_error

T = TypeVar("T")

logger = logging.getLogger(__name__)


class BaseRepository(Generic[T]):
    """
    Common data access for a single model.

    Attributes:
        db: SQLAlchemy session (managed by the service layer)
        model: SQLAlchemy model class
    """

    def __init__(self, db: Session, model: Type[T]):
        self.db = db
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    @property
    def dialect_name(self) -> str:
        return get_dialect_name(self.db)

    def get_by_id(self, id: str) -> Optional[T]:
        try:
            return self.db.query(self.model).filter(self.model.id == id).first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting {self.model.__name__} by id {id}: {str(e)}")
            raise RepositoryException(f"Failed to retrieve {self.model.__name__}: {str(e)}")

    def create(self, **kwargs: Any) -> T:
        """
        Create a new entity.

        Does NOT commit. Integrity errors are re-raised untouched so the
        service layer can tell a broken invariant from an infrastructure
        failure.
        """
        try:
            entity = self.model(**kwargs)
            self.db.add(entity)
            self.db.flush()
            return entity
        except IntegrityError:
            raise
        except SQLAlchemyError as e:
            self.logger.error(f"Error creating {self.model.__name__}: {str(e)}")
            raise RepositoryException(f"Failed to create {self.model.__name__}: {str(e)}")

    def flush(self) -> None:
        """Flush pending ORM changes."""
        self.db.flush()

    def delete(self, entity: T) -> None:
        try:
            self.db.delete(entity)
            self.db.flush()
        except SQLAlchemyError as e:
            self.logger.error(f"Error deleting {self.model.__name__}: {str(e)}")
            raise RepositoryException(f"Failed to delete {self.model.__name__}: {str(e)}")

    # Row locking

    def _apply_lock_timeout(self) -> None:
        """Bound the wait for row locks in the current transaction (PostgreSQL only)."""
        if self.dialect_name != "postgresql":
            return
        timeout_ms = int(settings.slot_lock_timeout_ms)
        self.db.execute(text(f"SET LOCAL lock_timeout = '{timeout_ms}ms'"))

    def lock_rows(
        self,
        query: Query,
        resource: str,
        resource_id: Optional[str] = None,
        of: Any = None,
    ) -> List[Any]:
        """
        Run ``query`` with ``SELECT ... FOR UPDATE`` and return the locked rows.

        Args:
            query: query selecting the rows to lock
            resource: name used in logs and in the timeout error
            resource_id: identifier used in logs and in the timeout error
            of: restrict the lock to these entities when the query joins

        Raises:
            LockTimeoutException: the lock wait exceeded the configured timeout
            RepositoryException: any other database failure
        """
        try:
            self._apply_lock_timeout()
            locked = query.with_for_update(of=of) if of is not None else query.with_for_update()
            return locked.populate_existing().all()
        except OperationalError as exc:
            if is_lock_timeout_error(exc) or is_deadlock_error(exc):
                self.logger.warning("Lock timeout on %s %s", resource, resource_id)
                raise LockTimeoutException(resource, resource_id) from exc
            self.logger.error("Failed to lock %s %s: %s", resource, resource_id, str(exc))
            raise RepositoryException(f"Failed to lock {resource}") from exc
        except SQLAlchemyError as exc:
            self.logger.error("Failed to lock %s %s: %s", resource, resource_id, str(exc))
            raise RepositoryException(f"Failed to lock {resource}") from exc

    def lock_one(
        self, query: Query, resource: str, resource_id: Optional[str] = None
    ) -> Optional[Any]:
        rows = self.lock_rows(query, resource, resource_id)
        return rows[0] if rows else None
