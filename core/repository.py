"""Repository base class shared by the plan store, ledger and food log.

Wraps a SQLAlchemy session with lookup helpers and a transaction scope that
turns storage failures into `PersistenceError`.
"""

from contextlib import contextmanager
from typing import Any, Generic, Optional, Type, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.exceptions import NotFoundError, PersistenceError
from core.logger import get_logger
from database.models import Base

T = TypeVar('T', bound=Base)

logger = get_logger("core.repository")


class BaseRepository(Generic[T]):
    """Generic repository for a primary model.

    Attributes:
        model: SQLAlchemy model class to operate on.
        session: Database session for executing queries.
    """

    def __init__(self, model: Type[T], session: Session):
        self.model = model
        self.session = session

    def get_by_id(self, id: Any) -> Optional[T]:
        """Retrieve an object by its primary key, or None."""
        return self.session.get(self.model, id)

    def get_or_404(self, id: Any) -> T:
        """Retrieve an object by its primary key.

        Raises:
            NotFoundError: If no row has that key.
        """
        obj = self.get_by_id(id)
        if obj is None:
            raise NotFoundError(self.model.__name__, id)
        return obj

    @contextmanager
    def transaction(self, operation: str):
        """Commit the work done in the block, or roll it back.

        Args:
            operation: Name reported in the `PersistenceError` details.

        Raises:
            PersistenceError: If flushing or committing fails.
        """
        try:
            yield self.session
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error("Storage failure during %s: %s", operation, exc, exc_info=True)
            raise PersistenceError(f"Failed to {operation.replace('_', ' ')}", operation=operation) from exc
