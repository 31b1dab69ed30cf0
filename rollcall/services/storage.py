import logging

from sqlalchemy.exc import SQLAlchemyError

from rollcall.errors import StorageError
from rollcall.models import db

logger = logging.getLogger(__name__)


def commit(action):
    """Commit the current unit of work or roll it back and raise StorageError."""
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error("storage fault during %s: %s", action, exc)
        raise StorageError(f"{action} failed") from exc


def read(action, fn, *args, **kwargs):
    """Run a read against the store, translating driver faults to StorageError."""
    try:
        return fn(*args, **kwargs)
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error("storage fault during %s: %s", action, exc)
        raise StorageError(f"{action} failed") from exc
