import logging
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dietbook.core.errors import SchedulingError, TransientStorageError

logger = logging.getLogger(__name__)

STORAGE_UNAVAILABLE_MESSAGE = 'Database unavailable. Verify DATABASE_URL and Postgres credentials.'


@contextmanager
def storage_operation(db: Session, action: str):
    """Run one unit of work; roll back on any failure.

    Driver errors surface as ``TransientStorageError``. Domain errors pass
    through unchanged.
    """
    try:
        yield
    except SchedulingError:
        db.rollback()
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Storage failure while trying to %s.', action)
        raise TransientStorageError(STORAGE_UNAVAILABLE_MESSAGE) from exc
