import logging
from contextlib import contextmanager

from flask import current_app
from sqlalchemy import text, update
from sqlalchemy.exc import DBAPIError, IntegrityError

from models import db
from models.resource_lock import ResourceLock
from models.types import utcnow
from utils.errors import BookingError, ConstraintViolation, StorageFailure

logger = logging.getLogger(__name__)


@contextmanager
def atomic(lock_key=None):
    """
    Scoped transaction around db.session.

    Commits when the block exits normally. On any exception the whole
    transaction is rolled back and the error re-raised, so no partial writes
    survive. Database errors are translated:
      IntegrityError            -> ConstraintViolation
      OperationalError/DBAPIError -> StorageFailure (retryable)

    With lock_key the resource lock row is taken before the block runs.
    """
    session = db.session
    try:
        if lock_key:
            acquire_resource_lock(lock_key)
        yield session
        session.commit()
    except BookingError:
        session.rollback()
        raise
    except IntegrityError as exc:
        session.rollback()
        logger.warning("Integrity check failed, transaction rolled back: %s", exc.orig)
        raise ConstraintViolation("Referential integrity check failed") from exc
    except DBAPIError as exc:
        session.rollback()
        logger.error("Storage failure, transaction rolled back", exc_info=True)
        raise StorageFailure("Transaction could not be committed, retry the operation") from exc
    except BaseException:
        session.rollback()
        raise


def acquire_resource_lock(key: str):
    """
    Take the write-intent lock for a bookable resource.

    The UPDATE holds a row lock until commit on PostgreSQL and the database
    write lock on SQLite, so concurrent writers queue here and each one's
    conflict check sees the previous writer's committed rows.
    """
    session = db.session
    if session.get_bind().dialect.name == "postgresql":
        timeout_ms = int(current_app.config.get("BOOKING_LOCK_TIMEOUT_MS", 5000))
        session.execute(text(f"SET LOCAL lock_timeout = {timeout_ms}"))

    result = session.execute(
        update(ResourceLock)
        .where(ResourceLock.key == key)
        .values(version=ResourceLock.version + 1, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount:
        return

    # First write ever for this resource (no seed row yet)
    session.add(ResourceLock(key=key, version=1))
    try:
        session.flush()
    except IntegrityError as exc:
        raise StorageFailure("Resource lock row was created concurrently, retry the operation") from exc
