"""
Database engine, session factory and the transactional unit of work.

Every booking mutation runs through ``run_in_transaction`` so that the
conflict scan and the write(s) it guards commit together. On SQLite only
that unit of work opens with ``BEGIN IMMEDIATE``, which serializes writers
at the database; plain reads use a deferred ``BEGIN`` and, with the file
database in WAL mode, never hold up a writer. Other backends run at
SERIALIZABLE isolation.
"""
import logging
import time

from sqlalchemy import create_engine, event
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from detailing_scheduler.config import settings
from detailing_scheduler.errors import ConflictError, SlotConflictError, ValidationError

logger = logging.getLogger(__name__)

Base = declarative_base()

# Execution option that marks a connection as carrying a write unit of work
WRITE_INTENT = "detailing_write_intent"

# Only these are worth another attempt; anything else is a real fault
_RETRYABLE_ERROR_SNIPPETS = (
    "database is locked",
    "database is busy",
    "database table is locked",
    "could not serialize access",
    "deadlock detected",
)

# Names the staff-slot backstop index shows up under in driver messages
_SLOT_INDEX_SNIPPETS = (
    "uq_reservations_staff_slot",
    "reservations.staff_id, reservations.date, reservations.start_time",
)


def _enable_sqlite_transactions(engine, in_memory: bool):
    """Take over BEGIN from pysqlite so writes can ask for IMMEDIATE."""

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Stop pysqlite from issuing its own BEGIN
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        if not in_memory:
            cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        if conn.get_execution_options().get(WRITE_INTENT):
            conn.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            conn.exec_driver_sql("BEGIN")


def build_engine(database_url: str):
    """Create an engine configured for serialized booking writes."""
    if database_url.startswith("sqlite"):
        in_memory = database_url in ("sqlite://", "sqlite:///:memory:")
        kwargs = {"connect_args": {"check_same_thread": False, "timeout": 15}}
        if in_memory:
            kwargs["poolclass"] = StaticPool
        engine = create_engine(database_url, **kwargs)
        _enable_sqlite_transactions(engine, in_memory)
    else:
        engine = create_engine(
            database_url,
            pool_pre_ping=True,
            isolation_level="SERIALIZABLE",
        )
    logger.info("Database engine created for %s", engine.url.get_backend_name())
    return engine


engine = build_engine(settings.database_url)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None):
    """Create all tables"""
    # Import models so they register with Base.metadata
    from detailing_scheduler import models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)


def is_retryable_db_error(exc: OperationalError) -> bool:
    message = str(exc.orig if exc.orig is not None else exc).lower()
    return any(snippet in message for snippet in _RETRYABLE_ERROR_SNIPPETS)


def _translate_integrity_error(exc: IntegrityError):
    message = str(exc.orig if exc.orig is not None else exc)
    if any(snippet in message for snippet in _SLOT_INDEX_SNIPPETS):
        return SlotConflictError(
            "This time slot was booked by another request",
            details={"reason": "unique_constraint"},
        )
    if "unique" in message.lower() or "duplicate" in message.lower():
        return ConflictError(
            "This record was written by another request",
            code="DUPLICATE_RECORD",
            details={"reason": message},
        )
    return ValidationError(
        "The change violates a data constraint",
        code="CONSTRAINT_VIOLATION",
        details={"reason": message},
    )


def run_in_transaction(db: Session, work, retries: int | None = None):
    """
    Run ``work()`` and commit it as one transaction.

    Any read transaction the session already holds is closed first so the
    unit of work starts on a write-intent connection. Busy or serialization
    failures are retried; once the retries are exhausted they surface as a
    conflict. Other database errors propagate unchanged. A violation of the
    staff-slot index means a concurrent writer claimed the same slot first;
    any other constraint violation is a validation failure.

    Args:
        db: Database session
        work: Zero-argument callable doing the reads and writes
        retries: Number of attempts, defaults to settings.transaction_retries

    Returns:
        Whatever ``work()`` returned
    """
    attempts = max(1, retries if retries is not None else settings.transaction_retries)

    if db.in_transaction():
        db.commit()

    for attempt in range(1, attempts + 1):
        try:
            db.connection(execution_options={WRITE_INTENT: True})
            result = work()
            db.commit()
            return result
        except IntegrityError as exc:
            db.rollback()
            logger.info("Write rejected by constraint: %s", exc.orig)
            raise _translate_integrity_error(exc) from exc
        except OperationalError as exc:
            db.rollback()
            if not is_retryable_db_error(exc):
                raise
            if attempt >= attempts:
                logger.warning("Transaction failed after %d attempts: %s", attempt, exc.orig)
                raise ConflictError(
                    "The schedule is busy, please try again",
                    code="TRANSACTION_CONFLICT",
                ) from exc
            logger.info("Retrying transaction (attempt %d): %s", attempt, exc.orig)
            time.sleep(0.05 * attempt)
        except Exception:
            db.rollback()
            raise
