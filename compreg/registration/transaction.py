import logging
from contextlib import contextmanager

from sqlalchemy import event, text
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.orm import Session, scoped_session

from compreg.extensions import db
from .errors import StorageError

logger = logging.getLogger(__name__)

_WRITES_KEY = "compreg.flushed_writes"


def resolve_session(session=None):
    """Return the concrete Session behind ``session`` (``db.session`` by default)."""
    session = session if session is not None else db.session
    if isinstance(session, scoped_session):
        session = session()
    return session


@event.listens_for(Session, "after_flush")
def _mark_flushed_writes(session, flush_context):
    session.info[_WRITES_KEY] = True


@event.listens_for(Session, "after_transaction_end")
def _clear_flushed_writes(session, transaction):
    if transaction.parent is None:
        session.info.pop(_WRITES_KEY, None)


def has_pending_writes(session):
    """True when the open transaction holds changes not yet committed."""
    return bool(session.new or session.dirty or session.deleted or session.info.get(_WRITES_KEY))


def _storage_error(exc):
    if isinstance(exc, DBAPIError):
        logger.error("Transaction aborted by the database: %s", exc.orig)
        return StorageError(str(exc.orig))
    logger.error("Transaction failed: %s", exc)
    return StorageError(str(exc))


@contextmanager
def transaction(session=None, timeout_ms=None):
    """Run the block in one database transaction.

    Commits when the block exits normally and rolls back on every exception.
    Driver and connection failures are re-raised as StorageError; everything
    else (including RegistrationError) propagates unchanged after rollback.

    If the session already holds uncommitted changes, the block runs in a
    SAVEPOINT inside that transaction instead, and committing stays with
    whoever opened it. A transaction that only read is ended first.
    """
    session = resolve_session(session)
    if session.in_transaction():
        if has_pending_writes(session):
            with _savepoint(session):
                yield session
            return
        session.rollback()

    try:
        session.begin()
        if timeout_ms:
            _apply_timeout(session, timeout_ms)
        yield session
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        raise _storage_error(exc) from exc
    except BaseException:
        session.rollback()
        raise


@contextmanager
def _savepoint(session):
    nested = None
    try:
        nested = session.begin_nested()
        yield session
        nested.commit()
    except SQLAlchemyError as exc:
        _undo(session, nested)
        raise _storage_error(exc) from exc
    except BaseException:
        _undo(session, nested)
        raise


def _undo(session, nested):
    if nested is None:
        # the flush that opens the savepoint failed; the session needs a full rollback
        session.rollback()
    elif session.get_nested_transaction() is nested:
        nested.rollback()


@contextmanager
def reading(session=None):
    """Map storage failures of a plain read to StorageError."""
    session = resolve_session(session)
    try:
        yield session
    except SQLAlchemyError as exc:
        session.rollback()
        raise _storage_error(exc) from exc


def with_transaction(fn, session=None, timeout_ms=None):
    """Call ``fn(session)`` inside :func:`transaction` and return its result."""
    with transaction(session, timeout_ms=timeout_ms) as tx:
        return fn(tx)


def _apply_timeout(session, timeout_ms):
    if session.get_bind().dialect.name != "postgresql":
        return
    ms = int(timeout_ms)
    # SET LOCAL does not take bind parameters; scoped to this transaction.
    session.execute(text(f"SET LOCAL statement_timeout = {ms}"))
    session.execute(text(f"SET LOCAL lock_timeout = {ms}"))


def enable_sqlite_immediate_transactions(engine):
    """Make every SQLite transaction take the write lock on BEGIN.

    SQLite ignores SELECT ... FOR UPDATE, so without this two writers can both
    read the same counter before either of them writes.
    """
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")
