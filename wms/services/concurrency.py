# Overview: Write serialization and the commit-then-snapshot unit of work.

from __future__ import annotations

import threading
from functools import wraps

from flask import current_app

from ..extensions import db
from ..snapshot import SnapshotStore, dump_from


# One global mutex over the single shared connection. Every multi-statement
# write (fulfill, receive, settle...) runs under it, and so does every HTTP
# request: a session closed by another thread rolls back the connection and
# would discard a write that has flushed but not yet committed.
write_lock = threading.RLock()

_state = threading.local()

SNAPSHOT_EXTENSION = "wms.snapshot"


def get_snapshot_store() -> SnapshotStore:
    return current_app.extensions[SNAPSHOT_EXTENSION]


def persist_snapshot() -> None:
    """Write the current committed store to durable storage."""
    get_snapshot_store().save(dump_from(db.engine))


def run_write(func, *args, **kwargs):
    """
    Execute func as one atomic write.

    - Serialized by write_lock.
    - Only the outermost call commits; nested calls join the outer transaction.
    - On any exception the transaction is rolled back and nothing is persisted.
    - After commit the snapshot is saved, so a crash loses at most this write.
    """
    with write_lock:
        depth = getattr(_state, "depth", 0)
        _state.depth = depth + 1
        try:
            result = func(*args, **kwargs)
            if depth == 0:
                db.session.commit()
        except Exception:
            if depth == 0:
                db.session.rollback()
            raise
        finally:
            _state.depth = depth

        if depth == 0:
            persist_snapshot()
        return result


def transactional(func):
    """Decorator form of run_write for service functions."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        return run_write(func, *args, **kwargs)

    return wrapper


def serialize_requests(wsgi_app):
    """
    Wrap a WSGI callable so each request holds write_lock until Flask has
    popped its contexts and removed the request's session.
    """
    @wraps(wsgi_app)
    def wrapper(environ, start_response):
        with write_lock:
            return wsgi_app(environ, start_response)

    return wrapper
