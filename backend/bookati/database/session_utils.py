"""
Helpers for working with SQLAlchemy sessions in a dialect-agnostic way.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import inspect
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

# PostgreSQL SQLSTATE for "lock_not_available" (raised when lock_timeout elapses)
PG_LOCK_NOT_AVAILABLE = "55P03"
PG_DEADLOCK_DETECTED = "40P01"


def resolve_session_bind(session: Session) -> Optional[Connection | Engine]:
    """Return the engine/connection bound to a session without direct .bind access."""
    try:
        bind = session.get_bind()
        if bind is not None:
            return bind
    except Exception:
        bind = None

    try:
        insp = inspect(session)
    except Exception:
        return None

    return getattr(insp, "bind", None)


def get_dialect_name(session: Session, default: str = "sqlite") -> str:
    """
    Return SQLAlchemy dialect name without touching Session.bind directly.

    Falls back to ``default`` when the bound engine cannot be resolved.
    """
    bind = resolve_session_bind(session)
    if bind is None:
        return default
    dialect = getattr(bind, "dialect", None)
    name = getattr(dialect, "name", None)
    return name or default


def _pgcode(exc: OperationalError) -> Optional[str]:
    orig = getattr(exc, "orig", None)
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


def is_lock_timeout_error(exc: OperationalError) -> bool:
    """True when the error was raised because a row lock wait expired."""
    if _pgcode(exc) == PG_LOCK_NOT_AVAILABLE:
        return True
    message = str(exc).lower()
    return "lock timeout" in message or "could not obtain lock" in message


def is_deadlock_error(exc: OperationalError) -> bool:
    if _pgcode(exc) == PG_DEADLOCK_DETECTED:
        return True
    return "deadlock detected" in str(exc).lower()
