"""Shared helpers for database error handling."""

from __future__ import annotations

from sqlalchemy.exc import OperationalError

from marketplace.core.errors import LockConflict

LOCK_NOWAIT_ERROR_CODES = {3572}


def raise_on_lock_conflict(exc: OperationalError) -> None:
    """Translate lock-nowait conflicts into a 409, re-raise anything else."""

    orig = getattr(exc, "orig", None)
    code = None
    if orig and getattr(orig, "args", None):
        try:
            code = int(orig.args[0])
        except (TypeError, ValueError):
            code = None
    message = str(getattr(exc, "orig", exc)).lower()
    if code in LOCK_NOWAIT_ERROR_CODES or "could not obtain lock" in message or "could not acquire" in message:
        raise LockConflict() from exc
    raise exc
