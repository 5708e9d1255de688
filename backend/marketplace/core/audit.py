"""Audit logging utilities."""

from __future__ import annotations

import json
from typing import Any, Optional

from fastapi import Request
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.identity import Identity
from marketplace.models.audit_log import AuditLog


async def log_audit(
    session: AsyncSession,
    identity: Identity,
    entity: str,
    entity_id: Optional[str],
    action: str,
    details: Optional[dict[str, Any]] = None,
    request: Optional[Request] = None,
) -> None:
    """Record an action in the caller's transaction; committed with the change."""

    await session.execute(
        insert(AuditLog).values(
            user_id=identity.user_id,
            entity=entity,
            entity_id=entity_id,
            action=action,
            details=json.dumps(details, default=str) if details is not None else None,
            remote_addr=(request.client.host if request and request.client else None),
        )
    )
