"""Audit sink: one AuditLog row per domain event, in the caller's transaction."""

import logging
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from loanflow.models.audit import AuditAction, AuditLog
from loanflow.services.verification_store import to_jsonable

logger = logging.getLogger(__name__)


async def emit(
    db: AsyncSession,
    action: AuditAction,
    tenant_id: str,
    *,
    entity_type: str,
    entity_id: int,
    actor_id: Optional[str] = None,
    old_values: Optional[dict[str, Any]] = None,
    new_values: Optional[dict[str, Any]] = None,
    details: Optional[str] = None,
    ip_address: Optional[str] = None,
) -> AuditLog:
    """Record an audit entry. Shares the session with the state change it
    describes, so both commit or roll back together."""
    entry = AuditLog(
        tenant_id=tenant_id,
        entity_type=entity_type,
        entity_id=entity_id,
        action=action.value,
        actor_id=actor_id,
        old_values=to_jsonable(old_values) if old_values is not None else None,
        new_values=to_jsonable(new_values) if new_values is not None else None,
        details=details,
        ip_address=ip_address,
    )
    db.add(entry)
    await db.flush()
    logger.debug("Audit %s on %s %s", action.value, entity_type, entity_id)
    return entry
