"""
shared/utils/audit.py
Append-only admin audit trail.
"""

from typing import Optional

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from shared.models.models import AdminAuditLog, Profile


def log_admin_action(
    db: AsyncSession,
    admin: Profile,
    action: str,
    entity_type: str,
    entity_id: str,
    payload: Optional[dict] = None,
    request: Optional[Request] = None,
) -> AdminAuditLog:
    """Stage an AdminAuditLog row in the caller's transaction."""
    log = AdminAuditLog(
        admin_id=admin.id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        payload=payload or {},
        ip_address=request.client.host if request and request.client else None,
    )
    db.add(log)
    return log
