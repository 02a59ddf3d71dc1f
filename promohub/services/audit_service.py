"""
Redemption audit service.

This service records one audit row per terminal outcome of a QR generate,
scan or confirm attempt, and provides the queries used to read the trail back.
Raw tokens are never written here; callers pass the token hash.
"""

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from promohub.core.security import redact_dict
from promohub.models.redemptions import AuditLog

logger = logging.getLogger(__name__)

# Audit actions
QR_GENERATED = "QR_GENERATED"
QR_SCAN_ATTEMPT = "QR_SCAN_ATTEMPT"
REDEMPTION_CONFIRM_ATTEMPT = "REDEMPTION_CONFIRM_ATTEMPT"
RESERVATION_CREATED = "RESERVATION_CREATED"
RESERVATIONS_EXPIRED = "RESERVATIONS_EXPIRED"


class AuditService:
    """Service for writing and reading the redemption audit trail."""

    def __init__(self, db: AsyncSession):
        """
        Initialize the audit service.

        Args:
            db: Database session
        """
        self.db = db

    async def log(
        self,
        action: str,
        entity_type: str,
        entity_id: str | UUID,
        user_id: UUID | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> AuditLog:
        """
        Persist a single audit record and commit it.

        Args:
            action: Audit action, e.g. ``QR_SCAN_ATTEMPT``
            entity_type: Kind of entity the action concerns
            entity_id: Identifier of that entity
            user_id: Acting user, if known
            metadata: Outcome details (status, reason, token_hash, ...)

        Returns:
            Created AuditLog instance
        """
        try:
            entry = AuditLog(
                action=action,
                entity_type=entity_type,
                entity_id=str(entity_id),
                user_id=user_id,
                extra_data=redact_dict(metadata or {}),
            )

            self.db.add(entry)
            await self.db.commit()
            await self.db.refresh(entry)

            logger.info(
                f"Audit {action} on {entity_type}:{entity_id} "
                f"status={entry.extra_data.get('status')} reason={entry.extra_data.get('reason')}"
            )
            return entry

        except Exception as e:
            logger.error(f"Failed to write audit log {action}: {e}")
            await self.db.rollback()
            raise

    async def get_entity_logs(self, entity_type: str, entity_id: str | UUID) -> list[AuditLog]:
        """Get all audit records for one entity, oldest first."""
        result = await self.db.execute(
            select(AuditLog)
            .where(AuditLog.entity_type == entity_type, AuditLog.entity_id == str(entity_id))
            .order_by(AuditLog.created_at.asc())
        )
        return list(result.scalars().all())

    async def get_recent(self, action: str | None = None, limit: int = 50) -> list[AuditLog]:
        """Get the most recent audit records, optionally for a single action."""
        query = select(AuditLog)
        if action:
            query = query.where(AuditLog.action == action)
        query = query.order_by(AuditLog.created_at.desc()).limit(limit)

        result = await self.db.execute(query)
        return list(result.scalars().all())
