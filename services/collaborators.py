"""
Interfaces of the collaborators the reconciliation engine talks to.

The engine only reads leads, tenants, identities and relationships, and only
writes through the narrow remediation calls below. The Supabase-backed
implementations live in `repositories/`; tests use in-memory fakes.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Protocol
from uuid import UUID

from domain.identity import IdentityAccount, RelationshipRole, TenantRelationship
from domain.lead import Lead, LeadStatus
from domain.tenant import Tenant

logger = logging.getLogger(__name__)


class LeadStore(Protocol):
    async def get_converted_leads(self) -> List[Lead]:  # pragma: no cover - protocol
        ...

    async def get_lead_by_id(self, lead_id: UUID) -> Optional[Lead]:  # pragma: no cover - protocol
        ...

    async def update_lead_status(
        self,
        lead_id: UUID,
        new_status: LeadStatus,
        audit_note: str,
        *,
        expected_status: Optional[LeadStatus] = None,
        clear_conversion: bool = False,
    ) -> Optional[Lead]:  # pragma: no cover - protocol
        """Return the updated lead, or None when the conditional update matched nothing."""

    async def record_activity(self, lead_id: UUID, title: str, description: str) -> None:  # pragma: no cover - protocol
        ...


class TenantStore(Protocol):
    async def get_tenant_by_lead(self, lead: Lead) -> Optional[Tenant]:  # pragma: no cover - protocol
        ...


class IdentityResolver(Protocol):
    async def find_identity_by_email(self, email: str) -> Optional[IdentityAccount]:  # pragma: no cover - protocol
        ...


class RelationshipStore(Protocol):
    async def find_relationship(
        self,
        tenant_id: UUID,
        identity_id: Optional[UUID] = None,
        role: RelationshipRole = RelationshipRole.TENANT_ADMIN,
    ) -> Optional[TenantRelationship]:  # pragma: no cover - protocol
        ...

    async def create_relationship(
        self,
        tenant_id: UUID,
        identity_id: UUID,
        role: RelationshipRole = RelationshipRole.TENANT_ADMIN,
    ) -> TenantRelationship:  # pragma: no cover - protocol
        """Upsert: must be safe when a matching relationship already exists."""


class PromotionPipeline(Protocol):
    async def repair_relationship(self, tenant_id: UUID, owner_email: str) -> TenantRelationship:  # pragma: no cover - protocol
        ...


class NotificationSink(Protocol):
    async def notify(self, title: str, message: str, *, severity: str = "info") -> None:  # pragma: no cover - protocol
        ...


class LoggingNotificationSink:
    """Notification sink that only writes to the log (CLI and headless runs)."""

    async def notify(self, title: str, message: str, *, severity: str = "info") -> None:
        level = logging.WARNING if severity in ("warning", "error") else logging.INFO
        logger.log(level, f"{title}: {message}", extra={"severity": severity})


async def notify_quietly(sink: Optional[NotificationSink], title: str, message: str, *, severity: str = "info") -> None:
    """
    Fire a notification without letting its failure reach the caller.

    Notifications are advisory; a broken sink is logged and otherwise ignored.
    """

    if sink is None:
        return
    try:
        await sink.notify(title, message, severity=severity)
    except Exception:
        logger.exception(f"Notification sink failed for {title!r}")


__all__ = [
    "LeadStore",
    "TenantStore",
    "IdentityResolver",
    "RelationshipStore",
    "PromotionPipeline",
    "NotificationSink",
    "LoggingNotificationSink",
    "notify_quietly",
]
