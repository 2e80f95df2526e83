"""Factory helpers for wiring the reconciliation engine to Supabase."""

from __future__ import annotations

from typing import Optional

from repositories.client import get_supabase
from repositories.identity_repository import SupabaseIdentityResolver
from repositories.lead_repository import SupabaseLeadStore
from repositories.notification_repository import SupabaseNotificationSink
from repositories.promotion_repository import RelationshipRepairPipeline
from repositories.relationship_repository import SupabaseRelationshipStore
from repositories.tenant_repository import SupabaseTenantStore
from services.collaborators import LoggingNotificationSink, NotificationSink
from services.probes import ResourceProbes
from services.reconciliation_service import ReconciliationService
from services.settings import ReconciliationSettings


async def build_reconciliation_service(
    settings: Optional[ReconciliationSettings] = None,
    *,
    persist_notifications: bool = True,
) -> ReconciliationService:
    """
    Build a ReconciliationService backed by the shared Supabase client.

    Args:
        settings: Engine settings; read from the environment when None
        persist_notifications: Write notifications to `admin_notifications`
            instead of only logging them

    Raises:
        RuntimeError: If Supabase credentials are missing.
    """

    settings = settings or ReconciliationSettings.from_env()
    client = await get_supabase()

    identities = SupabaseIdentityResolver(client)
    relationships = SupabaseRelationshipStore(client)
    probes = ResourceProbes(
        SupabaseTenantStore(client),
        identities,
        relationships,
        admin_role=settings.admin_role,
    )
    pipeline = RelationshipRepairPipeline(identities, relationships, role=settings.admin_role)

    notifications: NotificationSink
    if persist_notifications:
        notifications = SupabaseNotificationSink(client)
    else:
        notifications = LoggingNotificationSink()

    return ReconciliationService.build(
        leads=SupabaseLeadStore(client),
        probes=probes,
        pipeline=pipeline,
        settings=settings,
        notifications=notifications,
    )


__all__ = ["build_reconciliation_service"]
