"""
In-memory async fakes of the reconciliation collaborators.

Each fake keeps its state in plain dicts and lists so tests can seed and
inspect it, and can be told to fail for specific keys or to block on an
asyncio.Event. ScenarioWorld wires them into a ReconciliationService.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, List, Optional, Set
from uuid import UUID, uuid4

from domain.identity import IdentityAccount, RelationshipRole, TenantRelationship
from domain.lead import Lead, LeadStatus
from domain.tenant import Tenant, TenantStatus
from repositories.promotion_repository import RelationshipRepairPipeline
from services.probes import ResourceProbes
from services.reconciliation_service import ReconciliationService
from services.settings import ReconciliationSettings

CREATED = datetime(2025, 1, 1, 0, 0, 0, tzinfo=timezone.utc)


def lead_uuid(n: int) -> UUID:
    return UUID(f"00000000-0000-0000-0000-{n:012d}")


def tenant_uuid(n: int) -> UUID:
    return UUID(f"00000000-0000-0000-0001-{n:012d}")


def identity_uuid(n: int) -> UUID:
    return UUID(f"00000000-0000-0000-0002-{n:012d}")


def make_lead(
    n: int,
    *,
    status: LeadStatus = LeadStatus.CONVERTED,
    tenant: Optional[UUID] = None,
    email: Optional[str] = None,
) -> Lead:
    return Lead(
        lead_id=lead_uuid(n),
        status=status,
        email=email or f"owner{n}@example.com",
        contact_name=f"L{n}",
        company_name=f"Company {n}",
        converted_tenant_id=tenant,
        converted_at=CREATED if status is LeadStatus.CONVERTED else None,
        created_at=CREATED,
    )


def make_tenant(
    n: int,
    *,
    status: TenantStatus = TenantStatus.ACTIVE,
    owner_email: Optional[str] = None,
) -> Tenant:
    return Tenant(
        tenant_id=tenant_uuid(n),
        name=f"Tenant {n}",
        slug=f"tenant-{n}",
        status=status,
        owner_email=owner_email or f"owner{n}@example.com",
        created_at=CREATED,
    )


class FakeLeadStore:
    def __init__(self, leads: Optional[List[Lead]] = None) -> None:
        self.leads: Dict[UUID, Lead] = {lead.lead_id: lead for lead in leads or []}
        self.fail_updates_for: Set[UUID] = set()
        self.fail_listing = False
        self.audit_notes: List[tuple[UUID, str]] = []
        self.update_calls = 0
        self.fail_activities = False

    def add(self, lead: Lead) -> Lead:
        self.leads[lead.lead_id] = lead
        return lead

    async def get_converted_leads(self) -> List[Lead]:
        await asyncio.sleep(0)
        if self.fail_listing:
            raise RuntimeError("Failed to list converted leads: connection reset")
        return [lead for lead in self.leads.values() if lead.status is LeadStatus.CONVERTED]

    async def get_lead_by_id(self, lead_id: UUID) -> Optional[Lead]:
        await asyncio.sleep(0)
        return self.leads.get(lead_id)

    async def update_lead_status(
        self,
        lead_id: UUID,
        new_status: LeadStatus,
        audit_note: str,
        *,
        expected_status: Optional[LeadStatus] = None,
        clear_conversion: bool = False,
    ) -> Optional[Lead]:
        self.update_calls += 1
        await asyncio.sleep(0)
        if lead_id in self.fail_updates_for:
            raise RuntimeError("Failed to update lead status: permission denied")

        current = self.leads.get(lead_id)
        if current is None:
            return None
        if expected_status is not None and current.status is not expected_status:
            return None

        updated = replace(current, status=new_status)
        if clear_conversion:
            updated = replace(updated, converted_tenant_id=None, converted_at=None)
        self.leads[lead_id] = updated
        self.audit_notes.append((lead_id, audit_note))
        return updated

    async def record_activity(self, lead_id: UUID, title: str, description: str) -> None:
        await asyncio.sleep(0)
        if self.fail_activities:
            raise RuntimeError("Failed to record lead activity: insert rejected")
        self.audit_notes.append((lead_id, description))


class FakeTenantStore:
    def __init__(self, tenants: Optional[List[Tenant]] = None) -> None:
        self.tenants: Dict[UUID, Tenant] = {tenant.tenant_id: tenant for tenant in tenants or []}
        self.fail_for_leads: Set[UUID] = set()
        self.gate: Optional[asyncio.Event] = None
        self.calls = 0
        self.in_flight = 0
        self.max_in_flight = 0

    async def get_tenant_by_lead(self, lead: Lead) -> Optional[Tenant]:
        self.calls += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.gate is not None:
                await self.gate.wait()
            await asyncio.sleep(0)
            if lead.lead_id in self.fail_for_leads:
                raise TimeoutError("tenants query timed out")
            if lead.converted_tenant_id is None:
                return None
            return self.tenants.get(lead.converted_tenant_id)
        finally:
            self.in_flight -= 1


class FakeIdentityResolver:
    def __init__(self, identities: Optional[List[IdentityAccount]] = None) -> None:
        self.identities: Dict[str, IdentityAccount] = {
            identity.email.lower(): identity for identity in identities or []
        }
        self.fail_for_emails: Set[str] = set()

    def add(self, email: str, n: int) -> IdentityAccount:
        identity = IdentityAccount(identity_id=identity_uuid(n), email=email)
        self.identities[email.lower()] = identity
        return identity

    async def find_identity_by_email(self, email: str) -> Optional[IdentityAccount]:
        await asyncio.sleep(0)
        if email.lower() in self.fail_for_emails:
            raise RuntimeError("auth admin API unavailable")
        return self.identities.get(email.lower())


class FakeRelationshipStore:
    def __init__(self) -> None:
        self.rows: List[TenantRelationship] = []
        self.fail_lookups = False
        self.create_calls = 0

    def link(
        self,
        tenant_id: UUID,
        identity_id: UUID,
        role: RelationshipRole = RelationshipRole.TENANT_ADMIN,
        *,
        is_active: bool = True,
    ) -> TenantRelationship:
        relationship = TenantRelationship(
            tenant_id=tenant_id, identity_id=identity_id, role=role, is_active=is_active, relationship_id=uuid4()
        )
        self.rows.append(relationship)
        return relationship

    def count_for(self, tenant_id: UUID, identity_id: UUID) -> int:
        return sum(1 for row in self.rows if row.key == (tenant_id, identity_id))

    async def find_relationship(
        self,
        tenant_id: UUID,
        identity_id: Optional[UUID] = None,
        role: RelationshipRole = RelationshipRole.TENANT_ADMIN,
    ) -> Optional[TenantRelationship]:
        await asyncio.sleep(0)
        if self.fail_lookups:
            raise RuntimeError("user_tenants query failed")
        for relationship in self.rows:
            if relationship.tenant_id != tenant_id or relationship.role is not role or not relationship.is_active:
                continue
            if identity_id is None or relationship.identity_id == identity_id:
                return relationship
        return None

    async def create_relationship(
        self,
        tenant_id: UUID,
        identity_id: UUID,
        role: RelationshipRole = RelationshipRole.TENANT_ADMIN,
    ) -> TenantRelationship:
        self.create_calls += 1
        await asyncio.sleep(0)
        for index, row in enumerate(self.rows):
            if row.key == (tenant_id, identity_id):
                self.rows[index] = replace(row, role=role, is_active=True)
                return self.rows[index]
        relationship = TenantRelationship(
            tenant_id=tenant_id, identity_id=identity_id, role=role, is_active=True, relationship_id=uuid4()
        )
        self.rows.append(relationship)
        return relationship


class FakeNotificationSink:
    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.sent: List[tuple[str, str, str]] = []

    async def notify(self, title: str, message: str, *, severity: str = "info") -> None:
        if self.fail:
            raise RuntimeError("notification service down")
        self.sent.append((title, message, severity))


class ScenarioWorld:
    """
    Five converted leads wired to a ReconciliationService:

    - L1: no tenant (revert_status)
    - L2: active tenant, owner identity exists, no admin link (retry_conversion)
    - L3: suspended tenant (manual_intervention)
    - L4: fully promoted (valid)
    - L5: no tenant, and every status write for it fails
    """

    def __init__(self, *, notifications: Optional[FakeNotificationSink] = None, max_concurrency: int = 8) -> None:
        self.l1 = make_lead(1)
        self.l2 = make_lead(2, tenant=tenant_uuid(2))
        self.l3 = make_lead(3, tenant=tenant_uuid(3))
        self.l4 = make_lead(4, tenant=tenant_uuid(4))
        self.l5 = make_lead(5)

        self.leads = FakeLeadStore([self.l1, self.l2, self.l3, self.l4, self.l5])
        self.leads.fail_updates_for.add(self.l5.lead_id)
        self.tenants = FakeTenantStore(
            [make_tenant(2), make_tenant(3, status=TenantStatus.SUSPENDED), make_tenant(4)]
        )
        self.identities = FakeIdentityResolver()
        self.identities.add("owner2@example.com", 2)
        self.identities.add("owner4@example.com", 4)
        self.relationships = FakeRelationshipStore()
        self.relationships.link(tenant_uuid(4), identity_uuid(4))
        self.notifications = notifications if notifications is not None else FakeNotificationSink()

        self.settings = ReconciliationSettings(max_concurrency=max_concurrency, watcher_enabled=False)
        self.service = ReconciliationService.build(
            leads=self.leads,
            probes=ResourceProbes(self.tenants, self.identities, self.relationships),
            pipeline=RelationshipRepairPipeline(self.identities, self.relationships),
            settings=self.settings,
            notifications=self.notifications,
        )
