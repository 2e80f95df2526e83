"""
Resource probes for converted-lead validation.

Each probe is a single read against one collaborator. Probes fail closed: a
collaborator error is raised as ProbeError and is never read as "the
resource does not exist", because a false "tenant missing" would lead an
operator to revert a lead whose tenant is fine.
"""

from __future__ import annotations

import logging
from typing import Optional
from uuid import UUID

from domain.identity import RelationshipRole
from domain.lead import Lead
from domain.reconciliation import IdentityProbe, TenantProbe
from services.collaborators import IdentityResolver, RelationshipStore, TenantStore

logger = logging.getLogger(__name__)


class ProbeError(Exception):
    """Raised when a probe could not reach its backing resource."""

    def __init__(self, probe: str, detail: str, *, lead_id: Optional[UUID] = None) -> None:
        self.probe = probe
        self.detail = detail
        self.lead_id = lead_id
        super().__init__(f"{probe} probe failed: {detail}")


class ResourceProbes:
    """Read-only lookups against the tenant, identity and relationship stores."""

    def __init__(
        self,
        tenants: TenantStore,
        identities: IdentityResolver,
        relationships: RelationshipStore,
        *,
        admin_role: RelationshipRole = RelationshipRole.TENANT_ADMIN,
    ) -> None:
        self._tenants = tenants
        self._identities = identities
        self._relationships = relationships
        self._admin_role = admin_role

    async def tenant_status(self, lead: Lead) -> TenantProbe:
        try:
            tenant = await self._tenants.get_tenant_by_lead(lead)
        except Exception as exc:
            raise self._failure("tenant", exc, lead.lead_id) from exc
        if tenant is None:
            return TenantProbe.missing()
        return TenantProbe.of(tenant)

    async def identity_exists(self, email: str, *, lead_id: Optional[UUID] = None) -> IdentityProbe:
        if not email:
            return IdentityProbe.missing()
        try:
            identity = await self._identities.find_identity_by_email(email)
        except Exception as exc:
            raise self._failure("identity", exc, lead_id) from exc
        if identity is None:
            return IdentityProbe.missing()
        return IdentityProbe.of(identity)

    async def relationship_exists(
        self,
        tenant_id: UUID,
        identity_id: UUID,
        *,
        lead_id: Optional[UUID] = None,
    ) -> bool:
        """Whether identity_id holds an active admin relationship on tenant_id."""
        try:
            relationship = await self._relationships.find_relationship(tenant_id, identity_id, self._admin_role)
        except Exception as exc:
            raise self._failure("relationship", exc, lead_id) from exc
        return relationship is not None

    async def relationship_exists_for_tenant(self, tenant_id: UUID, *, lead_id: Optional[UUID] = None) -> bool:
        """Whether any identity holds an active admin relationship on tenant_id."""
        try:
            relationship = await self._relationships.find_relationship(tenant_id, None, self._admin_role)
        except Exception as exc:
            raise self._failure("relationship", exc, lead_id) from exc
        return relationship is not None

    @staticmethod
    def _failure(probe: str, exc: Exception, lead_id: Optional[UUID]) -> ProbeError:
        logger.warning(
            f"{probe} probe failed for lead {lead_id}: {exc}",
            extra={"probe": probe, "lead_id": str(lead_id) if lead_id else None},
        )
        return ProbeError(probe, str(exc) or type(exc).__name__, lead_id=lead_id)


__all__ = ["ProbeError", "ResourceProbes"]
