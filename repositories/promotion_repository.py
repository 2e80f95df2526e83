"""
Relationship-repair step of the promotion pipeline.

Promotion creates the tenant, resolves the owner's identity and then links
that identity to the tenant as administrator. Only the last step can be
re-run on its own: it resolves the identity by email and upserts the
relationship, so running it twice never creates a second tenant or a second
relationship.
"""

from __future__ import annotations

import logging
from uuid import UUID

from domain.identity import RelationshipRole, TenantRelationship
from repositories.identity_repository import SupabaseIdentityResolver
from repositories.relationship_repository import SupabaseRelationshipStore

logger = logging.getLogger(__name__)


class OwnerIdentityNotFoundError(LookupError):
    """Raised when no identity account exists for a tenant owner's email."""

    def __init__(self, owner_email: str) -> None:
        self.owner_email = owner_email
        super().__init__(f"No identity account found for owner email {owner_email!r}")


class RelationshipRepairPipeline:
    """Re-runs the relationship-creation step for an existing tenant."""

    def __init__(
        self,
        identities: SupabaseIdentityResolver,
        relationships: SupabaseRelationshipStore,
        *,
        role: RelationshipRole = RelationshipRole.TENANT_ADMIN,
    ) -> None:
        self._identities = identities
        self._relationships = relationships
        self._role = role

    async def repair_relationship(self, tenant_id: UUID, owner_email: str) -> TenantRelationship:
        """
        Ensure the owner identity is linked to the tenant as administrator.

        Raises:
            OwnerIdentityNotFoundError: If the owner has no identity account.
        """

        identity = await self._identities.find_identity_by_email(owner_email)
        if identity is None:
            raise OwnerIdentityNotFoundError(owner_email)

        existing = await self._relationships.find_relationship(tenant_id, identity.identity_id, self._role)
        if existing is not None:
            logger.info(
                f"Relationship already present for tenant {tenant_id}",
                extra={"tenant_id": str(tenant_id), "identity_id": str(identity.identity_id)},
            )
            return existing

        relationship = await self._relationships.create_relationship(tenant_id, identity.identity_id, self._role)
        logger.info(
            f"Repaired admin relationship for tenant {tenant_id}",
            extra={"tenant_id": str(tenant_id), "identity_id": str(identity.identity_id)},
        )
        return relationship


__all__ = ["OwnerIdentityNotFoundError", "RelationshipRepairPipeline"]
