"""
Tenant-identity relationship repository (persistence).

Backed by the `user_tenants` table, which carries a unique constraint on
(user_id, tenant_id). Writes are upserts on that key, so creating a
relationship that already exists re-activates it instead of duplicating it.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional
from uuid import UUID

from domain.identity import RelationshipRole, TenantRelationship

_USER_TENANTS_TABLE: str = "user_tenants"
_CONFLICT_KEY: str = "user_id,tenant_id"


def _row_to_relationship(row: Mapping[str, Any]) -> TenantRelationship:
    return TenantRelationship(
        relationship_id=UUID(str(row["id"])) if row.get("id") else None,
        tenant_id=UUID(str(row["tenant_id"])),
        identity_id=UUID(str(row["user_id"])),
        role=RelationshipRole(str(row.get("role") or RelationshipRole.TENANT_ADMIN.value)),
        is_active=bool(row.get("is_active", True)),
    )


class SupabaseRelationshipStore:
    def __init__(self, client) -> None:
        self._client = client

    async def find_relationship(
        self,
        tenant_id: UUID,
        identity_id: Optional[UUID] = None,
        role: RelationshipRole = RelationshipRole.TENANT_ADMIN,
    ) -> Optional[TenantRelationship]:
        """
        Find an active relationship on a tenant with the given role.

        Args:
            tenant_id: Tenant identifier
            identity_id: Restrict to this identity; None matches any identity
            role: Required role

        Returns:
            TenantRelationship or None if no active relationship matches
        """

        query = (
            self._client.table(_USER_TENANTS_TABLE)
            .select("id, tenant_id, user_id, role, is_active")
            .eq("tenant_id", str(tenant_id))
            .eq("role", role.value)
            .eq("is_active", True)
        )
        if identity_id is not None:
            query = query.eq("user_id", str(identity_id))

        response = await query.limit(1).execute()
        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to fetch tenant relationship: {error}")

        rows = getattr(response, "data", None) or []
        if not rows:
            return None
        return _row_to_relationship(rows[0])

    async def create_relationship(
        self,
        tenant_id: UUID,
        identity_id: UUID,
        role: RelationshipRole = RelationshipRole.TENANT_ADMIN,
    ) -> TenantRelationship:
        """
        Create (or re-activate) the relationship for (tenant_id, identity_id).

        Safe to call when a matching relationship already exists.
        """

        payload = {
            "tenant_id": str(tenant_id),
            "user_id": str(identity_id),
            "role": role.value,
            "is_active": True,
        }
        from postgrest.exceptions import APIError

        try:
            response = await (
                self._client.table(_USER_TENANTS_TABLE)
                .upsert(payload, on_conflict=_CONFLICT_KEY)
                .execute()
            )
        except APIError as e:
            raise RuntimeError(f"Failed to upsert tenant relationship: {e.message}") from e
        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to upsert tenant relationship: {error}")

        rows = getattr(response, "data", None) or []
        if rows:
            return _row_to_relationship(rows[0])
        return TenantRelationship(tenant_id=tenant_id, identity_id=identity_id, role=role)


__all__ = ["SupabaseRelationshipStore"]
