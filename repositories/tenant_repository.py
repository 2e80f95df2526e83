"""
Tenant repository (persistence).

Read-only access to the `tenants` table. Tenants are created by the promotion
pipeline and their status is changed by billing flows; this engine never
writes them.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional
from uuid import UUID

from domain.lead import Lead
from domain.tenant import Tenant, parse_tenant_status
from domain.time import parse_utc_timestamp

_TENANTS_TABLE: str = "tenants"


def _row_to_tenant(row: Mapping[str, Any]) -> Tenant:
    """Convert a Supabase row into a domain Tenant."""

    return Tenant(
        tenant_id=UUID(str(row["id"])),
        name=str(row.get("name") or ""),
        status=parse_tenant_status(str(row["status"])),
        slug=row.get("slug") or None,
        owner_email=row.get("owner_email") or None,
        owner_name=row.get("owner_name") or None,
        created_at=parse_utc_timestamp(row["created_at"]) if row.get("created_at") else None,
        updated_at=parse_utc_timestamp(row["updated_at"]) if row.get("updated_at") else None,
    )


class SupabaseTenantStore:
    def __init__(self, client) -> None:
        self._client = client

    async def get_tenant(self, tenant_id: UUID) -> Optional[Tenant]:
        """
        Fetch a Tenant by ID.

        Returns:
            Tenant or None if not found

        Raises:
            RuntimeError: If Supabase returns an error response.
        """

        response = await (
            self._client.table(_TENANTS_TABLE)
            .select("id, name, slug, status, owner_email, owner_name, created_at, updated_at")
            .eq("id", str(tenant_id))
            .limit(1)
            .execute()
        )
        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to fetch tenant: {error}")

        rows = getattr(response, "data", None) or []
        if not rows:
            return None
        return _row_to_tenant(rows[0])

    async def get_tenant_by_lead(self, lead: Lead) -> Optional[Tenant]:
        """
        Resolve the tenant a lead's promotion produced.

        A lead without converted_tenant_id has no tenant.
        """

        if lead.converted_tenant_id is None:
            return None
        return await self.get_tenant(lead.converted_tenant_id)


__all__ = ["SupabaseTenantStore"]
