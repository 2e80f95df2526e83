"""
Lead repository (persistence).

This module provides *only* persistence operations for the Lead domain entity.
No reconciliation rules (what counts as drift, which action to take) belong
here.

Status writes are conditional: `update_lead_status` only touches the row if
the lead is still in `expected_status`, so two actors fixing the same lead
cannot both apply the transition.
"""

from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional
from uuid import UUID

from domain.lead import Lead, LeadStatus
from domain.time import parse_utc_timestamp, utc_now

logger = logging.getLogger(__name__)

# Supabase table names.
# Keep these aligned with your database schema.
_LEADS_TABLE: str = "leads"
_LEAD_ACTIVITIES_TABLE: str = "lead_activities"


def _optional_uuid(value: Any) -> Optional[UUID]:
    return UUID(str(value)) if value else None


def _optional_timestamp(value: Any):
    return parse_utc_timestamp(value) if value else None


def _row_to_lead(row: Mapping[str, Any]) -> Lead:
    """Convert a Supabase row into a domain Lead."""

    return Lead(
        lead_id=UUID(str(row["id"])),
        status=LeadStatus(str(row["status"])),
        email=str(row.get("email") or ""),
        contact_name=row.get("contact_name") or None,
        company_name=row.get("company_name") or None,
        notes=row.get("notes") or None,
        converted_tenant_id=_optional_uuid(row.get("converted_tenant_id")),
        converted_at=_optional_timestamp(row.get("converted_at")),
        created_at=_optional_timestamp(row.get("created_at")),
        updated_at=_optional_timestamp(row.get("updated_at")),
    )


class SupabaseLeadStore:
    """Lead store backed by the `leads` and `lead_activities` tables."""

    def __init__(self, client) -> None:
        self._client = client

    async def get_converted_leads(self) -> List[Lead]:
        """
        List every lead currently flagged `converted`.

        Raises:
            RuntimeError: If Supabase returns an error response.
        """

        response = await (
            self._client.table(_LEADS_TABLE)
            .select("*")
            .eq("status", LeadStatus.CONVERTED.value)
            .execute()
        )
        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to list converted leads: {error}")

        rows = getattr(response, "data", None) or []
        return [_row_to_lead(row) for row in rows]

    async def get_lead_by_id(self, lead_id: UUID) -> Optional[Lead]:
        """
        Fetch a Lead by ID.

        Returns:
        - Lead if found
        - None if no record exists for the given ID
        """

        response = await (
            self._client.table(_LEADS_TABLE)
            .select("*")
            .eq("id", str(lead_id))
            .limit(1)
            .execute()
        )
        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to fetch lead: {error}")

        rows = getattr(response, "data", None) or []
        if not rows:
            return None
        return _row_to_lead(rows[0])

    async def update_lead_status(
        self,
        lead_id: UUID,
        new_status: LeadStatus,
        audit_note: str,
        *,
        expected_status: Optional[LeadStatus] = None,
        clear_conversion: bool = False,
    ) -> Optional[Lead]:
        """
        Transition a lead's status and record an audit note.

        Args:
            lead_id: Lead to update
            new_status: Status to set
            audit_note: Human-readable reason, stored as a lead activity
            expected_status: When given, the update only applies if the lead
                is still in this status
            clear_conversion: Also null out converted_tenant_id / converted_at

        Returns:
            The updated Lead, or None if no row matched (lead missing, or
            its status already moved away from expected_status).

        Raises:
            RuntimeError: If Supabase returns an error response.
        """

        payload: dict[str, Any] = {
            "status": new_status.value,
            "updated_at": utc_now().isoformat(),
        }
        if clear_conversion:
            payload["converted_tenant_id"] = None
            payload["converted_at"] = None

        query = self._client.table(_LEADS_TABLE).update(payload).eq("id", str(lead_id))
        if expected_status is not None:
            query = query.eq("status", expected_status.value)

        from postgrest.exceptions import APIError

        try:
            response = await query.execute()
        except APIError as e:
            raise RuntimeError(f"Failed to update lead status: {e.message}") from e
        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to update lead status: {error}")

        rows = getattr(response, "data", None) or []
        if not rows:
            logger.info(
                f"Conditional status update matched no rows for lead {lead_id}",
                extra={
                    "lead_id": str(lead_id),
                    "new_status": new_status.value,
                    "expected_status": expected_status.value if expected_status else None,
                },
            )
            return None

        # The status write has already landed; a lost audit row must not
        # report the transition as failed.
        try:
            await self.record_activity(lead_id, f"Status changed to {new_status.value}", audit_note)
        except Exception:
            logger.exception(f"Failed to record audit note for lead {lead_id}")
        return _row_to_lead(rows[0])

    async def record_activity(self, lead_id: UUID, title: str, description: str) -> None:
        """
        Insert a `lead_activities` row (the lead's audit trail).

        Raises:
            RuntimeError: If Supabase returns an error response.
        """

        response = await (
            self._client.table(_LEAD_ACTIVITIES_TABLE)
            .insert(
                {
                    "lead_id": str(lead_id),
                    "activity_type": "status_change",
                    "title": title,
                    "description": description,
                }
            )
            .execute()
        )
        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to record lead activity: {error}")


__all__ = ["SupabaseLeadStore"]
