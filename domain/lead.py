"""
Domain: Lead entity.

A Lead is a sales prospect moving through the pipeline. Promotion turns a
qualified Lead into a Tenant; once promotion has been attempted the Lead is
flagged `converted` and (normally) references the tenant it produced.

Rules implemented here:
- A Lead is uniquely identified by lead_id (UUID).
- Timestamps are UTC and timezone-aware.
- The entity is immutable; status transitions happen in the store and come
  back as new instances.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from .time import require_utc_timestamp


class LeadStatus(str, Enum):
    NEW = "new"
    CONTACTED = "contacted"
    QUALIFIED = "qualified"
    PROPOSAL = "proposal"
    NEGOTIATION = "negotiation"
    CONVERTING = "converting"
    CONVERTED = "converted"
    LOST = "lost"


@dataclass(frozen=True, slots=True)
class Lead:
    """
    Pure domain entity for a Lead.

    Notes:
    - converted_tenant_id is the only link from a Lead to the Tenant its
      promotion created. A converted Lead without it has no tenant.
    """

    lead_id: UUID
    status: LeadStatus
    email: str

    # Contact / organization metadata
    contact_name: Optional[str] = None
    company_name: Optional[str] = None
    notes: Optional[str] = None

    # Promotion outcome
    converted_tenant_id: Optional[UUID] = None
    converted_at: Optional[datetime] = None

    # Timestamps
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        for name in ("converted_at", "created_at", "updated_at"):
            value = getattr(self, name)
            if value is not None:
                require_utc_timestamp(name, value)

    @property
    def is_converted(self) -> bool:
        return self.status == LeadStatus.CONVERTED

    def display_name(self) -> str:
        """Return a readable name for logs and notifications."""
        return self.contact_name or self.company_name or self.email or str(self.lead_id)
