"""
Domain: Tenant organizations.

A Tenant is the organization record produced by promoting a Lead. Its status
is also changed by billing and suspension flows, so an inactive Tenant does
not by itself mean promotion failed.

The status set is open: values outside TenantStatus are kept as the raw
string and count as active, since only suspended, cancelled and archived
tenants are inactive.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import FrozenSet, Optional, Union
from uuid import UUID

from .time import require_utc_timestamp


class TenantStatus(str, Enum):
    TRIAL = "trial"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    CANCELLED = "cancelled"
    ARCHIVED = "archived"


INACTIVE_TENANT_STATUSES: FrozenSet[TenantStatus] = frozenset(
    {TenantStatus.SUSPENDED, TenantStatus.CANCELLED, TenantStatus.ARCHIVED}
)


def parse_tenant_status(raw: str) -> Union[TenantStatus, str]:
    """Map a stored status to TenantStatus, keeping unknown values as-is."""

    try:
        return TenantStatus(raw)
    except ValueError:
        return raw


@dataclass(frozen=True, slots=True)
class Tenant:
    """Tenant organization with owner contact fields and status tracking."""

    tenant_id: UUID
    name: str
    status: Union[TenantStatus, str]

    slug: Optional[str] = None
    owner_email: Optional[str] = None
    owner_name: Optional[str] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.created_at is not None:
            require_utc_timestamp("created_at", self.created_at)
        if self.updated_at is not None:
            require_utc_timestamp("updated_at", self.updated_at)

    @property
    def status_value(self) -> str:
        return self.status.value if isinstance(self.status, TenantStatus) else self.status

    @property
    def is_active(self) -> bool:
        """Active means the status is not suspended, cancelled or archived."""
        return self.status not in INACTIVE_TENANT_STATUSES
