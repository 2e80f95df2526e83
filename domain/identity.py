"""
Domain: identity accounts and tenant-identity relationships.

An IdentityAccount is the external-provider account of the person who will
administer a tenant. The engine only ever resolves these by email.

A TenantRelationship links an identity to a tenant with a role. An active
admin relationship is the final proof that promotion fully succeeded.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional
from uuid import UUID


class RelationshipRole(str, Enum):
    TENANT_ADMIN = "tenant_admin"
    TENANT_USER = "tenant_user"


@dataclass(frozen=True, slots=True)
class IdentityAccount:
    identity_id: UUID
    email: str


@dataclass(frozen=True, slots=True)
class TenantRelationship:
    """Link between an identity and a tenant; (tenant_id, identity_id) is unique."""

    tenant_id: UUID
    identity_id: UUID
    role: RelationshipRole = RelationshipRole.TENANT_ADMIN
    is_active: bool = True
    relationship_id: Optional[UUID] = None

    @property
    def key(self) -> tuple[UUID, UUID]:
        return (self.tenant_id, self.identity_id)
