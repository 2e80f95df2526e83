"""
Domain: drift classification for converted leads.

Promoting a Lead creates a Tenant, resolves the owner's identity and links
that identity to the Tenant as administrator. The steps are not atomic, so a
Lead can be flagged `converted` while some of those resources are missing.
This module turns the observed resource state into a ValidationResult and a
recommended remediation.

Decision table (evaluated in order, first match wins):

    tenant_exists  tenant_active  relationship  issue                        action
    -------------  -------------  ------------  ---------------------------  -------------------
    False          -              -             TENANT_MISSING               REVERT_STATUS
    True           False          -             TENANT_INACTIVE              MANUAL_INTERVENTION
    True           True           False         ADMIN_RELATIONSHIP_MISSING   RETRY_CONVERSION
    True           True           True          (none)                       NONE

This module contains only pure functions and value objects: no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Optional, Tuple
from uuid import UUID

from .identity import IdentityAccount
from .lead import Lead
from .tenant import Tenant


class RemediationAction(str, Enum):
    NONE = "none"
    REVERT_STATUS = "revert_status"
    RETRY_CONVERSION = "retry_conversion"
    MANUAL_INTERVENTION = "manual_intervention"


class ConversionIssue(str, Enum):
    TENANT_MISSING = "tenant_missing"
    TENANT_INACTIVE = "tenant_inactive"
    ADMIN_RELATIONSHIP_MISSING = "admin_relationship_missing"


_ISSUE_MESSAGES = {
    ConversionIssue.TENANT_MISSING: "Tenant record not found",
    ConversionIssue.TENANT_INACTIVE: "Tenant exists but is not active",
    ConversionIssue.ADMIN_RELATIONSHIP_MISSING: "No active admin relationship found for tenant",
}


def describe_issue(issue: ConversionIssue, tenant_status: Optional[str] = None) -> str:
    """Render an issue for display."""

    if issue is ConversionIssue.TENANT_INACTIVE and tenant_status:
        return f"Tenant exists but status is: {tenant_status}"
    return _ISSUE_MESSAGES[issue]


@dataclass(frozen=True, slots=True)
class TenantProbe:
    """Observed state of the tenant a lead points at."""

    exists: bool
    active: bool = False
    tenant: Optional[Tenant] = None

    @staticmethod
    def missing() -> "TenantProbe":
        return TenantProbe(exists=False, active=False, tenant=None)

    @staticmethod
    def of(tenant: Tenant) -> "TenantProbe":
        return TenantProbe(exists=True, active=tenant.is_active, tenant=tenant)


@dataclass(frozen=True, slots=True)
class IdentityProbe:
    """Observed state of the intended administrator's identity."""

    exists: bool
    identity_id: Optional[UUID] = None

    @staticmethod
    def missing() -> "IdentityProbe":
        return IdentityProbe(exists=False)

    @staticmethod
    def of(identity: IdentityAccount) -> "IdentityProbe":
        return IdentityProbe(exists=True, identity_id=identity.identity_id)


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """
    Per-lead outcome of one validation pass. Never persisted.

    Invariants:
    - is_valid is True iff issues is empty.
    - recommended_action is NONE iff is_valid.
    """

    lead_id: UUID
    tenant_exists: bool
    tenant_active: bool
    identity_exists: bool
    admin_relationship_exists: bool
    issues: Tuple[ConversionIssue, ...]
    is_valid: bool
    recommended_action: RemediationAction
    tenant_id: Optional[UUID] = None
    owner_email: Optional[str] = None
    tenant_status: Optional[str] = None

    def __post_init__(self) -> None:
        if self.is_valid != (len(self.issues) == 0):
            raise ValueError("is_valid must be True iff there are no issues")
        if self.is_valid != (self.recommended_action is RemediationAction.NONE):
            raise ValueError("recommended_action must be NONE iff the result is valid")

    @property
    def issue_messages(self) -> list[str]:
        return [describe_issue(issue, self.tenant_status) for issue in self.issues]

    @staticmethod
    def not_applicable(lead: Lead) -> "ValidationResult":
        """Result for a lead that is not converted: nothing to reconcile."""

        return ValidationResult(
            lead_id=lead.lead_id,
            tenant_exists=False,
            tenant_active=False,
            identity_exists=False,
            admin_relationship_exists=False,
            issues=(),
            is_valid=True,
            recommended_action=RemediationAction.NONE,
        )


def classify(
    lead: Lead,
    tenant: TenantProbe,
    identity: IdentityProbe,
    relationship_exists: bool,
) -> ValidationResult:
    """
    Combine probe results into a ValidationResult.

    Rationale per row:
    - No tenant: nothing irreversible happened, undo the promotion.
    - Inactive tenant: may be an unrelated suspension, leave it to a person.
    - Healthy tenant without admin link: re-run only the relationship step.

    Args:
        lead: The converted lead under validation
        tenant: Tenant probe result
        identity: Identity probe result for the tenant's intended administrator
        relationship_exists: Whether an active admin relationship exists

    Returns:
        ValidationResult with exactly one recommended action
    """

    tenant_obj = tenant.tenant
    owner_email = (tenant_obj.owner_email if tenant_obj else None) or lead.email

    if not tenant.exists:
        issues: Tuple[ConversionIssue, ...] = (ConversionIssue.TENANT_MISSING,)
        action = RemediationAction.REVERT_STATUS
    elif not tenant.active:
        issues = (ConversionIssue.TENANT_INACTIVE,)
        action = RemediationAction.MANUAL_INTERVENTION
    elif not relationship_exists:
        issues = (ConversionIssue.ADMIN_RELATIONSHIP_MISSING,)
        action = RemediationAction.RETRY_CONVERSION
    else:
        issues = ()
        action = RemediationAction.NONE

    return ValidationResult(
        lead_id=lead.lead_id,
        tenant_exists=tenant.exists,
        tenant_active=tenant.exists and tenant.active,
        identity_exists=identity.exists,
        admin_relationship_exists=tenant.exists and relationship_exists,
        issues=issues,
        is_valid=not issues,
        recommended_action=action,
        tenant_id=tenant_obj.tenant_id if tenant_obj else lead.converted_tenant_id,
        owner_email=owner_email,
        tenant_status=tenant_obj.status_value if tenant_obj else None,
    )


def permitted_actions(validation: ValidationResult) -> FrozenSet[RemediationAction]:
    """
    Actions the executor may apply for this result.

    MANUAL_INTERVENTION and NONE are never executable. REVERT_STATUS needs a
    missing tenant and RETRY_CONVERSION needs an active tenant without its
    admin relationship.
    """

    if validation.is_valid:
        return frozenset()
    if not validation.tenant_exists:
        return frozenset({RemediationAction.REVERT_STATUS})
    if validation.tenant_active and not validation.admin_relationship_exists:
        return frozenset({RemediationAction.RETRY_CONVERSION})
    return frozenset()


__all__ = [
    "RemediationAction",
    "ConversionIssue",
    "TenantProbe",
    "IdentityProbe",
    "ValidationResult",
    "classify",
    "describe_issue",
    "permitted_actions",
]
