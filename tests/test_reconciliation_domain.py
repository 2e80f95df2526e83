"""
Tests for `domain/reconciliation.py`.

Covers contract rules:
- Every combination of probe results yields exactly one recommended action.
- is_valid holds iff there are no issues iff the action is NONE.
- Only revert_status (tenant missing) and retry_conversion (active tenant,
  missing admin link) are executable.
"""

from __future__ import annotations

from dataclasses import replace
from itertools import product

import pytest

from domain.lead import LeadStatus
from domain.reconciliation import (
    ConversionIssue,
    IdentityProbe,
    RemediationAction,
    TenantProbe,
    ValidationResult,
    classify,
    describe_issue,
    permitted_actions,
)
from domain.tenant import TenantStatus, parse_tenant_status
from fakes import identity_uuid, lead_uuid, make_lead, make_tenant, tenant_uuid


@pytest.mark.parametrize("tenant_exists,tenant_active,relationship", list(product([True, False], repeat=3)))
def test_classify_is_total(tenant_exists: bool, tenant_active: bool, relationship: bool) -> None:
    """Verify every probe combination produces a consistent result."""

    lead = make_lead(1, tenant=tenant_uuid(1))
    if tenant_exists:
        tenant = make_tenant(1, status=TenantStatus.ACTIVE if tenant_active else TenantStatus.SUSPENDED)
        tenant_probe = TenantProbe.of(tenant)
    else:
        tenant_probe = TenantProbe.missing()

    result = classify(lead, tenant_probe, IdentityProbe(exists=True, identity_id=identity_uuid(1)), relationship)

    assert result.recommended_action in set(RemediationAction)
    assert result.is_valid == (len(result.issues) == 0)
    assert result.is_valid == (result.recommended_action is RemediationAction.NONE)

    if not tenant_exists:
        assert result.recommended_action is RemediationAction.REVERT_STATUS
        assert result.tenant_active is False
        assert result.admin_relationship_exists is False
    elif not tenant_active:
        assert result.recommended_action is RemediationAction.MANUAL_INTERVENTION
    elif not relationship:
        assert result.recommended_action is RemediationAction.RETRY_CONVERSION
    else:
        assert result.recommended_action is RemediationAction.NONE


def test_missing_tenant_recommends_revert() -> None:
    lead = make_lead(1)

    result = classify(lead, TenantProbe.missing(), IdentityProbe.missing(), relationship_exists=False)

    assert result.issues == (ConversionIssue.TENANT_MISSING,)
    assert result.recommended_action is RemediationAction.REVERT_STATUS
    assert result.issue_messages == ["Tenant record not found"]
    assert result.owner_email == "owner1@example.com"
    assert result.tenant_id is None


def test_active_tenant_without_relationship_recommends_retry() -> None:
    lead = make_lead(2, tenant=tenant_uuid(2))
    tenant = make_tenant(2, owner_email="boss@example.com")

    result = classify(lead, TenantProbe.of(tenant), IdentityProbe.missing(), relationship_exists=False)

    assert result.issues == (ConversionIssue.ADMIN_RELATIONSHIP_MISSING,)
    assert result.recommended_action is RemediationAction.RETRY_CONVERSION
    assert result.tenant_id == tenant_uuid(2)
    assert result.owner_email == "boss@example.com"
    assert result.identity_exists is False


def test_inactive_tenant_recommends_manual_intervention() -> None:
    lead = make_lead(3, tenant=tenant_uuid(3))
    tenant = make_tenant(3, status=TenantStatus.SUSPENDED)

    result = classify(lead, TenantProbe.of(tenant), IdentityProbe.missing(), relationship_exists=True)

    assert result.issues == (ConversionIssue.TENANT_INACTIVE,)
    assert result.recommended_action is RemediationAction.MANUAL_INTERVENTION
    assert result.tenant_status == "suspended"
    assert result.issue_messages == ["Tenant exists but status is: suspended"]


def test_complete_promotion_is_valid() -> None:
    lead = make_lead(4, tenant=tenant_uuid(4))
    tenant = make_tenant(4)

    result = classify(
        lead,
        TenantProbe.of(tenant),
        IdentityProbe(exists=True, identity_id=identity_uuid(4)),
        relationship_exists=True,
    )

    assert result.is_valid is True
    assert result.issues == ()
    assert result.recommended_action is RemediationAction.NONE
    assert permitted_actions(result) == frozenset()


def test_validation_result_rejects_inconsistent_fields() -> None:
    """Verify the validity invariants are enforced at construction."""

    with pytest.raises(ValueError):
        ValidationResult(
            lead_id=lead_uuid(1),
            tenant_exists=False,
            tenant_active=False,
            identity_exists=False,
            admin_relationship_exists=False,
            issues=(ConversionIssue.TENANT_MISSING,),
            is_valid=True,
            recommended_action=RemediationAction.NONE,
        )

    with pytest.raises(ValueError):
        ValidationResult(
            lead_id=lead_uuid(1),
            tenant_exists=True,
            tenant_active=True,
            identity_exists=True,
            admin_relationship_exists=True,
            issues=(),
            is_valid=True,
            recommended_action=RemediationAction.REVERT_STATUS,
        )


def test_permitted_actions_per_recommendation() -> None:
    missing = classify(make_lead(1), TenantProbe.missing(), IdentityProbe.missing(), False)
    unlinked = classify(make_lead(2, tenant=tenant_uuid(2)), TenantProbe.of(make_tenant(2)), IdentityProbe.missing(), False)
    inactive = classify(
        make_lead(3, tenant=tenant_uuid(3)),
        TenantProbe.of(make_tenant(3, status=TenantStatus.CANCELLED)),
        IdentityProbe.missing(),
        False,
    )

    assert permitted_actions(missing) == frozenset({RemediationAction.REVERT_STATUS})
    assert permitted_actions(unlinked) == frozenset({RemediationAction.RETRY_CONVERSION})
    assert permitted_actions(inactive) == frozenset()


def test_not_applicable_for_non_converted_lead() -> None:
    lead = make_lead(5, status=LeadStatus.QUALIFIED)

    result = ValidationResult.not_applicable(lead)

    assert result.is_valid is True
    assert result.recommended_action is RemediationAction.NONE
    assert result.lead_id == lead.lead_id


def test_describe_issue_without_status_uses_default_message() -> None:
    assert describe_issue(ConversionIssue.TENANT_INACTIVE) == "Tenant exists but is not active"
    assert describe_issue(ConversionIssue.ADMIN_RELATIONSHIP_MISSING) == "No active admin relationship found for tenant"


def test_unknown_tenant_status_is_classified_not_rejected() -> None:
    """Verify a tenant with a status outside the known set is classified as active."""

    lead = make_lead(6, tenant=tenant_uuid(6))
    tenant = replace(make_tenant(6), status=parse_tenant_status("pending_approval"))

    result = classify(lead, TenantProbe.of(tenant), IdentityProbe.missing(), relationship_exists=False)

    assert result.tenant_active is True
    assert result.tenant_status == "pending_approval"
    assert result.recommended_action is RemediationAction.RETRY_CONVERSION
