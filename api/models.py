"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses.
"""

from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from domain.reconciliation import RemediationAction, ValidationResult
from services.conversion_validator import BatchValidationReport, ErroredLead, InvalidLead
from services.remediation_service import BulkFixResult, FixOutcome, FixResult


# ============================================================================
# Validation Models
# ============================================================================

class ValidationResultResponse(BaseModel):
    """Validation outcome for one converted lead."""
    lead_id: UUID
    tenant_exists: bool
    tenant_active: bool
    identity_exists: bool
    admin_relationship_exists: bool
    issues: List[str]
    is_valid: bool
    recommended_action: RemediationAction
    tenant_id: Optional[UUID] = None

    class Config:
        json_schema_extra = {
            "example": {
                "lead_id": "123e4567-e89b-12d3-a456-426614174000",
                "tenant_exists": True,
                "tenant_active": True,
                "identity_exists": True,
                "admin_relationship_exists": False,
                "issues": ["No active admin relationship found for tenant"],
                "is_valid": False,
                "recommended_action": "retry_conversion",
                "tenant_id": "123e4567-e89b-12d3-a456-426614174001"
            }
        }

    @classmethod
    def from_result(cls, result: ValidationResult) -> "ValidationResultResponse":
        return cls(
            lead_id=result.lead_id,
            tenant_exists=result.tenant_exists,
            tenant_active=result.tenant_active,
            identity_exists=result.identity_exists,
            admin_relationship_exists=result.admin_relationship_exists,
            issues=result.issue_messages,
            is_valid=result.is_valid,
            recommended_action=result.recommended_action,
            tenant_id=result.tenant_id,
        )


class InvalidLeadResponse(BaseModel):
    """A converted lead with drift."""
    lead_id: UUID
    contact_name: Optional[str] = None
    email: str
    validation: ValidationResultResponse

    @classmethod
    def from_item(cls, item: InvalidLead) -> "InvalidLeadResponse":
        return cls(
            lead_id=item.lead.lead_id,
            contact_name=item.lead.contact_name,
            email=item.lead.email,
            validation=ValidationResultResponse.from_result(item.validation),
        )


class ErroredLeadResponse(BaseModel):
    """A converted lead whose probes failed."""
    lead_id: UUID
    email: str
    error: str

    @classmethod
    def from_item(cls, item: ErroredLead) -> "ErroredLeadResponse":
        return cls(lead_id=item.lead.lead_id, email=item.lead.email, error=item.error)


class ValidationReportResponse(BaseModel):
    """Response for a reconciliation sweep or the cached invalid-lead view."""
    valid_count: int
    invalid: List[InvalidLeadResponse]
    errored: List[ErroredLeadResponse]

    class Config:
        json_schema_extra = {
            "example": {
                "valid_count": 42,
                "invalid": [],
                "errored": []
            }
        }

    @classmethod
    def from_report(cls, report: BatchValidationReport) -> "ValidationReportResponse":
        return cls(
            valid_count=len(report.valid),
            invalid=[InvalidLeadResponse.from_item(item) for item in report.invalid],
            errored=[ErroredLeadResponse.from_item(item) for item in report.errored],
        )


# ============================================================================
# Remediation Models
# ============================================================================

class FixRequest(BaseModel):
    """Request to remediate one lead."""
    action: RemediationAction = Field(
        ...,
        description="Remediation action (revert_status or retry_conversion)"
    )

    class Config:
        json_schema_extra = {
            "example": {"action": "revert_status"}
        }


class FixResponse(BaseModel):
    lead_id: UUID
    action: RemediationAction
    success: bool
    changed: bool
    message: str

    @classmethod
    def from_result(cls, result: FixResult) -> "FixResponse":
        return cls(
            lead_id=result.lead_id,
            action=result.action,
            success=result.success,
            changed=result.changed,
            message=result.message,
        )


class BulkFixRequest(BaseModel):
    """Request to remediate several leads from the known-invalid set."""
    lead_ids: List[UUID] = Field(
        ...,
        min_length=1,
        description="Leads to fix; each must be in the current invalid set"
    )
    action: RemediationAction

    class Config:
        json_schema_extra = {
            "example": {
                "lead_ids": [
                    "123e4567-e89b-12d3-a456-426614174000",
                    "123e4567-e89b-12d3-a456-426614174002"
                ],
                "action": "revert_status"
            }
        }


class BulkFixItemResponse(BaseModel):
    lead_id: UUID
    success: bool
    message: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def from_outcome(cls, outcome: FixOutcome) -> "BulkFixItemResponse":
        return cls(
            lead_id=outcome.lead_id,
            success=outcome.succeeded,
            message=outcome.result.message if outcome.result else None,
            error=outcome.error,
        )


class BulkFixResponse(BaseModel):
    """Response after a bulk remediation."""
    successful: int
    failed: int
    items: List[BulkFixItemResponse]
    not_found: List[UUID] = Field(default_factory=list)
    message: str

    class Config:
        json_schema_extra = {
            "example": {
                "successful": 1,
                "failed": 1,
                "items": [],
                "not_found": [],
                "message": "Fixed 1 of 2 leads"
            }
        }

    @classmethod
    def from_result(cls, result: BulkFixResult, not_found: List[UUID]) -> "BulkFixResponse":
        failed = result.failed + len(not_found)
        total = result.successful + failed
        return cls(
            successful=result.successful,
            failed=failed,
            items=[BulkFixItemResponse.from_outcome(outcome) for outcome in result.outcomes],
            not_found=not_found,
            message=f"Fixed {result.successful} of {total} leads",
        )


# ============================================================================
# Watcher Models
# ============================================================================

class WatcherStatusResponse(BaseModel):
    enabled: bool
    state: str
    interval_seconds: Optional[float] = None
    sweeps_started: int = 0
    sweeps_skipped: int = 0
    last_invalid_count: Optional[int] = None
    last_error: Optional[str] = None


# ============================================================================
# Error Models
# ============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    detail: Optional[str] = None
    status_code: int

    class Config:
        json_schema_extra = {
            "example": {
                "error": "Remediation refused",
                "detail": "Refusing manual_intervention for lead ...",
                "status_code": 409
            }
        }
