"""
Reconciliation API Endpoints.

Endpoints for auditing converted leads and repairing promotion drift.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request

from api.models import (
    BulkFixRequest,
    BulkFixResponse,
    ErroredLeadResponse,
    ErrorResponse,
    FixRequest,
    FixResponse,
    InvalidLeadResponse,
    ValidationReportResponse,
    ValidationResultResponse,
    WatcherStatusResponse,
)
from services.probes import ProbeError
from services.reconciliation_service import ReconciliationService
from services.remediation_service import RemediationError, RemediationRefusedError

router = APIRouter(prefix="/reconciliation")


def get_reconciliation_service(request: Request) -> ReconciliationService:
    service = getattr(request.app.state, "reconciliation", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Reconciliation service is not available")
    return service


@router.post(
    "/validate",
    response_model=ValidationReportResponse,
    summary="Validate All Converted Leads",
    description="Run a reconciliation sweep over every converted lead."
)
async def validate_all_converted_leads(service: ReconciliationService = Depends(get_reconciliation_service)):
    """
    Validate every lead with status `converted`.

    Each lead is checked for an existing, active tenant and for an admin
    relationship linking the owner identity to that tenant. Leads whose
    checks could not run are listed under `errored`, separately from leads
    that are genuinely invalid.
    """
    try:
        report = await service.validate_all()
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to validate converted leads: {str(e)}"
        )
    return ValidationReportResponse.from_report(report)


@router.get(
    "/invalid-leads",
    response_model=ValidationReportResponse,
    summary="List Known Invalid Leads",
    description="Return the valid count and the invalid and errored leads from the most recent sweep, minus leads fixed since."
)
def list_invalid_leads(service: ReconciliationService = Depends(get_reconciliation_service)):
    return ValidationReportResponse(
        valid_count=service.valid_count,
        invalid=[InvalidLeadResponse.from_item(item) for item in service.invalid_leads],
        errored=[ErroredLeadResponse.from_item(item) for item in service.errored_leads],
    )


@router.post(
    "/leads/{lead_id}/validate",
    response_model=ValidationResultResponse,
    responses={404: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
    summary="Validate One Lead"
)
async def validate_lead(lead_id: UUID, service: ReconciliationService = Depends(get_reconciliation_service)):
    """
    Validate a single lead against current resource state.

    A probe failure is reported as 502 rather than as a missing resource.
    """
    lead = await service.get_lead(lead_id)
    if lead is None:
        raise HTTPException(status_code=404, detail=f"Lead not found: {lead_id}")

    try:
        validation = await service.validate_one(lead)
    except ProbeError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return ValidationResultResponse.from_result(validation)


@router.post(
    "/leads/{lead_id}/fix",
    response_model=FixResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Fix One Lead"
)
async def fix_lead(
    lead_id: UUID,
    request: FixRequest,
    service: ReconciliationService = Depends(get_reconciliation_service),
):
    """
    Apply a remediation action to a lead from the known-invalid set.

    **Actions:**
    - `revert_status`: only when the tenant is missing
    - `retry_conversion`: only when the tenant is active and the admin relationship is missing
    - `manual_intervention`: always refused (409)
    """
    item = service.get_invalid(lead_id)
    if item is None:
        raise HTTPException(
            status_code=404,
            detail=f"Lead {lead_id} is not in the current invalid set; validate it first"
        )

    try:
        result = await service.fix(item.lead, item.validation, request.action)
    except RemediationRefusedError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except RemediationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to fix lead: {str(e)}"
        )
    return FixResponse.from_result(result)


@router.post(
    "/bulk-fix",
    response_model=BulkFixResponse,
    summary="Fix Several Leads",
    description="Apply one action to several leads; every lead is attempted even if others fail."
)
async def bulk_fix_leads(
    request: BulkFixRequest,
    service: ReconciliationService = Depends(get_reconciliation_service),
):
    items, not_found = service.invalid_items_for(request.lead_ids)
    result = await service.bulk_fix(items, request.action)
    return BulkFixResponse.from_result(result, not_found)


@router.get(
    "/watcher",
    response_model=WatcherStatusResponse,
    summary="Background Watcher Status"
)
def watcher_status(request: Request):
    watcher = getattr(request.app.state, "watcher", None)
    if watcher is None:
        return WatcherStatusResponse(enabled=False, state="disabled")
    return WatcherStatusResponse(
        enabled=True,
        state=watcher.state.value,
        interval_seconds=watcher.interval_seconds,
        sweeps_started=watcher.sweeps_started,
        sweeps_skipped=watcher.sweeps_skipped,
        last_invalid_count=len(watcher.last_report.invalid) if watcher.last_report else None,
        last_error=watcher.last_error,
    )
