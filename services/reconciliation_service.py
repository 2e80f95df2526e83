"""
Reconciliation service: the entry point callers (API, CLI, watcher) use.

Wraps the validator and the remediation executor and keeps the "currently
known invalid leads" view between calls:
- validate_all() replaces the view with the latest sweep
- a successful fix() / bulk_fix() drops the repaired leads from it
- failed items stay in the view for retry
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from domain.lead import Lead
from domain.reconciliation import RemediationAction, ValidationResult
from services.collaborators import LeadStore, NotificationSink, PromotionPipeline, notify_quietly
from services.conversion_validator import BatchValidationReport, ConversionValidator, ErroredLead, InvalidLead
from services.probes import ResourceProbes
from services.remediation_service import BulkFixResult, FixResult, RemediationExecutor
from services.settings import ReconciliationSettings

logger = logging.getLogger(__name__)


class ReconciliationService:
    def __init__(
        self,
        validator: ConversionValidator,
        executor: RemediationExecutor,
        *,
        notifications: Optional[NotificationSink] = None,
        leads: Optional[LeadStore] = None,
    ) -> None:
        self._validator = validator
        self._executor = executor
        self._notifications = notifications
        self._leads = leads
        self._invalid: Dict[UUID, InvalidLead] = {}
        self._errored: Dict[UUID, ErroredLead] = {}
        self._valid_count = 0

    @classmethod
    def build(
        cls,
        *,
        leads: LeadStore,
        probes: ResourceProbes,
        pipeline: PromotionPipeline,
        settings: ReconciliationSettings,
        notifications: Optional[NotificationSink] = None,
    ) -> "ReconciliationService":
        """Wire a service from its collaborators and settings."""

        validator = ConversionValidator(leads, probes, max_concurrency=settings.max_concurrency)
        executor = RemediationExecutor(
            leads,
            pipeline,
            revert_status=settings.revert_status,
            max_concurrency=settings.max_concurrency,
        )
        return cls(validator, executor, notifications=notifications, leads=leads)

    @property
    def notifications(self) -> Optional[NotificationSink]:
        return self._notifications

    @property
    def invalid_leads(self) -> Tuple[InvalidLead, ...]:
        """Snapshot of the leads known to have drift, in sweep order."""
        return tuple(self._invalid.values())

    @property
    def valid_count(self) -> int:
        """Number of valid leads in the most recent sweep."""
        return self._valid_count

    @property
    def errored_leads(self) -> Tuple[ErroredLead, ...]:
        return tuple(self._errored.values())

    def get_invalid(self, lead_id: UUID) -> Optional[InvalidLead]:
        return self._invalid.get(lead_id)

    async def get_lead(self, lead_id: UUID) -> Optional[Lead]:
        """Fetch the current lead from the store, falling back to the cached views."""

        if self._leads is not None:
            return await self._leads.get_lead_by_id(lead_id)
        item = self._invalid.get(lead_id) or self._errored.get(lead_id)
        return item.lead if item is not None else None

    def invalidate(self, lead_id: UUID) -> None:
        """Drop a lead from the known-invalid view."""
        self._invalid.pop(lead_id, None)

    def clear(self) -> None:
        self._invalid.clear()
        self._errored.clear()
        self._valid_count = 0

    async def validate_all(self, leads: Optional[Iterable[Lead]] = None) -> BatchValidationReport:
        """
        Run one reconciliation sweep and replace the known-invalid view.

        Raises:
            RuntimeError: If the converted leads cannot be listed.
        """

        report = await self._validator.validate_all(leads)
        self._invalid = {item.lead.lead_id: item for item in report.invalid}
        self._errored = {item.lead.lead_id: item for item in report.errored}
        self._valid_count = len(report.valid)
        return report

    async def validate_one(self, lead: Lead) -> ValidationResult:
        """
        Validate one lead and refresh its entry in the known-invalid view.

        Raises:
            ProbeError: If a probe could not reach its resource.
        """

        validation = await self._validator.validate_one(lead)
        self._errored.pop(lead.lead_id, None)
        if validation.is_valid:
            self._invalid.pop(lead.lead_id, None)
        else:
            self._invalid[lead.lead_id] = InvalidLead(lead=lead, validation=validation)
        return validation

    async def fix(self, lead: Lead, validation: ValidationResult, action: RemediationAction) -> FixResult:
        """
        Remediate one lead. Errors propagate to the caller.

        Raises:
            RemediationRefusedError: If the action is not permitted.
        """

        result = await self._executor.fix(lead, validation, action)
        if result.success:
            self.invalidate(lead.lead_id)
            await notify_quietly(self._notifications, "Lead fixed successfully", result.message)
        return result

    async def bulk_fix(self, items: Iterable[InvalidLead], action: RemediationAction) -> BulkFixResult:
        """
        Remediate many leads with settle-all semantics.

        Only the leads whose fix succeeded leave the known-invalid view.
        """

        items = list(items)
        result = await self._executor.bulk_fix(items, action)
        for lead_id in result.succeeded_lead_ids:
            self.invalidate(lead_id)

        if not items:
            return result
        if result.failed == 0:
            await notify_quietly(self._notifications, f"Successfully fixed {result.successful} leads", "")
        else:
            await notify_quietly(
                self._notifications,
                f"Fixed {result.successful} of {len(items)} leads, {result.failed} failed",
                "Some leads could not be fixed. Please try again or check manually.",
                severity="warning",
            )
        return result

    def invalid_items_for(self, lead_ids: Iterable[UUID]) -> Tuple[List[InvalidLead], List[UUID]]:
        """
        Resolve lead ids against the known-invalid view.

        Returns:
            (found items, ids that are not currently known to be invalid)
        """

        found: List[InvalidLead] = []
        missing: List[UUID] = []
        for lead_id in lead_ids:
            item = self._invalid.get(lead_id)
            if item is None:
                missing.append(lead_id)
            else:
                found.append(item)
        return found, missing


__all__ = ["ReconciliationService"]
