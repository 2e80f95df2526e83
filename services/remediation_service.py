"""
Remediation service for converted leads with drift.

Handles:
- revert_status: conditional status revert (converted -> qualified)
- retry_conversion: re-run only the relationship-creation step of promotion
- Refusal of manual_intervention and of any action the validation does not permit
- Bulk remediation with settle-all semantics (one failure never stops the rest)

No locking is available from the store, so every action is idempotent and
status writes are conditional on the lead still being `converted`. Two
concurrent fixes of the same lead converge on the same end state.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional
from uuid import UUID

from domain.lead import Lead, LeadStatus
from domain.reconciliation import RemediationAction, ValidationResult, permitted_actions
from services.collaborators import LeadStore, PromotionPipeline
from services.conversion_validator import InvalidLead

logger = logging.getLogger(__name__)


class RemediationError(Exception):
    """Raised when a remediation step cannot be carried out."""


class RemediationRefusedError(RemediationError, ValueError):
    """Raised when an action is not executable for a lead (e.g. manual_intervention)."""

    def __init__(self, lead_id: UUID, action: RemediationAction, reason: str) -> None:
        self.lead_id = lead_id
        self.action = action
        self.reason = reason
        super().__init__(f"Refusing {action.value} for lead {lead_id}: {reason}")


@dataclass(frozen=True, slots=True)
class FixResult:
    """
    Outcome of a single remediation.

    success: True if the lead is now in the intended end state
    changed: False when the call was a no-op (someone already fixed it)
    """
    lead_id: UUID
    action: RemediationAction
    success: bool
    message: str
    changed: bool = True


@dataclass(frozen=True, slots=True)
class FixOutcome:
    """Per-item bulk outcome: either a FixResult or the error that stopped it."""
    lead_id: UUID
    result: Optional[FixResult] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.result is not None and self.result.success


@dataclass(frozen=True, slots=True)
class BulkFixResult:
    successful: int
    failed: int
    outcomes: List[FixOutcome] = field(default_factory=list)

    @property
    def succeeded_lead_ids(self) -> List[UUID]:
        """Leads eligible for removal from the caller's invalid set."""
        return [outcome.lead_id for outcome in self.outcomes if outcome.succeeded]


class RemediationExecutor:
    def __init__(
        self,
        leads: LeadStore,
        pipeline: PromotionPipeline,
        *,
        revert_status: LeadStatus = LeadStatus.QUALIFIED,
        max_concurrency: int = 8,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self._leads = leads
        self._pipeline = pipeline
        self._revert_target = revert_status
        self._max_concurrency = max_concurrency

    async def fix(self, lead: Lead, validation: ValidationResult, action: RemediationAction) -> FixResult:
        """
        Apply one remediation action to one lead.

        Args:
            lead: The lead to repair
            validation: Its most recent ValidationResult
            action: Action chosen by the operator or automation

        Returns:
            FixResult describing what happened

        Raises:
            RemediationRefusedError: If the action is not permitted for this validation.
            RemediationError: If the repair step itself could not be completed.
            Exception: Collaborator failures propagate unchanged.
        """

        if validation.lead_id != lead.lead_id:
            raise RemediationRefusedError(lead.lead_id, action, "validation belongs to a different lead")
        if action not in permitted_actions(validation):
            raise RemediationRefusedError(
                lead.lead_id,
                action,
                f"not permitted for recommended action {validation.recommended_action.value}",
            )

        if action is RemediationAction.REVERT_STATUS:
            result = await self._revert_status(lead, validation)
        else:
            result = await self._retry_conversion(lead, validation)

        logger.info(
            f"Remediation {action.value} for lead {lead.lead_id}: {result.message}",
            extra={
                "lead_id": str(lead.lead_id),
                "action": action.value,
                "success": result.success,
                "changed": result.changed,
            },
        )
        return result

    async def _revert_status(self, lead: Lead, validation: ValidationResult) -> FixResult:
        issues = ", ".join(validation.issue_messages)
        updated = await self._leads.update_lead_status(
            lead.lead_id,
            self._revert_target,
            f"[SYSTEM] Conversion reverted by reconciliation. Issues: {issues}",
            expected_status=LeadStatus.CONVERTED,
            clear_conversion=True,
        )
        if updated is None:
            return FixResult(
                lead_id=lead.lead_id,
                action=RemediationAction.REVERT_STATUS,
                success=True,
                message="Lead is no longer converted; nothing to revert",
                changed=False,
            )
        return FixResult(
            lead_id=lead.lead_id,
            action=RemediationAction.REVERT_STATUS,
            success=True,
            message=f"Lead status reverted to {self._revert_target.value}",
        )

    async def _retry_conversion(self, lead: Lead, validation: ValidationResult) -> FixResult:
        tenant_id = validation.tenant_id
        owner_email = validation.owner_email or lead.email
        if tenant_id is None:
            raise RemediationError(f"Lead {lead.lead_id} has no tenant to repair")
        if not owner_email:
            raise RemediationError(f"Lead {lead.lead_id} has no owner email to link")

        try:
            await self._pipeline.repair_relationship(tenant_id, owner_email)
        except LookupError as exc:
            raise RemediationError(str(exc)) from exc

        issues = ", ".join(validation.issue_messages)
        # The relationship is already in place; a lost note must not fail the fix.
        try:
            await self._leads.record_activity(
                lead.lead_id,
                "Conversion retried",
                f"[SYSTEM] Conversion retried by reconciliation, admin relationship repaired. Issues: {issues}",
            )
        except Exception:
            logger.exception(f"Failed to record retry note for lead {lead.lead_id}")

        return FixResult(
            lead_id=lead.lead_id,
            action=RemediationAction.RETRY_CONVERSION,
            success=True,
            message=f"Admin relationship ensured for tenant {tenant_id}",
        )

    async def bulk_fix(self, items: Iterable[InvalidLead], action: RemediationAction) -> BulkFixResult:
        """
        Apply one action to many leads, settling every item.

        A failure (or refusal) for one item never prevents the others from
        being attempted. Only items whose FixResult reports success count as
        successful.
        """

        items = list(items)
        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def _fix(item: InvalidLead) -> FixResult:
            async with semaphore:
                return await self.fix(item.lead, item.validation, action)

        results = await asyncio.gather(*(_fix(item) for item in items), return_exceptions=True)

        outcomes: List[FixOutcome] = []
        for item, result in zip(items, results):
            lead_id = item.lead.lead_id
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, BaseException):
                logger.error(
                    f"Remediation {action.value} failed for lead {lead_id}: {result}",
                    extra={"lead_id": str(lead_id), "action": action.value, "error_type": type(result).__name__},
                )
                outcomes.append(FixOutcome(lead_id=lead_id, error=str(result) or type(result).__name__))
            else:
                outcomes.append(FixOutcome(lead_id=lead_id, result=result))

        successful = sum(1 for outcome in outcomes if outcome.succeeded)
        return BulkFixResult(successful=successful, failed=len(outcomes) - successful, outcomes=outcomes)


__all__ = [
    "RemediationError",
    "RemediationRefusedError",
    "FixResult",
    "FixOutcome",
    "BulkFixResult",
    "RemediationExecutor",
]
