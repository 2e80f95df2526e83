"""
Conversion validator: runs the probes for converted leads and classifies them.

Handles:
- Single-lead validation (probe errors propagate to the caller)
- Batch validation over every converted lead with bounded fan-out
- Settle-all aggregation: a lead whose probes fail is reported as errored,
  never dropped and never mistaken for an invalid lead
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from domain.lead import Lead
from domain.reconciliation import IdentityProbe, ValidationResult, classify
from services.collaborators import LeadStore
from services.probes import ResourceProbes

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class InvalidLead:
    """A converted lead together with the drift found for it."""
    lead: Lead
    validation: ValidationResult


@dataclass(frozen=True, slots=True)
class ErroredLead:
    """A converted lead whose probes failed; its real state is unknown."""
    lead: Lead
    error: str


@dataclass(frozen=True, slots=True)
class BatchValidationReport:
    """
    Result of validating a batch of converted leads.

    valid: Leads whose resources are all in place
    invalid: Leads with drift, each with its ValidationResult
    errored: Leads that could not be validated (probe failures)
    """
    valid: List[Lead] = field(default_factory=list)
    invalid: List[InvalidLead] = field(default_factory=list)
    errored: List[ErroredLead] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.valid) + len(self.invalid) + len(self.errored)


class ConversionValidator:
    def __init__(
        self,
        leads: LeadStore,
        probes: ResourceProbes,
        *,
        max_concurrency: int = 8,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self._leads = leads
        self._probes = probes
        self._max_concurrency = max_concurrency

    async def validate_one(self, lead: Lead) -> ValidationResult:
        """
        Validate a single lead.

        The probes are data-dependent: the tenant yields the owner's email,
        the email yields the identity, and the identity narrows the
        relationship lookup. Classification runs once all of them returned.

        Raises:
            ProbeError: If any probe could not reach its resource.
        """

        if not lead.is_converted:
            return ValidationResult.not_applicable(lead)

        tenant = await self._probes.tenant_status(lead)
        if not tenant.exists:
            return classify(lead, tenant, IdentityProbe.missing(), relationship_exists=False)

        tenant_obj = tenant.tenant
        owner_email = (tenant_obj.owner_email if tenant_obj else None) or lead.email
        identity = await self._probes.identity_exists(owner_email, lead_id=lead.lead_id)

        if identity.exists and identity.identity_id is not None:
            relationship = await self._probes.relationship_exists(
                tenant_obj.tenant_id, identity.identity_id, lead_id=lead.lead_id
            )
        else:
            relationship = await self._probes.relationship_exists_for_tenant(
                tenant_obj.tenant_id, lead_id=lead.lead_id
            )

        return classify(lead, tenant, identity, relationship)

    async def validate_all(self, leads: Optional[Iterable[Lead]] = None) -> BatchValidationReport:
        """
        Validate every converted lead.

        Args:
            leads: Leads to validate; when None, all converted leads are
                fetched from the lead store. Non-converted leads are skipped.

        Returns:
            BatchValidationReport with valid, invalid and errored leads

        Raises:
            RuntimeError: If the list of converted leads cannot be fetched.
        """

        if leads is None:
            leads = await self._leads.get_converted_leads()

        converted = [lead for lead in leads if lead.is_converted]
        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def _validate(lead: Lead) -> ValidationResult:
            async with semaphore:
                return await self.validate_one(lead)

        outcomes = await asyncio.gather(*(_validate(lead) for lead in converted), return_exceptions=True)

        report = BatchValidationReport()
        for lead, outcome in zip(converted, outcomes):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, BaseException):
                logger.error(
                    f"Could not validate lead {lead.lead_id}: {outcome}",
                    extra={"lead_id": str(lead.lead_id), "error_type": type(outcome).__name__},
                )
                report.errored.append(ErroredLead(lead=lead, error=str(outcome) or type(outcome).__name__))
            elif outcome.is_valid:
                report.valid.append(lead)
            else:
                report.invalid.append(InvalidLead(lead=lead, validation=outcome))

        logger.info(
            f"Validated {report.total} converted leads: {len(report.valid)} valid, "
            f"{len(report.invalid)} invalid, {len(report.errored)} errored",
            extra={
                "valid_count": len(report.valid),
                "invalid_count": len(report.invalid),
                "errored_count": len(report.errored),
            },
        )
        return report


__all__ = [
    "InvalidLead",
    "ErroredLead",
    "BatchValidationReport",
    "ConversionValidator",
]
