#!/usr/bin/env python3
"""
Reconciliation Sweep Script

Validates every converted lead against the tenant, identity and relationship
records its promotion should have produced, prints the drift found, and
optionally bulk-fixes the leads whose recommended action matches --fix.

Usage:
    python -m scripts.run_reconciliation
    python -m scripts.run_reconciliation --fix revert_status
    python -m scripts.run_reconciliation --fix retry_conversion --dry-run
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from domain.reconciliation import RemediationAction
from services.conversion_validator import BatchValidationReport, InvalidLead
from services.reconciliation_service import ReconciliationService
from services.settings import ReconciliationSettings

_FIXABLE_ACTIONS = [RemediationAction.REVERT_STATUS.value, RemediationAction.RETRY_CONVERSION.value]


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Audit converted leads and repair promotion drift")
    parser.add_argument(
        "--fix",
        choices=_FIXABLE_ACTIONS,
        default=None,
        help="Bulk-apply this action to every invalid lead that recommends it",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="With --fix, list the leads that would be fixed without changing anything",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="Maximum leads validated/fixed in parallel (overrides RECONCILIATION_MAX_CONCURRENCY)",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="Logging level (e.g. DEBUG, INFO, WARNING); defaults to LOG_LEVEL",
    )
    return parser.parse_args(argv)


def print_report(report: BatchValidationReport) -> None:
    print(f"\nValidated {report.total} converted leads")
    print(f"  Valid:   {len(report.valid)}")
    print(f"  Invalid: {len(report.invalid)}")
    print(f"  Errored: {len(report.errored)}")

    for item in report.invalid:
        validation = item.validation
        print(
            f"  [INVALID] {item.lead.display_name()} ({item.lead.lead_id}) "
            f"-> {validation.recommended_action.value}: {'; '.join(validation.issue_messages)}"
        )
    for item in report.errored:
        print(f"  [ERROR]   {item.lead.display_name()} ({item.lead.lead_id}): {item.error}")


def select_fixable(report: BatchValidationReport, action: RemediationAction) -> List[InvalidLead]:
    return [item for item in report.invalid if item.validation.recommended_action is action]


async def run(args: argparse.Namespace, service: ReconciliationService) -> int:
    report = await service.validate_all()
    print_report(report)

    if args.fix is None:
        return 1 if report.invalid or report.errored else 0

    action = RemediationAction(args.fix)
    items = select_fixable(report, action)
    if not items:
        print(f"\nNo invalid leads recommend {action.value}")
        return 0

    if args.dry_run:
        print(f"\n[DRY RUN] Would apply {action.value} to {len(items)} leads")
        return 0

    result = await service.bulk_fix(items, action)
    print(f"\nFixed {result.successful} of {len(items)} leads ({result.failed} failed)")
    for outcome in result.outcomes:
        if outcome.error:
            print(f"  [FAILED] {outcome.lead_id}: {outcome.error}")
    return 0 if result.failed == 0 else 1


async def _main(args: argparse.Namespace) -> int:
    from services.factory import build_reconciliation_service

    settings = ReconciliationSettings.from_env()
    if args.concurrency is not None:
        settings = replace(settings, max_concurrency=args.concurrency)
    service = await build_reconciliation_service(settings, persist_notifications=False)
    return await run(args, service)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO))
    return asyncio.run(_main(args))


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    sys.exit(main())
