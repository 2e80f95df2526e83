"""
Reconciliation settings loaded from the environment.

Environment variables (all optional):
- RECONCILIATION_MAX_CONCURRENCY: leads validated/fixed in parallel (default 8)
- RECONCILIATION_INTERVAL_SECONDS: background sweep interval (default 300)
- RECONCILIATION_REVERT_STATUS: status a reverted lead returns to (default "qualified")
- RECONCILIATION_ADMIN_ROLE: role the admin relationship must carry (default "tenant_admin")
- RECONCILIATION_WATCHER_ENABLED: start the background watcher with the API (default true)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from domain.identity import RelationshipRole
from domain.lead import LeadStatus

env_path = Path(__file__).parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _read_int(env: Mapping[str, str], name: str, default: int, *, minimum: int = 1) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from None
    if value < minimum:
        raise RuntimeError(f"{name} must be >= {minimum}, got {value}")
    return value


def _read_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise RuntimeError(f"{name} must be positive, got {value}")
    return value


def _read_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    lowered = raw.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise RuntimeError(f"{name} must be a boolean, got {raw!r}")


@dataclass(frozen=True, slots=True)
class ReconciliationSettings:
    max_concurrency: int = 8
    interval_seconds: float = 300.0
    revert_status: LeadStatus = LeadStatus.QUALIFIED
    admin_role: RelationshipRole = RelationshipRole.TENANT_ADMIN
    watcher_enabled: bool = True

    def __post_init__(self) -> None:
        if self.revert_status is LeadStatus.CONVERTED:
            raise ValueError("revert_status cannot be 'converted'")

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "ReconciliationSettings":
        """
        Build settings from environment variables.

        Raises:
            RuntimeError: If a variable is set but malformed.
        """

        env = os.environ if env is None else env
        try:
            revert_status = LeadStatus(env.get("RECONCILIATION_REVERT_STATUS") or LeadStatus.QUALIFIED.value)
            admin_role = RelationshipRole(env.get("RECONCILIATION_ADMIN_ROLE") or RelationshipRole.TENANT_ADMIN.value)
        except ValueError as exc:
            raise RuntimeError(f"Invalid reconciliation setting: {exc}") from exc

        return cls(
            max_concurrency=_read_int(env, "RECONCILIATION_MAX_CONCURRENCY", 8),
            interval_seconds=_read_float(env, "RECONCILIATION_INTERVAL_SECONDS", 300.0),
            revert_status=revert_status,
            admin_role=admin_role,
            watcher_enabled=_read_bool(env, "RECONCILIATION_WATCHER_ENABLED", True),
        )


__all__ = ["ReconciliationSettings"]
