"""
Tests for the reconciliation REST API.

The app is built with an in-memory ReconciliationService and the watcher
disabled; TestClient runs the lifespan so startup wiring is exercised too.
"""

from __future__ import annotations

from uuid import UUID

import pytest
from fastapi.testclient import TestClient

from api.main import create_app
from fakes import ScenarioWorld, make_lead
from services.settings import ReconciliationSettings

BASE = "/api/v1/reconciliation"


@pytest.fixture
def world() -> ScenarioWorld:
    return ScenarioWorld()


@pytest.fixture
def client(world: ScenarioWorld):
    async def factory(settings: ReconciliationSettings):
        return world.service

    app = create_app(factory, world.settings)
    with TestClient(app) as test_client:
        yield test_client


def test_health_check(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["service"] == "promotion-reconciliation-api"


def test_validate_all(client: TestClient, world: ScenarioWorld) -> None:
    response = client.post(f"{BASE}/validate")

    assert response.status_code == 200
    body = response.json()
    assert body["valid_count"] == 1
    actions = {UUID(item["lead_id"]): item["validation"]["recommended_action"] for item in body["invalid"]}
    assert actions == {
        world.l1.lead_id: "revert_status",
        world.l2.lead_id: "retry_conversion",
        world.l3.lead_id: "manual_intervention",
        world.l5.lead_id: "revert_status",
    }
    assert body["errored"] == []


def test_validate_all_reports_listing_failure(client: TestClient, world: ScenarioWorld) -> None:
    world.leads.fail_listing = True

    response = client.post(f"{BASE}/validate")

    assert response.status_code == 500


def test_invalid_leads_reports_valid_count_of_last_sweep(client: TestClient) -> None:
    before = client.get(f"{BASE}/invalid-leads").json()
    client.post(f"{BASE}/validate")
    after = client.get(f"{BASE}/invalid-leads").json()

    assert before["valid_count"] == 0
    assert after["valid_count"] == 1
    assert len(after["invalid"]) == 4


def test_validate_single_lead(client: TestClient, world: ScenarioWorld) -> None:
    response = client.post(f"{BASE}/leads/{world.l2.lead_id}/validate")

    assert response.status_code == 200
    assert response.json()["recommended_action"] == "retry_conversion"
    assert response.json()["issues"] == ["No active admin relationship found for tenant"]

    listed = client.get(f"{BASE}/invalid-leads").json()
    assert [UUID(item["lead_id"]) for item in listed["invalid"]] == [world.l2.lead_id]


def test_validate_unknown_lead_is_404(client: TestClient) -> None:
    response = client.post(f"{BASE}/leads/{make_lead(99).lead_id}/validate")

    assert response.status_code == 404


def test_validate_lead_probe_failure_is_502(client: TestClient, world: ScenarioWorld) -> None:
    world.tenants.fail_for_leads.add(world.l2.lead_id)

    response = client.post(f"{BASE}/leads/{world.l2.lead_id}/validate")

    assert response.status_code == 502


def test_fix_requires_known_invalid_lead(client: TestClient, world: ScenarioWorld) -> None:
    response = client.post(f"{BASE}/leads/{world.l1.lead_id}/fix", json={"action": "revert_status"})

    assert response.status_code == 404


def test_manual_intervention_is_refused(client: TestClient, world: ScenarioWorld) -> None:
    client.post(f"{BASE}/validate")

    response = client.post(f"{BASE}/leads/{world.l3.lead_id}/fix", json={"action": "manual_intervention"})

    assert response.status_code == 409
    listed = client.get(f"{BASE}/invalid-leads").json()
    assert str(world.l3.lead_id) in [item["lead_id"] for item in listed["invalid"]]


def test_fix_retry_conversion(client: TestClient, world: ScenarioWorld) -> None:
    client.post(f"{BASE}/validate")

    response = client.post(f"{BASE}/leads/{world.l2.lead_id}/fix", json={"action": "retry_conversion"})

    assert response.status_code == 200
    assert response.json()["success"] is True
    listed = client.get(f"{BASE}/invalid-leads").json()
    assert str(world.l2.lead_id) not in [item["lead_id"] for item in listed["invalid"]]


def test_fix_rejects_unknown_action(client: TestClient, world: ScenarioWorld) -> None:
    client.post(f"{BASE}/validate")

    response = client.post(f"{BASE}/leads/{world.l1.lead_id}/fix", json={"action": "delete_everything"})

    assert response.status_code == 422


def test_bulk_fix_partial_failure(client: TestClient, world: ScenarioWorld) -> None:
    """Verify L1 is reverted, L5 fails, and only L1 leaves the invalid list."""

    client.post(f"{BASE}/validate")

    response = client.post(
        f"{BASE}/bulk-fix",
        json={"lead_ids": [str(world.l1.lead_id), str(world.l5.lead_id)], "action": "revert_status"},
    )

    assert response.status_code == 200
    body = response.json()
    assert (body["successful"], body["failed"]) == (1, 1)
    assert body["message"] == "Fixed 1 of 2 leads"

    listed = [item["lead_id"] for item in client.get(f"{BASE}/invalid-leads").json()["invalid"]]
    assert str(world.l1.lead_id) not in listed
    assert str(world.l5.lead_id) in listed


def test_bulk_fix_counts_unknown_ids_as_failed(client: TestClient, world: ScenarioWorld) -> None:
    client.post(f"{BASE}/validate")

    response = client.post(
        f"{BASE}/bulk-fix",
        json={"lead_ids": [str(world.l1.lead_id), str(world.l4.lead_id)], "action": "revert_status"},
    )

    body = response.json()
    assert (body["successful"], body["failed"]) == (1, 1)
    assert body["not_found"] == [str(world.l4.lead_id)]


def test_bulk_fix_requires_lead_ids(client: TestClient) -> None:
    response = client.post(f"{BASE}/bulk-fix", json={"lead_ids": [], "action": "revert_status"})

    assert response.status_code == 422


def test_watcher_status_when_disabled(client: TestClient) -> None:
    response = client.get(f"{BASE}/watcher")

    assert response.status_code == 200
    assert response.json()["enabled"] is False
    assert response.json()["state"] == "disabled"


def test_watcher_started_with_app(world: ScenarioWorld) -> None:
    async def factory(settings: ReconciliationSettings):
        return world.service

    settings = ReconciliationSettings(interval_seconds=3600, watcher_enabled=True)
    with TestClient(create_app(factory, settings)) as client:
        body = client.get(f"{BASE}/watcher").json()

    assert body["enabled"] is True
    assert body["state"] == "idle"
    assert body["interval_seconds"] == 3600
