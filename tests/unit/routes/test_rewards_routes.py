"""
Unit tests for rewards wallet routes.
"""

from __future__ import annotations

from typing import Generator

import pytest
from conftest import GUEST_ID, OTHER_GUEST_ID, configure_points, grant_points
from fastapi.testclient import TestClient
from sqlalchemy import update
from sqlalchemy.engine import Engine

from booking_core.dependencies import get_db_engine
from booking_core.main import app
from booking_core.models.rewards import RewardsAccount

AS_GUEST = {"X-User-Id": str(GUEST_ID)}


@pytest.fixture
def client(engine: Engine) -> Generator[TestClient, None, None]:
    app.dependency_overrides[get_db_engine] = lambda: engine
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.mark.unit
def test_account_without_wallet_is_empty(client: TestClient) -> None:
    response = client.get(f"/rewards/{GUEST_ID}", headers=AS_GUEST)

    assert response.status_code == 200
    assert response.json() == {
        "user_id": GUEST_ID,
        "current_balance": 0,
        "total_earned": 0,
        "lifetime_spent": 0,
        "member_tier_id": None,
        "transactions": [],
    }


@pytest.mark.unit
def test_account_with_history(engine: Engine, client: TestClient) -> None:
    grant_points(engine, GUEST_ID, 750)

    data = client.get(f"/rewards/{GUEST_ID}", params={"limit": 5}, headers=AS_GUEST).json()

    assert data["current_balance"] == 750
    assert len(data["transactions"]) == 1
    assert data["transactions"][0]["type"] == "earned"
    assert data["transactions"][0]["balance_after"] == 750


@pytest.mark.unit
def test_wallet_is_hidden_from_other_users(engine: Engine, client: TestClient) -> None:
    grant_points(engine, GUEST_ID, 750)

    response = client.get(f"/rewards/{GUEST_ID}", headers={"X-User-Id": str(OTHER_GUEST_ID)})

    assert response.status_code == 404
    assert response.json()["error"] == "not_found"
    assert "current_balance" not in response.json()


@pytest.mark.unit
def test_wallet_requires_user_header(client: TestClient) -> None:
    assert client.get(f"/rewards/{GUEST_ID}").status_code == 422
    assert (
        client.get(f"/rewards/{GUEST_ID}/max-redeemable", params={"amount": "100"}).status_code
        == 422
    )


@pytest.mark.unit
def test_limit_is_validated(client: TestClient) -> None:
    response = client.get(f"/rewards/{GUEST_ID}", params={"limit": 0}, headers=AS_GUEST)

    assert response.status_code == 422


@pytest.mark.unit
def test_max_redeemable(engine: Engine, client: TestClient) -> None:
    configure_points(engine, points_per_taka=10, max_points_per_booking=600)
    grant_points(engine, GUEST_ID, 1000)

    response = client.get(
        f"/rewards/{GUEST_ID}/max-redeemable", params={"amount": "2700"}, headers=AS_GUEST
    )

    assert response.status_code == 200
    assert response.json()["max_points"] == 600


@pytest.mark.unit
def test_max_redeemable_is_hidden_from_other_users(engine: Engine, client: TestClient) -> None:
    grant_points(engine, GUEST_ID, 1000)

    response = client.get(
        f"/rewards/{GUEST_ID}/max-redeemable",
        params={"amount": "2700"},
        headers={"X-User-Id": str(OTHER_GUEST_ID)},
    )

    assert response.status_code == 404


@pytest.mark.unit
def test_wallet_repair_is_not_exposed_over_http(engine: Engine, client: TestClient) -> None:
    grant_points(engine, GUEST_ID, 1000)
    with engine.begin() as conn:
        conn.execute(
            update(RewardsAccount.__table__)
            .where(RewardsAccount.__table__.c.user_id == GUEST_ID)
            .values(current_balance=900)
        )

    response = client.post(
        f"/rewards/{GUEST_ID}/reconcile", params={"repair": "true"}, headers=AS_GUEST
    )

    assert response.status_code in (404, 405)
    data = client.get(f"/rewards/{GUEST_ID}", headers=AS_GUEST).json()
    assert data["current_balance"] == 900
