"""
Unit tests for health and readiness endpoints.
"""

from __future__ import annotations

from typing import Generator
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine

from booking_core.dependencies import get_db_engine
from booking_core.main import app


@pytest.fixture
def client(engine: Engine) -> Generator[TestClient, None, None]:
    app.dependency_overrides[get_db_engine] = lambda: engine
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.mark.unit
def test_health_endpoint(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.unit
def test_ready_when_database_reachable(client: TestClient) -> None:
    response = client.get("/ready")

    assert response.status_code == 200
    assert response.json() == {"status": "ready", "checks": {"database": "ok"}}


@pytest.mark.unit
def test_not_ready_when_database_down(client: TestClient) -> None:
    with patch("booking_core.routes.health.check_engine_health", return_value=False):
        response = client.get("/ready")

    assert response.status_code == 503
    assert response.json() == {"status": "not ready", "checks": {"database": "failed"}}


@pytest.mark.unit
def test_request_id_is_echoed(client: TestClient) -> None:
    response = client.get("/health", headers={"X-Request-ID": "req-123"})

    assert response.headers["X-Request-ID"] == "req-123"
