"""
Tests for shared/api/health.py

Covers 2 endpoints: read_root, database_health.
"""

import pytest
from unittest.mock import MagicMock, patch
from fastapi import FastAPI
from fastapi.testclient import TestClient

from shared.api.health import router


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def client():
    """Build a test app with only the health router."""
    app = FastAPI()
    app.include_router(router)
    return TestClient(app)


# ===========================================================================
# read_root
# ===========================================================================

class TestReadRoot:

    def test_health_check(self, client):
        resp = client.get("/")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ok"
        assert data["service"] == "Tutor Scheduling Backend"
        assert data["version"] == "1.0.0"


# ===========================================================================
# database_health
# ===========================================================================

class TestDatabaseHealth:

    @patch("shared.api.health.get_db_manager")
    def test_connected(self, mock_get_manager, client):
        mock_get_manager.return_value.health_check.return_value = True
        resp = client.get("/health/db")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "database": "connected"}

    @patch("shared.api.health.get_db_manager")
    def test_connection_failed(self, mock_get_manager, client):
        mock_get_manager.return_value.health_check.return_value = False
        resp = client.get("/health/db")
        assert resp.json() == {"status": "error", "database": "connection_failed"}

    @patch("shared.api.health.get_db_manager")
    def test_manager_raises(self, mock_get_manager, client):
        mock_get_manager.side_effect = RuntimeError("no engine")
        resp = client.get("/health/db")
        data = resp.json()
        assert data["status"] == "error"
        assert "no engine" in data["database"]
