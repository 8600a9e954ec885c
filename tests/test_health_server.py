"""
Tests for health server

Tests Flask-based health check endpoints for Kubernetes liveness and
readiness probes against a real reserves database.
"""

import sqlite3
from pathlib import Path

import pytest

from claim_reserves import __version__, health_server
from claim_reserves.health_server import LEDGER_TABLES, app, initialize_health_server
from claim_reserves.reserves import ClaimReserves
from tests.helpers import seed_shared_claim


@pytest.fixture
def client():
    """Flask test client"""
    app.config["TESTING"] = True
    with app.test_client() as client:
        yield client
    # Reset global state after test
    health_server._db_path = None


@pytest.fixture
def seeded_db(reserves: ClaimReserves, temp_db: Path) -> Path:
    """Reserves database with one claim and three opening movements"""
    seed_shared_claim(reserves)
    return temp_db


@pytest.fixture
def initialized_server(seeded_db: Path) -> Path:
    """Health server initialized with the seeded database"""
    initialize_health_server(seeded_db)
    return seeded_db


# =============================================================================
# Initialization Tests
# =============================================================================


def test_initialize_health_server_sets_db_path(client, temp_db):
    initialize_health_server(temp_db)
    assert health_server._db_path == temp_db


def test_initialize_health_server_accepts_string_path(client, temp_db):
    initialize_health_server(str(temp_db))
    assert health_server._db_path == temp_db


# =============================================================================
# Liveness Endpoint Tests
# =============================================================================


def test_liveness_returns_json_status(client, initialized_server):
    response = client.get("/health/live")

    assert response.status_code == 200
    data = response.get_json()
    assert data["status"] == "alive"
    assert data["service"] == "claim-reserves"


def test_liveness_works_without_initialization(client):
    """Test liveness endpoint works even without initialization"""
    response = client.get("/health/live")

    assert response.status_code == 200
    assert response.get_json()["status"] == "alive"


# =============================================================================
# Readiness Endpoint Tests
# =============================================================================


def test_readiness_returns_movement_count(client, initialized_server):
    """Test readiness reports the claim movements on file"""
    response = client.get("/health/ready")

    assert response.status_code == 200
    data = response.get_json()
    assert data["status"] == "ready"
    assert data["database"] == "accessible"
    assert data["movement_count"] == 3


def test_readiness_returns_503_when_not_initialized(client):
    response = client.get("/health/ready")

    assert response.status_code == 503
    data = response.get_json()
    assert data["status"] == "not_ready"
    assert data["reason"] == "database_path_not_initialized"


def test_readiness_returns_503_when_db_file_missing(client):
    initialize_health_server("/nonexistent/path/to/reserves.db")

    response = client.get("/health/ready")

    assert response.status_code == 503
    data = response.get_json()
    assert data["reason"] == "database_file_not_found"
    assert "/nonexistent/path/to/reserves.db" in data["db_path"]


def test_readiness_returns_503_on_database_error(client, seeded_db):
    """Test readiness fails when the movements table cannot be queried"""
    initialize_health_server(seeded_db)

    conn = sqlite3.connect(str(seeded_db))
    conn.execute("DROP TABLE claim_movements")
    conn.commit()
    conn.close()

    response = client.get("/health/ready")

    assert response.status_code == 503
    data = response.get_json()
    assert data["status"] == "not_ready"
    assert data["reason"] == "database_operational_error"
    assert "error" in data


# =============================================================================
# Detailed Health Endpoint Tests
# =============================================================================


def test_detailed_health_includes_ledger_counts(client, initialized_server):
    response = client.get("/health")

    assert response.status_code == 200
    data = response.get_json()
    assert data["status"] == "healthy"
    assert data["service"] == "claim-reserves"
    assert data["version"] == __version__

    database = data["database"]
    assert database["status"] == "healthy"
    assert set(database["row_counts"]) == set(LEDGER_TABLES)
    assert database["row_counts"]["claims"] == 1
    assert database["row_counts"]["coverage_reserves"] == 3
    assert database["row_counts"]["coverage_movements"] == 3
    assert database["row_counts"]["accounting_entries"] == 0
    assert "size_mb" in database


def test_detailed_health_counts_adjustments(client, initialized_server, reserves):
    reserves.adjust("1/5/20045", {"1-001": "2300"})

    data = client.get("/health").get_json()
    assert data["database"]["row_counts"]["claim_movements"] == 5
    assert data["database"]["row_counts"]["accounting_entries"] == 4


def test_detailed_health_returns_degraded_when_db_not_initialized(client):
    response = client.get("/health")

    assert response.status_code == 503
    data = response.get_json()
    assert data["status"] == "degraded"
    assert data["database"]["status"] == "not_initialized"


def test_detailed_health_returns_degraded_on_database_error(client, seeded_db):
    initialize_health_server(seeded_db)

    conn = sqlite3.connect(str(seeded_db))
    conn.execute("DROP TABLE payments")
    conn.commit()
    conn.close()

    response = client.get("/health")

    assert response.status_code == 503
    data = response.get_json()
    assert data["status"] == "degraded"
    assert data["database"]["status"] == "unhealthy"
    assert "error" in data["database"]
