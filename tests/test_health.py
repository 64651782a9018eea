# Copyright 2025 John Brosnihan
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Tests for health check endpoints."""

from datetime import datetime

from fastapi.testclient import TestClient

from app.main import create_app


def test_health_check_returns_ok(client):
    """Test that health check endpoint returns 200 with status and timestamp."""
    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert datetime.fromisoformat(data["timestamp"]).tzinfo is not None


def test_health_check_content_type(client):
    """Test that health check endpoint returns JSON content type."""
    response = client.get("/health")

    assert response.status_code == 200
    assert "application/json" in response.headers["content-type"]


def test_root_endpoint(client):
    """Test that the root endpoint identifies the service."""
    response = client.get("/")

    assert response.status_code == 200
    assert response.json() == {"message": "Plan Documents API Server"}


def test_readiness_ready_when_working_dir_exists(client):
    """Test that readiness passes for an existing, writable default directory."""
    response = client.get("/readiness")

    assert response.status_code == 200
    assert response.json() == {"status": "ready"}


def test_readiness_not_ready_when_working_dir_missing(tmp_path):
    """Test that readiness returns 503 when the default directory is missing."""
    app = create_app(default_working_dir=str(tmp_path / "missing"))
    client = TestClient(app)

    response = client.get("/readiness")

    assert response.status_code == 503
    data = response.json()
    assert data["status"] == "not_ready"
    assert "not found" in data["issues"][0]


def test_liveness_returns_alive(client):
    """Test that liveness endpoint returns alive."""
    response = client.get("/liveness")

    assert response.status_code == 200
    assert response.json() == {"status": "alive"}


def test_cors_preflight_allows_configured_origin(client):
    """Test that CORS preflight requests from the configured origin succeed."""
    response = client.options(
        "/api/plans",
        headers={
            "Origin": "http://localhost:5173",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "Content-Type",
        },
    )

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "http://localhost:5173"


def test_openapi_docs_available(client):
    """Test that OpenAPI documentation endpoints are accessible."""
    response = client.get("/openapi.json")
    assert response.status_code == 200
    openapi_data = response.json()
    assert "/api/plans" in openapi_data["paths"]
    assert "/api/plans/{filename}" in openapi_data["paths"]

    response = client.get("/docs")
    assert response.status_code == 200
