"""Unit tests for health endpoint

Basic tests to verify service health check functionality.
"""

import pytest
from fastapi.testclient import TestClient

from recording_service.main import app


@pytest.mark.unit
class TestHealthCheck:
    """Test health check endpoint"""

    def test_health_returns_healthy(self):
        """Happy path: health check returns healthy status"""
        response = TestClient(app).get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "service": "ride-recording-service"}

    def test_root_identifies_service(self):
        response = TestClient(app).get("/")

        body = response.json()
        assert body["service"] == "ride-recording-service"
        assert body["status"] == "running"
