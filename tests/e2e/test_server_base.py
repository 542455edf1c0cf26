"""
End-to-end tests against a live FHIR server.

These tests make real HTTP requests to the server configured through
FHIR_CONFORMANCE_FHIR_SERVER_URL. When FHIR_CONFORMANCE_AUTHORIZED is
true, the first authorized request runs the interactive login.

Run with: python scripts/run_tests.py --e2e
"""

import os

import pytest
import pytest_asyncio

from fhir_conformance.auth import cleanup_auth_session
from fhir_conformance.config import get_settings, reset_settings
from fhir_conformance.models import FetchOptions
from fhir_conformance.services import fetch_wrapper

# Mark all tests in this module as e2e
pytestmark = [
    pytest.mark.e2e,
    pytest.mark.network,  # Requires network access
    pytest.mark.skipif(
        not os.environ.get("FHIR_CONFORMANCE_FHIR_SERVER_URL"),
        reason="FHIR_CONFORMANCE_FHIR_SERVER_URL not set",
    ),
]

FHIR_JSON = "application/fhir+json"


@pytest_asyncio.fixture
async def settings(monkeypatch, env_authorized):
    """Settings read from the real environment rather than the unit test defaults."""
    if env_authorized is None:
        monkeypatch.delenv("FHIR_CONFORMANCE_AUTHORIZED", raising=False)
    else:
        monkeypatch.setenv("FHIR_CONFORMANCE_AUTHORIZED", env_authorized)
    reset_settings()
    yield get_settings()
    await cleanup_auth_session()


class TestCapabilityStatement:
    """E2E tests for the metadata endpoint."""

    @pytest.mark.asyncio
    async def test_metadata(self, settings):
        """Server should publish a CapabilityStatement."""
        response = await fetch_wrapper(
            FetchOptions(relative_url="metadata", headers={"Accept": FHIR_JSON})
        )

        if response.status == -1:
            pytest.skip(f"Server unavailable: {response.raw_body}")

        assert response.success
        assert response.json_parsed
        assert response.json_body["resourceType"] == "CapabilityStatement"
        assert "fhirVersion" in response.json_body


class TestRead:
    """E2E tests for reading a known resource."""

    @pytest.mark.asyncio
    async def test_read_valid_patient(self, settings):
        """Reading the configured patient should return that patient."""
        response = await fetch_wrapper(
            FetchOptions(
                relative_url=f"Patient/{settings.valid_patient_id}",
                headers={"Accept": FHIR_JSON},
                authorized=settings.authorized,
            )
        )

        if response.status == -1:
            pytest.skip(f"Server unavailable: {response.raw_body}")

        assert response.status == 200
        assert response.json_body["resourceType"] == "Patient"
        assert response.json_body["id"] == settings.valid_patient_id

    @pytest.mark.asyncio
    async def test_read_unknown_patient(self, settings):
        """An unknown id should be a 404, reported rather than raised."""
        response = await fetch_wrapper(
            FetchOptions(
                relative_url="Patient/does-not-exist-0000",
                headers={"Accept": FHIR_JSON},
                authorized=settings.authorized,
            )
        )

        if response.status == -1:
            pytest.skip(f"Server unavailable: {response.raw_body}")

        assert not response.success
        assert response.status in (404, 410)
