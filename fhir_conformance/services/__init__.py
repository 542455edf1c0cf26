"""Services used by conformance tests."""

from fhir_conformance.services.fhir_client import FHIRFetchClient, fetch_wrapper

__all__ = ["FHIRFetchClient", "fetch_wrapper"]
