"""
Models for the FHIR conformance suite.

This module contains models for:
- The authorization code flow (request, token, flow state)
- Fetch requests and responses against the server under test
"""

from fhir_conformance.models.auth import (
    AuthorizationRequest,
    FlowState,
    OAuthToken,
    generate_state,
)
from fhir_conformance.models.fetch import (
    FetchOptions,
    FetchResponse,
    HttpInteraction,
)

__all__ = [
    "AuthorizationRequest",
    "FlowState",
    "OAuthToken",
    "generate_state",
    "FetchOptions",
    "FetchResponse",
    "HttpInteraction",
]
