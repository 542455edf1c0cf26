"""
Models for the authenticated fetch wrapper used by conformance tests.
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class FetchOptions:
    """A single request against the FHIR server under test."""

    relative_url: str
    method: str = "GET"
    headers: dict[str, str] = field(default_factory=dict)
    body: str | bytes | None = None
    authorized: bool = False
    override_base_url: str | None = None


@dataclass
class FetchResponse:
    """Outcome of a fetch. Transport failures are reported, not raised."""

    success: bool
    status: int
    headers: dict[str, str] = field(default_factory=dict)
    json_body: Any = None
    json_parsed: bool = False
    raw_body: str = ""
    error: BaseException | None = None


@dataclass
class HttpInteraction:
    """Recorded request/response pair for test reports."""

    method: str
    url: str
    request_headers: dict[str, str]
    request_body: str | bytes | None
    status: int
    status_text: str
    response_headers: dict[str, str]
    response_body: str
    duration_ms: float = 0.0
