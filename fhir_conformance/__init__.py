"""FHIR REST conformance suite: interactive authorization and fetch support."""

__version__ = "0.1.0"
