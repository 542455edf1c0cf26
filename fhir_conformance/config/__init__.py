"""Configuration modules for the FHIR conformance suite."""

from fhir_conformance.config.logging import configure_logging, get_logger
from fhir_conformance.config.settings import Settings, get_settings, reset_settings

__all__ = [
    "Settings",
    "get_settings",
    "reset_settings",
    "configure_logging",
    "get_logger",
]
