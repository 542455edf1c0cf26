"""
Suite settings using pydantic-settings.

Environment variables are prefixed with FHIR_CONFORMANCE_.
"""

from functools import lru_cache

from dotenv import load_dotenv
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env into os.environ so credentials can live outside the repository
load_dotenv()


class Settings(BaseSettings):
    """Suite settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="FHIR_CONFORMANCE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @model_validator(mode="after")
    def validate_authorization_settings(self) -> "Settings":
        """Fail early when authorization is enabled without the values it needs."""
        if self.authorized:
            missing = [
                name
                for name in ("client_id", "auth_server_url", "fhir_server_url")
                if not getattr(self, name)
            ]
            if missing:
                raise ValueError(
                    "FHIR_CONFORMANCE_AUTHORIZED is true but these settings are empty: "
                    + ", ".join(f"FHIR_CONFORMANCE_{name.upper()}" for name in missing)
                )

        return self

    @property
    def effective_redirect_uri(self) -> str:
        """Redirect URI sent to the authorization server."""
        if self.redirect_uri:
            return self.redirect_uri
        return f"http://{self.callback_host}:{self.callback_port}{self.callback_path}"

    # Servers
    fhir_server_url: str = ""  # FHIR server under test
    auth_server_url: str = ""  # Base URL serving /authorize and /token

    # OAuth client
    client_id: str = ""
    client_secret: str = ""
    scope: str = "patient/*.read patient/*.write launch/patient"
    redirect_uri: str = ""  # Empty = derived from the callback listener address
    authorized: bool = False  # Server under test requires a bearer token

    # Login form credentials typed into the provider's page
    user_name: str = "admin"
    password: str = "password"

    # Callback listener
    callback_host: str = "localhost"
    callback_port: int = 3000
    callback_path: str = "/callback"

    # Browser automation
    browser_headless: bool = True
    login_form_selector: str = "div.login-pf-page"  # Keycloak login page marker
    login_form_timeout_seconds: float = 30.0
    navigation_timeout_seconds: float = 30.0

    # Timeouts
    code_timeout_seconds: float = 120.0  # Bound on waiting for the redirect
    request_timeout: int = 30

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    # Server capabilities consulted by conformance tests
    valid_patient_id: str = "355"
    writable_valid_patient_id: str = "88"
    xml_supported: bool = False
    turtle_supported: bool = False
    client_defined_ids_allowed: bool = True
    referential_integrity_supported: bool = False
    references_are_version_specific: bool = False
    default_page_size: int = 20
    pagination_supported: bool = True
    http_supported: bool = False
    server_time_zone: str = "Europe/Berlin"
    transaction_supported: bool = False


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    get_settings.cache_clear()
