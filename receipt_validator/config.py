"""
Validator Configuration - Pydantic Settings for type-safe config.

Store credentials are NOT settings: they are handed to the validator by the
embedding application. Settings only hold endpoints, timeouts and logging.
FAIL FAST - Endpoint URLs are validated when settings load.
"""

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from receipt_validator.exceptions import ConfigError


class Settings(BaseSettings):
    """Settings loaded from RECEIPT_VALIDATOR_* environment variables."""

    # Apple verifyReceipt endpoints (the /verifyReceipt path is appended)
    apple_production_url: str = "https://buy.itunes.apple.com"
    apple_sandbox_url: str = "https://sandbox.itunes.apple.com"

    # Google Play Developer API
    google_api_base_url: str = "https://androidpublisher.googleapis.com"
    google_scope: str = "https://www.googleapis.com/auth/androidpublisher"
    google_token_lifetime_seconds: int = 3600  # Google caps assertions at 1 hour

    # HTTP
    http_timeout_seconds: float = 30.0

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # json or console

    model_config = SettingsConfigDict(
        env_prefix="RECEIPT_VALIDATOR_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def validate_critical_config(self) -> "Settings":
        """Reject settings that would only fail once a purchase is being validated."""
        errors: list[str] = []

        for name in ("apple_production_url", "apple_sandbox_url", "google_api_base_url"):
            value = getattr(self, name)
            if not value.startswith(("https://", "http://")):
                errors.append(f"{name} must be an http(s) URL, got: {value!r}")

        if not 0 < self.google_token_lifetime_seconds <= 3600:
            errors.append("google_token_lifetime_seconds must be between 1 and 3600")
        if self.http_timeout_seconds <= 0:
            errors.append("http_timeout_seconds must be positive")
        if self.log_format not in ("json", "console"):
            errors.append(f"log_format must be 'json' or 'console', got: {self.log_format!r}")

        if errors:
            raise ConfigError("; ".join(errors))

        return self


# Global settings instance - validates at import time
settings = Settings()


def get_settings() -> Settings:
    """Get settings instance."""
    return settings
