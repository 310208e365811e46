"""Settings for the asset dashboard and its SnapTrade link workflow.

Sources, highest priority first: constructor arguments, the OS keychain
(SnapTrade credentials and the session signing key only), environment
variables, then ``.env``.
"""

from typing import Any

from pydantic import field_validator
from pydantic.fields import FieldInfo
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from services.credential_manager import CREDENTIAL_KEYS, get_credential

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class KeychainSettingsSource(PydanticBaseSettingsSource):
    """Supplies the keychain-backed secrets that are declared on the settings class."""

    def _keychain_fields(self) -> list[str]:
        return [name for name in self.settings_cls.model_fields if name in CREDENTIAL_KEYS]

    def get_field_value(self, field: FieldInfo, field_name: str) -> tuple[Any, str, bool]:
        if field_name not in CREDENTIAL_KEYS:
            return None, field_name, False
        return get_credential(field_name), field_name, False

    def __call__(self) -> dict[str, Any]:
        found = {name: get_credential(name) for name in self._keychain_fields()}
        return {name: value for name, value in found.items() if value}


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    DATABASE_URL: str = "sqlite:///./asset_dashboard.db"

    # SnapTrade API; both credentials are needed to link accounts
    SNAPTRADE_CLIENT_ID: str = ""
    SNAPTRADE_CONSUMER_KEY: str = ""
    SNAPTRADE_API_URL: str = "https://api.snaptrade.com/api/v1"
    # Same-origin relay for callers that cannot reach the API directly.
    # Empty means direct calls.
    SNAPTRADE_RELAY_URL: str = ""
    SNAPTRADE_TIMEOUT_SECONDS: float = 30.0
    SNAPTRADE_MAX_RETRIES: int = 3
    SNAPTRADE_RETRY_DELAY_SECONDS: float = 1.0
    HOLDINGS_FETCH_CONCURRENCY: int = 4

    # Session tokens issued by the auth frontend
    SESSION_SECRET_KEY: str = ""
    SESSION_COOKIE_NAME: str = "session"

    CORS_ORIGINS: list[str] = ["http://localhost:3000"]

    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        keychain = KeychainSettingsSource(settings_cls)
        return init_settings, keychain, env_settings, dotenv_settings

    @field_validator("HOLDINGS_FETCH_CONCURRENCY", mode="after")
    @classmethod
    def validate_concurrency(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"HOLDINGS_FETCH_CONCURRENCY must be >= 1, got {v}")
        return v

    @field_validator("SNAPTRADE_API_URL", "SNAPTRADE_RELAY_URL", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Base URLs are stored without a trailing ``/`` so paths append cleanly."""
        return v.rstrip("/") if isinstance(v, str) else v

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = str(v).upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}, got {v!r}")
        return level


settings = Settings()
