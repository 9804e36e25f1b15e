"""Application settings.

All settings can be overridden via environment variables with prefix
``REMITFLOW_`` or through a ``.env`` file.

Example:
    >>> os.environ["REMITFLOW_ALERT_INTERVAL_SECONDS"] = "60"
    >>> get_settings(force_reload=True).alert_interval_seconds
    60
"""

from datetime import timedelta

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Order amounts are stored with two decimal places
MAX_MINOR_UNITS = 2


class Settings(BaseSettings):
    """RemitFlow configuration."""

    model_config = SettingsConfigDict(
        env_prefix="REMITFLOW_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage
    database_url: str = Field(
        default="sqlite:///./remitflow.db",
        description="SQLAlchemy database URL for the order store",
    )

    # Logging
    log_level: str = Field(default="INFO", description="Root log level")
    json_logs: bool = Field(default=False, description="Emit JSON log lines")
    dev_mode: bool = Field(default=True, description="Colored console log output")

    # Orders
    order_number_prefix: str = Field(
        default="REM",
        min_length=1,
        max_length=10,
        description="Prefix of human-readable order numbers (REM-2025-0001)",
    )
    currency_minor_units: dict[str, int] = Field(
        default_factory=dict,
        description="Decimal places per currency code; unlisted currencies use 2",
    )

    # Alert scheduler
    alert_interval_seconds: int = Field(
        default=300,
        ge=1,
        description="Seconds between two SLA scans",
    )
    warning_dedup_hours: float = Field(
        default=24,
        ge=0,
        description="Minimum hours between two warning alerts for the same order",
    )
    breach_dedup_hours: float = Field(
        default=1,
        ge=0,
        description="Minimum hours between two breach alerts for the same order",
    )
    awaiting_proof_warning_hours: float | None = Field(
        default=None,
        gt=0,
        description="Warn about orders still awaiting payment proof after this many hours",
    )
    awaiting_proof_breach_hours: float | None = Field(
        default=None,
        gt=0,
        description="Breach threshold for orders still awaiting payment proof",
    )

    # Realtime fan-out
    subscriber_queue_size: int = Field(
        default=1000,
        ge=1,
        description="Buffered events per subscriber before new events are dropped",
    )

    # Collaborators
    proof_base_url: str = Field(
        default="https://storage.local/remittance-proofs",
        description="Base URL used to resolve stored proof references",
    )

    @field_validator("currency_minor_units")
    @classmethod
    def _check_minor_units(cls, value: dict[str, int]) -> dict[str, int]:
        for currency, units in value.items():
            if not 0 <= units <= MAX_MINOR_UNITS:
                raise ValueError(
                    f"{currency}: minor units must be between 0 and {MAX_MINOR_UNITS}, got {units}"
                )
        return {currency.upper(): units for currency, units in value.items()}

    @model_validator(mode="after")
    def _check_awaiting_proof_sla(self) -> "Settings":
        warning = self.awaiting_proof_warning_hours
        breach = self.awaiting_proof_breach_hours
        if (warning is None) != (breach is None):
            raise ValueError(
                "awaiting_proof_warning_hours and awaiting_proof_breach_hours must be set together"
            )
        if warning is not None and breach is not None and warning > breach:
            raise ValueError("awaiting_proof_warning_hours must not exceed the breach threshold")
        return self

    @property
    def awaiting_proof_sla_enabled(self) -> bool:
        return self.awaiting_proof_warning_hours is not None

    @property
    def warning_dedup_window(self) -> timedelta:
        return timedelta(hours=self.warning_dedup_hours)

    @property
    def breach_dedup_window(self) -> timedelta:
        return timedelta(hours=self.breach_dedup_hours)

    def minor_units_for(self, currency: str) -> int:
        """Decimal places used when rounding amounts in ``currency``."""
        return self.currency_minor_units.get(currency.upper(), 2)


# Global settings instance (singleton pattern)
_settings: Settings | None = None


def get_settings(force_reload: bool = False) -> Settings:
    """Get or create the application settings.

    Args:
        force_reload: Rebuild from the environment

    Returns:
        Settings instance
    """
    global _settings

    if _settings is None or force_reload:
        _settings = Settings()

    return _settings
