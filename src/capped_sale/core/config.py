"""Configuration management.

Loads from TOML config files + environment variables.
Uses pydantic-settings for validation and env var overriding.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings

from .enums import LogFormat


# ---------------------------------------------------------------------------
# Sub-configs
# ---------------------------------------------------------------------------

class SaleConfig(BaseModel):
    """Fixed constants of a sale.

    Amounts are in the smallest unit of the payment currency.
    """

    min_contribution: int = 10**17  # 0.1 unit
    # Legacy anti-front-running guard on the submitted fee price.
    max_fee_price: int = 50 * 10**9
    credit_scale: int = 10**18  # Smallest-unit scale of the credited asset
    restricted_window_seconds: int = 86_400  # First day after start
    max_whitelist_batch: int = 30

    @field_validator(
        "min_contribution",
        "credit_scale",
        "restricted_window_seconds",
        "max_whitelist_batch",
    )
    @classmethod
    def _positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be positive")
        return v

    @field_validator("max_fee_price")
    @classmethod
    def _non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("must not be negative")
        return v


class ObservabilityConfig(BaseModel):
    log_level: str = "INFO"
    log_format: LogFormat = LogFormat.JSON


class SimulatedPurchase(BaseModel):
    """One scripted purchase, ``offset_seconds`` after the sale starts."""

    participant: str
    value: int
    offset_seconds: int = 0
    fee_price: int = 0


class SimulationConfig(BaseModel):
    """Scripted sale replayed by ``capped-sale simulate``."""

    global_cap: int = 100 * 10**18
    exchange_rate: int = 10**15  # Payment units per credited unit
    duration_seconds: int = 7 * 86_400
    owner_allowance: int | None = None  # Defaults to the full raise
    whitelist: list[str] = Field(default_factory=list)
    purchases: list[SimulatedPurchase] = Field(default_factory=list)
    initial_balance: int = 1_000 * 10**18  # Per participant


# ---------------------------------------------------------------------------
# Top-level settings
# ---------------------------------------------------------------------------

class Settings(BaseSettings):
    """Top-level application settings.

    Loaded from TOML config files, overridden by environment variables.
    """

    sale: SaleConfig = Field(default_factory=SaleConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)
    simulation: SimulationConfig = Field(default_factory=SimulationConfig)

    model_config = {"env_prefix": "CAPPED_SALE_", "env_nested_delimiter": "__"}


def load_settings(
    config_path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> Settings:
    """Load settings from TOML file + env vars.

    Args:
        config_path: Path to TOML config file (optional).
        overrides: Dict of overrides to apply on top.
    """
    from .errors import ConfigError

    data: dict[str, Any] = {}

    if config_path:
        path = Path(config_path)
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")
        import tomli

        with open(path, "rb") as f:
            try:
                data = tomli.load(f)
            except tomli.TOMLDecodeError as exc:
                raise ConfigError(f"Invalid TOML in {path}: {exc}") from exc

    if overrides:
        data.update(overrides)

    return Settings(**data)
