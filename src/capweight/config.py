"""Configuration management with Pydantic Settings and YAML loading."""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from capweight.exceptions import ConfigurationError
from capweight.models.config import RebalanceConfig

# --- Sub-config models ---


class SystemConfig(BaseModel):
    """Process-wide settings."""

    log_level: str = "INFO"
    json_logs: bool = False


class EngineConfig(BaseModel):
    """Order execution and verification settings."""

    order_poll_interval_s: float = Field(default=1.0, ge=0)
    order_max_checks: int = Field(default=60, ge=0)
    default_asset_decimals: int = Field(default=8, ge=0)
    quote_decimals: int = Field(default=2, ge=0)


class MarketCapConfig(BaseModel):
    """Market-cap sampling and data sufficiency settings."""

    early_tolerance_minutes: float = Field(default=6.0, ge=0)
    late_tolerance_minutes: float = Field(default=9.0, ge=0)
    min_records: int = Field(default=100, ge=0)
    required_base_symbols: list[str] = Field(default_factory=lambda: ["BTC"])


class ExchangeConfig(BaseModel):
    """Static per-exchange constants."""

    name: str = "simulated"
    quote_symbol: str = "EUR"
    min_order_size_in_quote: Decimal = Field(default=Decimal(5), ge=0)
    maker_fee: Decimal = Field(default=Decimal("0.0015"), ge=0)
    taker_fee: Decimal = Field(default=Decimal("0.0025"), ge=0)


# --- Main config ---


class AppConfig(BaseSettings):
    """Application configuration.

    Loads from a YAML file, with environment variable overrides.
    """

    model_config = SettingsConfigDict(
        env_prefix="CAPWEIGHT_",
        env_nested_delimiter="__",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: Any,
        env_settings: Any,
        dotenv_settings: Any,
        file_secret_settings: Any,
    ) -> tuple[Any, ...]:
        """Environment variables override YAML (init) values."""
        return env_settings, init_settings, dotenv_settings, file_secret_settings

    system: SystemConfig = Field(default_factory=SystemConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    market_cap: MarketCapConfig = Field(default_factory=MarketCapConfig)
    exchange: ExchangeConfig = Field(default_factory=ExchangeConfig)
    rebalance: RebalanceConfig = Field(default_factory=RebalanceConfig)


def _load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML file and return its contents as a dict."""
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in {path}: {exc}") from exc
    return data if isinstance(data, dict) else {}


def load_config(
    config_dir: str | Path = "configs",
    config_file: str = "default.yaml",
) -> AppConfig:
    """Load application configuration from YAML with env var overrides.

    A missing file yields the defaults.

    Args:
        config_dir: Path to the configuration directory.
        config_file: Name of the YAML file.

    Returns:
        Validated AppConfig instance.

    Raises:
        ConfigurationError: If the file is not valid YAML or fails validation.
    """
    config_path = Path(config_dir) / config_file
    raw: dict[str, Any] = {}
    if config_path.exists():
        raw = _load_yaml(config_path)

    try:
        return AppConfig(**raw)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration in {config_path}: {exc}") from exc
