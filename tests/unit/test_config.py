"""Tests for capweight.config loading."""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path

import pytest

from capweight.config import AppConfig, EngineConfig, load_config
from capweight.exceptions import ConfigurationError

PROJECT_CONFIG_DIR = Path(__file__).resolve().parents[2] / "configs"


class TestLoadConfig:
    """Tests for load_config."""

    def test_missing_file_yields_defaults(self, tmp_path: Path) -> None:
        config = load_config(config_dir=tmp_path)

        assert config == AppConfig()
        assert config.engine == EngineConfig()
        assert config.rebalance.top_ranking_count == 10

    def test_shipped_defaults_match_models(self) -> None:
        config = load_config(config_dir=PROJECT_CONFIG_DIR)

        assert config.exchange.quote_symbol == "EUR"
        assert config.exchange.taker_fee == Decimal("0.0025")
        assert config.rebalance.nth_root == 2.5
        assert config.market_cap.required_base_symbols == ["BTC"]

    def test_yaml_overrides_defaults(self, tmp_path: Path) -> None:
        (tmp_path / "custom.yaml").write_text(
            "rebalance:\n"
            "  quote_allocation: '5'\n"
            "  tags_to_ignore: [stablecoin, wrapped]\n"
            "engine:\n"
            "  order_max_checks: 5\n"
        )

        config = load_config(config_dir=tmp_path, config_file="custom.yaml")

        assert config.rebalance.quote_allocation == Decimal(5)
        assert config.rebalance.tags_to_ignore == ["stablecoin", "wrapped"]
        assert config.engine.order_max_checks == 5
        assert config.engine.order_poll_interval_s == 1.0

    def test_env_overrides_yaml(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        (tmp_path / "default.yaml").write_text("system:\n  log_level: INFO\n")
        monkeypatch.setenv("CAPWEIGHT_SYSTEM__LOG_LEVEL", "DEBUG")

        config = load_config(config_dir=tmp_path)

        assert config.system.log_level == "DEBUG"

    def test_empty_file_yields_defaults(self, tmp_path: Path) -> None:
        (tmp_path / "default.yaml").write_text("")

        assert load_config(config_dir=tmp_path) == AppConfig()

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        (tmp_path / "default.yaml").write_text("rebalance: [unclosed\n")

        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_config(config_dir=tmp_path)

    def test_out_of_range_value(self, tmp_path: Path) -> None:
        (tmp_path / "default.yaml").write_text("rebalance:\n  top_ranking_count: 100\n")

        with pytest.raises(ConfigurationError, match="Invalid configuration"):
            load_config(config_dir=tmp_path)
