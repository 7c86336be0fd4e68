"""Tests for the configuration system."""

from __future__ import annotations

import textwrap
from typing import TYPE_CHECKING

import pytest
from pydantic import ValidationError

from digitflow.config.settings import (
    AnalysisConfig,
    AppConfig,
    AuthConfig,
    DatabaseConfig,
    DatabaseEngine,
    FeedConfig,
    ScannerConfig,
    ServerConfig,
    _load_yaml,
)

if TYPE_CHECKING:
    from pathlib import Path

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------


class TestDefaults:
    """Verify default values."""

    def test_server_defaults(self) -> None:
        cfg = ServerConfig()
        assert cfg.host == "0.0.0.0"  # noqa: S104
        assert cfg.port == 3000
        assert cfg.log_level == "info"

    def test_database_defaults(self) -> None:
        cfg = DatabaseConfig()
        assert cfg.engine == DatabaseEngine.SQLITE
        assert cfg.dsn == "sqlite+aiosqlite:///./digitflow.db"
        assert cfg.debug_sql is False

    def test_auth_defaults(self) -> None:
        cfg = AuthConfig()
        assert cfg.admin_key == ""
        assert cfg.cookie_name == "dfp_session"
        assert cfg.cookie_max_age == 30 * 24 * 3600
        assert cfg.key_prefix == "DFP"
        assert cfg.default_expiry_months == 12
        assert cfg.default_device_limit is None
        assert "/api/" in cfg.public_paths

    def test_feed_url_includes_app_id(self) -> None:
        cfg = FeedConfig(app_id=1234)
        assert cfg.url == "wss://ws.binaryws.com/websockets/v3?app_id=1234"

    def test_analysis_defaults(self) -> None:
        cfg = AnalysisConfig()
        assert cfg.default_max_ticks == 100
        assert cfg.prediction_interval == 30.0
        assert cfg.min_ticks_for_prediction == 10
        assert cfg.match_log_size == 50

    def test_scanner_defaults(self) -> None:
        cfg = ScannerConfig()
        assert cfg.duration == 60.0
        assert cfg.poll_interval == 0.5


class TestValidation:
    def test_window_default_out_of_range(self) -> None:
        with pytest.raises(ValidationError):
            AnalysisConfig(default_max_ticks=5)
        with pytest.raises(ValidationError):
            AnalysisConfig(default_max_ticks=501)

    def test_default_window_inside_bounds(self) -> None:
        with pytest.raises(ValidationError, match="outside"):
            AnalysisConfig(min_max_ticks=50, default_max_ticks=20)

    def test_scanner_poll_interval_positive(self) -> None:
        with pytest.raises(ValidationError):
            ScannerConfig(poll_interval=0)

    def test_device_limit_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            AuthConfig(default_device_limit=0)


# ---------------------------------------------------------------------------
# Environment and YAML
# ---------------------------------------------------------------------------


class TestEnvironment:
    def test_nested_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DFP_AUTH__ADMIN_KEY", "from-env")
        monkeypatch.setenv("DFP_SERVER__PORT", "8080")
        cfg = AppConfig()
        assert cfg.auth.admin_key == "from-env"
        assert cfg.server.port == 8080

    def test_top_level_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DFP_DEBUG", "true")
        assert AppConfig().debug is True


class TestYAML:
    def test_missing_file(self, tmp_path: Path) -> None:
        assert _load_yaml(tmp_path / "nope.yaml") == {}

    def test_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert _load_yaml(path) == {}

    def test_from_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(
            textwrap.dedent(
                """\
                debug: true
                analysis:
                  default_max_ticks: 250
                scanner:
                  duration: 10
                """
            )
        )
        cfg = AppConfig.from_yaml(path)
        assert cfg.debug is True
        assert cfg.analysis.default_max_ticks == 250
        assert cfg.scanner.duration == 10.0

    def test_env_wins_over_yaml(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("debug: false\n")
        monkeypatch.setenv("DFP_DEBUG", "true")
        assert AppConfig.from_yaml(path).debug is True

    def test_nested_sections_merge(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("auth:\n  admin_key: from-yaml\n  cookie_name: yaml_cookie\n")
        cfg = AppConfig(config_path=str(path), auth={"admin_key": "explicit"})
        assert cfg.auth.admin_key == "explicit"
        assert cfg.auth.cookie_name == "yaml_cookie"


class TestMergeUnder:
    def test_overrides_win_and_nested_merge(self) -> None:
        from digitflow.config.settings import _merge_under

        merged = _merge_under(
            {"a": 1, "s": {"x": 1, "y": 2}},
            {"a": 2, "s": {"y": 3}, "b": None},
        )
        assert merged == {"a": 2, "s": {"x": 1, "y": 3}}
