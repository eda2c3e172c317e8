"""Test Settings loading and runtime validation."""

import pytest

from tokenops.core.config import LedgerConfig, Settings, load_settings
from tokenops.core.enums import LedgerKind
from tokenops.core.errors import ConfigError


class TestSettingsDefaults:
    def test_default_settings(self):
        settings = Settings()
        assert settings.ledger.kind == LedgerKind.XRPL
        assert settings.watcher.enabled is True
        assert settings.watcher.interval_seconds == 10.0
        assert settings.watcher.lookback_seconds is None
        assert settings.readiness.enforce_registry is False

    def test_observability_defaults(self):
        settings = Settings()
        assert settings.observability.log_format == "json"
        assert settings.observability.metrics_enabled is False


class TestLoadSettings:
    def test_missing_file_uses_defaults(self, tmp_path):
        settings = load_settings(tmp_path / "nope.toml")
        assert settings.watcher.interval_seconds == 10.0

    def test_toml_file(self, tmp_path):
        path = tmp_path / "tokenops.toml"
        path.write_text(
            '[ledger]\nkind = "memory"\n\n'
            '[watcher]\ninterval_seconds = 2.5\nlookback_seconds = 3600\n\n'
            '[database]\nurl = "memory://"\n'
        )
        settings = load_settings(path)
        assert settings.ledger.kind == LedgerKind.MEMORY
        assert settings.watcher.interval_seconds == 2.5
        assert settings.watcher.lookback_seconds == 3600
        assert settings.database.url == "memory://"

    def test_overrides_merge_into_file_sections(self, tmp_path):
        path = tmp_path / "tokenops.toml"
        path.write_text('[watcher]\ninterval_seconds = 2.5\nenabled = false\n')
        settings = load_settings(path, overrides={"watcher": {"interval_seconds": 30}})
        assert settings.watcher.interval_seconds == 30
        assert settings.watcher.enabled is False

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("TOKENOPS_WATCHER__INTERVAL_SECONDS", "42")
        monkeypatch.setenv("TOKENOPS_LEDGER__KIND", "memory")
        settings = load_settings()
        assert settings.watcher.interval_seconds == 42
        assert settings.ledger.kind == LedgerKind.MEMORY

    def test_env_beats_toml_file(self, tmp_path, monkeypatch):
        path = tmp_path / "tokenops.toml"
        path.write_text('[watcher]\ninterval_seconds = 5.0\nenabled = false\n')
        monkeypatch.setenv("TOKENOPS_WATCHER__INTERVAL_SECONDS", "42")

        settings = load_settings(path)

        assert settings.watcher.interval_seconds == 42.0
        # Keys the env does not set still come from the file
        assert settings.watcher.enabled is False

    def test_overrides_beat_env(self, tmp_path, monkeypatch):
        path = tmp_path / "tokenops.toml"
        path.write_text('[watcher]\ninterval_seconds = 5.0\n')
        monkeypatch.setenv("TOKENOPS_WATCHER__INTERVAL_SECONDS", "42")

        settings = load_settings(path, overrides={"watcher": {"interval_seconds": 7}})
        assert settings.watcher.interval_seconds == 7

    def test_file_does_not_leak_into_later_settings(self, tmp_path):
        path = tmp_path / "tokenops.toml"
        path.write_text('[watcher]\ninterval_seconds = 5.0\n')
        load_settings(path)
        assert Settings().watcher.interval_seconds == 10.0


class TestValidateRuntime:
    def test_defaults_pass(self):
        Settings().validate_runtime()  # Should not raise

    @pytest.mark.parametrize("interval", [0, -5])
    def test_non_positive_interval(self, interval):
        settings = Settings(watcher={"interval_seconds": interval})
        with pytest.raises(ConfigError, match="interval_seconds"):
            settings.validate_runtime()

    def test_non_positive_lookback(self):
        settings = Settings(watcher={"lookback_seconds": 0})
        with pytest.raises(ConfigError, match="lookback_seconds"):
            settings.validate_runtime()

    def test_xrpl_needs_endpoint(self):
        settings = Settings(ledger={"kind": "xrpl", "endpoint": ""})
        with pytest.raises(ConfigError, match="endpoint"):
            settings.validate_runtime()

    def test_memory_ledger_needs_no_endpoint(self):
        Settings(ledger={"kind": "memory", "endpoint": ""}).validate_runtime()


class TestIssuerSeed:
    def test_seed_read_from_named_env_var(self, monkeypatch):
        monkeypatch.setenv("MY_SEED", "sSecret")
        assert LedgerConfig(issuer_seed_env="MY_SEED").issuer_seed == "sSecret"

    def test_seed_empty_when_unset(self, monkeypatch):
        monkeypatch.delenv("MY_SEED", raising=False)
        assert LedgerConfig(issuer_seed_env="MY_SEED").issuer_seed == ""

    def test_seed_not_part_of_dump(self, monkeypatch):
        monkeypatch.setenv("ISSUER_SEED", "sSecret")
        assert "sSecret" not in str(Settings().model_dump())
