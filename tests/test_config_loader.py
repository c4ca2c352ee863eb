from pathlib import Path

import pytest

from ordinal_ledger.config import ConfigurationError, LedgerConfig, load_ledger_config


def test_load_ledger_config_prefers_environment_over_yaml(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        """
        log_level: warning
        store:
          backend: memory
          sqlite_path: /var/lib/file.sqlite
        """
    )

    env_map = {
        "ORDINAL_LEDGER_BACKEND": "sqlite",
        "ORDINAL_LEDGER_SQLITE_PATH": str(tmp_path / "env.sqlite"),
    }

    config = load_ledger_config(config_path=config_path, env=env_map)

    assert isinstance(config, LedgerConfig)
    assert config.backend == "sqlite"
    assert config.sqlite_path == tmp_path / "env.sqlite"
    assert config.log_level == "WARNING"


def test_load_ledger_config_reads_yaml_when_env_missing(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config_path = tmp_path / "ordinal-ledger.yaml"
    monkeypatch.setattr("ordinal_ledger.config.DEFAULT_CONFIG_PATH", config_path)

    config_path.write_text(
        """
        store:
          backend: memory
        """
    )

    config = load_ledger_config(env={})

    assert config.backend == "memory"
    assert config.log_level == "INFO"


def test_overrides_win_over_everything(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text("store:\n  backend: memory\n")

    config = load_ledger_config(
        config_path=config_path,
        env={"ORDINAL_LEDGER_BACKEND": "memory", "ORDINAL_LEDGER_LOG_LEVEL": "debug"},
        overrides={"backend": "sqlite", "sqlite_path": str(tmp_path / "cli.sqlite")},
    )

    assert config.backend == "sqlite"
    assert config.sqlite_path == tmp_path / "cli.sqlite"
    assert config.log_level == "DEBUG"


def test_defaults_without_config_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("ordinal_ledger.config.DEFAULT_CONFIG_PATH", tmp_path / "absent.yaml")

    config = load_ledger_config(env={})

    assert config.backend == "sqlite"
    assert config.sqlite_path.name == "ledger.sqlite"


def test_explicit_missing_config_file_is_an_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError):
        load_ledger_config(config_path=tmp_path / "missing.yaml", env={})


def test_invalid_backend_is_rejected(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text("store:\n  backend: redis-cluster\n")

    with pytest.raises(ConfigurationError) as excinfo:
        load_ledger_config(config_path=config_path, env={})

    assert "Invalid backend" in str(excinfo.value)


def test_store_section_must_be_mapping(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text("store: [memory]\n")

    with pytest.raises(ConfigurationError):
        load_ledger_config(config_path=config_path, env={})
