from __future__ import annotations

import logging
from pathlib import Path

import pytest

from essready.config.constants import coerce_bool
from essready.config.settings import (
    DEFAULT_BATCH_TIMEOUT_SECONDS,
    DEFAULT_TIMEOUT_SECONDS,
    ENVIRONMENT_MAP,
    LOG_FORMAT_JSON,
    WEB_CONFIG_POLICY_DECRYPTED,
    WEB_CONFIG_POLICY_ENCRYPTED,
    DiscoveryInputs,
    LoggingInputs,
    ProbeInputs,
    resolve_application_settings,
    resolve_config_file_candidates,
)


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in ENVIRONMENT_MAP:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


def _write_config(path: Path, body: str) -> Path:
    path.write_text(body, encoding="utf-8")
    return path


def test_defaults_without_config_file(tmp_path: Path) -> None:
    runtime, logging_settings = resolve_application_settings(
        config_path=str(tmp_path / "missing.toml")
    )

    assert runtime.probe.protocol == "http"
    assert runtime.probe.port is None
    assert runtime.probe.timeout_seconds == DEFAULT_TIMEOUT_SECONDS
    assert runtime.probe.batch_timeout_seconds == DEFAULT_BATCH_TIMEOUT_SECONDS
    assert runtime.probe.max_retries == 2
    assert runtime.probe.retry_delay_seconds == 5.0
    assert runtime.probe.max_concurrent_requests == 5
    assert runtime.probe.enable_connection_pooling is True
    assert runtime.checks.web_config_policy == WEB_CONFIG_POLICY_ENCRYPTED
    assert runtime.inventory_file == "inventory.json"
    assert runtime.debug is False
    assert runtime.warnings == ()
    assert logging_settings.level == logging.INFO


def test_config_file_and_local_overlay(tmp_path: Path) -> None:
    config = _write_config(
        tmp_path / "config.toml",
        """
[probe]
protocol = "https"
port = 8443
timeout_seconds = 30
max_retries = 4

[checks]
minimum_upgrade_version = "4.4.0"
web_config_policy = "decrypted"

[logging]
format = "json"
""",
    )
    _write_config(tmp_path / "config.local.toml", "[probe]\nmax_retries = 1\n")

    runtime, logging_settings = resolve_application_settings(config_path=str(config))

    assert runtime.probe.protocol == "https"
    assert runtime.probe.port == 8443
    assert runtime.probe.timeout_seconds == 30
    assert runtime.probe.batch_timeout_seconds == DEFAULT_BATCH_TIMEOUT_SECONDS
    assert runtime.probe.max_retries == 1
    assert runtime.checks.minimum_upgrade_version == "4.4.0"
    assert runtime.checks.web_config_policy == WEB_CONFIG_POLICY_DECRYPTED
    assert logging_settings.format == LOG_FORMAT_JSON


def test_environment_overrides_config_file(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    config = _write_config(tmp_path / "config.toml", "[probe]\nmax_retries = 4\n")
    monkeypatch.setenv("ESSREADY_MAX_RETRIES", "0")
    monkeypatch.setenv("ESSREADY_INVENTORY_FILE", "C:/ops/inventory.json")

    runtime, _ = resolve_application_settings(config_path=str(config))

    assert runtime.probe.max_retries == 0
    assert runtime.inventory_file == "C:/ops/inventory.json"


def test_cli_overrides_win_over_environment(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("ESSREADY_PROTOCOL", "https")

    runtime, _ = resolve_application_settings(
        config_path=str(tmp_path / "config.toml"),
        probe_inputs=ProbeInputs(protocol="http", timeout_seconds=15, retry_delay_seconds=0.5),
        discovery_inputs=DiscoveryInputs(inventory_file=" hosts.json "),
    )

    assert runtime.probe.protocol == "http"
    assert runtime.probe.timeout_seconds == 15
    assert runtime.probe.batch_timeout_seconds == 15
    assert runtime.probe.retry_delay_seconds == 0.5
    assert runtime.inventory_file == "hosts.json"


def test_invalid_values_fall_back_with_warnings(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("ESSREADY_PROTOCOL", "gopher")
    monkeypatch.setenv("ESSREADY_PORT", "70000")
    monkeypatch.setenv("ESSREADY_TIMEOUT_SECONDS", "soon")
    monkeypatch.setenv("ESSREADY_WEB_CONFIG_POLICY", "sometimes")

    runtime, _ = resolve_application_settings(config_path=str(tmp_path / "config.toml"))

    assert runtime.probe.protocol == "http"
    assert runtime.probe.port is None
    assert runtime.probe.timeout_seconds == DEFAULT_TIMEOUT_SECONDS
    assert runtime.checks.web_config_policy == WEB_CONFIG_POLICY_ENCRYPTED
    assert len(runtime.warnings) == 4
    assert any("gopher" in warning for warning in runtime.warnings)


def test_unsupported_log_format_raises(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="Unsupported log format"):
        resolve_application_settings(
            config_path=str(tmp_path / "config.toml"),
            logging_inputs=LoggingInputs(format="xml"),
        )


def test_debug_forces_debug_logging(tmp_path: Path) -> None:
    runtime, logging_settings = resolve_application_settings(
        config_path=str(tmp_path / "config.toml"),
        logging_inputs=LoggingInputs(level="WARNING"),
        debug=True,
    )

    assert runtime.debug is True
    assert logging_settings.level == logging.DEBUG
    assert logging_settings.level_name == "DEBUG"


def test_numeric_log_level_is_accepted(tmp_path: Path) -> None:
    _, logging_settings = resolve_application_settings(
        config_path=str(tmp_path / "config.toml"),
        logging_inputs=LoggingInputs(level="30"),
    )

    assert logging_settings.level == logging.WARNING


def test_batch_probe_config_uses_batch_timeout(tmp_path: Path) -> None:
    runtime, _ = resolve_application_settings(config_path=str(tmp_path / "config.toml"))

    single = runtime.probe.to_probe_config()
    batch = runtime.probe.to_probe_config(batch=True)

    assert single.timeout_seconds == DEFAULT_TIMEOUT_SECONDS
    assert batch.timeout_seconds == DEFAULT_BATCH_TIMEOUT_SECONDS
    assert batch.max_retries == single.max_retries


def test_config_file_candidates(tmp_path: Path) -> None:
    explicit = resolve_config_file_candidates(str(tmp_path / "site.toml"))
    default = resolve_config_file_candidates(None)

    assert explicit == [tmp_path / "site.toml", tmp_path / "site.local.toml"]
    assert default == [Path.cwd() / "config.toml", Path.cwd() / "config.local.toml"]


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("yes", True),
        (" OFF ", False),
        ("maybe", False),
        (1, True),
        (0, False),
        (None, False),
        (True, True),
    ],
)
def test_coerce_bool(value: object, expected: bool) -> None:
    assert coerce_bool(value) is expected
