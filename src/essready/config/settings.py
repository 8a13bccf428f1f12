"""Dynaconf-backed configuration helpers for essready."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Sequence

from dynaconf import Dynaconf

from essready.config.constants import (
    DEFAULT_CONFIG_FILENAME,
    ENV_PREFIX,
    HTTP_DEFAULT_PORTS,
    LOCAL_CONFIG_FILENAME,
    coerce_bool,
)
from essready.domain.models import ProbeConfig

DEFAULT_PROTOCOL = "http"
DEFAULT_TIMEOUT_SECONDS = 60
DEFAULT_BATCH_TIMEOUT_SECONDS = 90
DEFAULT_MAX_RETRIES = 2
DEFAULT_RETRY_DELAY_SECONDS = 5.0
DEFAULT_MAX_CONCURRENT_REQUESTS = 5
DEFAULT_INVENTORY_FILE = "inventory.json"

DEFAULT_MIN_CPU_CORES = 2
DEFAULT_MIN_MEMORY_GB = 8.0
DEFAULT_MIN_FREE_DISK_GB = 10.0
DEFAULT_INSTALL_DRIVE = "C:\\"
DEFAULT_MIN_DOTNET_RELEASE = 528040  # .NET Framework 4.8
DEFAULT_MINIMUM_UPGRADE_VERSION = "4.3.0"
DEFAULT_CERTIFICATE_WARNING_DAYS = 30
DEFAULT_SQL_PORT = 1433

WEB_CONFIG_POLICY_ENCRYPTED = "encrypted"
WEB_CONFIG_POLICY_DECRYPTED = "decrypted"
_WEB_CONFIG_POLICIES = {WEB_CONFIG_POLICY_ENCRYPTED, WEB_CONFIG_POLICY_DECRYPTED}

LOG_FORMAT_TEXT = "text"
LOG_FORMAT_JSON = "json"
DEFAULT_LOG_FORMAT = LOG_FORMAT_TEXT
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_MAX_BYTES = 10_000_000
DEFAULT_BACKUP_COUNT = 5

# Dynaconf keys; environment, file and CLI lookups all go through these.
PROBE_PROTOCOL_KEY = "probe.protocol"
PROBE_PORT_KEY = "probe.port"
PROBE_TIMEOUT_KEY = "probe.timeout_seconds"
PROBE_BATCH_TIMEOUT_KEY = "probe.batch_timeout_seconds"
PROBE_MAX_RETRIES_KEY = "probe.max_retries"
PROBE_RETRY_DELAY_KEY = "probe.retry_delay_seconds"
PROBE_MAX_CONCURRENT_KEY = "probe.max_concurrent_requests"
PROBE_CONNECTION_POOLING_KEY = "probe.enable_connection_pooling"

DISCOVERY_INVENTORY_FILE_KEY = "discovery.inventory_file"

CHECKS_MIN_CPU_CORES_KEY = "checks.min_cpu_cores"
CHECKS_MIN_MEMORY_GB_KEY = "checks.min_memory_gb"
CHECKS_MIN_FREE_DISK_GB_KEY = "checks.min_free_disk_gb"
CHECKS_INSTALL_DRIVE_KEY = "checks.install_drive"
CHECKS_MIN_DOTNET_RELEASE_KEY = "checks.min_dotnet_release"
CHECKS_MINIMUM_UPGRADE_VERSION_KEY = "checks.minimum_upgrade_version"
CHECKS_WEB_CONFIG_POLICY_KEY = "checks.web_config_policy"
CHECKS_CERTIFICATE_WARNING_DAYS_KEY = "checks.certificate_warning_days"
CHECKS_SQL_PORT_KEY = "checks.sql_port"

RUNTIME_DEBUG_KEY = "runtime.debug"

LOGGING_LEVEL_KEY = "logging.level"
LOGGING_FORMAT_KEY = "logging.format"
LOGGING_FILE_KEY = "logging.file"
LOGGING_MAX_BYTES_KEY = "logging.max_bytes"
LOGGING_BACKUP_COUNT_KEY = "logging.backup_count"

ENVIRONMENT_MAP = {
    f"{ENV_PREFIX}_PROTOCOL": PROBE_PROTOCOL_KEY,
    f"{ENV_PREFIX}_PORT": PROBE_PORT_KEY,
    f"{ENV_PREFIX}_TIMEOUT_SECONDS": PROBE_TIMEOUT_KEY,
    f"{ENV_PREFIX}_BATCH_TIMEOUT_SECONDS": PROBE_BATCH_TIMEOUT_KEY,
    f"{ENV_PREFIX}_MAX_RETRIES": PROBE_MAX_RETRIES_KEY,
    f"{ENV_PREFIX}_RETRY_DELAY_SECONDS": PROBE_RETRY_DELAY_KEY,
    f"{ENV_PREFIX}_INVENTORY_FILE": DISCOVERY_INVENTORY_FILE_KEY,
    f"{ENV_PREFIX}_MINIMUM_UPGRADE_VERSION": CHECKS_MINIMUM_UPGRADE_VERSION_KEY,
    f"{ENV_PREFIX}_WEB_CONFIG_POLICY": CHECKS_WEB_CONFIG_POLICY_KEY,
    f"{ENV_PREFIX}_DEBUG": RUNTIME_DEBUG_KEY,
    f"{ENV_PREFIX}_LOG_LEVEL": LOGGING_LEVEL_KEY,
    f"{ENV_PREFIX}_LOG_FORMAT": LOGGING_FORMAT_KEY,
    f"{ENV_PREFIX}_LOG_FILE": LOGGING_FILE_KEY,
    f"{ENV_PREFIX}_LOG_MAX_BYTES": LOGGING_MAX_BYTES_KEY,
    f"{ENV_PREFIX}_LOG_BACKUP_COUNT": LOGGING_BACKUP_COUNT_KEY,
}


@dataclass(frozen=True)
class ProbeInputs:
    protocol: str | None = None
    port: int | None = None
    timeout_seconds: int | None = None
    max_retries: int | None = None
    retry_delay_seconds: float | None = None


@dataclass(frozen=True)
class DiscoveryInputs:
    inventory_file: str | None = None


@dataclass(frozen=True)
class LoggingInputs:
    level: str | None = None
    format: str | None = None
    file_path: str | None = None
    max_bytes: int | None = None
    backup_count: int | None = None


@dataclass(frozen=True)
class ProbeSettings:
    protocol: str
    port: int | None
    timeout_seconds: int
    batch_timeout_seconds: int
    max_retries: int
    retry_delay_seconds: float
    max_concurrent_requests: int
    enable_connection_pooling: bool

    def to_probe_config(self, *, batch: bool = False) -> ProbeConfig:
        """Build the per-call probe configuration.

        Batch sweeps get the longer batch timeout.
        """

        return ProbeConfig(
            protocol=self.protocol,
            port=self.port,
            timeout_seconds=self.batch_timeout_seconds if batch else self.timeout_seconds,
            max_retries=self.max_retries,
            retry_delay_seconds=self.retry_delay_seconds,
        )


@dataclass(frozen=True)
class CheckThresholds:
    min_cpu_cores: int = DEFAULT_MIN_CPU_CORES
    min_memory_gb: float = DEFAULT_MIN_MEMORY_GB
    min_free_disk_gb: float = DEFAULT_MIN_FREE_DISK_GB
    install_drive: str = DEFAULT_INSTALL_DRIVE
    min_dotnet_release: int = DEFAULT_MIN_DOTNET_RELEASE
    minimum_upgrade_version: str = DEFAULT_MINIMUM_UPGRADE_VERSION
    web_config_policy: str = WEB_CONFIG_POLICY_ENCRYPTED
    certificate_warning_days: int = DEFAULT_CERTIFICATE_WARNING_DAYS
    sql_port: int = DEFAULT_SQL_PORT


@dataclass(frozen=True)
class RuntimeSettings:
    probe: ProbeSettings
    checks: CheckThresholds
    inventory_file: str
    debug: bool
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True)
class LoggingSettings:
    level: int
    format: str
    file_path: str | None
    max_bytes: int
    backup_count: int

    @property
    def level_name(self) -> str:
        return logging.getLevelName(self.level)


def _default_settings_files(config_path: str | None) -> tuple[Sequence[str], str | None]:
    if config_path:
        config_file = Path(config_path)
        local_file = config_file.with_name(f"{config_file.stem}.local{config_file.suffix}")
        files = [str(path) for path in (config_file, local_file) if path.exists()]
        return files or [str(config_file)], None
    return [DEFAULT_CONFIG_FILENAME, LOCAL_CONFIG_FILENAME], str(Path.cwd())


def resolve_config_file_candidates(config_path: str | None) -> list[Path]:
    """Return the base and local config files considered for ``config_path``."""

    if config_path:
        base = Path(config_path)
    else:
        base = Path.cwd() / DEFAULT_CONFIG_FILENAME
    local = base.with_name(f"{base.stem}.local{base.suffix}")
    return [base, local]


def _coerce_str(value: Any | None) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        candidate = value.strip()
        return candidate or None
    return str(value)


def _coerce_int(value: Any | None) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _coerce_float(value: Any | None) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _apply_environment_overrides(settings: Dynaconf) -> None:
    for env_var, key in ENVIRONMENT_MAP.items():
        raw = os.getenv(env_var)
        if raw is None or not raw.strip():
            continue
        settings.set(key, raw)


def _apply_probe_inputs(settings: Dynaconf, probe_inputs: ProbeInputs | None) -> None:
    if probe_inputs is None:
        return

    if probe_inputs.protocol is not None:
        settings.set(PROBE_PROTOCOL_KEY, probe_inputs.protocol.strip())
    if probe_inputs.port is not None:
        settings.set(PROBE_PORT_KEY, probe_inputs.port)
    if probe_inputs.timeout_seconds is not None:
        settings.set(PROBE_TIMEOUT_KEY, probe_inputs.timeout_seconds)
        settings.set(PROBE_BATCH_TIMEOUT_KEY, probe_inputs.timeout_seconds)
    if probe_inputs.max_retries is not None:
        settings.set(PROBE_MAX_RETRIES_KEY, probe_inputs.max_retries)
    if probe_inputs.retry_delay_seconds is not None:
        settings.set(PROBE_RETRY_DELAY_KEY, probe_inputs.retry_delay_seconds)


def _apply_discovery_inputs(
    settings: Dynaconf, discovery_inputs: DiscoveryInputs | None
) -> None:
    if discovery_inputs is None or discovery_inputs.inventory_file is None:
        return
    settings.set(DISCOVERY_INVENTORY_FILE_KEY, discovery_inputs.inventory_file.strip())


def _apply_logging_inputs(settings: Dynaconf, logging_inputs: LoggingInputs | None) -> None:
    if logging_inputs is None:
        return

    if logging_inputs.level is not None:
        settings.set(LOGGING_LEVEL_KEY, logging_inputs.level.strip())
    if logging_inputs.format is not None:
        settings.set(LOGGING_FORMAT_KEY, logging_inputs.format.strip())
    if logging_inputs.file_path is not None:
        settings.set(LOGGING_FILE_KEY, logging_inputs.file_path.strip())
    if logging_inputs.max_bytes is not None:
        settings.set(LOGGING_MAX_BYTES_KEY, logging_inputs.max_bytes)
    if logging_inputs.backup_count is not None:
        settings.set(LOGGING_BACKUP_COUNT_KEY, logging_inputs.backup_count)


def load_settings(config_path: str | None = None) -> Dynaconf:
    """Create a Dynaconf instance for ``config_path`` with environment overrides applied."""

    files, root_path = _default_settings_files(config_path)
    settings = Dynaconf(
        settings_files=list(files),
        envvar_prefix=ENV_PREFIX,
        environments=False,
        load_dotenv=True,
        merge_enabled=True,
        root_path=root_path,
    )
    _apply_environment_overrides(settings)
    return settings


def apply_cli_overrides(
    settings: Dynaconf,
    *,
    probe_inputs: ProbeInputs | None = None,
    discovery_inputs: DiscoveryInputs | None = None,
    logging_inputs: LoggingInputs | None = None,
    debug: bool | None = None,
) -> None:
    """Apply CLI overrides to the provided settings instance."""

    _apply_probe_inputs(settings, probe_inputs)
    _apply_discovery_inputs(settings, discovery_inputs)
    _apply_logging_inputs(settings, logging_inputs)
    if debug is not None:
        settings.set(RUNTIME_DEBUG_KEY, debug)


def _resolve_positive_int(
    settings: Dynaconf, key: str, default: int, warnings: list[str], *, allow_zero: bool = False
) -> int:
    raw = settings.get(key)
    if raw is None:
        return default
    value = _coerce_int(raw)
    floor = 0 if allow_zero else 1
    if value is None or value < floor:
        warnings.append(f"Invalid {key} value {raw!r}; using default {default}")
        return default
    return value


def _resolve_non_negative_float(
    settings: Dynaconf, key: str, default: float, warnings: list[str]
) -> float:
    raw = settings.get(key)
    if raw is None:
        return default
    value = _coerce_float(raw)
    if value is None or value < 0:
        warnings.append(f"Invalid {key} value {raw!r}; using default {default}")
        return default
    return value


def _resolve_protocol(settings: Dynaconf, warnings: list[str]) -> str:
    raw = _coerce_str(settings.get(PROBE_PROTOCOL_KEY)) or DEFAULT_PROTOCOL
    normalized = raw.lower()
    if normalized not in HTTP_DEFAULT_PORTS:
        warnings.append(f"Unknown protocol '{raw}' requested; defaulting to '{DEFAULT_PROTOCOL}'")
        return DEFAULT_PROTOCOL
    return normalized


def _resolve_port(settings: Dynaconf, warnings: list[str]) -> int | None:
    raw = settings.get(PROBE_PORT_KEY)
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return None
    value = _coerce_int(raw)
    if value is None or not 0 < value < 65536:
        warnings.append(f"Invalid probe port {raw!r}; using the protocol default")
        return None
    return value


def _resolve_probe(settings: Dynaconf, warnings: list[str]) -> ProbeSettings:
    return ProbeSettings(
        protocol=_resolve_protocol(settings, warnings),
        port=_resolve_port(settings, warnings),
        timeout_seconds=_resolve_positive_int(
            settings, PROBE_TIMEOUT_KEY, DEFAULT_TIMEOUT_SECONDS, warnings
        ),
        batch_timeout_seconds=_resolve_positive_int(
            settings, PROBE_BATCH_TIMEOUT_KEY, DEFAULT_BATCH_TIMEOUT_SECONDS, warnings
        ),
        max_retries=_resolve_positive_int(
            settings, PROBE_MAX_RETRIES_KEY, DEFAULT_MAX_RETRIES, warnings, allow_zero=True
        ),
        retry_delay_seconds=_resolve_non_negative_float(
            settings, PROBE_RETRY_DELAY_KEY, DEFAULT_RETRY_DELAY_SECONDS, warnings
        ),
        max_concurrent_requests=_resolve_positive_int(
            settings, PROBE_MAX_CONCURRENT_KEY, DEFAULT_MAX_CONCURRENT_REQUESTS, warnings
        ),
        enable_connection_pooling=coerce_bool(
            settings.get(PROBE_CONNECTION_POOLING_KEY), default=True
        ),
    )


def _resolve_web_config_policy(settings: Dynaconf, warnings: list[str]) -> str:
    raw = _coerce_str(settings.get(CHECKS_WEB_CONFIG_POLICY_KEY))
    if raw is None:
        return WEB_CONFIG_POLICY_ENCRYPTED
    normalized = raw.lower()
    if normalized not in _WEB_CONFIG_POLICIES:
        warnings.append(
            f"Unknown web.config policy '{raw}'; defaulting to '{WEB_CONFIG_POLICY_ENCRYPTED}'"
        )
        return WEB_CONFIG_POLICY_ENCRYPTED
    return normalized


def _resolve_checks(settings: Dynaconf, warnings: list[str]) -> CheckThresholds:
    return CheckThresholds(
        min_cpu_cores=_resolve_positive_int(
            settings, CHECKS_MIN_CPU_CORES_KEY, DEFAULT_MIN_CPU_CORES, warnings
        ),
        min_memory_gb=_resolve_non_negative_float(
            settings, CHECKS_MIN_MEMORY_GB_KEY, DEFAULT_MIN_MEMORY_GB, warnings
        ),
        min_free_disk_gb=_resolve_non_negative_float(
            settings, CHECKS_MIN_FREE_DISK_GB_KEY, DEFAULT_MIN_FREE_DISK_GB, warnings
        ),
        install_drive=_coerce_str(settings.get(CHECKS_INSTALL_DRIVE_KEY))
        or DEFAULT_INSTALL_DRIVE,
        min_dotnet_release=_resolve_positive_int(
            settings, CHECKS_MIN_DOTNET_RELEASE_KEY, DEFAULT_MIN_DOTNET_RELEASE, warnings
        ),
        minimum_upgrade_version=_coerce_str(settings.get(CHECKS_MINIMUM_UPGRADE_VERSION_KEY))
        or DEFAULT_MINIMUM_UPGRADE_VERSION,
        web_config_policy=_resolve_web_config_policy(settings, warnings),
        certificate_warning_days=_resolve_positive_int(
            settings,
            CHECKS_CERTIFICATE_WARNING_DAYS_KEY,
            DEFAULT_CERTIFICATE_WARNING_DAYS,
            warnings,
            allow_zero=True,
        ),
        sql_port=_resolve_positive_int(settings, CHECKS_SQL_PORT_KEY, DEFAULT_SQL_PORT, warnings),
    )


def runtime_from_settings(settings: Dynaconf) -> RuntimeSettings:
    """Extract runtime settings and validation messages from Dynaconf."""

    warnings: list[str] = []
    probe = _resolve_probe(settings, warnings)
    checks = _resolve_checks(settings, warnings)
    inventory_file = (
        _coerce_str(settings.get(DISCOVERY_INVENTORY_FILE_KEY)) or DEFAULT_INVENTORY_FILE
    )
    return RuntimeSettings(
        probe=probe,
        checks=checks,
        inventory_file=inventory_file,
        debug=coerce_bool(settings.get(RUNTIME_DEBUG_KEY), default=False),
        warnings=tuple(warnings),
    )


def logging_from_settings(settings: Dynaconf) -> LoggingSettings:
    """Extract logging configuration from Dynaconf."""

    level_value = _coerce_str(settings.get(LOGGING_LEVEL_KEY)) or DEFAULT_LOG_LEVEL
    format_value = (_coerce_str(settings.get(LOGGING_FORMAT_KEY)) or DEFAULT_LOG_FORMAT).lower()
    if format_value not in {LOG_FORMAT_TEXT, LOG_FORMAT_JSON}:
        raise ValueError(f"Unsupported log format: {format_value}")

    max_bytes_value = _coerce_int(settings.get(LOGGING_MAX_BYTES_KEY))
    if max_bytes_value is None or max_bytes_value <= 0:
        max_bytes_value = DEFAULT_MAX_BYTES

    backup_count_value = _coerce_int(settings.get(LOGGING_BACKUP_COUNT_KEY))
    if backup_count_value is None or backup_count_value <= 0:
        backup_count_value = DEFAULT_BACKUP_COUNT

    level_upper = level_value.upper()
    if level_upper.isdigit():
        resolved_level = int(level_upper)
    else:
        resolved_level = logging.getLevelNamesMapping().get(level_upper, logging.INFO)

    return LoggingSettings(
        level=resolved_level,
        format=format_value,
        file_path=_coerce_str(settings.get(LOGGING_FILE_KEY)),
        max_bytes=max_bytes_value,
        backup_count=backup_count_value,
    )


def resolve_application_settings(
    *,
    config_path: str | None = None,
    probe_inputs: ProbeInputs | None = None,
    discovery_inputs: DiscoveryInputs | None = None,
    logging_inputs: LoggingInputs | None = None,
    debug: bool | None = None,
) -> tuple[RuntimeSettings, LoggingSettings]:
    settings = load_settings(config_path)
    apply_cli_overrides(
        settings,
        probe_inputs=probe_inputs,
        discovery_inputs=discovery_inputs,
        logging_inputs=logging_inputs,
        debug=debug,
    )
    runtime_settings = runtime_from_settings(settings)
    logging_settings = logging_from_settings(settings)

    if runtime_settings.debug and logging_settings.level > logging.DEBUG:
        logging_settings = LoggingSettings(
            level=logging.DEBUG,
            format=logging_settings.format,
            file_path=logging_settings.file_path,
            max_bytes=logging_settings.max_bytes,
            backup_count=logging_settings.backup_count,
        )

    return runtime_settings, logging_settings


__all__ = [
    "DEFAULT_PROTOCOL",
    "DEFAULT_TIMEOUT_SECONDS",
    "DEFAULT_BATCH_TIMEOUT_SECONDS",
    "DEFAULT_MAX_RETRIES",
    "DEFAULT_RETRY_DELAY_SECONDS",
    "DEFAULT_INVENTORY_FILE",
    "DEFAULT_LOG_FORMAT",
    "DEFAULT_LOG_LEVEL",
    "LOG_FORMAT_TEXT",
    "LOG_FORMAT_JSON",
    "WEB_CONFIG_POLICY_ENCRYPTED",
    "WEB_CONFIG_POLICY_DECRYPTED",
    "ProbeInputs",
    "DiscoveryInputs",
    "LoggingInputs",
    "ProbeSettings",
    "CheckThresholds",
    "RuntimeSettings",
    "LoggingSettings",
    "load_settings",
    "apply_cli_overrides",
    "runtime_from_settings",
    "logging_from_settings",
    "resolve_application_settings",
    "resolve_config_file_candidates",
    "ENVIRONMENT_MAP",
]
