"""Typer option declarations and normalization helpers."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated, Final

import typer

PROTOCOL_CHOICES: Final[frozenset[str]] = frozenset({"http", "https"})
LOG_FORMAT_CHOICES: Final[set[str]] = {"text", "json"}
LOG_LEVEL_CHOICES: Final[list[str]] = sorted(
    name
    for name, value in logging.getLevelNamesMapping().items()
    if isinstance(name, str) and not name.isdigit()
)
LOG_LEVEL_SET: Final[set[str]] = {choice.upper() for choice in LOG_LEVEL_CHOICES}

ConfigPathOption = Annotated[
    Path | None,
    typer.Option(
        "--config",
        help="Path to an essready configuration TOML file to load",
        envvar="ESSREADY_CONFIG",
        show_envvar=True,
        rich_help_panel="Configuration",
    ),
]

InventoryOption = Annotated[
    str | None,
    typer.Option(
        "--inventory",
        help="Inventory JSON file describing instances, sites and application pools",
        envvar="ESSREADY_INVENTORY_FILE",
        show_envvar=True,
        rich_help_panel="Discovery",
    ),
]

ProtocolOption = Annotated[
    str | None,
    typer.Option(
        "--protocol",
        help="Protocol used to reach the health-check endpoint (http or https)",
        envvar="ESSREADY_PROTOCOL",
        show_envvar=True,
        rich_help_panel="Probe",
    ),
]

PortOption = Annotated[
    int | None,
    typer.Option(
        "--port",
        min=1,
        max=65535,
        help="Port of the local IIS binding; omit for the protocol default",
        envvar="ESSREADY_PORT",
        show_envvar=True,
        rich_help_panel="Probe",
    ),
]

TimeoutOption = Annotated[
    int | None,
    typer.Option(
        "--timeout",
        min=1,
        help="Per-attempt timeout in seconds for health-check requests",
        envvar="ESSREADY_TIMEOUT_SECONDS",
        show_envvar=True,
        rich_help_panel="Probe",
    ),
]

MaxRetriesOption = Annotated[
    int | None,
    typer.Option(
        "--max-retries",
        min=0,
        help="Retries after the first failed attempt",
        envvar="ESSREADY_MAX_RETRIES",
        show_envvar=True,
        rich_help_panel="Probe",
    ),
]

RetryDelayOption = Annotated[
    float | None,
    typer.Option(
        "--retry-delay",
        min=0,
        help="Seconds to wait between retries",
        envvar="ESSREADY_RETRY_DELAY_SECONDS",
        show_envvar=True,
        rich_help_panel="Probe",
    ),
]

DebugOption = Annotated[
    bool | None,
    typer.Option(
        "--debug/--no-debug",
        help="Enable verbose diagnostics",
        envvar="ESSREADY_DEBUG",
        show_envvar=True,
        rich_help_panel="Diagnostics",
    ),
]

LogLevelOption = Annotated[
    str | None,
    typer.Option(
        "--log-level",
        help="Logging level (e.g. INFO, DEBUG)",
        envvar="ESSREADY_LOG_LEVEL",
        show_envvar=True,
        rich_help_panel="Logging",
    ),
]

LogFormatOption = Annotated[
    str | None,
    typer.Option(
        "--log-format",
        help="Logging format (text or json)",
        envvar="ESSREADY_LOG_FORMAT",
        show_envvar=True,
        rich_help_panel="Logging",
    ),
]

LogFileOption = Annotated[
    str | None,
    typer.Option(
        "--log-file",
        help="Path to a rotating log file",
        envvar="ESSREADY_LOG_FILE",
        show_envvar=True,
        rich_help_panel="Logging",
    ),
]

ReportOutputOption = Annotated[
    Path | None,
    typer.Option(
        "--output",
        "-o",
        help="Write the validation records and summary to this JSON file",
        rich_help_panel="Output",
    ),
]

ApplicationPathOption = Annotated[
    str,
    typer.Option(
        "--path",
        help="Application path under the IIS site, e.g. /ESS",
        rich_help_panel="Probe",
    ),
]

SiteNameOption = Annotated[
    str,
    typer.Option(
        "--site",
        help="IIS site name used to label the probe",
        rich_help_panel="Probe",
    ),
]


def clean_string(value: str | None) -> str | None:
    """Normalize optional string input."""

    if value is None:
        return None
    candidate = value.strip()
    return candidate or None


def normalize_protocol(value: str | None) -> str | None:
    candidate = clean_string(value)
    if candidate is None:
        return None
    candidate = candidate.lower()
    if candidate not in PROTOCOL_CHOICES:
        raise typer.BadParameter(
            "Protocol must be either 'http' or 'https'",
            param_hint="--protocol",
        )
    return candidate


def normalize_log_format(value: str | None) -> str | None:
    """Normalize the log format option."""

    candidate = clean_string(value)
    if candidate is None:
        return None
    candidate = candidate.lower()
    if candidate not in LOG_FORMAT_CHOICES:
        raise typer.BadParameter(
            "Log format must be either 'text' or 'json'",
            param_hint="--log-format",
        )
    return candidate


def normalize_log_level(value: str | None) -> str | None:
    """Normalize the log level option."""

    candidate = clean_string(value)
    if candidate is None:
        return None
    candidate = candidate.upper()
    if candidate not in LOG_LEVEL_SET:
        raise typer.BadParameter(
            f"Log level must be one of: {', '.join(LOG_LEVEL_CHOICES)}",
            param_hint="--log-level",
        )
    return candidate


__all__ = [
    "ApplicationPathOption",
    "ConfigPathOption",
    "DebugOption",
    "InventoryOption",
    "LOG_FORMAT_CHOICES",
    "LOG_LEVEL_CHOICES",
    "LogFileOption",
    "LogFormatOption",
    "LogLevelOption",
    "MaxRetriesOption",
    "PROTOCOL_CHOICES",
    "PortOption",
    "ProtocolOption",
    "ReportOutputOption",
    "RetryDelayOption",
    "SiteNameOption",
    "TimeoutOption",
    "clean_string",
    "normalize_log_format",
    "normalize_log_level",
    "normalize_protocol",
]
