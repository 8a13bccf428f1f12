"""Reusable helper utilities for the essready CLI."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from essready.application.context import Collaborators
from essready.cli import options as cli_options
from essready.config.settings import (
    DiscoveryInputs,
    LoggingInputs,
    LoggingSettings,
    ProbeInputs,
    RuntimeSettings,
    resolve_application_settings,
)
from essready.infrastructure.logging import BoundLogger, configure_logging, get_logger
from essready.integrations.healthcheck import HealthCheckClient
from essready.integrations.host import (
    LocalHostInventory,
    TcpDatabaseProbe,
    TcpPortProbe,
    TlsCertificateFetcher,
)
from essready.integrations.inventory import JsonInventory


@dataclass(frozen=True)
class CliInvocation:
    config_path: str | None = None
    probe: ProbeInputs = field(default_factory=ProbeInputs)
    discovery: DiscoveryInputs = field(default_factory=DiscoveryInputs)
    logging: LoggingInputs = field(default_factory=LoggingInputs)
    debug: bool | None = None


def build_invocation(
    *,
    config_path: Path | str | None,
    inventory: str | None = None,
    protocol: str | None = None,
    port: int | None = None,
    timeout: int | None = None,
    max_retries: int | None = None,
    retry_delay: float | None = None,
    debug: bool | None = None,
    log_level: str | None = None,
    log_format: str | None = None,
    log_file: str | None = None,
) -> CliInvocation:
    """Construct a :class:`CliInvocation` with normalized CLI parameters."""

    return CliInvocation(
        config_path=str(config_path) if config_path is not None else None,
        probe=ProbeInputs(
            protocol=cli_options.normalize_protocol(protocol),
            port=port,
            timeout_seconds=timeout,
            max_retries=max_retries,
            retry_delay_seconds=retry_delay,
        ),
        discovery=DiscoveryInputs(inventory_file=cli_options.clean_string(inventory)),
        logging=LoggingInputs(
            level=cli_options.normalize_log_level(log_level),
            format=cli_options.normalize_log_format(log_format),
            file_path=cli_options.clean_string(log_file),
        ),
        debug=debug,
    )


def resolve_runtime_and_logging(
    invocation: CliInvocation,
) -> tuple[RuntimeSettings, LoggingSettings]:
    return resolve_application_settings(
        config_path=invocation.config_path,
        probe_inputs=invocation.probe,
        discovery_inputs=invocation.discovery,
        logging_inputs=invocation.logging,
        debug=invocation.debug,
    )


def initialize_logging(
    runtime_settings: RuntimeSettings, logging_settings: LoggingSettings
) -> BoundLogger:
    configure_logging(logging_settings)
    logger = get_logger("essready.cli")
    emit_runtime_messages(runtime_settings, logger)
    return logger


def emit_runtime_messages(runtime_settings: RuntimeSettings, logger: BoundLogger) -> None:
    for message in runtime_settings.warnings:
        logger.warning(message)


def build_collaborators(
    runtime_settings: RuntimeSettings,
    inventory: JsonInventory,
    health: HealthCheckClient,
) -> Collaborators:
    ports = TcpPortProbe()
    return Collaborators(
        host=LocalHostInventory(),
        iis=inventory,
        database=TcpDatabaseProbe(ports, default_port=runtime_settings.checks.sql_port),
        ports=ports,
        certificates=TlsCertificateFetcher(),
        health=health,
    )


__all__ = [
    "CliInvocation",
    "build_collaborators",
    "build_invocation",
    "emit_runtime_messages",
    "initialize_logging",
    "resolve_runtime_and_logging",
]
