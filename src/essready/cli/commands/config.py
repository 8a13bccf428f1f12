"""Config inspection commands for the essready CLI."""

from __future__ import annotations

import os
from typing import Any

import typer
from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from essready.cli import options as cli_options
from essready.cli.formatting import RichStyles, create_config_table
from essready.cli.helpers import build_invocation, resolve_runtime_and_logging
from essready.config.settings import (
    ENVIRONMENT_MAP,
    LoggingSettings,
    RuntimeSettings,
    resolve_config_file_candidates,
)


def _format_value(value: Any) -> str:
    if value is None:
        return "<unset>"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def effective_configuration_values(
    runtime_settings: RuntimeSettings, logging_settings: LoggingSettings
) -> list[tuple[str, Any]]:
    probe = runtime_settings.probe
    checks = runtime_settings.checks
    return [
        ("probe.protocol", probe.protocol),
        ("probe.port", probe.port),
        ("probe.timeout_seconds", probe.timeout_seconds),
        ("probe.batch_timeout_seconds", probe.batch_timeout_seconds),
        ("probe.max_retries", probe.max_retries),
        ("probe.retry_delay_seconds", probe.retry_delay_seconds),
        ("probe.max_concurrent_requests", probe.max_concurrent_requests),
        ("probe.enable_connection_pooling", probe.enable_connection_pooling),
        ("discovery.inventory_file", runtime_settings.inventory_file),
        ("checks.min_cpu_cores", checks.min_cpu_cores),
        ("checks.min_memory_gb", checks.min_memory_gb),
        ("checks.min_free_disk_gb", checks.min_free_disk_gb),
        ("checks.install_drive", checks.install_drive),
        ("checks.min_dotnet_release", checks.min_dotnet_release),
        ("checks.minimum_upgrade_version", checks.minimum_upgrade_version),
        ("checks.web_config_policy", checks.web_config_policy),
        ("checks.certificate_warning_days", checks.certificate_warning_days),
        ("checks.sql_port", checks.sql_port),
        ("runtime.debug", runtime_settings.debug),
        ("logging.level", logging_settings.level_name),
        ("logging.format", logging_settings.format),
        ("logging.file", logging_settings.file_path),
        ("logging.max_bytes", logging_settings.max_bytes),
        ("logging.backup_count", logging_settings.backup_count),
    ]


def register(app: typer.Typer, *, stdout_console: Console) -> None:
    """Register config commands with the app."""

    config_app = typer.Typer(
        help="Inspect essready configuration files and settings.",
        invoke_without_command=True,
        no_args_is_help=True,
    )
    app.add_typer(config_app, name="config")

    @config_app.callback(invoke_without_command=True)
    def config_group_callback(ctx: typer.Context) -> None:
        """Display help when config group is invoked without a subcommand."""
        if ctx.invoked_subcommand is None:
            typer.echo(ctx.get_help())
            raise typer.Exit()

    @config_app.command(
        "show",
        help=(
            "Inspect configuration sources and resolved settings.\n\n"
            "Example: essready config show --config custom.toml"
        ),
    )
    def config_show(
        config: cli_options.ConfigPathOption = None,
        inventory: cli_options.InventoryOption = None,
        protocol: cli_options.ProtocolOption = None,
        port: cli_options.PortOption = None,
        timeout: cli_options.TimeoutOption = None,
        debug: cli_options.DebugOption = None,
        log_level: cli_options.LogLevelOption = None,
        log_format: cli_options.LogFormatOption = None,
    ) -> None:
        """Display configuration files, environment overrides and effective values."""
        invocation = build_invocation(
            config_path=config,
            inventory=inventory,
            protocol=protocol,
            port=port,
            timeout=timeout,
            debug=debug,
            log_level=log_level,
            log_format=log_format,
        )
        runtime_settings, logging_settings = resolve_runtime_and_logging(invocation)

        files_table = Table(title="Configuration files", box=box.SIMPLE_HEAVY)
        files_table.add_column("File", style=RichStyles.ACCENT)
        files_table.add_column("Status", style=RichStyles.SECONDARY)
        for file in resolve_config_file_candidates(invocation.config_path):
            files_table.add_row(str(file), "exists" if file.exists() else "missing")
        stdout_console.print(files_table)

        env_rows = [
            (f"{name} -> {key}", os.environ[name])
            for name, key in ENVIRONMENT_MAP.items()
            if os.getenv(name) is not None
        ]
        if env_rows:
            stdout_console.print()
            stdout_console.print(create_config_table("Environment overrides", env_rows))

        effective_rows = [
            (key, _format_value(value))
            for key, value in effective_configuration_values(runtime_settings, logging_settings)
        ]
        stdout_console.print()
        stdout_console.print(create_config_table("Effective configuration", effective_rows))

        for warning in runtime_settings.warnings:
            stdout_console.print(f"[{RichStyles.WARNING}]warning:[/{RichStyles.WARNING}] {escape(warning)}")


__all__ = ["register", "effective_configuration_values"]
