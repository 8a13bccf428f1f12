"""Full validation sweep command."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape

from essready.application.report import JsonReportWriter
from essready.application.validation import ValidationRunner
from essready.cli import options as cli_options
from essready.cli.formatting import RichStyles, print_outcome
from essready.cli.helpers import (
    build_collaborators,
    build_invocation,
    initialize_logging,
    resolve_runtime_and_logging,
)
from essready.infrastructure.errors import DiscoveryError
from essready.integrations.healthcheck import HealthCheckClient
from essready.integrations.inventory import JsonInventory

EXIT_DISCOVERY_FAILED = 2


def register(
    app: typer.Typer,
    *,
    stdout_console: Console,
    stderr_console: Console,
) -> None:
    """Register the run command with the app."""

    @app.command(
        "run",
        help=(
            "Run every pre-upgrade readiness check and print the results.\n\n"
            "Exits 1 when any check fails and 2 when no instances could be discovered."
        ),
    )
    def run(  # NOSONAR python:S107
        config: cli_options.ConfigPathOption = None,
        inventory: cli_options.InventoryOption = None,
        protocol: cli_options.ProtocolOption = None,
        port: cli_options.PortOption = None,
        timeout: cli_options.TimeoutOption = None,
        max_retries: cli_options.MaxRetriesOption = None,
        retry_delay: cli_options.RetryDelayOption = None,
        output: cli_options.ReportOutputOption = None,
        debug: cli_options.DebugOption = None,
        log_level: cli_options.LogLevelOption = None,
        log_format: cli_options.LogFormatOption = None,
        log_file: cli_options.LogFileOption = None,
    ) -> None:
        """Discover instances, run the checks and report."""
        invocation = build_invocation(
            config_path=config,
            inventory=inventory,
            protocol=protocol,
            port=port,
            timeout=timeout,
            max_retries=max_retries,
            retry_delay=retry_delay,
            debug=debug,
            log_level=log_level,
            log_format=log_format,
            log_file=log_file,
        )
        runtime_settings, logging_settings = resolve_runtime_and_logging(invocation)
        logger = initialize_logging(runtime_settings, logging_settings)

        discovery = JsonInventory(Path(runtime_settings.inventory_file))
        with HealthCheckClient(logger=logger) as health:
            runner = ValidationRunner(
                settings=runtime_settings,
                discovery=discovery,
                collaborators=build_collaborators(runtime_settings, discovery, health),
                logger=logger,
            )
            try:
                outcome = runner.run()
            except DiscoveryError as exc:
                stderr_console.print(
                    f"[{RichStyles.ERROR}]Discovery failed:[/{RichStyles.ERROR}] {escape(exc.user_message)}"
                )
                if exc.hint:
                    stderr_console.print(f"[{RichStyles.MUTED}]{escape(exc.hint)}[/{RichStyles.MUTED}]")
                raise typer.Exit(code=EXIT_DISCOVERY_FAILED) from exc

        print_outcome(stdout_console, outcome.records, outcome.summary)

        if output is not None:
            JsonReportWriter(output, run_id=outcome.run_id).write(outcome.records, outcome.summary)
            stdout_console.print(f"Report written to {output}")

        raise typer.Exit(code=outcome.exit_code())


__all__ = ["register", "EXIT_DISCOVERY_FAILED"]
