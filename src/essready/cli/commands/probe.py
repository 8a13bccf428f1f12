"""Single-instance health-check probe command."""

from __future__ import annotations

import typer
from rich.console import Console

from essready.cli import options as cli_options
from essready.cli.formatting import print_health_result
from essready.cli.helpers import build_invocation, initialize_logging, resolve_runtime_and_logging
from essready.domain.models import HealthStatus, Instance
from essready.integrations.healthcheck import HealthCheckClient

DEFAULT_SITE_NAME = "Default Web Site"


def register(app: typer.Typer, *, stdout_console: Console) -> None:
    """Register the probe command with the app."""

    @app.command(
        "probe",
        help=(
            "Probe the health-check endpoint of one application path.\n\n"
            "Example: essready probe --path /ESS --protocol https --port 8443"
        ),
    )
    def probe(  # NOSONAR python:S107
        path: cli_options.ApplicationPathOption,
        site: cli_options.SiteNameOption = DEFAULT_SITE_NAME,
        config: cli_options.ConfigPathOption = None,
        protocol: cli_options.ProtocolOption = None,
        port: cli_options.PortOption = None,
        timeout: cli_options.TimeoutOption = None,
        max_retries: cli_options.MaxRetriesOption = None,
        retry_delay: cli_options.RetryDelayOption = None,
        debug: cli_options.DebugOption = None,
        log_level: cli_options.LogLevelOption = None,
        log_format: cli_options.LogFormatOption = None,
        log_file: cli_options.LogFileOption = None,
    ) -> None:
        """Print the normalized health-check result; exit 1 unless Healthy."""
        invocation = build_invocation(
            config_path=config,
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

        instance = Instance(site_name=site, application_path=path)
        with HealthCheckClient(logger=logger) as client:
            result = client.check_instance(instance, runtime_settings.probe.to_probe_config())

        print_health_result(stdout_console, result)
        if result.overall_status is not HealthStatus.HEALTHY:
            raise typer.Exit(code=1)


__all__ = ["register", "DEFAULT_SITE_NAME"]
