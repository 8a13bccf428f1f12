"""Pre-upgrade check routines.

Each routine appends records to ``ctx.log`` and may raise; the runner turns
an escaped exception into a single FAIL record for that routine.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path
from typing import Final

from packaging.version import InvalidVersion, Version

from essready.application.context import CheckRoutine, ValidationContext
from essready.config.settings import WEB_CONFIG_POLICY_ENCRYPTED
from essready.domain.models import (
    Component,
    HealthCheckResult,
    HealthStatus,
    Instance,
    ValidationStatus,
    message_text,
)
from essready.infrastructure.errors import ReadinessError
from essready.infrastructure.logging import log_event
from essready.integrations.host import WEB_CONFIG_FILENAME, inspect_web_config, split_sql_server

CATEGORY_SYSTEM: Final = "System Requirements"
CATEGORY_DETECTION: Final = "ESS/WFE Detection"
CATEGORY_IIS: Final = "IIS Configuration"
CATEGORY_DATABASE: Final = "Database Connectivity"
CATEGORY_NETWORK: Final = "Network Connectivity"
CATEGORY_SECURITY: Final = "Security"
CATEGORY_WEB_CONFIG: Final = "Web.config Encryption"
CATEGORY_VERSION: Final = "Version Compatibility"
CATEGORY_HTTPS: Final = "HTTPS/SSL"
CATEGORY_API: Final = "API Health Check"

REQUIRED_CLR_VERSION: Final = "v4.0"
REQUIRED_PIPELINE_MODE: Final = "integrated"
STARTED: Final = "started"
LOCAL_SYSTEM_IDENTITIES: Final = frozenset({"localsystem", "nt authority\\system"})

_HEALTH_STATUS_RECORDS: Final[dict[HealthStatus, ValidationStatus]] = {
    HealthStatus.HEALTHY: ValidationStatus.PASS,
    HealthStatus.PARTIALLY_UNHEALTHY: ValidationStatus.WARNING,
    HealthStatus.UNHEALTHY: ValidationStatus.FAIL,
    HealthStatus.UNKNOWN: ValidationStatus.WARNING,
    HealthStatus.ERROR: ValidationStatus.FAIL,
}


def _unique(values: Iterable[str | None]) -> list[str]:
    seen: dict[str, str] = {}
    for value in values:
        if value and value.lower() not in seen:
            seen[value.lower()] = value
    return list(seen.values())


# System requirements -------------------------------------------------------


def _check_minimum(
    ctx: ValidationContext,
    check: str,
    actual: float | None,
    minimum: float,
    unit: str,
) -> None:
    log = ctx.log
    if actual is None:
        log.record_warning(CATEGORY_SYSTEM, check, f"Unable to determine {check.lower()}")
    elif actual >= minimum:
        log.record_pass(CATEGORY_SYSTEM, check, f"{actual:g} {unit} (minimum {minimum:g} {unit})")
    else:
        log.record_fail(
            CATEGORY_SYSTEM, check, f"{actual:g} {unit} is below the minimum of {minimum:g} {unit}"
        )


def check_system_requirements(ctx: ValidationContext) -> None:
    facts = ctx.host_facts
    thresholds = ctx.settings.checks
    ctx.log.record_info(
        CATEGORY_SYSTEM, "Operating System", f"{facts.os_caption} {facts.os_version}".strip()
    )
    _check_minimum(ctx, "CPU Cores", facts.cpu_cores, thresholds.min_cpu_cores, "cores")
    _check_minimum(ctx, "Memory", facts.total_memory_gb, thresholds.min_memory_gb, "GB")
    _check_minimum(
        ctx, "Free Disk Space", facts.free_disk_gb, thresholds.min_free_disk_gb, "GB"
    )

    if facts.dotnet_release is None:
        ctx.log.record_warning(
            CATEGORY_SYSTEM, ".NET Framework", ".NET Framework 4.x release key not found"
        )
    elif facts.dotnet_release >= thresholds.min_dotnet_release:
        ctx.log.record_pass(
            CATEGORY_SYSTEM, ".NET Framework", f"Release {facts.dotnet_release} installed"
        )
    else:
        ctx.log.record_fail(
            CATEGORY_SYSTEM,
            ".NET Framework",
            f"Release {facts.dotnet_release} is older than required release "
            f"{thresholds.min_dotnet_release}",
        )


# Detection -----------------------------------------------------------------


def _describe_instance(instance: Instance) -> str:
    parts = [instance.identifier]
    if instance.application_pool:
        parts.append(f"pool {instance.application_pool}")
    if instance.database_server:
        database = f"{instance.database_server}/{instance.database_name or '?'}"
        parts.append(f"database {database}")
    if instance.tenant_id:
        parts.append(f"tenant {instance.tenant_id}")
    return ", ".join(parts)


def check_detection(ctx: ValidationContext) -> None:
    ess = [instance for instance in ctx.instances if not instance.is_workflow_engine]
    wfe = [instance for instance in ctx.instances if instance.is_workflow_engine]

    for instance in ctx.instances:
        label = "WFE Instance" if instance.is_workflow_engine else "ESS Instance"
        ctx.log.record_info(CATEGORY_DETECTION, label, _describe_instance(instance))

    if ess:
        ctx.log.record_pass(CATEGORY_DETECTION, "ESS Installation", f"{len(ess)} ESS instance(s) detected")
    else:
        ctx.log.record_fail(CATEGORY_DETECTION, "ESS Installation", "No ESS instances detected")

    if wfe:
        ctx.log.record_pass(CATEGORY_DETECTION, "WFE Installation", f"{len(wfe)} WFE instance(s) detected")
    else:
        ctx.log.record_warning(CATEGORY_DETECTION, "WFE Installation", "No WFE instances detected")


# IIS -----------------------------------------------------------------------


def check_iis_configuration(ctx: ValidationContext) -> None:
    facts = ctx.host_facts
    if not facts.iis_installed:
        ctx.log.record_fail(CATEGORY_IIS, "IIS Installed", "IIS is not installed on this host")
        return
    version = f" {facts.iis_version}" if facts.iis_version else ""
    ctx.log.record_pass(CATEGORY_IIS, "IIS Installed", f"IIS{version} installed")

    iis = ctx.collaborators.iis
    sites = {site.name.lower(): site for site in iis.sites()}
    pools = {pool.name.lower(): pool for pool in iis.application_pools()}

    for site_name in _unique(instance.site_name for instance in ctx.instances):
        check = f"Site {site_name}"
        site = sites.get(site_name.lower())
        if site is None:
            ctx.log.record_fail(CATEGORY_IIS, check, "Site not found in IIS")
        elif site.state.lower() != STARTED:
            ctx.log.record_fail(CATEGORY_IIS, check, f"Site is {site.state}")
        else:
            ctx.log.record_pass(CATEGORY_IIS, check, "Site is started")

    for instance in ctx.instances:
        if not instance.application_pool:
            ctx.log.record_warning(
                CATEGORY_IIS, f"Application Pool for {instance.identifier}", "No application pool recorded"
            )

    for pool_name in _unique(instance.application_pool for instance in ctx.instances):
        check = f"Application Pool {pool_name}"
        pool = pools.get(pool_name.lower())
        if pool is None:
            ctx.log.record_fail(CATEGORY_IIS, check, "Application pool not found in IIS")
            continue
        if pool.state.lower() != STARTED:
            ctx.log.record_fail(CATEGORY_IIS, check, f"Application pool is {pool.state}")
        elif pool.runtime_version != REQUIRED_CLR_VERSION:
            runtime = pool.runtime_version or "No Managed Code"
            ctx.log.record_fail(
                CATEGORY_IIS, check, f"CLR version {runtime}; {REQUIRED_CLR_VERSION} is required"
            )
        elif pool.pipeline_mode.lower() != REQUIRED_PIPELINE_MODE:
            ctx.log.record_warning(
                CATEGORY_IIS, check, f"Pipeline mode {pool.pipeline_mode}; Integrated is expected"
            )
        else:
            ctx.log.record_pass(
                CATEGORY_IIS, check, f"Started, {pool.runtime_version}, {pool.pipeline_mode} pipeline"
            )


# Database ------------------------------------------------------------------


def check_database_connectivity(ctx: ValidationContext) -> None:
    if not ctx.instances:
        ctx.log.record_info(CATEGORY_DATABASE, "Database Connectivity", "No instances to check")
        return

    for instance in ctx.instances:
        check = instance.identifier
        if not instance.database_server or not instance.database_name:
            ctx.log.record_warning(CATEGORY_DATABASE, check, "No database configured for instance")
            continue
        result = ctx.collaborators.database.probe(instance.database_server, instance.database_name)
        if result.reachable:
            ctx.log.record_pass(CATEGORY_DATABASE, check, result.detail)
        else:
            ctx.log.record_fail(
                CATEGORY_DATABASE,
                check,
                f"Cannot reach {instance.database_server}/{instance.database_name}: {result.detail}",
            )


# Network -------------------------------------------------------------------


def _network_targets(ctx: ValidationContext) -> list[tuple[str, int]]:
    targets: list[tuple[str, int]] = []
    for instance in ctx.instances:
        if instance.database_server:
            target = split_sql_server(instance.database_server, ctx.settings.checks.sql_port)
            if target not in targets:
                targets.append(target)

    site_names = {instance.site_name.lower() for instance in ctx.instances}
    for site in ctx.collaborators.iis.sites():
        if site.name.lower() not in site_names:
            continue
        for binding in site.bindings:
            target = ("localhost", binding.port)
            if target not in targets:
                targets.append(target)
    return targets


def check_network_connectivity(ctx: ValidationContext) -> None:
    targets = _network_targets(ctx)
    if not targets:
        ctx.log.record_info(CATEGORY_NETWORK, "Network Targets", "No network targets to check")
        return
    for host, port in targets:
        check = f"{host}:{port}"
        issue = ctx.collaborators.ports.check(host, port)
        if issue is None:
            ctx.log.record_pass(CATEGORY_NETWORK, check, "Port reachable")
        else:
            ctx.log.record_fail(CATEGORY_NETWORK, check, issue)


# Security ------------------------------------------------------------------


def check_security(ctx: ValidationContext) -> None:
    for instance in ctx.instances:
        check = f"Physical Path {instance.identifier}"
        if not instance.physical_path:
            ctx.log.record_warning(CATEGORY_SECURITY, check, "No physical path recorded")
            continue
        path = Path(instance.physical_path)
        if not path.exists():
            ctx.log.record_fail(CATEGORY_SECURITY, check, f"{path} does not exist")
        elif not os.access(path, os.R_OK):
            ctx.log.record_fail(CATEGORY_SECURITY, check, f"{path} is not readable by this account")
        else:
            ctx.log.record_pass(CATEGORY_SECURITY, check, f"{path} is accessible")

    pools = {pool.name.lower(): pool for pool in ctx.collaborators.iis.application_pools()}
    for pool_name in _unique(instance.application_pool for instance in ctx.instances):
        pool = pools.get(pool_name.lower())
        if pool is None:
            continue
        check = f"Pool Identity {pool_name}"
        if pool.identity.lower() in LOCAL_SYSTEM_IDENTITIES:
            ctx.log.record_warning(
                CATEGORY_SECURITY, check, "Application pool runs as LocalSystem"
            )
        else:
            ctx.log.record_pass(CATEGORY_SECURITY, check, f"Runs as {pool.identity}")


# Web.config ----------------------------------------------------------------


def check_web_config_encryption(ctx: ValidationContext) -> None:
    require_encrypted = ctx.settings.checks.web_config_policy == WEB_CONFIG_POLICY_ENCRYPTED
    for instance in ctx.instances:
        if not instance.physical_path:
            ctx.log.record_warning(
                CATEGORY_WEB_CONFIG, instance.identifier, "No physical path recorded; web.config not checked"
            )
            continue
        path = Path(instance.physical_path) / WEB_CONFIG_FILENAME
        if not path.is_file():
            ctx.log.record_fail(CATEGORY_WEB_CONFIG, instance.identifier, f"{path} not found")
            continue
        try:
            sections = inspect_web_config(path)
        except ReadinessError as exc:
            ctx.log.record_fail(CATEGORY_WEB_CONFIG, instance.identifier, exc.user_message)
            continue

        for section, encrypted in sections.items():
            check = f"{instance.identifier} {section}"
            if encrypted is None:
                ctx.log.record_info(CATEGORY_WEB_CONFIG, check, "Section not present")
            elif encrypted == require_encrypted:
                state = "encrypted" if encrypted else "not encrypted"
                ctx.log.record_pass(CATEGORY_WEB_CONFIG, check, f"Section is {state}")
            elif require_encrypted:
                ctx.log.record_warning(CATEGORY_WEB_CONFIG, check, "Section is stored in plain text")
            else:
                ctx.log.record_warning(
                    CATEGORY_WEB_CONFIG, check, "Section is encrypted; decrypt it before upgrading"
                )


# Version -------------------------------------------------------------------


def check_version_compatibility(ctx: ValidationContext) -> None:
    minimum = Version(ctx.settings.checks.minimum_upgrade_version)
    for instance in ctx.instances:
        check = instance.identifier
        if not instance.version:
            ctx.log.record_warning(CATEGORY_VERSION, check, "Installed version unknown")
            continue
        try:
            installed = Version(instance.version)
        except InvalidVersion:
            ctx.log.record_warning(
                CATEGORY_VERSION, check, f"Installed version '{instance.version}' is not recognised"
            )
            continue
        if installed >= minimum:
            ctx.log.record_pass(
                CATEGORY_VERSION, check, f"Version {installed} can be upgraded (minimum {minimum})"
            )
        else:
            ctx.log.record_fail(
                CATEGORY_VERSION,
                check,
                f"Version {installed} must first be upgraded to {minimum} or later",
            )


# HTTPS ---------------------------------------------------------------------


def check_https_certificates(ctx: ValidationContext) -> None:
    site_names = {instance.site_name.lower() for instance in ctx.instances}
    warning_days = ctx.settings.checks.certificate_warning_days
    now = datetime.now(timezone.utc)
    checked = 0

    for site in ctx.collaborators.iis.sites():
        if site.name.lower() not in site_names:
            continue
        for binding in site.bindings:
            if binding.protocol != "https":
                continue
            checked += 1
            host = binding.host or "localhost"
            check = f"{site.name} {host}:{binding.port}"
            try:
                certificate = ctx.collaborators.certificates.fetch(host, binding.port)
            except ReadinessError as exc:
                ctx.log.record_fail(CATEGORY_HTTPS, check, exc.user_message)
                continue
            days_left = (certificate.not_valid_after - now).days
            expiry = certificate.not_valid_after.date().isoformat()
            if certificate.not_valid_after <= now:
                ctx.log.record_fail(
                    CATEGORY_HTTPS, check, f"Certificate {certificate.subject} expired on {expiry}"
                )
            elif days_left < warning_days:
                ctx.log.record_warning(
                    CATEGORY_HTTPS,
                    check,
                    f"Certificate {certificate.subject} expires in {days_left} day(s) on {expiry}",
                )
            else:
                ctx.log.record_pass(
                    CATEGORY_HTTPS, check, f"Certificate {certificate.subject} valid until {expiry}"
                )

    if checked == 0:
        ctx.log.record_info(CATEGORY_HTTPS, "HTTPS Bindings", "No HTTPS bindings configured")


# API health ----------------------------------------------------------------


def _component_failure_message(component: Component) -> str:
    details = "; ".join(message_text(message) for message in component.messages)
    return details or "Component reported unhealthy"


def _health_message(result: HealthCheckResult) -> str:
    parts = [result.overall_status.value]
    if result.status_code is not None:
        parts.append(f"HTTP {result.status_code}")
    summary = result.summary
    if summary.total_components:
        parts.append(f"{summary.healthy_components}/{summary.total_components} components healthy")
    if result.retry_attempts:
        parts.append(f"{result.retry_attempts} retr{'y' if result.retry_attempts == 1 else 'ies'}")
    message = ", ".join(parts)
    if result.error:
        message = f"{message} - {result.error}"
    return message


def check_api_health(ctx: ValidationContext) -> None:
    probe_settings = ctx.settings.probe
    if probe_settings.max_concurrent_requests > 1:
        ctx.logger.debug(
            "probe.concurrency.ignored",
            max_concurrent_requests=probe_settings.max_concurrent_requests,
        )
    if not ctx.instances:
        ctx.log.record_warning(CATEGORY_API, "API Health", "No instances to probe")
        return

    config = probe_settings.to_probe_config(batch=True)
    for instance in ctx.instances:
        check = instance.identifier
        try:
            result = ctx.collaborators.health.check_instance(instance, config)
        except Exception as exc:
            log_event(
                ctx.logger,
                "validation.api_health.instance_failed",
                level=logging.ERROR,
                instance=check,
                error=str(exc),
            )
            ctx.log.record_fail(CATEGORY_API, check, f"Health check failed: {exc}")
            continue

        ctx.log.add(
            CATEGORY_API,
            check,
            _HEALTH_STATUS_RECORDS[result.overall_status],
            _health_message(result),
        )
        for component in result.components:
            if not component.healthy:
                ctx.log.record_fail(
                    CATEGORY_API,
                    f"{check} - {component.name}",
                    _component_failure_message(component),
                )
        populated = result.populated_slots
        if result.components:
            recognised = ", ".join(component.name for component in populated.values()) or "none"
            ctx.log.record_info(CATEGORY_API, f"{check} components", f"Recognised components: {recognised}")


DEFAULT_ROUTINES: Final[tuple[CheckRoutine, ...]] = (
    CheckRoutine("system_requirements", CATEGORY_SYSTEM, check_system_requirements),
    CheckRoutine("detection", CATEGORY_DETECTION, check_detection),
    CheckRoutine("iis_configuration", CATEGORY_IIS, check_iis_configuration),
    CheckRoutine("database_connectivity", CATEGORY_DATABASE, check_database_connectivity),
    CheckRoutine("network_connectivity", CATEGORY_NETWORK, check_network_connectivity),
    CheckRoutine("security", CATEGORY_SECURITY, check_security),
    CheckRoutine("web_config_encryption", CATEGORY_WEB_CONFIG, check_web_config_encryption),
    CheckRoutine("version_compatibility", CATEGORY_VERSION, check_version_compatibility),
    CheckRoutine("https_certificates", CATEGORY_HTTPS, check_https_certificates),
    CheckRoutine("api_health", CATEGORY_API, check_api_health),
)


__all__ = [
    "CATEGORY_SYSTEM",
    "CATEGORY_DETECTION",
    "CATEGORY_IIS",
    "CATEGORY_DATABASE",
    "CATEGORY_NETWORK",
    "CATEGORY_SECURITY",
    "CATEGORY_WEB_CONFIG",
    "CATEGORY_VERSION",
    "CATEGORY_HTTPS",
    "CATEGORY_API",
    "DEFAULT_ROUTINES",
    "check_system_requirements",
    "check_detection",
    "check_iis_configuration",
    "check_database_connectivity",
    "check_network_connectivity",
    "check_security",
    "check_web_config_encryption",
    "check_version_compatibility",
    "check_https_certificates",
    "check_api_health",
]
