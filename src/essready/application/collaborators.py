"""Narrow interfaces to the host-facing collaborators used by the checks."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from essready.domain.models import (
    ApplicationPool,
    CertificateInfo,
    DatabaseProbeResult,
    HealthCheckResult,
    HostFacts,
    IisSite,
    Instance,
    ProbeConfig,
    ValidationRecord,
    ValidationSummary,
)


class InstanceDiscovery(Protocol):
    def discover(self) -> Sequence[Instance]:
        """Return deployed instances; raise ``DiscoveryError`` when unavailable."""


class HostInventory(Protocol):
    def collect(self, install_drive: str) -> HostFacts: ...


class IisInventory(Protocol):
    def sites(self) -> Sequence[IisSite]: ...

    def application_pools(self) -> Sequence[ApplicationPool]: ...


class DatabaseProbe(Protocol):
    def probe(self, server: str, database: str) -> DatabaseProbeResult: ...


class PortProbe(Protocol):
    def check(self, host: str, port: int) -> str | None:
        """Return ``None`` when reachable, otherwise a failure description."""


class CertificateFetcher(Protocol):
    def fetch(self, host: str, port: int) -> CertificateInfo: ...


class HealthProbe(Protocol):
    def check_instance(
        self, instance: Instance, config: ProbeConfig | None = None
    ) -> HealthCheckResult: ...


class ReportSink(Protocol):
    def write(
        self, records: Sequence[ValidationRecord], summary: ValidationSummary
    ) -> None: ...


__all__ = [
    "InstanceDiscovery",
    "HostInventory",
    "IisInventory",
    "DatabaseProbe",
    "PortProbe",
    "CertificateFetcher",
    "HealthProbe",
    "ReportSink",
]
