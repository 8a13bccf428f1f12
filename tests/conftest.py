from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from types import SimpleNamespace

import pytest

from essready.application.context import Collaborators
from essready.config.settings import (
    CheckThresholds,
    ProbeSettings,
    RuntimeSettings,
)
from essready.domain.models import (
    ApplicationPool,
    CertificateInfo,
    DatabaseProbeResult,
    HealthCheckResult,
    HealthStatus,
    HostFacts,
    IisSite,
    Instance,
    ProbeConfig,
)
from essready.infrastructure.errors import NetworkError


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("essready")
    group.addoption(
        "--offline",
        action="store_true",
        dest="essready_offline",
        help="Run offline tests only (deselect tests marked 'online').",
    )
    group.addoption(
        "--online-only",
        action="store_true",
        dest="essready_online_only",
        help="Run only tests marked 'online' (deselect offline).",
    )


def _is_integration_path(s: str) -> bool:
    s = s.replace("\\", "/")
    return s.startswith("tests/integration/") or "/tests/integration/" in s


def _mark_by_path(items: list[pytest.Item]) -> None:
    for item in items:
        node_str = str(getattr(item, "fspath", item.nodeid))
        marker = (
            pytest.mark.online
            if _is_integration_path(node_str)
            else pytest.mark.offline
        )
        item.add_marker(marker)


def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    _mark_by_path(items)

    offline_only = bool(config.getoption("essready_offline"))
    online_only = bool(config.getoption("essready_online_only"))

    if offline_only and online_only:
        raise pytest.UsageError("--offline and --online-only are mutually exclusive")

    deselect: list[pytest.Item] = []
    if online_only:
        deselect = [i for i in items if "online" not in i.keywords]
    elif offline_only:
        deselect = [i for i in items if "online" in i.keywords]

    if not deselect:
        return

    config.hook.pytest_deselected(items=deselect)
    items[:] = [i for i in items if i not in deselect]


class FakeHostInventory:
    def __init__(self, facts: HostFacts) -> None:
        self.facts = facts
        self.calls = 0

    def collect(self, install_drive: str) -> HostFacts:
        self.calls += 1
        return self.facts


class FakeIisInventory:
    def __init__(
        self,
        sites: Sequence[IisSite] = (),
        pools: Sequence[ApplicationPool] = (),
    ) -> None:
        self._sites = tuple(sites)
        self._pools = tuple(pools)

    def sites(self) -> Sequence[IisSite]:
        return self._sites

    def application_pools(self) -> Sequence[ApplicationPool]:
        return self._pools


class FakeDatabaseProbe:
    def __init__(self, unreachable: Iterable[str] = ()) -> None:
        self.unreachable = set(unreachable)
        self.calls: list[tuple[str, str]] = []

    def probe(self, server: str, database: str) -> DatabaseProbeResult:
        self.calls.append((server, database))
        if server in self.unreachable:
            return DatabaseProbeResult(reachable=False, detail="connection refused")
        return DatabaseProbeResult(reachable=True, detail=f"{server} reachable")


class FakePortProbe:
    def __init__(self, closed: Iterable[tuple[str, int]] = ()) -> None:
        self.closed = set(closed)
        self.calls: list[tuple[str, int]] = []

    def check(self, host: str, port: int) -> str | None:
        self.calls.append((host, port))
        if (host, port) in self.closed:
            return f"Connection to {host}:{port} failed: refused"
        return None


class FakeCertificateFetcher:
    def __init__(self, certificates: dict[tuple[str, int], CertificateInfo | Exception] | None = None) -> None:
        self.certificates = certificates or {}

    def fetch(self, host: str, port: int) -> CertificateInfo:
        value = self.certificates.get((host, port))
        if value is None:
            raise NetworkError(f"Unable to retrieve certificate from {host}:{port}")
        if isinstance(value, Exception):
            raise value
        return value


class FakeHealthProbe:
    def __init__(self, results: dict[str, HealthCheckResult | Exception] | None = None) -> None:
        self.results = results or {}
        self.configs: list[ProbeConfig | None] = []

    def check_instance(
        self, instance: Instance, config: ProbeConfig | None = None
    ) -> HealthCheckResult:
        self.configs.append(config)
        value = self.results.get(instance.identifier)
        if isinstance(value, Exception):
            raise value
        if value is None:
            return HealthCheckResult(
                uri=f"http://localhost{instance.application_path}/api/v1/healthcheck",
                overall_status=HealthStatus.HEALTHY,
                success=True,
                status_code=200,
            )
        return value


@pytest.fixture
def host_facts() -> HostFacts:
    return HostFacts(
        os_caption="Microsoft Windows Server 2019",
        os_version="10.0.17763",
        cpu_cores=4,
        total_memory_gb=16.0,
        free_disk_gb=120.0,
        dotnet_release=528049,
        iis_installed=True,
        iis_version="10.0",
    )


@pytest.fixture
def runtime_settings() -> RuntimeSettings:
    return RuntimeSettings(
        probe=ProbeSettings(
            protocol="http",
            port=None,
            timeout_seconds=60,
            batch_timeout_seconds=90,
            max_retries=2,
            retry_delay_seconds=5.0,
            max_concurrent_requests=5,
            enable_connection_pooling=True,
        ),
        checks=CheckThresholds(),
        inventory_file="inventory.json",
        debug=False,
    )


@pytest.fixture
def make_collaborators(host_facts: HostFacts) -> Callable[..., Collaborators]:
    def factory(**overrides: object) -> Collaborators:
        parts: dict[str, object] = {
            "host": FakeHostInventory(host_facts),
            "iis": FakeIisInventory(),
            "database": FakeDatabaseProbe(),
            "ports": FakePortProbe(),
            "certificates": FakeCertificateFetcher(),
            "health": FakeHealthProbe(),
        }
        parts.update(overrides)
        return Collaborators(**parts)  # type: ignore[arg-type]

    return factory


@pytest.fixture
def fakes() -> SimpleNamespace:
    """Expose the fake collaborator classes to tests."""
    return SimpleNamespace(
        host=FakeHostInventory,
        iis=FakeIisInventory,
        database=FakeDatabaseProbe,
        ports=FakePortProbe,
        certificates=FakeCertificateFetcher,
        health=FakeHealthProbe,
    )
