"""Local host collaborators: machine facts, TCP reachability, TLS certificates."""

from __future__ import annotations

import os
import platform
import shutil
import socket
import ssl
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Final
from xml.etree import ElementTree as ET

from cryptography import x509

from essready.domain.models import CertificateInfo, DatabaseProbeResult, HostFacts
from essready.infrastructure.errors import NetworkError, ParseError
from essready.infrastructure.logging import get_logger

_GIB: Final = 1024**3
_DOTNET_KEY: Final = r"SOFTWARE\Microsoft\NET Framework Setup\NDP\v4\Full"
_IIS_KEY: Final = r"SOFTWARE\Microsoft\InetStp"
_LOCAL_SERVER_ALIASES: Final = frozenset({".", "(local)", "localhost", "(localdb)"})

WEB_CONFIG_FILENAME: Final = "web.config"
PROTECTED_SECTIONS: Final[tuple[str, ...]] = ("connectionStrings", "appSettings")

_logger = get_logger("essready.host")


def _read_registry_value(key_path: str, value_name: str) -> object | None:
    if sys.platform != "win32":
        return None
    import winreg

    try:
        with winreg.OpenKey(winreg.HKEY_LOCAL_MACHINE, key_path) as key:
            value, _ = winreg.QueryValueEx(key, value_name)
    except OSError:
        return None
    return value


def _total_memory_gb() -> float | None:
    try:
        pages = os.sysconf("SC_PHYS_PAGES")
        page_size = os.sysconf("SC_PAGE_SIZE")
    except (AttributeError, ValueError, OSError):
        return None
    if pages <= 0 or page_size <= 0:
        return None
    return round(pages * page_size / _GIB, 1)


def _free_disk_gb(install_drive: str) -> float | None:
    target = install_drive if Path(install_drive).exists() else Path.cwd().anchor
    try:
        usage = shutil.disk_usage(target)
    except OSError:
        return None
    return round(usage.free / _GIB, 1)


class LocalHostInventory:
    """Read basic machine facts; Windows-only facts are ``None`` elsewhere."""

    def collect(self, install_drive: str) -> HostFacts:
        release = _read_registry_value(_DOTNET_KEY, "Release")
        iis_major = _read_registry_value(_IIS_KEY, "MajorVersion")
        iis_minor = _read_registry_value(_IIS_KEY, "MinorVersion")
        iis_version = None
        if iis_major is not None:
            iis_version = f"{iis_major}.{iis_minor or 0}"

        facts = HostFacts(
            os_caption=platform.system() or "Unknown",
            os_version=platform.version() or platform.release(),
            cpu_cores=os.cpu_count(),
            total_memory_gb=_total_memory_gb(),
            free_disk_gb=_free_disk_gb(install_drive),
            dotnet_release=int(release) if isinstance(release, int) else None,
            iis_installed=iis_version is not None,
            iis_version=iis_version,
        )
        _logger.debug("host.facts.collected", **asdict(facts))
        return facts


def split_sql_server(server: str, default_port: int) -> tuple[str, int]:
    """Split ``HOST\\INSTANCE,PORT`` style server names into a TCP target."""

    candidate = server.strip()
    port = default_port
    if "," in candidate:
        candidate, _, raw_port = candidate.partition(",")
        try:
            port = int(raw_port.strip())
        except ValueError:
            port = default_port
    host = candidate.split("\\", 1)[0].strip()
    if host.lower().startswith("tcp:"):
        host = host[4:]
    if not host or host.lower() in _LOCAL_SERVER_ALIASES:
        host = "localhost"
    return host, port


class TcpPortProbe:
    def __init__(self, *, timeout: float = 5.0) -> None:
        self._timeout = timeout

    def check(self, host: str, port: int) -> str | None:
        try:
            with socket.create_connection((host, port), timeout=self._timeout):
                return None
        except OSError as exc:
            return f"Connection to {host}:{port} failed: {exc}"


class TcpDatabaseProbe:
    """Reachability-only database probe over the SQL Server TCP port."""

    def __init__(self, ports: TcpPortProbe | None = None, *, default_port: int = 1433) -> None:
        self._ports = ports or TcpPortProbe()
        self._default_port = default_port

    def probe(self, server: str, database: str) -> DatabaseProbeResult:
        host, port = split_sql_server(server, self._default_port)
        issue = self._ports.check(host, port)
        if issue is not None:
            return DatabaseProbeResult(reachable=False, detail=issue)
        return DatabaseProbeResult(
            reachable=True,
            detail=f"SQL Server {host}:{port} accepting connections for database {database}",
        )


class TlsCertificateFetcher:
    def __init__(self, *, timeout: float = 10.0) -> None:
        self._timeout = timeout

    def fetch(self, host: str, port: int) -> CertificateInfo:
        try:
            pem = ssl.get_server_certificate((host, port), timeout=self._timeout)
            certificate = x509.load_pem_x509_certificate(pem.encode("ascii"))
        except (OSError, ValueError) as exc:
            raise NetworkError(
                f"Unable to retrieve certificate from {host}:{port}: {exc}", host=host, port=port
            ) from exc
        return CertificateInfo(
            subject=certificate.subject.rfc4514_string(),
            not_valid_after=certificate.not_valid_after_utc,
        )


def _is_encrypted(section: ET.Element) -> bool:
    if section.get("configProtectionProvider"):
        return True
    return any(child.tag.rsplit("}", 1)[-1] == "EncryptedData" for child in section)


def inspect_web_config(path: Path) -> dict[str, bool | None]:
    """Report whether each protected section is encrypted.

    ``None`` marks a section that is absent from the file.
    """

    try:
        root = ET.parse(path).getroot()
    except ET.ParseError as exc:
        raise ParseError(f"{path} is not valid XML: {exc}", path=str(path)) from exc

    sections: dict[str, bool | None] = {}
    for name in PROTECTED_SECTIONS:
        element = root.find(name)
        sections[name] = None if element is None else _is_encrypted(element)
    return sections


__all__ = [
    "LocalHostInventory",
    "TcpPortProbe",
    "TcpDatabaseProbe",
    "TlsCertificateFetcher",
    "WEB_CONFIG_FILENAME",
    "PROTECTED_SECTIONS",
    "inspect_web_config",
    "split_sql_server",
]
