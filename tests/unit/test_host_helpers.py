from __future__ import annotations

import socket
import ssl
from pathlib import Path

import pytest

from essready.infrastructure.errors import NetworkError, ParseError
from essready.integrations import host
from essready.integrations.host import (
    LocalHostInventory,
    TcpDatabaseProbe,
    TcpPortProbe,
    TlsCertificateFetcher,
    inspect_web_config,
    split_sql_server,
)


@pytest.mark.parametrize(
    ("server", "expected"),
    [
        ("SQL01", ("SQL01", 1433)),
        ("SQL01\\PAYROLL", ("SQL01", 1433)),
        ("SQL01\\PAYROLL,1533", ("SQL01", 1533)),
        ("sql01.corp.local, 2433", ("sql01.corp.local", 2433)),
        ("tcp:SQL02,1500", ("SQL02", 1500)),
        (".", ("localhost", 1433)),
        ("(local)\\SQLEXPRESS", ("localhost", 1433)),
        ("SQL01,notaport", ("SQL01", 1433)),
    ],
)
def test_split_sql_server(server: str, expected: tuple[str, int]) -> None:
    assert split_sql_server(server, 1433) == expected


def test_inspect_web_config_detects_protected_sections(tmp_path: Path) -> None:
    path = tmp_path / "web.config"
    path.write_text(
        """<configuration>
  <connectionStrings configProtectionProvider="DataProtectionConfigurationProvider">
    <EncryptedData><CipherData /></EncryptedData>
  </connectionStrings>
  <appSettings><add key="a" value="b" /></appSettings>
</configuration>""",
        encoding="utf-8",
    )

    assert inspect_web_config(path) == {"connectionStrings": True, "appSettings": False}


def test_inspect_web_config_encrypted_data_without_provider(tmp_path: Path) -> None:
    path = tmp_path / "web.config"
    path.write_text(
        '<configuration><appSettings><EncryptedData xmlns="http://www.w3.org/2001/04/xmlenc#" />'
        "</appSettings></configuration>",
        encoding="utf-8",
    )

    assert inspect_web_config(path) == {"connectionStrings": None, "appSettings": True}


def test_inspect_web_config_rejects_invalid_xml(tmp_path: Path) -> None:
    path = tmp_path / "web.config"
    path.write_text("<configuration>", encoding="utf-8")

    with pytest.raises(ParseError, match="not valid XML"):
        inspect_web_config(path)


def test_tcp_port_probe_reports_refused_port() -> None:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as listener:
        listener.bind(("127.0.0.1", 0))
        port = listener.getsockname()[1]
    # The socket is closed, so nothing listens on the port now.

    issue = TcpPortProbe(timeout=1.0).check("127.0.0.1", port)

    assert issue is not None
    assert f"127.0.0.1:{port}" in issue


def test_tcp_port_probe_reaches_listener() -> None:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as listener:
        listener.bind(("127.0.0.1", 0))
        listener.listen(1)
        port = listener.getsockname()[1]

        assert TcpPortProbe(timeout=1.0).check("127.0.0.1", port) is None


class _StubPorts(TcpPortProbe):
    def __init__(self, issue: str | None) -> None:
        super().__init__()
        self.issue = issue
        self.calls: list[tuple[str, int]] = []

    def check(self, host: str, port: int) -> str | None:
        self.calls.append((host, port))
        return self.issue


def test_database_probe_uses_instance_port() -> None:
    ports = _StubPorts(None)
    result = TcpDatabaseProbe(ports, default_port=1433).probe("SQL01\\PAYROLL,1533", "ESS")

    assert ports.calls == [("SQL01", 1533)]
    assert result.reachable is True
    assert "ESS" in result.detail


def test_database_probe_reports_unreachable_server() -> None:
    result = TcpDatabaseProbe(_StubPorts("refused")).probe("SQL01", "ESS")

    assert result.reachable is False
    assert result.detail == "refused"


def test_certificate_fetch_errors_are_wrapped(monkeypatch: pytest.MonkeyPatch) -> None:
    def _refuse(address: tuple[str, int], timeout: float) -> str:
        raise ConnectionRefusedError("refused")

    monkeypatch.setattr(ssl, "get_server_certificate", _refuse)

    with pytest.raises(NetworkError, match="localhost:443") as excinfo:
        TlsCertificateFetcher(timeout=1.0).fetch("localhost", 443)

    assert isinstance(excinfo.value.__cause__, ConnectionRefusedError)
    assert excinfo.value.retryable is True


def test_certificate_fetch_rejects_garbage_pem(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        ssl, "get_server_certificate", lambda address, timeout: "not a certificate"
    )

    with pytest.raises(NetworkError):
        TlsCertificateFetcher().fetch("localhost", 8443)


def test_local_host_inventory_outside_windows(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setattr(host, "_read_registry_value", lambda key, name: None)

    facts = LocalHostInventory().collect(str(tmp_path))

    assert facts.os_caption
    assert facts.dotnet_release is None
    assert facts.iis_installed is False
    assert facts.iis_version is None
    assert facts.free_disk_gb is not None


def test_local_host_inventory_reads_registry(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    values = {"Release": 533320, "MajorVersion": 10, "MinorVersion": 0}
    monkeypatch.setattr(host, "_read_registry_value", lambda key, name: values.get(name))

    facts = LocalHostInventory().collect(str(tmp_path))

    assert facts.dotnet_release == 533320
    assert facts.iis_installed is True
    assert facts.iis_version == "10.0"
