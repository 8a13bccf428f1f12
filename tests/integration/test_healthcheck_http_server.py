"""Health-check client against a real HTTP server on the loopback interface."""

from __future__ import annotations

import json
import threading
from collections.abc import Iterator
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from essready.domain.models import HealthStatus, Instance, ProbeConfig
from essready.integrations.healthcheck import HealthCheckClient

pytestmark = [pytest.mark.online]

RESPONSES: dict[str, tuple[int, str, str]] = {
    "/ESS/api/v1/healthcheck": (
        200,
        "application/json",
        json.dumps(
            {
                "Successful": True,
                "Components": [
                    {"ComponentName": "PayGlobal Database", "ComponentVersion": "4.6", "Successful": True},
                    {"ComponentName": "Bridge", "Successful": True},
                ],
            }
        ),
    ),
    "/WFE/api/v1/healthcheck": (
        503,
        "application/xml",
        "<HealthCheckResponse><Successful>false</Successful><Components>"
        "<Component><ComponentName>WFE Database</ComponentName><Successful>false</Successful>"
        "<ComponentMessages><Message>Login failed</Message></ComponentMessages></Component>"
        "</Components></HealthCheckResponse>",
    ),
    "/Down/api/v1/healthcheck": (500, "text/html", "<html>Server Error</html>"),
}


class _HealthHandler(BaseHTTPRequestHandler):
    requests: list[str] = []

    def do_GET(self) -> None:  # noqa: N802
        type(self).requests.append(self.path)
        status, content_type, body = RESPONSES.get(self.path, (404, "text/plain", "missing"))
        payload = body.encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(payload)))
        self.end_headers()
        self.wfile.write(payload)

    def log_message(self, format: str, *args: object) -> None:
        return None


@pytest.fixture
def server_port(monkeypatch: pytest.MonkeyPatch) -> Iterator[int]:
    for name in ("HTTP_PROXY", "HTTPS_PROXY", "ALL_PROXY", "http_proxy", "https_proxy", "all_proxy"):
        monkeypatch.delenv(name, raising=False)
    _HealthHandler.requests = []
    server = ThreadingHTTPServer(("127.0.0.1", 0), _HealthHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield server.server_address[1]
    finally:
        server.shutdown()
        server.server_close()
        thread.join(timeout=5)


def _config(port: int) -> ProbeConfig:
    return ProbeConfig(protocol="http", port=port, timeout_seconds=5, max_retries=1, retry_delay_seconds=0)


def test_healthy_json_endpoint(server_port: int) -> None:
    with HealthCheckClient() as client:
        result = client.check_instance(
            Instance(site_name="Default Web Site", application_path="/ESS"), _config(server_port)
        )

    assert result.uri == f"http://localhost:{server_port}/ESS/api/v1/healthcheck"
    assert result.overall_status is HealthStatus.HEALTHY
    assert result.pay_global_database is not None
    assert result.bridge is not None
    assert result.summary.has_version_info is True


def test_partially_unhealthy_xml_endpoint(server_port: int) -> None:
    with HealthCheckClient() as client:
        result = client.check_instance(
            Instance(site_name="Default Web Site", application_path="/WFE"), _config(server_port)
        )

    assert result.overall_status is HealthStatus.PARTIALLY_UNHEALTHY
    assert result.wfe_database is not None
    assert result.wfe_database.messages == ("Login failed",)


def test_site_down_and_missing_paths(server_port: int) -> None:
    instances = [
        Instance(site_name="Default Web Site", application_path="/Down"),
        Instance(site_name="Default Web Site", application_path="/Nowhere"),
    ]
    with HealthCheckClient() as client:
        results = client.check_instances(instances, _config(server_port))

    (_, down), (_, missing) = results
    assert down.overall_status is HealthStatus.UNHEALTHY
    assert missing.overall_status is HealthStatus.ERROR
    assert _HealthHandler.requests.count("/Nowhere/api/v1/healthcheck") == 1
