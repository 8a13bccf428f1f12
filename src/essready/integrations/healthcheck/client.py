"""HTTP client for the ESS runtime health-check endpoint.

The client never raises past :meth:`HealthCheckClient.check_instance`:
transport failures, unexpected statuses and unparsable bodies all end up as
fields on the returned :class:`HealthCheckResult`.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable, Sequence
from typing import Final

import httpx

from essready.config.constants import HTTP_DEFAULT_PORTS
from essready.domain.classifier import assign_slots
from essready.domain.models import (
    HealthCheckResult,
    HealthStatus,
    Instance,
    ProbeConfig,
)
from essready.infrastructure.errors import (
    NetworkError,
    NotFoundError,
    ReadinessError,
    UnexpectedStatusError,
)
from essready.infrastructure.logging import BoundLogger, get_logger, log_event
from essready.integrations.healthcheck.parser import ParsedBody, parse_body

HEALTHCHECK_PATH: Final = "api/v1/healthcheck"
ACCEPT_HEADER: Final = "application/json, application/xml, text/xml"
USER_AGENT: Final = "ESS-Upgrade-Readiness-Checker/1.0"

SITE_DOWN_ERROR: Final = "Site is down - HTTP 500 error"

DEFAULT_PROBE_CONFIG: Final = ProbeConfig(timeout_seconds=60)
DEFAULT_BATCH_PROBE_CONFIG: Final = ProbeConfig(timeout_seconds=90)

RETRYABLE_TOKENS: Final[tuple[str, ...]] = (
    "timeout",
    "timed out",
    "connection",
    "network",
    "temporarily",
    "service unavailable",
)
NOT_FOUND_TOKENS: Final[tuple[str, ...]] = ("404", "not found")

Sleeper = Callable[[float], None]


def build_healthcheck_uri(application_path: str, *, protocol: str = "http", port: int | None = None) -> str:
    """Return ``{protocol}://localhost[:port]/{path}/api/v1/healthcheck``.

    The port suffix is dropped when it matches the protocol default.
    """

    scheme = protocol.strip().lower()
    default_port = HTTP_DEFAULT_PORTS.get(scheme)
    port_suffix = "" if port is None or port == default_port else f":{port}"
    path = application_path.strip().strip("/")
    prefix = f"{path}/" if path else ""
    return f"{scheme}://localhost{port_suffix}/{prefix}{HEALTHCHECK_PATH}"


def is_retryable_message(message: str) -> bool:
    """Classify a failure message; Not Found wording always wins."""

    lowered = message.lower()
    if any(token in lowered for token in NOT_FOUND_TOKENS):
        return False
    return any(token in lowered for token in RETRYABLE_TOKENS)


def _should_retry(error: ReadinessError) -> bool:
    if isinstance(error, NotFoundError):
        return False
    message = error.user_message.lower()
    if any(token in message for token in NOT_FOUND_TOKENS):
        return False
    return error.retryable or is_retryable_message(message)


def interpret_status_code(status_code: int) -> tuple[HealthStatus, str | None]:
    if status_code == 200:
        return HealthStatus.HEALTHY, None
    if status_code == 500:
        return HealthStatus.UNHEALTHY, SITE_DOWN_ERROR
    if status_code == 503:
        return HealthStatus.PARTIALLY_UNHEALTHY, None
    return HealthStatus.UNKNOWN, UnexpectedStatusError(status_code).user_message


class HealthCheckClient:
    """Probe instances one at a time with bounded, blocking retries."""

    def __init__(
        self,
        *,
        transport: httpx.BaseTransport | None = None,
        sleep: Sleeper = time.sleep,
        logger: BoundLogger | None = None,
        user_agent: str = USER_AGENT,
    ) -> None:
        self._sleep = sleep
        self._logger = logger or get_logger("essready.healthcheck")
        self._client = httpx.Client(
            headers={"Accept": ACCEPT_HEADER, "User-Agent": user_agent},
            # localhost only; IIS often serves self-signed certificates
            verify=False,
            transport=transport,
            follow_redirects=False,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "HealthCheckClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def check_instance(
        self, instance: Instance, config: ProbeConfig | None = None
    ) -> HealthCheckResult:
        probe = config or DEFAULT_PROBE_CONFIG
        uri = build_healthcheck_uri(
            instance.application_path, protocol=probe.protocol, port=probe.port
        )
        logger = self._logger.bind(instance=instance.identifier, uri=uri)
        try:
            return self._check_uri(uri, probe, logger)
        except Exception as exc:  # pragma: no cover - last-resort boundary
            logger.error("healthcheck.unexpected_failure", error=str(exc), exc_info=True)
            return HealthCheckResult(
                uri=uri,
                overall_status=HealthStatus.ERROR,
                success=False,
                error=str(exc) or exc.__class__.__name__,
            )

    def check_instances(
        self, instances: Iterable[Instance], config: ProbeConfig | None = None
    ) -> list[tuple[Instance, HealthCheckResult]]:
        probe = config or DEFAULT_BATCH_PROBE_CONFIG
        return [(instance, self.check_instance(instance, probe)) for instance in instances]

    def _check_uri(
        self, uri: str, probe: ProbeConfig, logger: BoundLogger
    ) -> HealthCheckResult:
        attempt = 1
        last_error: ReadinessError | None = None
        response: httpx.Response | None = None

        while True:
            try:
                response = self._fetch(uri, probe)
                break
            except ReadinessError as exc:
                last_error = exc
                retry = _should_retry(exc) and attempt <= probe.max_retries
                log_event(
                    logger,
                    "healthcheck.attempt.failed",
                    level=logging.WARNING,
                    attempt=attempt,
                    error=exc.user_message,
                    code=exc.context.code,
                    will_retry=retry,
                )
                if not retry:
                    break
                self._sleep(probe.retry_delay_seconds)
                attempt += 1

        retry_attempts = attempt - 1
        if response is None:
            message = last_error.user_message if last_error else "Health check failed"
            logger.error("healthcheck.failed", attempts=attempt, error=message)
            return HealthCheckResult(
                uri=uri,
                overall_status=HealthStatus.ERROR,
                success=False,
                retry_attempts=retry_attempts,
                error=message,
            )

        result = self._build_result(uri, response, retry_attempts)
        log_event(
            logger,
            "healthcheck.completed",
            status_code=result.status_code,
            overall_status=result.overall_status.value,
            retry_attempts=retry_attempts,
            components=len(result.components),
            error=result.error,
        )
        return result

    def _fetch(self, uri: str, probe: ProbeConfig) -> httpx.Response:
        try:
            response = self._client.get(uri, timeout=float(probe.timeout_seconds))
        except httpx.TimeoutException as exc:
            raise NetworkError(f"The operation has timed out: {exc}", uri=uri) from exc
        except httpx.ConnectError as exc:
            raise NetworkError(
                f"Unable to connect to the remote server (connection failed): {exc}", uri=uri
            ) from exc
        except httpx.TransportError as exc:
            raise NetworkError(f"Network error while contacting {uri}: {exc}", uri=uri) from exc
        except httpx.HTTPError as exc:
            raise ReadinessError(f"Request to {uri} failed: {exc}", uri=uri) from exc

        if response.status_code == 404:
            raise NotFoundError(
                "The remote server returned an error: (404) Not Found.", uri=uri, status_code=404
            )
        return response

    def _build_result(
        self, uri: str, response: httpx.Response, retry_attempts: int
    ) -> HealthCheckResult:
        status_code = response.status_code
        overall_status, status_error = interpret_status_code(status_code)

        parsed: ParsedBody | None = None
        if status_code in (200, 500, 503):
            parsed = parse_body(response.text, response.headers.get("content-type"))

        success = status_code == 200
        components: Sequence = ()
        parse_error: str | None = None
        if parsed is not None:
            components = parsed.components
            parse_error = parsed.error
            if parsed.success is not None and status_code != 500:
                success = parsed.success
            if status_code == 200 and parsed.overall_status is not None:
                overall_status = parsed.overall_status

        slots = assign_slots(components)
        return HealthCheckResult(
            uri=uri,
            status_code=status_code,
            overall_status=overall_status,
            success=success,
            retry_attempts=retry_attempts,
            components=tuple(components),
            error=status_error or parse_error,
            **{role.value: component for role, component in slots.items()},
        )


__all__ = [
    "ACCEPT_HEADER",
    "USER_AGENT",
    "HEALTHCHECK_PATH",
    "SITE_DOWN_ERROR",
    "DEFAULT_PROBE_CONFIG",
    "DEFAULT_BATCH_PROBE_CONFIG",
    "HealthCheckClient",
    "build_healthcheck_uri",
    "interpret_status_code",
    "is_retryable_message",
]
