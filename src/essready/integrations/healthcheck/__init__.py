"""Runtime health-check endpoint client and response normalization."""

from essready.integrations.healthcheck.client import (
    DEFAULT_BATCH_PROBE_CONFIG,
    DEFAULT_PROBE_CONFIG,
    HealthCheckClient,
    build_healthcheck_uri,
    is_retryable_message,
)
from essready.integrations.healthcheck.parser import ParsedBody, ResponseFormat, parse_body

__all__ = [
    "DEFAULT_BATCH_PROBE_CONFIG",
    "DEFAULT_PROBE_CONFIG",
    "HealthCheckClient",
    "ParsedBody",
    "ResponseFormat",
    "build_healthcheck_uri",
    "is_retryable_message",
    "parse_body",
]
