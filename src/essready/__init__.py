"""ESS upgrade readiness checker."""

from essready.application.validation import ValidationOutcome, ValidationRunner
from essready.integrations.healthcheck import HealthCheckClient

__all__ = [
    "HealthCheckClient",
    "ValidationOutcome",
    "ValidationRunner",
]
