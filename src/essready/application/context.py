"""Per-run state handed to every check routine."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from functools import cached_property

from essready.application.collaborators import (
    CertificateFetcher,
    DatabaseProbe,
    HealthProbe,
    HostInventory,
    IisInventory,
    PortProbe,
)
from essready.config.settings import RuntimeSettings
from essready.domain.models import (
    HostFacts,
    Instance,
    ValidationRecord,
    ValidationStatus,
    ValidationSummary,
)
from essready.infrastructure.logging import BoundLogger


class ResultLog:
    """Append-only record collector created once per validation run.

    Insertion order is display order. The summary is recounted from the full
    record list on every call.
    """

    def __init__(self) -> None:
        self._records: list[ValidationRecord] = []

    def add(
        self, category: str, check: str, status: ValidationStatus, message: str
    ) -> ValidationRecord:
        record = ValidationRecord(
            category=category, check=check, status=status, message=message
        )
        self._records.append(record)
        return record

    def record_pass(self, category: str, check: str, message: str) -> ValidationRecord:
        return self.add(category, check, ValidationStatus.PASS, message)

    def record_fail(self, category: str, check: str, message: str) -> ValidationRecord:
        return self.add(category, check, ValidationStatus.FAIL, message)

    def record_warning(self, category: str, check: str, message: str) -> ValidationRecord:
        return self.add(category, check, ValidationStatus.WARNING, message)

    def record_info(self, category: str, check: str, message: str) -> ValidationRecord:
        return self.add(category, check, ValidationStatus.INFO, message)

    @property
    def records(self) -> tuple[ValidationRecord, ...]:
        return tuple(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[ValidationRecord]:
        return iter(tuple(self._records))

    def summary(self) -> ValidationSummary:
        counts = {status: 0 for status in ValidationStatus}
        for record in self._records:
            counts[record.status] += 1
        return ValidationSummary(
            total=len(self._records),
            passed=counts[ValidationStatus.PASS],
            failed=counts[ValidationStatus.FAIL],
            warnings=counts[ValidationStatus.WARNING],
            info=counts[ValidationStatus.INFO],
        )


@dataclass(frozen=True)
class Collaborators:
    host: HostInventory
    iis: IisInventory
    database: DatabaseProbe
    ports: PortProbe
    certificates: CertificateFetcher
    health: HealthProbe


@dataclass
class ValidationContext:
    settings: RuntimeSettings
    instances: tuple[Instance, ...]
    collaborators: Collaborators
    logger: BoundLogger
    log: ResultLog = field(default_factory=ResultLog)

    @cached_property
    def host_facts(self) -> HostFacts:
        return self.collaborators.host.collect(self.settings.checks.install_drive)


@dataclass(frozen=True)
class CheckRoutine:
    name: str
    category: str
    run: Callable[[ValidationContext], None]


__all__ = ["ResultLog", "Collaborators", "ValidationContext", "CheckRoutine"]
