"""Validation orchestrator: runs the check routines and aggregates records."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from essready.application.checks import DEFAULT_ROUTINES
from essready.application.collaborators import InstanceDiscovery
from essready.application.context import (
    CheckRoutine,
    Collaborators,
    ResultLog,
    ValidationContext,
)
from essready.config.settings import RuntimeSettings
from essready.domain.models import (
    Instance,
    RunState,
    ValidationRecord,
    ValidationStatus,
    ValidationSummary,
)
from essready.infrastructure.errors import DiscoveryError, RoutineError
from essready.infrastructure.logging import (
    BoundLogger,
    attach_run_context,
    get_logger,
    log_event,
    new_run_id,
)


@dataclass(frozen=True)
class ValidationOutcome:
    """Result of one validation sweep."""

    run_id: str
    instances: tuple[Instance, ...]
    records: tuple[ValidationRecord, ...]
    summary: ValidationSummary

    @property
    def has_failures(self) -> bool:
        return self.summary.failed > 0

    def records_for(self, category: str) -> tuple[ValidationRecord, ...]:
        return tuple(record for record in self.records if record.category == category)

    def exit_code(self) -> int:
        return 1 if self.has_failures else 0


class ValidationRunner:
    """Execute the ordered check routines with fail-soft isolation.

    A run moves ``Idle -> Running -> Completed``. Only a discovery failure
    escapes :meth:`run`; every routine error becomes a single FAIL record
    under that routine's category.
    """

    def __init__(
        self,
        *,
        settings: RuntimeSettings,
        discovery: InstanceDiscovery,
        collaborators: Collaborators,
        routines: Sequence[CheckRoutine] = DEFAULT_ROUTINES,
        logger: BoundLogger | None = None,
    ) -> None:
        self._settings = settings
        self._discovery = discovery
        self._collaborators = collaborators
        self._routines = tuple(routines)
        self._logger = logger or get_logger("essready.validation")
        self._state = RunState.IDLE
        self._log = ResultLog()

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def routines(self) -> tuple[CheckRoutine, ...]:
        return self._routines

    @property
    def records(self) -> tuple[ValidationRecord, ...]:
        return self._log.records

    def summary(self) -> ValidationSummary:
        return self._log.summary()

    def run(self) -> ValidationOutcome:
        run_id = new_run_id()
        logger = attach_run_context(self._logger, run_id=run_id)
        self._state = RunState.RUNNING
        self._log = ResultLog()
        log_event(logger, "validation.started", routines=len(self._routines))

        instances = self._discover(logger)
        context = ValidationContext(
            settings=self._settings,
            instances=instances,
            collaborators=self._collaborators,
            logger=logger,
            log=self._log,
        )

        for routine in self._routines:
            self._run_routine(routine, context, logger)

        summary = self._log.summary()
        if not summary.consistent:
            raise RuntimeError(f"Validation summary is inconsistent: {summary.as_dict()}")

        self._state = RunState.COMPLETED
        log_event(logger, "validation.completed", **summary.as_dict())
        return ValidationOutcome(
            run_id=run_id,
            instances=instances,
            records=self._log.records,
            summary=summary,
        )

    def _discover(self, logger: BoundLogger) -> tuple[Instance, ...]:
        try:
            instances = tuple(self._discovery.discover())
        except DiscoveryError as exc:
            self._state = RunState.IDLE
            log_event(logger, "validation.discovery.failed", level=logging.ERROR, error=exc.user_message)
            raise
        except Exception as exc:
            self._state = RunState.IDLE
            log_event(logger, "validation.discovery.failed", level=logging.ERROR, error=str(exc))
            raise DiscoveryError(f"Instance discovery failed: {exc}") from exc

        log_event(logger, "validation.instances.discovered", count=len(instances))
        return instances

    def _run_routine(
        self, routine: CheckRoutine, context: ValidationContext, logger: BoundLogger
    ) -> None:
        """Run ``routine``; an escaped error becomes one FAIL in its category named "Validation Process"."""
        routine_logger = attach_run_context(logger, routine=routine.name)
        before = len(self._log)
        try:
            routine.run(context)
        except Exception as exc:
            error = RoutineError(
                f"Validation routine failed: {exc}", routine=routine.name, category=routine.category
            )
            routine_logger.error(
                "validation.routine.failed",
                error=str(exc),
                code=error.context.code,
                exc_info=True,
            )
            self._log.add(
                routine.category,
                "Validation Process",
                ValidationStatus.FAIL,
                error.user_message,
            )
            return
        routine_logger.debug("validation.routine.completed", records=len(self._log) - before)


__all__ = ["ValidationOutcome", "ValidationRunner"]
