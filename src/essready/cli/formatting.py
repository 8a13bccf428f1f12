"""Rich rendering for validation records, summaries and probe results."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Final

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from essready.domain.models import (
    ComponentMessage,
    HealthCheckResult,
    HealthStatus,
    RawMessage,
    ValidationRecord,
    ValidationStatus,
    ValidationSummary,
    message_text,
)


class RichStyles:
    ACCENT: Final = "cyan"
    SECONDARY: Final = "white"
    SUCCESS: Final = "green"
    WARNING: Final = "yellow"
    ERROR: Final = "red"
    MUTED: Final = "dim"


STATUS_STYLES: Final[dict[ValidationStatus, str]] = {
    ValidationStatus.PASS: RichStyles.SUCCESS,
    ValidationStatus.FAIL: RichStyles.ERROR,
    ValidationStatus.WARNING: RichStyles.WARNING,
    ValidationStatus.INFO: RichStyles.ACCENT,
}

HEALTH_STYLES: Final[dict[HealthStatus, str]] = {
    HealthStatus.HEALTHY: RichStyles.SUCCESS,
    HealthStatus.PARTIALLY_UNHEALTHY: RichStyles.WARNING,
    HealthStatus.UNKNOWN: RichStyles.WARNING,
    HealthStatus.UNHEALTHY: RichStyles.ERROR,
    HealthStatus.ERROR: RichStyles.ERROR,
}


def create_records_table(records: Iterable[ValidationRecord]) -> Table:
    table = Table(title="Validation results", box=box.SIMPLE_HEAVY)
    table.add_column("Category", style=RichStyles.ACCENT)
    table.add_column("Check", style=RichStyles.SECONDARY)
    table.add_column("Status")
    table.add_column("Message", overflow="fold")
    for record in records:
        style = STATUS_STYLES[record.status]
        table.add_row(
            record.category,
            escape(record.check),
            f"[{style}]{record.status.value}[/{style}]",
            escape(record.message),
        )
    return table


def create_summary_table(summary: ValidationSummary) -> Table:
    table = Table(title="Summary", box=box.SIMPLE_HEAVY)
    table.add_column("Total", justify="right")
    table.add_column("Pass", justify="right", style=RichStyles.SUCCESS)
    table.add_column("Fail", justify="right", style=RichStyles.ERROR)
    table.add_column("Warning", justify="right", style=RichStyles.WARNING)
    table.add_column("Info", justify="right", style=RichStyles.ACCENT)
    table.add_row(
        str(summary.total),
        str(summary.passed),
        str(summary.failed),
        str(summary.warnings),
        str(summary.info),
    )
    return table


def _message_lines(messages: Sequence[ComponentMessage | RawMessage]) -> str:
    return "\n".join(message_text(message) for message in messages)


def create_health_table(result: HealthCheckResult) -> Table:
    style = HEALTH_STYLES[result.overall_status]
    title = f"{escape(result.uri)} [{style}]{result.overall_status.value}[/{style}]"
    table = Table(title=title, box=box.SIMPLE_HEAVY)
    table.add_column("Component", style=RichStyles.ACCENT)
    table.add_column("Slot", style=RichStyles.MUTED)
    table.add_column("Status")
    table.add_column("Version")
    table.add_column("Messages", overflow="fold")

    slot_names = {
        id(component): role.value for role, component in result.populated_slots.items()
    }
    for component in result.components:
        component_style = RichStyles.SUCCESS if component.healthy else RichStyles.ERROR
        table.add_row(
            escape(component.name),
            slot_names.get(id(component), "-"),
            f"[{component_style}]{component.status.value}[/{component_style}]",
            component.version or "-",
            escape(_message_lines(component.messages)),
        )
    return table


def print_health_result(console: Console, result: HealthCheckResult) -> None:
    console.print(create_health_table(result))
    details = [
        f"HTTP status: {result.status_code if result.status_code is not None else '-'}",
        f"Success: {'yes' if result.success else 'no'}",
        f"Retry attempts: {result.retry_attempts}",
    ]
    console.print("  ".join(details))
    if result.error:
        console.print(f"[{RichStyles.ERROR}]Error:[/{RichStyles.ERROR}] {escape(result.error)}")


def print_outcome(
    console: Console, records: Sequence[ValidationRecord], summary: ValidationSummary
) -> None:
    console.print(create_records_table(records))
    console.print(create_summary_table(summary))


def create_config_table(title: str, rows: Iterable[tuple[str, str]]) -> Table:
    table = Table(title=title, box=box.SIMPLE_HEAVY)
    table.add_column("Config Key", style=RichStyles.ACCENT)
    table.add_column("Value", style=RichStyles.SECONDARY)
    for key, value in rows:
        table.add_row(escape(key), escape(value))
    return table


__all__ = [
    "RichStyles",
    "create_config_table",
    "create_health_table",
    "create_records_table",
    "create_summary_table",
    "print_health_result",
    "print_outcome",
]
