"""JSON report sink."""

from __future__ import annotations

import json
from collections.abc import Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from essready.domain.models import ValidationRecord, ValidationSummary
from essready.infrastructure.logging import get_logger

REPORT_SCHEMA_VERSION = 1

_logger = get_logger("essready.report")


def build_report_payload(
    records: Sequence[ValidationRecord],
    summary: ValidationSummary,
    *,
    run_id: str | None = None,
    generated_at: datetime | None = None,
) -> dict[str, Any]:
    timestamp = generated_at or datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "schema_version": REPORT_SCHEMA_VERSION,
        "generated_at": timestamp.isoformat(),
        "summary": summary.as_dict(),
        "records": [record.as_dict() for record in records],
    }
    if run_id:
        payload["run_id"] = run_id
    return payload


class JsonReportWriter:
    """Write the ordered record list and summary to a JSON file."""

    def __init__(self, path: str | Path, *, run_id: str | None = None, indent: int = 2) -> None:
        self._path = Path(path)
        self._run_id = run_id
        self._indent = indent

    @property
    def path(self) -> Path:
        return self._path

    def write(self, records: Sequence[ValidationRecord], summary: ValidationSummary) -> None:
        payload = build_report_payload(records, summary, run_id=self._run_id)
        if self._path.parent and not self._path.parent.exists():
            self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(payload, indent=self._indent) + "\n", encoding="utf-8")
        _logger.info("report.written", path=str(self._path), records=len(records))


__all__ = ["JsonReportWriter", "build_report_payload", "REPORT_SCHEMA_VERSION"]
