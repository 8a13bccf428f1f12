from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

from essready.application.context import ResultLog
from essready.application.report import (
    REPORT_SCHEMA_VERSION,
    JsonReportWriter,
    build_report_payload,
)


def _log() -> ResultLog:
    log = ResultLog()
    log.record_pass("System Requirements", "CPU Cores", "4 cores (minimum 2 cores)")
    log.record_fail("IIS Configuration", "Site Default Web Site", "Site is Stopped")
    log.record_info("HTTPS/SSL", "HTTPS Bindings", "No HTTPS bindings configured")
    return log


def test_payload_keeps_record_order_and_summary() -> None:
    log = _log()
    generated = datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc)

    payload = build_report_payload(log.records, log.summary(), generated_at=generated)

    assert payload["schema_version"] == REPORT_SCHEMA_VERSION
    assert payload["generated_at"] == "2024-05-01T09:30:00+00:00"
    assert payload["summary"] == {"total": 3, "pass": 1, "fail": 1, "warning": 0, "info": 1}
    assert [record["check"] for record in payload["records"]] == [
        "CPU Cores",
        "Site Default Web Site",
        "HTTPS Bindings",
    ]
    assert payload["records"][1]["status"] == "FAIL"
    assert "run_id" not in payload


def test_writer_creates_parent_directories(tmp_path: Path) -> None:
    log = _log()
    target = tmp_path / "reports" / "nightly" / "readiness.json"
    writer = JsonReportWriter(target, run_id="run-123")

    writer.write(log.records, log.summary())

    assert writer.path == target
    document = json.loads(target.read_text(encoding="utf-8"))
    assert document["run_id"] == "run-123"
    assert document["summary"]["total"] == 3
    assert document["records"][0]["category"] == "System Requirements"
    assert document["records"][0]["timestamp"].endswith("+00:00")
