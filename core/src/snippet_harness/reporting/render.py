from __future__ import annotations

import json
from dataclasses import asdict
from typing import Any

from snippet_harness.contracts import RUN_STATUSES
from snippet_harness.reporting.aggregator import HarnessReport, ReportEntry

_NOT_OK = ("fail", "toolchain_error", "timeout")


def report_to_dict(
    report: HarnessReport,
    *,
    include_output: bool = True,
    max_output_chars: int = 4000,
) -> dict[str, Any]:
    entries: list[dict[str, Any]] = []
    for entry in report.entries:
        payload = asdict(entry)
        if include_output:
            payload["stdout"] = _truncate(entry.stdout, max_output_chars)
            payload["stderr"] = _truncate(entry.stderr, max_output_chars)
        else:
            payload.pop("stdout")
            payload.pop("stderr")
        entries.append(payload)
    return {
        "started_at_utc": report.started_at_utc,
        "ended_at_utc": report.ended_at_utc,
        "root": report.root,
        "config_hash": report.config_hash,
        "fault": report.fault,
        "exit_code": report.exit_code,
        "summary": {
            "total": report.counts.total,
            "by_status": dict(report.counts.by_status),
            "by_language": {
                language: dict(counts) for language, counts in report.counts.by_language.items()
            },
        },
        "results": entries,
    }


def render_json(
    report: HarnessReport,
    *,
    include_output: bool = True,
    max_output_chars: int = 4000,
) -> str:
    payload = report_to_dict(
        report, include_output=include_output, max_output_chars=max_output_chars
    )
    return json.dumps(payload, indent=2, sort_keys=True)


def render_summary(report: HarnessReport) -> str:
    """Human-readable summary for the job log."""
    lines: list[str] = []
    if report.fault is not None:
        lines.append(f"HARNESS FAULT: {report.fault}")
        lines.append(f"exit code {report.exit_code}")
        return "\n".join(lines)

    by_status = report.counts.by_status
    lines.append(
        f"{report.counts.total} snippets: "
        + ", ".join(f"{by_status.get(status, 0)} {status}" for status in RUN_STATUSES)
    )

    header = ["language", *RUN_STATUSES]
    rows = [header]
    for language, counts in report.counts.by_language.items():
        rows.append([language, *(str(counts.get(status, 0)) for status in RUN_STATUSES)])
    widths = [max(len(row[index]) for row in rows) for index in range(len(header))]
    for row in rows:
        lines.append("  ".join(cell.ljust(width) for cell, width in zip(row, widths, strict=True)))

    problems = [entry for entry in report.entries if entry.status in _NOT_OK]
    if problems:
        lines.append("")
        lines.append("Not passing:")
        for entry in problems:
            lines.append(f"  {entry.status:<16} {entry.snippet_id}{_suffix(entry)}")
    lines.append(f"exit code {report.exit_code}")
    return "\n".join(lines)


def render_annotations(report: HarnessReport) -> list[str]:
    """GitHub Actions workflow commands for snippets that did not pass."""
    annotations: list[str] = []
    for entry in report.entries:
        if entry.status not in _NOT_OK:
            continue
        message = _escape_annotation(entry.message or entry.status)
        annotations.append(
            f"::warning file={_escape_property(entry.source_path)},"
            f"title={_escape_property(f'snippet {entry.status}: {entry.snippet_id}')}::{message}"
        )
    return annotations


def _suffix(entry: ReportEntry) -> str:
    parts: list[str] = []
    if entry.retry_count:
        parts.append(f"retries={entry.retry_count}")
    if entry.message:
        parts.append(entry.message)
    return f" ({'; '.join(parts)})" if parts else ""


def _truncate(text: str, limit: int) -> str:
    if limit <= 0 or len(text) <= limit:
        return text
    return text[:limit] + f"\n... [truncated {len(text) - limit} chars]"


def _escape_annotation(value: str) -> str:
    return value.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


def _escape_property(value: str) -> str:
    return _escape_annotation(value).replace(":", "%3A").replace(",", "%2C")
