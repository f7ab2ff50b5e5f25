"""Result aggregation and report rendering."""

from snippet_harness.reporting.aggregator import (
    EXIT_CONFIG_ERROR,
    EXIT_HARNESS_FAULT,
    EXIT_OK,
    EXIT_SNIPPET_FAILURES,
    HarnessReport,
    ReportEntry,
    build_fault_report,
    build_report,
    decide_exit_code,
)
from snippet_harness.reporting.render import (
    render_annotations,
    render_json,
    render_summary,
    report_to_dict,
)

__all__ = [
    "EXIT_OK",
    "EXIT_HARNESS_FAULT",
    "EXIT_CONFIG_ERROR",
    "EXIT_SNIPPET_FAILURES",
    "HarnessReport",
    "ReportEntry",
    "build_report",
    "build_fault_report",
    "decide_exit_code",
    "render_json",
    "render_summary",
    "render_annotations",
    "report_to_dict",
]
