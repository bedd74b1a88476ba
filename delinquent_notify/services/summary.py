from __future__ import annotations

from decimal import Decimal

from ..models.dispatch_result import BatchDispatchReport
from ..models.parse_result import ParseResult
from .statistics import ParseStatistics

"""SUMMARY line rendering for ingestion and dispatch runs.

Both lines are single-line key=value records so they stay grep-able:

    SUMMARY file=members.csv members=12 agencies=3 errors=1 needs_lookup=1 total_amount=4750.50 avg_days_late=37.5
    SUMMARY dispatch sent=11 failed=1 total=12 success=false

The *_fields functions return the record without the "SUMMARY" label, which
is what log_summary() expects (the formatter adds the label itself).
"""

__all__ = [
    "SUMMARY_LABEL",
    "format_number",
    "ingest_summary_fields",
    "dispatch_summary_fields",
    "render_ingest_summary",
    "render_dispatch_summary",
]

SUMMARY_LABEL = "SUMMARY"


def format_number(value: float | Decimal) -> str:
    """Render numbers without scientific notation; whole floats lose '.0'."""
    if isinstance(value, Decimal):
        return format(value, "f")
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    # 小数点以下 2 桁に丸める
    return f"{value:.2f}".rstrip("0").rstrip(".")


def ingest_summary_fields(result: ParseResult, stats: ParseStatistics) -> str:
    return (
        f"file={result.source_name} "
        f"members={result.total_members} "
        f"agencies={result.total_agencies} "
        f"errors={len(result.errors)} "
        f"needs_lookup={stats.agencies_needing_lookup} "
        f"total_amount={format_number(stats.total_amount)} "
        f"avg_days_late={format_number(stats.average_days_late)}"
    )


def dispatch_summary_fields(report: BatchDispatchReport) -> str:
    return (
        f"dispatch "
        f"sent={len(report.sent)} "
        f"failed={len(report.failed)} "
        f"total={report.total} "
        f"success={'true' if report.overall_success else 'false'}"
    )


def render_ingest_summary(result: ParseResult, stats: ParseStatistics) -> str:
    """Render the full ingestion SUMMARY line.

    Examples:
        >>> from decimal import Decimal
        >>> from delinquent_notify.models import ParseResult
        >>> empty = ParseResult(groups={}, errors=(), total_members=0, source_name="x.csv")
        >>> render_ingest_summary(empty, ParseStatistics(Decimal(0), 0.0, 0))
        'SUMMARY file=x.csv members=0 agencies=0 errors=0 needs_lookup=0 total_amount=0 avg_days_late=0'
    """
    return f"{SUMMARY_LABEL} {ingest_summary_fields(result, stats)}"


def render_dispatch_summary(report: BatchDispatchReport) -> str:
    return f"{SUMMARY_LABEL} {dispatch_summary_fields(report)}"
