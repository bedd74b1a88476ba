from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from ..models.parse_result import AgencyGroup, ParseResult

"""Aggregate metrics over grouped members. Pure functions, no mutation."""

__all__ = [
    "ParseStatistics",
    "calculate_statistics",
    "agencies_needing_lookup",
]


@dataclass(frozen=True)
class ParseStatistics:
    total_amount: Decimal
    average_days_late: float
    agencies_needing_lookup: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalAmount": str(self.total_amount),
            "averageDaysLate": self.average_days_late,
            "agenciesNeedingLookup": self.agencies_needing_lookup,
        }


def _groups_of(source: ParseResult | Mapping[str, AgencyGroup]) -> Mapping[str, AgencyGroup]:
    if isinstance(source, ParseResult):
        return source.groups
    return source


def agencies_needing_lookup(source: ParseResult | Mapping[str, AgencyGroup]) -> list[str]:
    """Names of agencies with no known contact email, in group order."""
    return [g.agency_name for g in _groups_of(source).values() if g.needs_lookup]


def calculate_statistics(source: ParseResult | Mapping[str, AgencyGroup]) -> ParseStatistics:
    """Compute total amount, average days late and lookup count.

    average_days_late only counts members that have a days_late value and is
    0 when none do. Members without amount_due add nothing to total_amount.
    """
    groups = _groups_of(source)
    total_amount = Decimal(0)
    total_days = 0
    with_days = 0
    for group in groups.values():
        for member in group.members:
            if member.amount_due is not None:
                total_amount += member.amount_due
            if member.days_late is not None:
                total_days += member.days_late
                with_days += 1

    return ParseStatistics(
        total_amount=total_amount,
        average_days_late=total_days / with_days if with_days > 0 else 0.0,
        agencies_needing_lookup=len(agencies_needing_lookup(groups)),
    )
