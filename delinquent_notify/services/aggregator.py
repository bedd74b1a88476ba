from __future__ import annotations

from collections.abc import Iterable

from ..models.member_record import MemberRecord
from ..models.parse_result import AgencyGroup

"""Agency aggregation.

Valid records are folded, in file order, into one group per agency name:

- the key is the agency name exactly as written (case and inner whitespace
  matter, so "ABC" and "abc" are two groups)
- the group's email is the first non-empty agency email seen for that key;
  later, different emails never overwrite it
- needs_lookup follows the email (see AgencyGroup)

One AgencyAggregator belongs to one ingestion session.
"""

__all__ = [
    "AgencyAggregator",
    "aggregate",
]


class AgencyAggregator:
    """Single-owner accumulator of AgencyGroups."""

    def __init__(self) -> None:
        self._members: dict[str, list[MemberRecord]] = {}
        self._emails: dict[str, str | None] = {}
        self.total_members = 0

    def add(self, record: MemberRecord) -> None:
        """Fold one valid record into the groups."""
        key = record.agency_name
        if key not in self._members:
            self._members[key] = []
            self._emails[key] = record.agency_email
        elif self._emails[key] is None and record.agency_email is not None:
            # first-non-empty-wins
            self._emails[key] = record.agency_email
        self._members[key].append(record)
        self.total_members += 1

    def extend(self, records: Iterable[MemberRecord]) -> None:
        for record in records:
            self.add(record)

    @property
    def groups(self) -> dict[str, AgencyGroup]:
        """Frozen snapshot, in first-appearance order."""
        return {
            key: AgencyGroup(
                agency_name=key,
                agency_email=self._emails[key],
                members=tuple(members),
            )
            for key, members in self._members.items()
        }

    def __len__(self) -> int:
        return len(self._members)


def aggregate(records: Iterable[MemberRecord]) -> dict[str, AgencyGroup]:
    """Group an ordered record sequence with a fresh aggregator."""
    aggregator = AgencyAggregator()
    aggregator.extend(records)
    return aggregator.groups
