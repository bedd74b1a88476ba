from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from .member_record import MemberRecord, SchemaVariant

"""Ingestion result models: ParseError, AgencyGroup, ParseResult.

All three are frozen (their mappings are read-only views) and convert to
plain JSON-safe dicts via to_dict().
"""

__all__ = [
    "ParseError",
    "AgencyGroup",
    "ParseResult",
    "FILE_LEVEL_ROW",
]

# 行番号不明 (ファイル構造エラー) の場合
FILE_LEVEL_ROW = -1


@dataclass(frozen=True)
class ParseError:
    """A rejected row (or a structural problem found while decoding).

    Attributes:
        row_number: 1-based file row; the header is row 1, so the first data
            row is 2. FILE_LEVEL_ROW (-1) when the row cannot be determined.
        message: Human readable reason, e.g. "Invalid amount: abc"
        raw_data: The raw header-keyed row as read from the file
        error_type: UPPER_SNAKE classification
    """
    row_number: int
    message: str
    raw_data: Mapping[str, str | None] = field(default_factory=dict)
    error_type: str = "ROW_REJECTED"

    def __post_init__(self) -> None:
        object.__setattr__(self, "raw_data", MappingProxyType(dict(self.raw_data)))

    def to_dict(self) -> dict[str, Any]:
        return {
            "row": self.row_number,
            "message": self.message,
            "error_type": self.error_type,
            "data": dict(self.raw_data),
        }


@dataclass(frozen=True)
class AgencyGroup:
    """Members grouped under one agency name.

    needs_lookup is derived from agency_email, so it always reflects the
    current email rather than the state at group creation.
    """
    agency_name: str
    agency_email: str | None
    members: tuple[MemberRecord, ...] = ()

    @property
    def needs_lookup(self) -> bool:
        return self.agency_email is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "agency_name": self.agency_name,
            "agency_email": self.agency_email,
            "needs_lookup": self.needs_lookup,
            "members": [m.to_dict() for m in self.members],
        }


@dataclass(frozen=True)
class ParseResult:
    """Outcome of ingesting one file.

    groups keeps first-appearance order of agencies; it is a read-only view
    over a private copy. total_members counts valid records only.
    """
    groups: Mapping[str, AgencyGroup]
    errors: tuple[ParseError, ...]
    total_members: int
    source_name: str = ""
    variant: SchemaVariant = SchemaVariant.FULL

    def __post_init__(self) -> None:
        object.__setattr__(self, "groups", MappingProxyType(dict(self.groups)))
        object.__setattr__(self, "errors", tuple(self.errors))

    @property
    def total_agencies(self) -> int:
        return len(self.groups)

    @property
    def members(self) -> list[MemberRecord]:
        """All valid records, agency by agency."""
        return [m for g in self.groups.values() for m in g.members]

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source_name,
            "variant": self.variant.value,
            "data": {name: g.to_dict() for name, g in self.groups.items()},
            "errors": [e.to_dict() for e in self.errors],
            "totalMembers": self.total_members,
            "totalAgencies": self.total_agencies,
        }
