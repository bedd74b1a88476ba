from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any

"""MemberRecord domain model and schema variants.

A MemberRecord is the canonical unit produced by row mapping. It only exists
when every required field is present and well typed; rejected rows become
ParseError entries instead (see parse_result.py).
"""

__all__ = [
    "MemberRecord",
    "SchemaVariant",
]


class SchemaVariant(Enum):
    """Column contract a file is read with.

    - FULL: Member Name / Amount / Agency (+ optional columns)
    - NOTIFICATION: Agency Email Address / memberFirstName / memberLastName / delinquent_days
    """
    FULL = "full"
    NOTIFICATION = "notification"


@dataclass(frozen=True)
class MemberRecord:
    """One delinquent member after row mapping.

    amount_due is None only in the NOTIFICATION variant. Optional strings are
    never empty: absent values are None.
    """
    name: str
    agency_name: str  # aggregation key (exact string)
    amount_due: Decimal | None = None
    agency_email: str | None = None
    days_late: int | None = None
    member_id: str | None = None
    phone: str | None = None
    email: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "amount_due": str(self.amount_due) if self.amount_due is not None else None,
            "agency_name": self.agency_name,
            "agency_email": self.agency_email,
            "days_late": self.days_late,
            "member_id": self.member_id,
            "phone": self.phone,
            "email": self.email,
        }
