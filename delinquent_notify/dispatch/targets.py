from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any

from ..models.member_record import MemberRecord
from ..models.parse_result import ParseResult

logger = logging.getLogger(__name__)

"""Notification targets, pre-send validation and the delivery request payload.

Two granularities:

- per-member: one notification per MemberRecord, sent to that record's own
  agency email
- per-agency: one notification per AgencyGroup with the full member list and
  the agency total

validate_batch() checks every target before anything is sent. A single
violation rejects the whole batch, and the error lists all of them.
"""

__all__ = [
    "DeliveryMode",
    "MemberLine",
    "NotificationTarget",
    "FieldViolation",
    "DispatchValidationError",
    "EMAIL_PATTERN",
    "is_valid_email",
    "build_member_targets",
    "build_agency_targets",
    "validate_batch",
    "build_delivery_request",
]

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def is_valid_email(value: str | None) -> bool:
    return bool(value) and EMAIL_PATTERN.match(value) is not None  # type: ignore[arg-type]


class DeliveryMode(Enum):
    PER_MEMBER = "per-member"
    PER_AGENCY = "per-agency"


@dataclass(frozen=True)
class MemberLine:
    """Member row inside a per-agency notification."""
    name: str
    amount_due: Decimal | None = None
    days_late: int | None = None
    member_id: str | None = None

    @classmethod
    def from_record(cls, record: MemberRecord) -> MemberLine:
        return cls(
            name=record.name,
            amount_due=record.amount_due,
            days_late=record.days_late,
            member_id=record.member_id,
        )

    def to_payload(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name}
        if self.amount_due is not None:
            data["amount_due"] = float(self.amount_due)
        if self.days_late is not None:
            data["days_late"] = self.days_late
        if self.member_id is not None:
            data["member_id"] = self.member_id
        return data


@dataclass(frozen=True)
class NotificationTarget:
    mode: DeliveryMode
    identity: str  # member name (per-member) / agency name (per-agency)
    recipient: str | None
    days_late: int | None = None
    amount_due: Decimal | None = None
    member_id: str | None = None
    members: tuple[MemberLine, ...] = ()

    @property
    def total_amount(self) -> Decimal:
        if self.mode is DeliveryMode.PER_MEMBER:
            return self.amount_due or Decimal(0)
        return sum((m.amount_due for m in self.members if m.amount_due is not None), Decimal(0))


@dataclass(frozen=True)
class FieldViolation:
    index: int  # target position, -1 for batch-level fields
    identity: str
    field: str
    message: str

    def __str__(self) -> str:
        where = "batch" if self.index < 0 else f"target {self.index} ({self.identity})"
        return f"{where}: {self.field} {self.message}"


class DispatchValidationError(Exception):
    """Raised when any target fails pre-send validation; nothing is sent."""

    def __init__(self, violations: Sequence[FieldViolation]) -> None:
        self.violations = list(violations)
        detail = "; ".join(str(v) for v in self.violations)
        super().__init__(f"{len(self.violations)} validation error(s): {detail}")


def build_member_targets(source: ParseResult | Iterable[MemberRecord]) -> list[NotificationTarget]:
    records = source.members if isinstance(source, ParseResult) else list(source)
    return [
        NotificationTarget(
            mode=DeliveryMode.PER_MEMBER,
            identity=r.name,
            recipient=r.agency_email,
            days_late=r.days_late,
            amount_due=r.amount_due,
            member_id=r.member_id,
        )
        for r in records
    ]


def build_agency_targets(result: ParseResult, include_needs_lookup: bool = False) -> list[NotificationTarget]:
    """One target per agency group.

    Groups still needing an email lookup are skipped unless
    include_needs_lookup is set (they will then fail validation).
    """
    targets: list[NotificationTarget] = []
    for group in result.groups.values():
        if group.needs_lookup and not include_needs_lookup:
            logger.warning(f"agency '{group.agency_name}' has no email (needs lookup) -> skipped")
            continue
        targets.append(
            NotificationTarget(
                mode=DeliveryMode.PER_AGENCY,
                identity=group.agency_name,
                recipient=group.agency_email,
                members=tuple(MemberLine.from_record(m) for m in group.members),
            )
        )
    return targets


def _non_negative(value: Decimal | int | None) -> bool:
    return value is None or value >= 0


def validate_batch(targets: Sequence[NotificationTarget], reply_to: str | None) -> None:
    """Validate the whole batch up front.

    Raises:
        DispatchValidationError: with every violation found
    """
    violations: list[FieldViolation] = []
    if not is_valid_email(reply_to):
        violations.append(FieldViolation(-1, "", "reply_to", "must be a valid email address"))
    if not targets:
        violations.append(FieldViolation(-1, "", "targets", "cannot be empty"))

    for i, t in enumerate(targets):
        def bad(field: str, message: str) -> None:
            violations.append(FieldViolation(i, t.identity, field, message))  # noqa: B023

        if not t.identity or not t.identity.strip():
            bad("name", "is required")
        if not is_valid_email(t.recipient):
            bad("recipient", f"must be a valid email address (got {t.recipient!r})")
        if not _non_negative(t.amount_due):
            bad("amount_due", "must be a non-negative number")

        if t.mode is DeliveryMode.PER_MEMBER:
            if t.days_late is None or t.days_late < 0:
                bad("delinquent_days", "must be a non-negative number")
            continue

        if not t.members:
            bad("member_list", "cannot be empty")
        for j, m in enumerate(t.members):
            if not m.name:
                bad(f"member_list[{j}].name", "is required")
            if not _non_negative(m.amount_due):
                bad(f"member_list[{j}].amount_due", "must be a non-negative number")
            if not _non_negative(m.days_late):
                bad(f"member_list[{j}].days_late", "must be a non-negative number")

    if violations:
        raise DispatchValidationError(violations)


def build_delivery_request(targets: Sequence[NotificationTarget], reply_to: str) -> dict[str, Any]:
    """JSON-shaped request handed to the delivery backend."""
    member_targets = [t for t in targets if t.mode is DeliveryMode.PER_MEMBER]
    agency_targets = [t for t in targets if t.mode is DeliveryMode.PER_AGENCY]

    payload: dict[str, Any] = {"reply_to": reply_to}
    if member_targets:
        member_list = []
        for t in member_targets:
            item: dict[str, Any] = {
                "name": t.identity,
                "delinquent_days": t.days_late,
                "agency_email": t.recipient,
            }
            if t.amount_due is not None:
                item["amount_due"] = float(t.amount_due)
            if t.member_id is not None:
                item["member_id"] = t.member_id
            member_list.append(item)
        payload["member_list"] = member_list
    if agency_targets:
        payload["agencies"] = [
            {
                "agency_name": t.identity,
                "agent_email": t.recipient,
                "total_amount": float(t.total_amount),
                "member_list": [m.to_payload() for m in t.members],
            }
            for t in agency_targets
        ]
    return payload
