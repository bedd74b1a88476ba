from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

from ..models.member_record import MemberRecord, SchemaVariant
from .columns import (
    COL_AGENCY,
    COL_AGENCY_EMAIL,
    COL_AGENCY_EMAIL_ADDRESS,
    COL_AMOUNT,
    COL_DAYS_LATE,
    COL_DELINQUENT_DAYS,
    COL_EMAIL,
    COL_FIRST_NAME,
    COL_LAST_NAME,
    COL_MEMBER_ID,
    COL_MEMBER_NAME,
    COL_PHONE,
    contract_for,
)

"""Row mapping: one raw header-keyed row -> MemberRecord or a rejection.

The raw row (an open dict of header -> text) is resolved once into RowFields,
a fixed set of named optional strings. Everything after that works on
RowFields only; columns outside the contract are ignored.

Rejections are returned, never raised, so one bad row cannot stop a file.
"""

__all__ = [
    "RawRow",
    "RowFields",
    "MappedRow",
    "map_row",
    "parse_amount",
    "parse_days_late",
    "MISSING_REQUIRED_FIELDS",
    "INVALID_AMOUNT",
    "INVALID_DAYS_LATE",
]

RawRow = Mapping[str, "str | None"]

# error_type 分類
MISSING_REQUIRED_FIELDS = "MISSING_REQUIRED_FIELDS"
INVALID_AMOUNT = "INVALID_AMOUNT"
INVALID_DAYS_LATE = "INVALID_DAYS_LATE"

# "45" / "+45" / "45.0" (spreadsheet numeric cells). ASCII 数字のみ
_DAYS_RE = re.compile(r"\+?(\d+)(?:\.0*)?", re.ASCII)

# "1250.50" / ".5" / "1e3" のみ。"1_000" や全角・他文字体系の数字は不可
_AMOUNT_RE = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?", re.ASCII)


def _clean(value: object) -> str | None:
    """Trim a cell; empty or whitespace-only becomes None."""
    if value is None:
        return None
    v = str(value).strip()
    return v if v else None


@dataclass(frozen=True)
class RowFields:
    """Trimmed, named view of a raw row. None means absent."""
    name: str | None = None
    amount: str | None = None
    agency_name: str | None = None
    agency_email: str | None = None
    days_late: str | None = None
    member_id: str | None = None
    phone: str | None = None
    email: str | None = None

    @classmethod
    def from_raw(cls, raw: RawRow, variant: SchemaVariant) -> RowFields:
        if variant is SchemaVariant.NOTIFICATION:
            first = _clean(raw.get(COL_FIRST_NAME))
            last = _clean(raw.get(COL_LAST_NAME))
            agency_email = _clean(raw.get(COL_AGENCY_EMAIL_ADDRESS))
            name = None
            if first is not None:
                name = f"{first} {last}" if last else first
            # 通知専用レイアウトには Agency 列が無いのでメールアドレスを集約キーとする
            return cls(
                name=name,
                agency_name=agency_email,
                agency_email=agency_email,
                days_late=_clean(raw.get(COL_DELINQUENT_DAYS)),
            )
        return cls(
            name=_clean(raw.get(COL_MEMBER_NAME)),
            amount=_clean(raw.get(COL_AMOUNT)),
            agency_name=_clean(raw.get(COL_AGENCY)),
            agency_email=_clean(raw.get(COL_AGENCY_EMAIL)),
            days_late=_clean(raw.get(COL_DAYS_LATE)),
            member_id=_clean(raw.get(COL_MEMBER_ID)),
            phone=_clean(raw.get(COL_PHONE)),
            email=_clean(raw.get(COL_EMAIL)),
        )


@dataclass(frozen=True)
class MappedRow:
    """Tagged row outcome: either record is set, or reason/error_type are."""
    record: MemberRecord | None
    reason: str | None = None
    error_type: str | None = None
    raw: dict[str, str | None] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.record is not None

    @staticmethod
    def reject(raw: RawRow, error_type: str, reason: str) -> MappedRow:
        return MappedRow(record=None, reason=reason, error_type=error_type, raw=dict(raw))


def parse_amount(text: str) -> Decimal | None:
    """Parse a money amount, ignoring '$' and thousands separators.

    Only plain ASCII decimal notation is accepted (optionally with an
    exponent); returns None unless the result is a non-negative number.
    """
    cleaned = text.replace("$", "").replace(",", "").strip()
    if _AMOUNT_RE.fullmatch(cleaned) is None:
        return None
    try:
        value = Decimal(cleaned)
    except InvalidOperation:
        return None
    if value < 0:
        return None
    return value


def parse_days_late(text: str) -> int | None:
    """Parse a non-negative whole number of days; None if not parseable."""
    m = _DAYS_RE.fullmatch(text.strip())
    if m is None:
        return None
    return int(m.group(1))


def _missing_fields_message(variant: SchemaVariant) -> str:
    cols = contract_for(variant).required_values
    if len(cols) == 1:
        listed = cols[0]
    elif len(cols) == 2:
        listed = f"{cols[0]} or {cols[1]}"
    else:
        listed = ", ".join(cols[:-1]) + f", or {cols[-1]}"
    return f"Missing required fields ({listed})"


def map_row(raw: RawRow, variant: SchemaVariant = SchemaVariant.FULL) -> MappedRow:
    """Map one raw row to a MemberRecord or a rejection.

    Order of checks: required presence, amount, days late. The first failing
    check decides the reason.
    """
    fields = RowFields.from_raw(raw, variant)

    required = [fields.name, fields.agency_name]
    if variant is SchemaVariant.FULL:
        required.append(fields.amount)
    if any(v is None for v in required):
        return MappedRow.reject(raw, MISSING_REQUIRED_FIELDS, _missing_fields_message(variant))

    amount_due: Decimal | None = None
    if fields.amount is not None:
        amount_due = parse_amount(fields.amount)
        if amount_due is None:
            return MappedRow.reject(raw, INVALID_AMOUNT, f"Invalid amount: {fields.amount}")

    days_late: int | None = None
    if fields.days_late is not None:
        # 任意列だが値があるのに数値化できない場合は行エラー
        days_late = parse_days_late(fields.days_late)
        if days_late is None:
            return MappedRow.reject(raw, INVALID_DAYS_LATE, f"Invalid days late: {fields.days_late}")

    record = MemberRecord(
        name=fields.name,  # type: ignore[arg-type]
        agency_name=fields.agency_name,  # type: ignore[arg-type]
        amount_due=amount_due,
        agency_email=fields.agency_email,
        days_late=days_late,
        member_id=fields.member_id,
        phone=fields.phone,
        email=fields.email,
    )
    return MappedRow(record=record, raw=dict(raw))
