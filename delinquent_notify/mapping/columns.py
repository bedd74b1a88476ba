from __future__ import annotations

from dataclasses import dataclass

from ..models.member_record import SchemaVariant

"""Column contracts for the two supported file layouts.

Header names are matched exactly after trimming (case-sensitive).
"""

__all__ = [
    "ColumnContract",
    "FULL_COLUMNS",
    "NOTIFICATION_COLUMNS",
    "contract_for",
    # full-schema column names
    "COL_MEMBER_NAME",
    "COL_AMOUNT",
    "COL_AGENCY",
    "COL_AGENCY_EMAIL",
    "COL_DAYS_LATE",
    "COL_MEMBER_ID",
    "COL_PHONE",
    "COL_EMAIL",
    # notification-only column names
    "COL_AGENCY_EMAIL_ADDRESS",
    "COL_FIRST_NAME",
    "COL_LAST_NAME",
    "COL_DELINQUENT_DAYS",
]

COL_MEMBER_NAME = "Member Name"
COL_AMOUNT = "Amount"
COL_AGENCY = "Agency"
COL_AGENCY_EMAIL = "Agency Email"
COL_DAYS_LATE = "Days Late"
COL_MEMBER_ID = "Member ID"
COL_PHONE = "Phone"
COL_EMAIL = "Email"

COL_AGENCY_EMAIL_ADDRESS = "Agency Email Address"
COL_FIRST_NAME = "memberFirstName"
COL_LAST_NAME = "memberLastName"
COL_DELINQUENT_DAYS = "delinquent_days"


@dataclass(frozen=True)
class ColumnContract:
    variant: SchemaVariant
    required: tuple[str, ...]  # header must contain these
    optional: tuple[str, ...] = ()
    # columns that must be non-empty on every row (subset of required)
    required_values: tuple[str, ...] = ()

    @property
    def all_columns(self) -> tuple[str, ...]:
        return self.required + self.optional


FULL_COLUMNS = ColumnContract(
    variant=SchemaVariant.FULL,
    required=(COL_MEMBER_NAME, COL_AMOUNT, COL_AGENCY),
    optional=(COL_AGENCY_EMAIL, COL_DAYS_LATE, COL_MEMBER_ID, COL_PHONE, COL_EMAIL),
    required_values=(COL_MEMBER_NAME, COL_AMOUNT, COL_AGENCY),
)

NOTIFICATION_COLUMNS = ColumnContract(
    variant=SchemaVariant.NOTIFICATION,
    required=(COL_AGENCY_EMAIL_ADDRESS, COL_FIRST_NAME, COL_LAST_NAME, COL_DELINQUENT_DAYS),
    # last name may be blank, delinquent_days is validated only when present
    required_values=(COL_AGENCY_EMAIL_ADDRESS, COL_FIRST_NAME),
)

_CONTRACTS = {
    SchemaVariant.FULL: FULL_COLUMNS,
    SchemaVariant.NOTIFICATION: NOTIFICATION_COLUMNS,
}


def contract_for(variant: SchemaVariant) -> ColumnContract:
    return _CONTRACTS[variant]
