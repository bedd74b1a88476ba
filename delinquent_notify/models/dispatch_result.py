from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

"""Dispatch result models: DispatchOutcome and BatchDispatchReport.

One DispatchOutcome per attempted notification. The report partitions them
into sent / failed after every attempt has settled.
"""

__all__ = [
    "ResultKind",
    "DispatchOutcome",
    "BatchDispatchReport",
]


class ResultKind(Enum):
    SENT = "sent"
    FAILED = "failed"


@dataclass(frozen=True)
class DispatchOutcome:
    record_identity: str  # member name or agency name
    recipient_address: str
    result_kind: ResultKind
    provider_reference: str | None = None  # provider message id on success
    failure_detail: Any = None  # error text or decoded provider error body

    @property
    def sent(self) -> bool:
        return self.result_kind is ResultKind.SENT

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "identity": self.record_identity,
            "recipient": self.recipient_address,
            "status": self.result_kind.value,
        }
        if self.provider_reference is not None:
            data["email_id"] = self.provider_reference
        if self.failure_detail is not None:
            data["error"] = self.failure_detail
        return data


@dataclass(frozen=True)
class BatchDispatchReport:
    """Aggregated dispatch outcomes.

    overall_success is True iff nothing failed.
    """
    sent: tuple[DispatchOutcome, ...]
    failed: tuple[DispatchOutcome, ...]

    @property
    def overall_success(self) -> bool:
        return not self.failed

    @property
    def total(self) -> int:
        return len(self.sent) + len(self.failed)

    @property
    def message(self) -> str:
        return f"{len(self.sent)} of {self.total} notifications sent successfully"

    @classmethod
    def from_outcomes(cls, outcomes: list[DispatchOutcome]) -> BatchDispatchReport:
        return cls(
            sent=tuple(o for o in outcomes if o.sent),
            failed=tuple(o for o in outcomes if not o.sent),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.overall_success,
            "message": self.message,
            "sent": [o.to_dict() for o in self.sent],
            "failed": [o.to_dict() for o in self.failed],
        }
