from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

from .parse_result import ParseError

"""ErrorRecord model for the row error log.

Each rejected row of an ingestion becomes one JSON Lines entry with a fixed
key set: timestamp, file, row, error_type, message. row=-1 marks file-level
problems where the row cannot be determined.
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        file: Source file name being ingested
        row: Row number (1-based, header = 1). -1 for file-level errors
        error_type: Error classification in UPPER_SNAKE_CASE format
        message: Human readable reason
    """
    timestamp: str  # ISO8601 UTC
    file: str
    row: int
    error_type: str  # UPPER_SNAKE
    message: str

    @staticmethod
    def create(file: str, row: int, error_type: str, message: str) -> ErrorRecord:
        """Create a new ErrorRecord stamped with the current UTC time."""
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            file=file,
            row=row,
            error_type=error_type,
            message=message,
        )

    @staticmethod
    def from_parse_error(file: str, error: ParseError) -> ErrorRecord:
        return ErrorRecord.create(
            file=file,
            row=error.row_number,
            error_type=error.error_type,
            message=error.message,
        )

    def to_json_line(self) -> str:
        # 追加キー阻止: dataclass -> dict して json.dumps
        return json.dumps(asdict(self), ensure_ascii=False)
