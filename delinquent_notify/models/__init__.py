"""Domain models for the delinquent member ingestion & notification tool.

Everything here is a frozen dataclass (or enum) and converts to plain
JSON-safe data through to_dict().
"""

from .dispatch_result import BatchDispatchReport, DispatchOutcome, ResultKind
from .error_record import ErrorRecord
from .member_record import MemberRecord, SchemaVariant
from .parse_result import FILE_LEVEL_ROW, AgencyGroup, ParseError, ParseResult

__all__ = [
    # Ingestion models
    "MemberRecord",
    "SchemaVariant",
    "ParseError",
    "AgencyGroup",
    "ParseResult",
    "FILE_LEVEL_ROW",
    # Dispatch models
    "ResultKind",
    "DispatchOutcome",
    "BatchDispatchReport",
    # Logging
    "ErrorRecord",
]
