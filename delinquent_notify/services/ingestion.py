from __future__ import annotations

import logging

from ..mapping.columns import contract_for
from ..mapping.row_mapper import map_row
from ..models.member_record import SchemaVariant
from ..models.parse_result import FILE_LEVEL_ROW, ParseError, ParseResult
from ..tabular.reader import (
    HEADER_ROW_OFFSET,
    FileDecodeError,
    IngestionError,
    MissingHeadersError,
    NoDataRowsError,
    Source,
    UnsupportedFileTypeError,
    read_table,
    resolve_extension,
)
from .aggregator import AgencyAggregator

logger = logging.getLogger(__name__)

"""Single-file ingestion pipeline.

read_table -> (optional header check) -> map_row per row -> AgencyAggregator.

Only structural problems are fatal (IngestionError subclasses). Row problems
become ParseError entries and processing carries on with the next row.
"""

__all__ = [
    "HEADER_ROW_OFFSET",
    "MALFORMED_ROW",
    "ingest_file",
    # re-exported fatal errors
    "IngestionError",
    "UnsupportedFileTypeError",
    "FileDecodeError",
    "NoDataRowsError",
    "MissingHeadersError",
]


MALFORMED_ROW = "MALFORMED_ROW"


def ingest_file(
    source: Source,
    extension: str | None = None,
    variant: SchemaVariant = SchemaVariant.FULL,
    check_headers: bool = False,
) -> ParseResult:
    """Ingest one CSV / XLSX / XLS file into a ParseResult.

    Args:
        source: Path or binary stream
        extension: Declared extension; taken from the path / stream name when None
        variant: Column contract to map rows with
        check_headers: Fail with MissingHeadersError when required columns are
            absent instead of rejecting every row

    Raises:
        UnsupportedFileTypeError, FileDecodeError, NoDataRowsError,
        MissingHeadersError
    """
    ext = resolve_extension(source, extension)
    table = read_table(source, ext)
    contract = contract_for(variant)

    if check_headers:
        missing = [c for c in contract.required if c not in table.columns]
        if missing:
            raise MissingHeadersError(missing)

    aggregator = AgencyAggregator()
    errors: list[ParseError] = []

    for row_number, raw in zip(table.row_numbers, table.rows):
        mapped = map_row(raw, variant)
        if mapped.record is not None:
            aggregator.add(mapped.record)
            continue
        logger.debug(f"row {row_number} rejected: {mapped.reason}")
        errors.append(
            ParseError(
                row_number=row_number,
                message=mapped.reason or "Unknown parsing error",
                raw_data=mapped.raw,
                error_type=mapped.error_type or "ROW_REJECTED",
            )
        )

    # 構造エラー (列数超過行) も同じエラーリストへ
    expected = len(table.columns)
    for line in table.malformed_lines:
        logger.debug(f"row {line.row_number} malformed: {len(line.fields)} fields")
        errors.append(
            ParseError(
                row_number=line.row_number,
                message=f"Too many fields: expected {expected} fields but parsed {len(line.fields)}",
                raw_data={str(i): v for i, v in enumerate(line.fields)},
                error_type=MALFORMED_ROW,
            )
        )
    # ファイル上の出現順 (位置不明の FILE_LEVEL_ROW は末尾)
    errors.sort(key=lambda e: (e.row_number == FILE_LEVEL_ROW, e.row_number))

    result = ParseResult(
        groups=aggregator.groups,
        errors=tuple(errors),
        total_members=aggregator.total_members,
        source_name=table.source_name,
        variant=variant,
    )
    if errors:
        logger.warning(f"{table.source_name}: {len(errors)} row(s) skipped due to errors")
    logger.info(
        f"ingested {table.source_name} variant={variant.value} "
        f"members={result.total_members} agencies={result.total_agencies}"
    )
    return result
