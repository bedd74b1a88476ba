from __future__ import annotations

import csv
import io
import itertools
import math
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Any, Union

import pandas as pd

from ..models.parse_result import FILE_LEVEL_ROW

"""Tabular file reader (CSV / XLSX / XLS) built on pandas.

- The first non-empty row is the header row; header names are trimmed.
- Every cell is returned as text, so type coercion stays in the row mapper.
  Missing cells (blank spreadsheet cells, short CSV lines) are None.
- Blank CSV lines and fully empty spreadsheet rows are dropped everywhere,
  including above the header.
- Row numbers count non-empty rows with the header as 1, so the first data
  row is 2.
- CSV lines with more fields than the header are collected as malformed
  lines (with their row number) instead of aborting the read.

Fatal problems are raised as IngestionError subclasses.
"""

__all__ = [
    "SUPPORTED_EXTENSIONS",
    "HEADER_ROW_OFFSET",
    "Source",
    "IngestionError",
    "UnsupportedFileTypeError",
    "FileDecodeError",
    "NoDataRowsError",
    "MissingHeadersError",
    "MalformedLine",
    "TableData",
    "HeaderValidation",
    "resolve_extension",
    "read_table",
    "read_headers",
    "validate_headers",
]

SUPPORTED_EXTENSIONS = (".csv", ".xlsx", ".xls")

# 1 行目がヘッダ、最初のデータ行 = 2
HEADER_ROW_OFFSET = 2

Source = Union[str, Path, IO[bytes]]


class IngestionError(Exception):
    """Base class for fatal ingestion errors (abort the whole file)."""


class UnsupportedFileTypeError(IngestionError):
    """Raised before any parsing when the extension is not supported."""


class FileDecodeError(IngestionError):
    """Raised when the container itself cannot be decoded."""


class NoDataRowsError(IngestionError):
    """Raised when the file has a header but no data rows (or nothing at all)."""


class MissingHeadersError(IngestionError):
    """Raised when required columns are absent from the header row."""

    def __init__(self, missing_headers: list[str]) -> None:
        self.missing_headers = list(missing_headers)
        super().__init__(f"missing required columns: {', '.join(self.missing_headers)}")


@dataclass(frozen=True)
class MalformedLine:
    row_number: int  # FILE_LEVEL_ROW when the line could not be located
    fields: list[str]


@dataclass
class TableData:
    source_name: str
    columns: list[str]
    rows: list[dict[str, str | None]]  # 列名 -> セル文字列 (未トリム)
    row_numbers: list[int] = field(default_factory=list)  # rows と同じ並び
    malformed_lines: list[MalformedLine] = field(default_factory=list)


@dataclass(frozen=True)
class HeaderValidation:
    valid: bool
    missing_headers: list[str]
    found_headers: list[str]

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "missingHeaders": list(self.missing_headers),
            "foundHeaders": list(self.found_headers),
        }


def _source_name(source: Source) -> str:
    if isinstance(source, (str, Path)):
        return Path(source).name
    return Path(str(getattr(source, "name", ""))).name


def resolve_extension(source: Source, extension: str | None = None) -> str:
    """Return the normalized extension (".csv" etc.) or raise UnsupportedFileTypeError."""
    ext = extension
    if ext is None:
        ext = Path(_source_name(source)).suffix
    ext = ext.strip().lower()
    if ext and not ext.startswith("."):
        ext = "." + ext
    if ext not in SUPPORTED_EXTENSIONS:
        raise UnsupportedFileTypeError(f"unsupported file type: {ext or '<none>'}")
    return ext


def _readable(source: Source) -> str | Path | io.BytesIO:
    """Paths are handed to pandas as-is; streams are buffered so they can be read twice."""
    if isinstance(source, (str, Path)):
        return source
    data = source.read()
    if hasattr(source, "seek"):
        try:
            source.seek(0)
        except (OSError, ValueError):  # pragma: no cover - non seekable stream
            pass
    if isinstance(data, str):
        data = data.encode("utf-8")
    return io.BytesIO(data)


def _cell_text(value: Any) -> str | None:
    """Convert a decoded cell to text; missing / NaN cells become None."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, float):
        if math.isnan(value):
            return None
        # Excel 数値セル: 45.0 -> "45"
        return str(int(value)) if value.is_integer() else str(value)
    if pd.isna(value):
        return None
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)


def _read_frame(
    readable: str | Path | io.BytesIO,
    ext: str,
    nrows: int | None,
    bad_lines: list[list[str]],
) -> pd.DataFrame:
    def _on_bad_line(fields: list[str]) -> None:
        bad_lines.append(fields)
        return None  # skip the line

    try:
        if ext == ".csv":
            return pd.read_csv(
                readable,
                header=None,
                dtype=str,
                keep_default_na=False,
                skip_blank_lines=True,
                engine="python",  # on_bad_lines callable は python エンジンのみ
                on_bad_lines=_on_bad_line,
                encoding="utf-8-sig",
                nrows=nrows,
            )
        # 空行はヘッダより上にあっても落とすので nrows は dropna の後で適用
        df = pd.read_excel(readable, sheet_name=0, header=None, dtype=object)
    except pd.errors.EmptyDataError as e:
        raise NoDataRowsError("no data rows") from e
    except Exception as e:
        raise FileDecodeError(f"{ext.lstrip('.').upper()} parsing failed: {e}") from e
    df = df.dropna(how="all")
    return df if nrows is None else df.head(nrows)


def _wide_line_numbers(readable: str | Path | io.BytesIO, width: int) -> list[int]:
    """Row numbers (header = 1) of CSV records with more than ``width`` fields.

    Blank records are not counted, the same way pandas drops them before
    handing lines to on_bad_lines.
    """
    if isinstance(readable, io.BytesIO):
        data = readable.getvalue()
    else:
        data = Path(readable).read_bytes()
    numbers: list[int] = []
    ordinal = 0
    for fields in csv.reader(io.StringIO(data.decode("utf-8-sig"), newline="")):
        if not fields or (len(fields) == 1 and not fields[0].strip()):
            continue
        ordinal += 1
        if len(fields) > width:
            numbers.append(ordinal)
    return numbers


def _locate_malformed(
    readable: str | Path | io.BytesIO,
    width: int,
    bad_lines: list[list[str]],
) -> list[MalformedLine]:
    numbers = _wide_line_numbers(readable, width) if bad_lines else []
    if len(numbers) != len(bad_lines):
        # pandas と行の区切り方が食い違った場合は位置不明として扱う
        numbers = [FILE_LEVEL_ROW] * len(bad_lines)
    return [MalformedLine(row_number=n, fields=f) for n, f in zip(numbers, bad_lines)]


def read_table(source: Source, extension: str | None = None) -> TableData:
    """Decode a whole file into header + ordered raw rows.

    Raises:
        UnsupportedFileTypeError: extension not in SUPPORTED_EXTENSIONS
        FileDecodeError: container could not be decoded
        NoDataRowsError: no data rows after dropping blank rows
    """
    ext = resolve_extension(source, extension)
    readable = _readable(source)
    bad_lines: list[list[str]] = []
    df = _read_frame(readable, ext, None, bad_lines)
    if df.shape[0] < 1:
        raise NoDataRowsError("no data rows")

    columns = [(_cell_text(c) or "").strip() for c in df.iloc[0].tolist()]
    malformed = _locate_malformed(readable, len(columns), bad_lines)

    # 列数超過で読み飛ばされた行の番号を除いて振る
    taken = {m.row_number for m in malformed}
    ordinals = (n for n in itertools.count(HEADER_ROW_OFFSET) if n not in taken)
    rows: list[dict[str, str | None]] = []
    row_numbers: list[int] = []
    for values in df.iloc[1:].itertuples(index=False, name=None):
        number = next(ordinals)
        cells = [_cell_text(v) for v in values]
        if all(c is None for c in cells):
            continue
        rows.append(dict(zip(columns, cells, strict=False)))
        row_numbers.append(number)

    if not rows:
        raise NoDataRowsError("no data rows")
    return TableData(
        source_name=_source_name(source),
        columns=columns,
        rows=rows,
        row_numbers=row_numbers,
        malformed_lines=malformed,
    )


def read_headers(source: Source, extension: str | None = None) -> list[str]:
    """Read only the header row (first non-empty row). Empty file -> []."""
    ext = resolve_extension(source, extension)
    try:
        df = _read_frame(_readable(source), ext, 1, [])
    except NoDataRowsError:
        return []
    if df.shape[0] < 1:
        return []
    return [(_cell_text(c) or "").strip() for c in df.iloc[0].tolist()]


def validate_headers(
    source: Source,
    required: Iterable[str],
    extension: str | None = None,
) -> HeaderValidation:
    """Check the header row against a required column set.

    Matching is exact after trimming, case-sensitive. missing_headers keeps
    the order of ``required``.
    """
    found = read_headers(source, extension)
    missing = [h for h in required if h not in found]
    return HeaderValidation(valid=not missing, missing_headers=missing, found_headers=found)
