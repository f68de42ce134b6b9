"""Tabular codec — delimited text to records and back.

Records are plain ``dict[str, str]`` keyed by column name, in column order.
Parsing and writing go through Polars with every column typed as a string,
so postcodes, phone numbers and ids keep their leading zeros and formatting.
"""

from __future__ import annotations

import csv
import io
import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

import polars as pl

from .errors import EncodeError, ParseError

log = logging.getLogger(__name__)

Record = dict[str, str]

BYTE_ORDER_MARK = "\ufeff"
DEFAULT_DELIMITER = ","

_SCALAR_TYPES = (str, int, float, bool)


def _check_row_widths(text: str, delimiter: str) -> None:
    """Reject rows whose field count differs from the first row.

    Polars pads short rows with nulls, which would be indistinguishable from
    empty cells after decoding, so widths are checked before parsing.
    Blank lines are skipped.
    """
    reader = csv.reader(io.StringIO(text), delimiter=delimiter)
    width = None
    try:
        for row in reader:
            if not row:
                continue
            if width is None:
                width = len(row)
            elif len(row) != width:
                raise ParseError(
                    f"Malformed delimited text: line {reader.line_num} has "
                    f"{len(row)} field(s), expected {width}"
                )
    except csv.Error as e:
        raise ParseError(f"Malformed delimited text: {e}") from e


def decode(
    text: str,
    *,
    has_header: bool = True,
    has_bom: bool = True,
    delimiter: str = DEFAULT_DELIMITER,
) -> list[Record]:
    """Parse delimited text into a list of records.

    Args:
        text: The delimited text.
        has_header: First row holds column names. Otherwise columns are
            named ``column_1 .. column_n``.
        has_bom: A leading UTF-8 byte-order mark may be present and is
            stripped. A byte-order mark that is not declared (or survives
            stripping) is an encoding error.
        delimiter: Single-character field separator.

    Empty cells decode to ``""``. Raises :class:`ParseError` on empty input,
    a row whose field count differs from the first row, or any other parse
    failure.
    """
    if not isinstance(text, str):
        raise ParseError(
            f"Delimited text must be a string, got {type(text).__name__}"
        )
    if has_bom and text.startswith(BYTE_ORDER_MARK):
        text = text[len(BYTE_ORDER_MARK) :]
    if text.startswith(BYTE_ORDER_MARK):
        raise ParseError("Unreadable encoding: unexpected byte-order mark")
    if not text.strip():
        raise ParseError("No delimited text to decode")
    _check_row_widths(text, delimiter)

    try:
        df = pl.read_csv(
            text.encode("utf-8"),
            has_header=has_header,
            separator=delimiter,
            infer_schema_length=0,
        )
    except pl.exceptions.PolarsError as e:
        raise ParseError(f"Malformed delimited text: {e}") from e

    records = [
        {k: ("" if v is None else v) for k, v in row.items()}
        for row in df.iter_rows(named=True)
    ]
    log.debug("Decoded %d row(s) x %d column(s)", len(records), df.width)
    return records


def header_of(text: str, *, has_bom: bool = True) -> list[str]:
    """Return the column names of delimited text without decoding rows."""
    if has_bom and text.startswith(BYTE_ORDER_MARK):
        text = text[len(BYTE_ORDER_MARK) :]
    if not text.strip():
        return []
    try:
        df = pl.read_csv(text.encode("utf-8"), n_rows=1, infer_schema_length=0)
    except pl.exceptions.PolarsError as e:
        raise ParseError(f"Malformed header row: {e}") from e
    return df.columns


def _cell(value: Any, column: str, row: int) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, _SCALAR_TYPES):
        return str(value)
    raise EncodeError(
        f"Row {row}, column {column!r}: cannot write "
        f"{type(value).__name__} value as a delimited cell"
    )


def encode(
    records: Iterable[Mapping[str, Any]],
    header: Sequence[str],
    *,
    delimiter: str = DEFAULT_DELIMITER,
) -> str:
    """Write records as delimited text with columns in *header* order.

    A header absent from a record is written as an empty cell; fields not
    in *header* are left out. Cells holding the delimiter, a quote or a
    newline are quoted. An empty header yields ``""``.
    """
    columns_order = list(dict.fromkeys(header))
    if not columns_order:
        return ""

    columns: dict[str, list[str]] = {name: [] for name in columns_order}
    for row, record in enumerate(records):
        for name in columns_order:
            columns[name].append(_cell(record.get(name), name, row))

    try:
        df = pl.DataFrame(columns, schema={name: pl.Utf8 for name in columns_order})
        return df.write_csv(separator=delimiter, quote_style="necessary")
    except pl.exceptions.PolarsError as e:
        raise EncodeError(f"Failed to write delimited text: {e}") from e
