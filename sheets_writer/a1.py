"""A1 notation helpers.

Sheet titles are always single quoted so that titles which look like cell
references (``AA2``) or contain ``!``, spaces or quotes are parsed as titles
by the Sheets API.  The discovery client takes care of URL encoding the
resulting range when it is placed in a request path.
"""

from __future__ import annotations

import re
from typing import List, Tuple

_RANGE_RE = re.compile(r"^(?P<title>'(?:[^']|'')*')!(?P<first>[A-Z]+)(?P<start>\d+):(?P<last>[A-Z]+)(?P<end>\d+)$")


def column_letter(index: int) -> str:
    """Return the spreadsheet column letter for a 1-indexed column index."""

    if index < 1:
        raise ValueError("Column index must be >= 1")
    letters: List[str] = []
    while index:
        index, remainder = divmod(index - 1, 26)
        letters.append(chr(65 + remainder))
    return "".join(reversed(letters))


def column_index(letters: str) -> int:
    """Inverse of :func:`column_letter`."""

    if not letters or not letters.isalpha() or not letters.isupper():
        raise ValueError(f"Invalid column letters: {letters!r}")
    index = 0
    for char in letters:
        index = index * 26 + (ord(char) - 64)
    return index


def quote_title(title: str) -> str:
    """Return ``title`` quoted according to A1 notation rules."""

    return "'" + (title or "").replace("'", "''") + "'"


def unquote_title(quoted: str) -> str:
    if len(quoted) >= 2 and quoted.startswith("'") and quoted.endswith("'"):
        return quoted[1:-1].replace("''", "'")
    return quoted


def build_range(sheet_title: str, column_count: int, row_offset: int = 1, row_limit: int = 1000) -> str:
    """Return the range covering ``row_limit`` rows from ``row_offset``.

    >>> build_range("Sheet 1", 3, 1, 10)
    "'Sheet 1'!A1:C10"
    """

    if row_offset < 1:
        raise ValueError("Row offset must be >= 1")
    if row_limit < 1:
        raise ValueError("Row limit must be >= 1")
    last_column = column_letter(column_count)
    end_row = row_offset + row_limit - 1
    return f"{quote_title(sheet_title)}!A{row_offset}:{last_column}{end_row}"


def parse_range(range_spec: str) -> Tuple[str, int, int, int]:
    """Split a range built by :func:`build_range`.

    Returns ``(sheet_title, column_count, row_offset, row_limit)``.
    """

    match = _RANGE_RE.match(range_spec)
    if not match or match.group("first") != "A":
        raise ValueError(f"Unsupported range: {range_spec!r}")
    start = int(match.group("start"))
    end = int(match.group("end"))
    return (
        unquote_title(match.group("title")),
        column_index(match.group("last")),
        start,
        end - start + 1,
    )


__all__ = [
    "build_range",
    "column_index",
    "column_letter",
    "parse_range",
    "quote_title",
    "unquote_title",
]
