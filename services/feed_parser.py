"""
Member feed parser.

Turns the spreadsheet CSV export into an ordered list of rows keyed by
normalized header. The format is deliberately simple: one record per
line (no embedded newlines), comma-delimited, optionally double-quoted
fields, with ``""`` inside a quoted field standing for a literal quote.
"""

import logging
import re
from typing import List

from models.society import FeedRow

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")
_QUOTE_CHARS_RE = re.compile(r"[\"']")


def normalize_header(header: str) -> str:
    """Normalize a header cell: 'Flat No.' -> 'flatno.', 'Name (Primary Member)' -> 'name(primarymember)'."""
    header = header.replace("\ufeff", "").strip().lower()
    header = _WHITESPACE_RE.sub("", header)
    return _QUOTE_CHARS_RE.sub("", header)


def _clean_field(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value.startswith('"') and value.endswith('"'):
        value = value[1:-1]
    return value


def split_fields(line: str) -> List[str]:
    """
    Split one CSV line into trimmed fields.

    A double quote toggles quoted mode; commas inside quotes are kept as
    content. Quote characters that toggle the mode are not part of the value.
    """
    values = []
    current = []
    in_quotes = False
    i = 0

    while i < len(line):
        char = line[i]
        if char == '"':
            if in_quotes and i + 1 < len(line) and line[i + 1] == '"':
                current.append('"')
                i += 2
                continue
            in_quotes = not in_quotes
        elif char == "," and not in_quotes:
            values.append(_clean_field("".join(current)))
            current = []
        else:
            current.append(char)
        i += 1

    values.append(_clean_field("".join(current)))
    return values


def parse_feed(text: str) -> List[FeedRow]:
    """
    Parse the raw feed into rows.

    Records are separated by "\\n" only (a trailing "\\r" is dropped), so
    other Unicode line breaks inside a cell stay part of the value.
    Returns an empty list when there is no header plus at least one line.
    Blank lines are skipped but still counted in ``line_number``. Short
    lines are padded with "" and surplus cells beyond the header count
    are dropped.
    """
    lines = [line.rstrip("\r") for line in text.split("\n")]
    if len(lines) < 2:
        return []

    headers = [normalize_header(h) for h in split_fields(lines[0])]
    logger.debug(f"Parsed headers: {headers}")

    rows: List[FeedRow] = []
    for line_number, line in enumerate(lines[1:], start=1):
        line = line.strip()
        if not line:
            continue

        values = split_fields(line)
        row = FeedRow(line_number=line_number)
        for idx, header in enumerate(headers):
            row[header] = values[idx] if idx < len(values) else ""
        rows.append(row)

    logger.debug(f"Parsed {len(rows)} rows from feed")
    return rows
