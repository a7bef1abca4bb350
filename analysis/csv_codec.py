"""Comma-delimited text <-> Dataset codec.

The parser is deliberately simple: it splits on every comma, so commas inside
quoted fields are NOT honored on input. ``serialize`` does quote such fields,
which means the round trip only holds for values without delimiters.
"""
import logging
from typing import List, Optional

from .errors import FormatError
from .models import Dataset

logger = logging.getLogger(__name__)

DELIMITER = ","
QUOTE_CHARS = ('"', "'")


def _clean_field(raw: str) -> str:
    """Trim whitespace and strip one layer of surrounding quotes"""
    value = raw.strip()
    if value[:1] in QUOTE_CHARS:
        value = value[1:]
    if value[-1:] in QUOTE_CHARS:
        value = value[:-1]
    return value


def _split_line(line: str) -> List[str]:
    return [_clean_field(cell) for cell in line.split(DELIMITER)]


def parse(text: str) -> Dataset:
    """Parse delimited text into a Dataset.

    Raises:
        FormatError: fewer than two non-blank lines (header + one data row).
    """
    if text is None:
        raise FormatError("No table text provided")

    if text.startswith("\ufeff"):
        text = text[1:]
    lines = [line for line in text.splitlines() if line.strip()]
    if len(lines) < 2:
        raise FormatError(
            f"Expected a header line and at least one data line, got {len(lines)} non-blank line(s)"
        )

    headers = _split_line(lines[0])
    rows = []
    for line in lines[1:]:
        values = _split_line(line)
        row = {}
        # later duplicates overwrite earlier ones
        for i, h in enumerate(headers):
            row[h] = values[i] if i < len(values) else ""
        rows.append(row)

    logger.debug(f"Parsed table with {len(headers)} columns and {len(rows)} rows")
    return Dataset(headers=headers, rows=rows)


def parse_bytes(data: bytes, encoding: Optional[str] = None) -> Dataset:
    """Decode an uploaded file and parse it; latin-1 never fails as a last resort"""
    if encoding:
        return parse(data.decode(encoding))
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError:
        logger.info("Upload is not valid UTF-8; decoding as latin-1")
        text = data.decode("latin-1")
    return parse(text)


def _quote(value: str) -> str:
    if any(ch in value for ch in (DELIMITER, '"', "\n", "\r")):
        return '"' + value.replace('"', '""') + '"'
    return value


def _join(values: List[str]) -> str:
    line = DELIMITER.join(_quote(v) for v in values)
    # only a single blank cell yields a blank line, which parse would skip
    if not line.strip():
        return '""'
    return line


def serialize(dataset: Dataset) -> str:
    """Inverse of ``parse`` for delimiter-free values"""
    lines = [_join(dataset.headers)]
    for row in dataset.rows:
        lines.append(_join([row.get(h, "") for h in dataset.headers]))
    return "\n".join(lines)
