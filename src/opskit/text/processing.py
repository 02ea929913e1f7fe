"""
Text file helpers: CSV and JSON summaries, pattern extraction, cleanup and stats.
"""

import csv
import json
import re
from collections import Counter
from pathlib import Path
from typing import List, Optional, Pattern, Tuple

from pydantic import BaseModel, Field

from opskit.core.exceptions import PreconditionError, UsageError

PREVIEW_ROWS = 5
FIRST_COLUMN_VALUES = 10
JSON_PREVIEW_LINES = 20
LOG_MATCH_LIMIT = 20
TOP_WORDS = 10
TAB_SIZE = 4
# POSIX [:space:] minus newline; lines are split on "\n" only
TRAILING_WHITESPACE = " \t\r\f\v"


class CsvSummary(BaseModel):
    preview: List[List[str]] = Field(default_factory=list)
    column_count: int = 0
    row_count: int = 0
    first_column: List[str] = Field(default_factory=list)


class JsonSummary(BaseModel):
    valid: bool
    preview: List[str] = Field(default_factory=list)
    error: Optional[str] = None


class TextStats(BaseModel):
    lines: int
    words: int
    characters: int
    size: int
    top_words: List[Tuple[str, int]] = Field(default_factory=list)


def _require_file(path: Path) -> Path:
    path = Path(path)
    if not path.is_file():
        raise PreconditionError(f"File not found: {path}")
    return path


def _compile(regex: str) -> Pattern:
    if not regex:
        raise UsageError("Pattern required")
    try:
        return re.compile(regex)
    except re.error as e:
        raise UsageError(f"Invalid pattern '{regex}': {e}") from e


def summarize_csv(path: Path) -> CsvSummary:
    path = _require_file(path)
    summary = CsvSummary()
    with open(path, "r", encoding="utf-8", errors="replace", newline="") as f:
        for index, row in enumerate(csv.reader(f)):
            if index == 0:
                summary.column_count = len(row)
            if index < PREVIEW_ROWS:
                summary.preview.append(row)
            if index < FIRST_COLUMN_VALUES:
                summary.first_column.append(row[0] if row else "")
            summary.row_count += 1
    return summary


def summarize_json(path: Path) -> JsonSummary:
    path = _require_file(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        return JsonSummary(valid=False, error=str(e))
    pretty = json.dumps(data, indent=4, ensure_ascii=False).splitlines()
    return JsonSummary(valid=True, preview=pretty[:JSON_PREVIEW_LINES])


def grep_lines(path: Path, regex: str) -> Tuple[List[str], int]:
    """First 20 matching lines and the total match count."""
    path = _require_file(path)
    pattern = _compile(regex)
    shown, total = [], 0
    with open(path, "r", encoding="utf-8", errors="replace") as f:
        for line in f:
            if pattern.search(line):
                total += 1
                if len(shown) < LOG_MATCH_LIMIT:
                    shown.append(line.rstrip("\n"))
    return shown, total


def extract(path: Path, regex: str) -> List[str]:
    """
    Every match of ``regex`` in the file. With capture groups the groups
    are joined by tabs, like ``re.findall`` rows.
    """
    path = _require_file(path)
    pattern = _compile(regex)
    text = path.read_text(encoding="utf-8", errors="replace")
    results = []
    for match in pattern.findall(text):
        results.append("\t".join(match) if isinstance(match, tuple) else match)
    return results


def format_text(text: str) -> str:
    """
    Strip trailing whitespace, expand tabs, collapse runs of blank lines to
    one and end with exactly one newline.
    """
    out: List[str] = []
    for line in text.split("\n"):
        line = line.expandtabs(TAB_SIZE).rstrip(TRAILING_WHITESPACE)
        if not line and (not out or not out[-1]):
            continue
        out.append(line)
    while out and not out[-1]:
        out.pop()
    return "\n".join(out) + "\n" if out else ""


def format_file(path: Path, in_place: bool = False) -> bytes:
    """
    Format a file and return the result as bytes.

    Bytes that are not valid UTF-8 pass through unchanged.
    """
    path = _require_file(path)
    text = path.read_bytes().decode("utf-8", errors="surrogateescape")
    formatted = format_text(text).encode("utf-8", errors="surrogateescape")
    if in_place:
        path.write_bytes(formatted)
    return formatted


def text_stats(path: Path) -> TextStats:
    path = _require_file(path)
    data = path.read_bytes()
    text = data.decode("utf-8", errors="replace")
    words = text.split()
    counts = Counter(word.lower() for word in words)
    return TextStats(
        lines=text.count("\n"),
        words=len(words),
        characters=len(data),
        size=path.stat().st_size,
        top_words=counts.most_common(TOP_WORDS),
    )
