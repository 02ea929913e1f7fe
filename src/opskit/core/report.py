"""
Plain-text report sections shared by the system, perf, security and logs tools.

A Section is rendered either as a rich table on the terminal or as text in a
report file, so collectors only build data.
"""

from pathlib import Path
from typing import List, Sequence, Tuple

from pydantic import BaseModel, Field

from opskit.core.utils import display_timestamp


class Section(BaseModel):
    title: str
    rows: List[Tuple[str, str]] = Field(default_factory=list)
    lines: List[str] = Field(default_factory=list)

    def add(self, label: str, value) -> "Section":
        self.rows.append((label, "" if value is None else str(value)))
        return self

    def note(self, line: str) -> "Section":
        self.lines.append(line)
        return self


def render_text(sections: Sequence[Section]) -> str:
    out: List[str] = []
    for section in sections:
        out.append(f"==================== {section.title} ====================")
        width = max((len(label) for label, _ in section.rows), default=0)
        for label, value in section.rows:
            out.append(f"{label + ':':<{width + 1}} {value}")
        out.extend(section.lines)
        out.append("")
    return "\n".join(out)


def write_report(path: Path, title: str, sections: Sequence[Section]) -> Path:
    """Write ``title``, a generation timestamp and the sections to ``path``."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    header = f"{title}\n{'=' * len(title)}\nGenerated: {display_timestamp()}\n\n"
    path.write_text(header + render_text(sections), encoding="utf-8")
    return path
