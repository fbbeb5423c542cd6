"""Line normalization for raw TLE text.

TLE files arrive with every line-ending convention in use (CRLF from
Windows tools, bare CR from old Mac exports, LF everywhere else), stray
tabs, trailing blanks and ``#`` metadata comments. Everything downstream
works on the clean line list produced here.
"""
from __future__ import annotations

from dataclasses import dataclass

COMMENT_PREFIX = "#"


@dataclass(frozen=True)
class NormalizedText:
    """Clean TLE lines plus the comments that were set aside.

    Attributes:
        lines: Non-empty, non-comment lines, trimmed, in input order.
        comments: ``#`` lines, trimmed, in input order.
    """
    lines: tuple[str, ...]
    comments: tuple[str, ...]

    def __len__(self) -> int:
        return len(self.lines)


def normalize_line_endings(text: str) -> str:
    """Convert CRLF and bare CR line endings to LF."""
    return text.replace("\r\n", "\n").replace("\r", "\n")


def normalize_lines(text: str) -> NormalizedText:
    """Split raw text into clean TLE lines and comments.

    Tabs become spaces before trimming, empty lines are dropped and lines
    starting with ``#`` are routed to ``comments``. Never raises.

    Args:
        text: Raw TLE text.

    Returns:
        The normalized line and comment sequences.
    """
    lines: list[str] = []
    comments: list[str] = []

    for raw in normalize_line_endings(text).split("\n"):
        line = raw.replace("\t", " ").strip()
        if not line:
            continue
        if line.startswith(COMMENT_PREFIX):
            comments.append(line)
        else:
            lines.append(line)

    return NormalizedText(tuple(lines), tuple(comments))
