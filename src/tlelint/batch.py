"""Multi-TLE files: splitting, filtering and tabular summaries.

Catalog files from CelesTrak or Space-Track hold hundreds of element sets
back to back, some with name lines and some without. This module splits
them into single TLEs, runs either parser over each and collects the
outcome into pandas DataFrames for inspection.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

import pandas as pd

from .elements import OrbitalElements
from .fields import ParsedRecord
from .issues import TLEError
from .normalize import COMMENT_PREFIX, normalize_line_endings
from .state_machine import ParseResult, StateMachineOptions, TLEStateMachineParser
from .tle_parser import ParseOptions, parse_tle

logger = logging.getLogger(__name__)

RESULT_COLUMNS = [
    "index", "satellite_name", "satellite_number", "success", "final_state",
    "format", "errors", "warnings", "recovery_actions",
]
ISSUE_COLUMNS = ["index", "satellite_number", "severity", "code", "message", "state"]


@dataclass
class RecordFilter:
    """Select records by catalog number, name or classification.

    Every criterion left as None matches everything.

    Attributes:
        satellite_numbers: Catalog numbers to keep.
        name_pattern: Regular expression searched (case-insensitive) in the
            satellite name.
        classifications: Classification letters to keep, e.g. ``{"U"}``.
    """
    satellite_numbers: Optional[Iterable[int]] = None
    name_pattern: Optional[str] = None
    classifications: Optional[Iterable[str]] = None
    _regex: Optional[re.Pattern] = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.satellite_numbers is not None:
            self.satellite_numbers = frozenset(int(n) for n in self.satellite_numbers)
        if self.classifications is not None:
            self.classifications = frozenset(c.upper() for c in self.classifications)
        if self.name_pattern is not None:
            self._regex = re.compile(self.name_pattern, re.IGNORECASE)

    def matches(self, record: ParsedRecord) -> bool:
        if self.satellite_numbers is not None:
            number = record.get("satellite_number1") or ""
            if not number.isdigit() or int(number) not in self.satellite_numbers:
                return False
        if self._regex is not None and not self._regex.search(record.get("satellite_name") or ""):
            return False
        if self.classifications is not None and record.get("classification") not in self.classifications:
            return False
        return True


def split_tles(text: str) -> list[str]:
    """Split multi-TLE text into single 2- or 3-line TLE strings.

    A line starting with ``1`` followed by one starting with ``2`` is a bare
    element set; any other line directly before such a pair is its name.
    ``#`` comments are carried along with the TLE that follows them. Lines
    that fit neither pattern are logged and dropped.

    Args:
        text: Contents of a TLE file.

    Returns:
        One newline-joined string per TLE, in file order.
    """
    lines = [line.strip() for line in normalize_line_endings(text).split("\n") if line.strip()]
    blocks: list[str] = []
    comments: list[str] = []
    i = 0

    while i < len(lines):
        if lines[i].startswith(COMMENT_PREFIX):
            comments.append(lines[i])
            i += 1
        elif (
            lines[i].startswith("1")
            and i + 1 < len(lines)
            and lines[i + 1].startswith("2")
        ):
            blocks.append("\n".join(comments + lines[i:i + 2]))
            comments = []
            i += 2
        elif (
            i + 2 < len(lines)
            and lines[i + 1].startswith("1")
            and lines[i + 2].startswith("2")
        ):
            blocks.append("\n".join(comments + lines[i:i + 3]))
            comments = []
            i += 3
        else:
            logger.warning("Skipping unpaired line %d: %r", i + 1, lines[i][:30])
            i += 1

    return blocks


def parse_batch(
    text: str,
    options: Optional[ParseOptions] = None,
    *,
    continue_on_error: bool = False,
    skip: int = 0,
    limit: Optional[int] = None,
    record_filter: Optional[RecordFilter] = None,
) -> list[ParsedRecord]:
    """Parse every TLE in ``text`` with :func:`~tlelint.tle_parser.parse_tle`.

    Args:
        text: Contents of a TLE file.
        options: Options applied to every TLE.
        continue_on_error: Log and skip TLEs that fail instead of raising.
        skip: Number of matching records to drop from the front.
        limit: Maximum number of records to return.
        record_filter: Keep only records it matches.

    Returns:
        Parsed records in file order.

    Raises:
        TLEValidationError: On the first failing TLE, unless
            ``continue_on_error`` is set.
    """
    records: list[ParsedRecord] = []
    matched = 0

    for n, block in enumerate(split_tles(text), start=1):
        if limit is not None and len(records) >= limit:
            break
        try:
            record = parse_tle(block, options)
        except TLEError as exc:
            if not continue_on_error:
                raise
            logger.warning("Skipping TLE %d: %s", n, str(exc).splitlines()[0])
            continue

        if record_filter is not None and not record_filter.matches(record):
            continue
        matched += 1
        if matched <= skip:
            continue
        records.append(record)

    logger.debug("Parsed %d record(s)", len(records))
    return records


def scan_batch(text: str, options: Optional[StateMachineOptions] = None) -> list[ParseResult]:
    """Run the recovering state-machine parser over every TLE in ``text``."""
    parser = TLEStateMachineParser(options)
    return [parser.parse(block) for block in split_tles(text)]


def results_frame(results: list[ParseResult]) -> pd.DataFrame:
    """One row per state-machine result: identity, outcome and issue counts."""
    rows = []
    for index, result in enumerate(results):
        data = result.data or {}
        rows.append({
            "index": index,
            "satellite_name": data.get("satellite_name"),
            "satellite_number": data.get("satellite_number1"),
            "success": result.success,
            "final_state": result.final_state.value,
            "format": result.context.format.value,
            "errors": len(result.errors),
            "warnings": len(result.warnings),
            "recovery_actions": len(result.recovery_actions),
        })
    return pd.DataFrame(rows, columns=RESULT_COLUMNS)


def issues_frame(results: list[ParseResult]) -> pd.DataFrame:
    """One row per issue across all results, tagged with the TLE it came from.

    Issue details (field, expected, actual, ...) become extra columns.
    """
    rows = []
    for index, result in enumerate(results):
        number = (result.data or {}).get("satellite_number1")
        for issue in result.issues:
            rows.append({"index": index, "satellite_number": number, **issue.to_dict()})

    if not rows:
        return pd.DataFrame(columns=ISSUE_COLUMNS)
    return pd.DataFrame(rows)


def elements_frame(records: Iterable[ParsedRecord]) -> pd.DataFrame:
    """Typed orbital elements for every convertible record, sorted by epoch.

    Records that cannot be converted are logged and left out.
    """
    rows = []
    for record in records:
        try:
            rows.append(OrbitalElements.from_record(record).to_dict())
        except ValueError as exc:
            logger.warning("Skipping %r: %s", record, exc)

    if not rows:
        return pd.DataFrame()

    df = pd.DataFrame(rows)
    return df.sort_values("epoch").reset_index(drop=True)


def load_tle_file(filepath: str | Path) -> str:
    """Read a local TLE file (2-line or 3-line format)."""
    return Path(filepath).read_text()
