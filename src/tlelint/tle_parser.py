"""Validation-first TLE parsing.

Two entry points share one pipeline (normalize, extract, check):

    - :func:`validate_tle` returns a :class:`ValidationResult` carrying every
      issue found, without raising for bad data.
    - :func:`parse_tle` returns a :class:`~tlelint.fields.ParsedRecord` or
      raises :class:`~tlelint.issues.TLEValidationError` listing every
      problem at once.

Which issues are fatal is decided by :class:`ParseOptions`. Critical issues
always are; ``error`` issues are fatal in strict mode and demoted to
warnings in permissive mode; checksum errors can be demoted on their own
with ``strict_checksums=False``.

References:
    - Kelso, T.S. "CelesTrak TLE Format Documentation"
      https://celestrak.org/columns/v04n03/

Example:
    >>> record = parse_tle(open("iss.tle").read())
    >>> record.satellite_name
    'ISS (ZARYA)'
    >>> validate_tle(text, ParseOptions.permissive()).is_valid
    True
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from .diagnostics import run_diagnostics
from .fields import LINE1_FIELDS, LINE2_FIELDS, ParsedRecord, extract_fields
from .issues import (
    ErrorCode,
    Issue,
    ParserState,
    Severity,
    TLEFormatError,
    TLEValidationError,
    make_issue,
    split_issues,
)
from .normalize import normalize_lines
from .validator import check_line, check_ranges, check_satellite_name, check_satellite_numbers

logger = logging.getLogger(__name__)

CHECKSUM_CODES = frozenset({ErrorCode.CHECKSUM_MISMATCH, ErrorCode.INVALID_CHECKSUM_CHARACTER})


class ParseMode(str, Enum):
    STRICT = "strict"
    PERMISSIVE = "permissive"


# Configuration
@dataclass(frozen=True)
class ParseOptions:
    """Options for :func:`validate_tle` and :func:`parse_tle`.

    Attributes:
        validate: Run structure, range and advisory checks. When False,
            fields are only extracted.
        mode: ``strict`` keeps error-severity issues fatal, ``permissive``
            demotes them to warnings. Strings are accepted.
        strict_checksums: Treat checksum problems as errors.
        validate_ranges: Run numeric range checks.
        include_warnings: Attach warnings to the returned record.
        include_comments: Attach ``#`` comment lines to the returned record.
        reference_time: "Now" for the stale-epoch check (naive UTC).
    """
    validate: bool = True
    mode: ParseMode = ParseMode.STRICT
    strict_checksums: bool = True
    validate_ranges: bool = True
    include_warnings: bool = True
    include_comments: bool = True
    reference_time: Optional[datetime] = None

    def __post_init__(self) -> None:
        try:
            object.__setattr__(self, "mode", ParseMode(self.mode))
        except ValueError:
            raise ValueError(
                f"Invalid parse mode {self.mode!r}; expected 'strict' or 'permissive'"
            ) from None

    @classmethod
    def strict(cls) -> ParseOptions:
        """Every check on, every error fatal."""
        return cls()

    @classmethod
    def permissive(cls) -> ParseOptions:
        """Accept anything structurally parseable; errors become warnings."""
        return cls(mode=ParseMode.PERMISSIVE, strict_checksums=False, validate_ranges=False)

    @classmethod
    def fast(cls) -> ParseOptions:
        """Extraction only, nothing attached."""
        return cls(validate=False, include_warnings=False, include_comments=False)

    @classmethod
    def realtime(cls) -> ParseOptions:
        """Lenient and quiet, for live feeds."""
        return cls(
            mode=ParseMode.PERMISSIVE,
            strict_checksums=False,
            validate_ranges=False,
            include_warnings=False,
            include_comments=False,
        )

    @classmethod
    def batch(cls) -> ParseOptions:
        """Strict checks without per-record warnings or comments."""
        return cls(include_warnings=False, include_comments=False)

    @classmethod
    def recovery(cls) -> ParseOptions:
        """Extraction only, keeping warnings and comments for inspection."""
        return cls(validate=False)

    @classmethod
    def legacy(cls) -> ParseOptions:
        """For old catalogs with unreliable checksums and ranges."""
        return cls(mode=ParseMode.PERMISSIVE, strict_checksums=False, validate_ranges=False)

    @classmethod
    def for_profile(cls, name: str) -> ParseOptions:
        """Look up a preset by name (``strict``, ``permissive``, ``fast``, ...)."""
        if name not in PROFILES:
            raise ValueError(
                f"Unknown parser profile {name!r}; expected one of: {', '.join(PROFILES)}"
            )
        return getattr(cls, name)()


PROFILES = ("strict", "permissive", "fast", "realtime", "batch", "recovery", "legacy")


# Result
@dataclass(frozen=True)
class ValidationResult:
    """Outcome of :func:`validate_tle`.

    Attributes:
        is_valid: No error or critical issue remains after the severity policy.
        issues: Every issue, after the severity policy, in the order found.
        record: Extracted fields, or None when the line count was unusable.
        comments: ``#`` lines found in the input.
    """
    is_valid: bool
    issues: tuple[Issue, ...]
    record: Optional[ParsedRecord] = None
    comments: tuple[str, ...] = ()

    @property
    def errors(self) -> tuple[Issue, ...]:
        return split_issues(self.issues)[0]

    @property
    def warnings(self) -> tuple[Issue, ...]:
        return split_issues(self.issues)[1]


# Entry points
def validate_tle(text: str, options: Optional[ParseOptions] = None) -> ValidationResult:
    """Run every check on one TLE and collect all issues.

    Args:
        text: Two or three TLE lines, optionally preceded by ``#`` comments.
        options: Check configuration. Defaults to ``ParseOptions()``.

    Returns:
        The validation result. Bad data never raises.

    Raises:
        TypeError: If ``text`` is not a string.
        TLEFormatError: If ``text`` is empty or whitespace only.
    """
    options = options or ParseOptions()
    if not isinstance(text, str):
        raise TypeError(f"TLE data must be a string, not {type(text).__name__}")
    if not text.strip():
        raise TLEFormatError(
            "TLE string cannot be empty",
            ErrorCode.EMPTY_INPUT,
            {"input_length": len(text)},
        )

    normalized = normalize_lines(text)
    lines = list(normalized.lines)
    if len(lines) not in (2, 3):
        issue = make_issue(
            Severity.CRITICAL,
            ErrorCode.INVALID_LINE_COUNT,
            f"TLE must contain 2 or 3 lines (found {len(lines)})",
            ParserState.DETECTING_FORMAT,
            expected="2 or 3",
            actual=len(lines),
        )
        logger.debug("%s", issue)
        return ValidationResult(False, (issue,), None, normalized.comments)

    name = lines.pop(0) if len(lines) == 3 else None
    line1, line2 = lines

    values: dict[str, Optional[str]] = {"satellite_name": name}
    issues: list[Issue] = []
    phases = ((line1, LINE1_FIELDS, ParserState.PARSING_LINE1), (line2, LINE2_FIELDS, ParserState.PARSING_LINE2))
    for line, specs, state in phases:
        extraction = extract_fields(line, specs, state)
        values.update(extraction.values)
        issues.extend(extraction.issues)

    if options.validate:
        issues.extend(check_satellite_name(name, ParserState.PARSING_NAME))
        for number, (line, _, state) in enumerate(phases, start=1):
            issues.extend(check_line(line, number, values, state))
        issues.extend(check_satellite_numbers(
            values["satellite_number1"],
            values["satellite_number2"],
            ParserState.VALIDATING,
        ))
        if options.validate_ranges:
            issues.extend(check_ranges(values, ParserState.VALIDATING))
        issues.extend(run_diagnostics(values, options.reference_time))

    issues = [_apply_policy(issue, options) for issue in issues]
    errors, warnings = split_issues(issues)
    for error in errors:
        logger.debug("%s", error)

    record = ParsedRecord(
        values,
        issues=warnings if options.include_warnings else (),
        comments=normalized.comments if options.include_comments else (),
    )
    return ValidationResult(not errors, tuple(issues), record, normalized.comments)


def parse_tle(text: str, options: Optional[ParseOptions] = None) -> ParsedRecord:
    """Parse one TLE into a :class:`~tlelint.fields.ParsedRecord`.

    Args:
        text: Two or three TLE lines, optionally preceded by ``#`` comments.
        options: Check configuration. Defaults to ``ParseOptions()``.

    Returns:
        The parsed record, with warnings and comments attached as configured.

    Raises:
        TypeError: If ``text`` is not a string.
        TLEFormatError: If ``text`` is empty, or has an unusable line count
            while validation is off.
        TLEValidationError: If any issue is fatal under ``options``. The
            exception lists every error and warning, not just the first.
    """
    options = options or ParseOptions()
    result = validate_tle(text, options)

    if result.is_valid:
        return result.record

    errors, warnings = result.errors, result.warnings
    if not options.validate and errors[0].code is ErrorCode.INVALID_LINE_COUNT:
        raise TLEFormatError(errors[0].message, errors[0].code, errors[0].details)

    message = "TLE validation failed:\n" + "\n".join(f"  - {e.message}" for e in errors)
    raise TLEValidationError(message, errors, warnings)


# ── Private helpers ──


def _apply_policy(issue: Issue, options: ParseOptions) -> Issue:
    if issue.severity is not Severity.ERROR:
        return issue
    if options.mode is ParseMode.PERMISSIVE:
        return issue.with_severity(Severity.WARNING)
    if not options.strict_checksums and issue.code in CHECKSUM_CODES:
        return issue.with_severity(Severity.WARNING)
    return issue
