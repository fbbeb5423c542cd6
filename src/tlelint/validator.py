"""Structure and range checks for TLE lines and fields.

Each check returns a (possibly empty) list of :class:`~tlelint.issues.Issue`
and never raises. Checks are independent: callers run all of them and
collect everything, so one bad field never hides another.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Mapping, Optional

from .checksum import LINE_LENGTH, verify_checksum
from .issues import ErrorCode, Issue, ParserState, Severity, make_issue

VALID_CLASSIFICATIONS = ("U", "C", "S")

MAX_NAME_LENGTH = 24
"""Longest satellite name allowed on line 0."""

SATELLITE_NUMBER_MIN = 1
SATELLITE_NUMBER_MAX = 99999

_NUMBER_RE = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)$")


@dataclass(frozen=True)
class RangeRule:
    """Numeric bounds for one record field.

    Attributes:
        field: Record key to check.
        label: Human-readable field name.
        min: Inclusive lower bound.
        max: Inclusive upper bound.
        optional: Blank values are allowed and skipped.
        warning_only: Out-of-range values are warnings, not errors.
        transform: Turns the raw string into a parseable number string.
    """
    field: str
    label: str
    min: float
    max: float
    optional: bool = False
    warning_only: bool = False
    transform: Optional[Callable[[str], str]] = None


RANGE_RULES: tuple[RangeRule, ...] = (
    RangeRule("intl_designator_year", "International Designator Year", 0, 99, optional=True),
    RangeRule("intl_designator_launch", "International Designator Launch Number", 1, 999, optional=True),
    RangeRule("ephemeris_type", "Ephemeris Type", 0, 9, optional=True),
    RangeRule("element_set_number", "Element Set Number", 0, 9999, optional=True),
    RangeRule("epoch_year", "Epoch Year", 0, 99),
    RangeRule("epoch_day", "Epoch Day", 1, 366.99999999),
    RangeRule("inclination", "Inclination", 0, 180),
    RangeRule("right_ascension", "Right Ascension", 0, 360),
    RangeRule("eccentricity", "Eccentricity", 0, 1, transform=lambda v: "0." + v),
    RangeRule("arg_perigee", "Argument of Perigee", 0, 360),
    RangeRule("mean_anomaly", "Mean Anomaly", 0, 360),
    # Some legitimate very low or very high orbits fall outside 0-20 rev/day.
    RangeRule("mean_motion", "Mean Motion", 0, 20, warning_only=True),
    RangeRule("revolution_number", "Revolution Number", 0, 99999, optional=True),
)


def parse_number(value: str) -> Optional[float]:
    """Strictly parse a plain decimal number; None if it is not one."""
    value = value.strip()
    if not _NUMBER_RE.match(value):
        return None
    return float(value)


def check_line_length(
    line: str,
    line_number: int,
    state: Optional[ParserState] = None,
) -> list[Issue]:
    """A data line must be exactly 69 characters."""
    if len(line) == LINE_LENGTH:
        return []
    return [make_issue(
        Severity.ERROR,
        ErrorCode.INVALID_LINE_LENGTH,
        f"Line {line_number} must be exactly {LINE_LENGTH} characters (got {len(line)})",
        state,
        line=line_number,
        field="line_length",
        expected=LINE_LENGTH,
        actual=len(line),
    )]


def check_line_number(
    value: Optional[str],
    expected: int,
    state: Optional[ParserState] = None,
) -> list[Issue]:
    """The first column of line N must be the digit N."""
    if value == str(expected):
        return []
    return [make_issue(
        Severity.ERROR,
        ErrorCode.INVALID_LINE_NUMBER,
        f"Line {expected} must start with '{expected}' (got '{value}')",
        state,
        line=expected,
        field=f"line_number{expected}",
        expected=str(expected),
        actual=value,
    )]


def check_checksum(
    line: str,
    line_number: int,
    state: Optional[ParserState] = None,
) -> list[Issue]:
    """Verify the check digit. Silent on wrong-length lines; see :func:`check_line_length`."""
    result = verify_checksum(line)
    if result.ok or result.code is ErrorCode.INVALID_LINE_LENGTH:
        return []

    if result.code is ErrorCode.INVALID_CHECKSUM_CHARACTER:
        return [make_issue(
            Severity.ERROR,
            ErrorCode.INVALID_CHECKSUM_CHARACTER,
            f"Line {line_number}: checksum position must contain a digit (got '{line[-1]}')",
            state,
            line=line_number,
            field=f"checksum{line_number}",
            position=LINE_LENGTH - 1,
            actual=line[-1],
        )]

    return [make_issue(
        Severity.ERROR,
        ErrorCode.CHECKSUM_MISMATCH,
        f"Line {line_number} checksum mismatch (expected {result.expected}, got {result.actual})",
        state,
        line=line_number,
        field=f"checksum{line_number}",
        expected=result.expected,
        actual=result.actual,
    )]


def check_classification(
    value: Optional[str],
    state: Optional[ParserState] = None,
) -> list[Issue]:
    """Classification must be U, C or S. Absent values are the extractor's concern."""
    if value is None or value in VALID_CLASSIFICATIONS:
        return []
    return [make_issue(
        Severity.ERROR,
        ErrorCode.INVALID_CLASSIFICATION,
        f"Classification must be U, C, or S (got '{value}')",
        state,
        line=1,
        field="classification",
        expected=list(VALID_CLASSIFICATIONS),
        actual=value,
    )]


def check_satellite_numbers(
    number1: Optional[str],
    number2: Optional[str],
    state: Optional[ParserState] = None,
) -> list[Issue]:
    """Line 1 and line 2 catalog numbers must agree and be in 1-99999.

    Every applicable problem is reported: a mismatch does not stop the
    format and range checks on either number. A number shared by both lines
    is checked once.
    """
    issues: list[Issue] = []
    if number1 is None or number2 is None:
        return issues

    if number1 != number2:
        issues.append(make_issue(
            Severity.ERROR,
            ErrorCode.SATELLITE_NUMBER_MISMATCH,
            f"Satellite numbers must match (Line 1: {number1}, Line 2: {number2})",
            state,
            field="satellite_number",
            line1_value=number1,
            line2_value=number2,
        ))

    numbers = {1: number1} if number1 == number2 else {1: number1, 2: number2}
    for line, number in numbers.items():
        if not number.isdigit() or not number.isascii():
            issues.append(make_issue(
                Severity.ERROR,
                ErrorCode.INVALID_SATELLITE_NUMBER,
                f"Satellite number must be numeric (got '{number}')",
                state,
                line=line,
                field="satellite_number",
                actual=number,
            ))
            continue

        value = int(number)
        if not SATELLITE_NUMBER_MIN <= value <= SATELLITE_NUMBER_MAX:
            issues.append(make_issue(
                Severity.ERROR,
                ErrorCode.VALUE_OUT_OF_RANGE,
                f"Satellite Number must be between {SATELLITE_NUMBER_MIN} and "
                f"{SATELLITE_NUMBER_MAX} (got {value})",
                state,
                line=line,
                field="satellite_number",
                actual=value,
                min=SATELLITE_NUMBER_MIN,
                max=SATELLITE_NUMBER_MAX,
            ))
    return issues


def check_range(
    value: Optional[str],
    rule: RangeRule,
    state: Optional[ParserState] = None,
) -> list[Issue]:
    """Check one field against one :class:`RangeRule`."""
    if value is None or (rule.optional and value == ""):
        return []

    severity = Severity.WARNING if rule.warning_only else Severity.ERROR
    text = rule.transform(value) if rule.transform else value
    number = parse_number(text)

    if number is None:
        return [make_issue(
            severity,
            ErrorCode.INVALID_NUMBER_FORMAT,
            f"{rule.label} must be numeric (got '{value}')",
            state,
            field=rule.field,
            actual=value,
        )]

    if number < rule.min or number > rule.max:
        return [make_issue(
            severity,
            ErrorCode.VALUE_OUT_OF_RANGE,
            f"{rule.label} must be between {rule.min} and {rule.max} (got {number})",
            state,
            field=rule.field,
            actual=number,
            min=rule.min,
            max=rule.max,
        )]
    return []


def check_ranges(
    record: Mapping[str, Optional[str]],
    state: Optional[ParserState] = None,
    rules: tuple[RangeRule, ...] = RANGE_RULES,
) -> list[Issue]:
    """Run every range rule against a record; collects all failures."""
    issues: list[Issue] = []
    for rule in rules:
        issues.extend(check_range(record.get(rule.field), rule, state))
    return issues


def check_satellite_name(
    name: Optional[str],
    state: Optional[ParserState] = None,
) -> list[Issue]:
    """Advisory checks on the line 0 name."""
    issues: list[Issue] = []
    if not name:
        return issues

    if len(name) > MAX_NAME_LENGTH:
        issues.append(make_issue(
            Severity.WARNING,
            ErrorCode.SATELLITE_NAME_TOO_LONG,
            f"Satellite name should be {MAX_NAME_LENGTH} characters or less (got {len(name)})",
            state,
            field="satellite_name",
            expected=MAX_NAME_LENGTH,
            actual=len(name),
        ))

    if name[0] in "12":
        issues.append(make_issue(
            Severity.WARNING,
            ErrorCode.SATELLITE_NAME_FORMAT_WARNING,
            'Satellite name starts with "1" or "2", might be incorrectly formatted',
            state,
            field="satellite_name",
            actual=name,
        ))
    return issues


def check_line(
    line: str,
    line_number: int,
    record: Mapping[str, Optional[str]],
    state: Optional[ParserState] = None,
) -> list[Issue]:
    """All single-line structure checks: length, line number, classification, checksum."""
    issues = check_line_length(line, line_number, state)
    issues.extend(check_line_number(record.get(f"line_number{line_number}"), line_number, state))
    if line_number == 1:
        issues.extend(check_classification(record.get("classification"), state))
    issues.extend(check_checksum(line, line_number, state))
    return issues
