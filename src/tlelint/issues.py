"""Shared vocabulary for parse diagnostics.

Every check in the package reports problems as :class:`Issue` objects, and
every decision to keep going despite a problem is recorded as a
:class:`RecoveryAction`. Both are immutable; callers accumulate them in
lists and hand them back as part of a result bundle.

Severities:
    warning:  advisory only, never changes control flow.
    error:    a concrete format or semantic violation. Fatal in strict
              mode, demoted to a warning in permissive mode.
    critical: nothing can be extracted (bad input type, empty input,
              unrecoverable line count). Always fatal.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional, Sequence


# Enumerations
class Severity(str, Enum):
    """Issue severity, ordered from advisory to fatal."""
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ParserState(str, Enum):
    """Phases of a parse. Also used to tag where an issue was raised."""
    INITIAL = "INITIAL"
    DETECTING_FORMAT = "DETECTING_FORMAT"
    PARSING_NAME = "PARSING_NAME"
    PARSING_LINE1 = "PARSING_LINE1"
    PARSING_LINE2 = "PARSING_LINE2"
    VALIDATING = "VALIDATING"
    COMPLETED = "COMPLETED"
    ERROR = "ERROR"

    @property
    def is_terminal(self) -> bool:
        return self in (ParserState.COMPLETED, ParserState.ERROR)


class RecoveryKind(str, Enum):
    """What the parser did after deciding not to stop on an issue."""
    CONTINUE = "continue"
    SKIP_FIELD = "skip-field"
    USE_DEFAULT = "use-default"
    ATTEMPT_FIX = "attempt-fix"
    ABORT = "abort"


class ErrorCode(str, Enum):
    """Stable identifiers for every issue the parser can raise."""
    # Input
    INVALID_INPUT_TYPE = "INVALID_INPUT_TYPE"
    EMPTY_INPUT = "EMPTY_INPUT"

    # Structure
    INVALID_LINE_COUNT = "INVALID_LINE_COUNT"
    INVALID_LINE_LENGTH = "INVALID_LINE_LENGTH"
    INVALID_LINE_NUMBER = "INVALID_LINE_NUMBER"
    PARTIAL_FIELD = "PARTIAL_FIELD"
    MISSING_FIELD = "MISSING_FIELD"

    # Checksum
    CHECKSUM_MISMATCH = "CHECKSUM_MISMATCH"
    INVALID_CHECKSUM_CHARACTER = "INVALID_CHECKSUM_CHARACTER"

    # Fields
    SATELLITE_NUMBER_MISMATCH = "SATELLITE_NUMBER_MISMATCH"
    INVALID_SATELLITE_NUMBER = "INVALID_SATELLITE_NUMBER"
    INVALID_CLASSIFICATION = "INVALID_CLASSIFICATION"
    VALUE_OUT_OF_RANGE = "VALUE_OUT_OF_RANGE"
    INVALID_NUMBER_FORMAT = "INVALID_NUMBER_FORMAT"
    SATELLITE_NAME_TOO_LONG = "SATELLITE_NAME_TOO_LONG"
    SATELLITE_NAME_FORMAT_WARNING = "SATELLITE_NAME_FORMAT_WARNING"

    # Parser guards
    RECOVERY_LIMIT_EXCEEDED = "RECOVERY_LIMIT_EXCEEDED"
    STATE_MACHINE_LOOP = "STATE_MACHINE_LOOP"
    INVALID_STATE_TRANSITION = "INVALID_STATE_TRANSITION"

    # Advisory
    CLASSIFIED_DATA_WARNING = "CLASSIFIED_DATA_WARNING"
    STALE_TLE_WARNING = "STALE_TLE_WARNING"
    HIGH_ECCENTRICITY_WARNING = "HIGH_ECCENTRICITY_WARNING"
    LOW_MEAN_MOTION_WARNING = "LOW_MEAN_MOTION_WARNING"
    DEPRECATED_EPOCH_YEAR_WARNING = "DEPRECATED_EPOCH_YEAR_WARNING"
    REVOLUTION_NUMBER_ROLLOVER_WARNING = "REVOLUTION_NUMBER_ROLLOVER_WARNING"
    NEAR_ZERO_DRAG_WARNING = "NEAR_ZERO_DRAG_WARNING"
    NON_STANDARD_EPHEMERIS_WARNING = "NON_STANDARD_EPHEMERIS_WARNING"
    NEGATIVE_DECAY_WARNING = "NEGATIVE_DECAY_WARNING"


_DESCRIPTIONS: dict[ErrorCode, str] = {
    ErrorCode.INVALID_INPUT_TYPE: "Input data must be a string",
    ErrorCode.EMPTY_INPUT: "Input string is empty or contains only whitespace",
    ErrorCode.INVALID_LINE_COUNT: "TLE must contain exactly 2 or 3 lines",
    ErrorCode.INVALID_LINE_LENGTH: "TLE line must be exactly 69 characters",
    ErrorCode.INVALID_LINE_NUMBER: "Line number must be 1 or 2",
    ErrorCode.PARTIAL_FIELD: "Field is truncated by a short line",
    ErrorCode.MISSING_FIELD: "Field is absent because the line is too short",
    ErrorCode.CHECKSUM_MISMATCH: "Calculated checksum does not match",
    ErrorCode.INVALID_CHECKSUM_CHARACTER: "Checksum must be a digit 0-9",
    ErrorCode.SATELLITE_NUMBER_MISMATCH: "Satellite numbers on line 1 and line 2 must match",
    ErrorCode.INVALID_SATELLITE_NUMBER: "Satellite catalog number is invalid",
    ErrorCode.INVALID_CLASSIFICATION: "Classification must be U, C, or S",
    ErrorCode.VALUE_OUT_OF_RANGE: "Field value is outside valid range",
    ErrorCode.INVALID_NUMBER_FORMAT: "Field contains invalid numeric format",
    ErrorCode.SATELLITE_NAME_TOO_LONG: "Satellite name exceeds maximum length",
    ErrorCode.SATELLITE_NAME_FORMAT_WARNING: "Satellite name contains unusual characters",
    ErrorCode.RECOVERY_LIMIT_EXCEEDED: "Too many recovery attempts in one parse",
    ErrorCode.STATE_MACHINE_LOOP: "State machine exceeded maximum iterations",
    ErrorCode.INVALID_STATE_TRANSITION: "State machine attempted a transition outside its table",
    ErrorCode.CLASSIFIED_DATA_WARNING: "TLE contains classified satellite data",
    ErrorCode.STALE_TLE_WARNING: "TLE epoch is significantly old",
    ErrorCode.HIGH_ECCENTRICITY_WARNING: "Eccentricity is unusually high",
    ErrorCode.LOW_MEAN_MOTION_WARNING: "Mean motion is unusually low",
    ErrorCode.DEPRECATED_EPOCH_YEAR_WARNING: "Epoch year is in the far past",
    ErrorCode.REVOLUTION_NUMBER_ROLLOVER_WARNING: "Revolution number may have rolled over",
    ErrorCode.NEAR_ZERO_DRAG_WARNING: "Drag coefficient is near zero",
    ErrorCode.NON_STANDARD_EPHEMERIS_WARNING: "Ephemeris type is non-standard",
    ErrorCode.NEGATIVE_DECAY_WARNING: "Mean motion decay is negative",
}

_WARNING_CODES = frozenset({
    ErrorCode.SATELLITE_NAME_TOO_LONG,
    ErrorCode.SATELLITE_NAME_FORMAT_WARNING,
    ErrorCode.PARTIAL_FIELD,
    ErrorCode.MISSING_FIELD,
    ErrorCode.CLASSIFIED_DATA_WARNING,
    ErrorCode.STALE_TLE_WARNING,
    ErrorCode.HIGH_ECCENTRICITY_WARNING,
    ErrorCode.LOW_MEAN_MOTION_WARNING,
    ErrorCode.DEPRECATED_EPOCH_YEAR_WARNING,
    ErrorCode.REVOLUTION_NUMBER_ROLLOVER_WARNING,
    ErrorCode.NEAR_ZERO_DRAG_WARNING,
    ErrorCode.NON_STANDARD_EPHEMERIS_WARNING,
    ErrorCode.NEGATIVE_DECAY_WARNING,
})


def describe(code: ErrorCode | str) -> str:
    """Human-readable description of an error code."""
    try:
        return _DESCRIPTIONS[ErrorCode(code)]
    except ValueError:
        return "Unknown error code"


def is_warning_code(code: ErrorCode | str) -> bool:
    """True if ``code`` is only ever raised as an advisory warning."""
    try:
        return ErrorCode(code) in _WARNING_CODES
    except ValueError:
        return False


# Records
@dataclass(frozen=True)
class Issue:
    """A single diagnostic raised while parsing or validating.

    Attributes:
        severity: How serious the problem is.
        code: Stable machine-readable identifier.
        message: Human-readable explanation.
        state: Parser phase active when the issue was raised.
        details: Context such as field name, line number, expected and
            actual values. Read-only.
    """
    severity: Severity
    code: ErrorCode
    message: str
    state: Optional[ParserState] = None
    details: Mapping[str, Any] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "severity", Severity(self.severity))
        object.__setattr__(self, "code", ErrorCode(self.code))
        object.__setattr__(self, "details", MappingProxyType(dict(self.details)))

    @property
    def is_warning(self) -> bool:
        return self.severity is Severity.WARNING

    @property
    def is_critical(self) -> bool:
        return self.severity is Severity.CRITICAL

    def with_severity(self, severity: Severity) -> Issue:
        """Copy of this issue with a different severity."""
        return replace(self, severity=severity, details=dict(self.details))

    def to_dict(self) -> dict:
        """Flatten to a dictionary suitable for DataFrame construction."""
        return {
            "severity": self.severity.value,
            "code": self.code.value,
            "message": self.message,
            "state": self.state.value if self.state else None,
            **self.details,
        }

    def __str__(self) -> str:
        return f"[{self.severity.value}] {self.code.value}: {self.message}"


@dataclass(frozen=True)
class RecoveryAction:
    """One decision by the parser to carry on (or not) after an issue.

    Attributes:
        kind: The recovery strategy applied.
        description: What was done.
        state: Parser phase active at the time.
        sequence: Position in the parse call's recovery log (0-based).
        timestamp: Wall-clock time the action was recorded.
        details: Extra context (field name, line number, ...).
    """
    kind: RecoveryKind
    description: str
    state: Optional[ParserState] = None
    sequence: int = 0
    timestamp: float = field(default_factory=time.time)
    details: Mapping[str, Any] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", RecoveryKind(self.kind))
        object.__setattr__(self, "details", MappingProxyType(dict(self.details)))

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "description": self.description,
            "state": self.state.value if self.state else None,
            "sequence": self.sequence,
            "timestamp": self.timestamp,
            **self.details,
        }


def make_issue(
    severity: Severity,
    code: ErrorCode,
    message: str,
    state: Optional[ParserState] = None,
    **details: Any,
) -> Issue:
    """Shorthand for building an :class:`Issue` with keyword details."""
    return Issue(severity, code, message, state, details)


def split_issues(issues: Sequence[Issue]) -> tuple[tuple[Issue, ...], tuple[Issue, ...]]:
    """Partition issues into ``(errors, warnings)``; critical counts as error."""
    errors = tuple(i for i in issues if not i.is_warning)
    warnings = tuple(i for i in issues if i.is_warning)
    return errors, warnings


# Exceptions
class TLEError(Exception):
    """Base class for all tlelint exceptions."""


class TLEFormatError(TLEError, ValueError):
    """Structural problem that prevents parsing altogether.

    Attributes:
        code: Error code identifying the problem.
        details: Extra context.
    """

    def __init__(self, message: str, code: ErrorCode, details: Optional[Mapping[str, Any]] = None):
        super().__init__(message)
        self.code = ErrorCode(code)
        self.details = dict(details or {})


class TLEValidationError(TLEError, ValueError):
    """Validation failed; carries every error and warning found.

    Attributes:
        errors: All error and critical issues, in the order found.
        warnings: All warnings raised alongside.
    """

    def __init__(
        self,
        message: str,
        errors: Sequence[Issue],
        warnings: Sequence[Issue] = (),
    ):
        super().__init__(message)
        self.errors = tuple(errors)
        self.warnings = tuple(warnings)

    @property
    def codes(self) -> list[ErrorCode]:
        return [e.code for e in self.errors]
