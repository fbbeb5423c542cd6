"""tlelint: Two-Line Element parsing with validation, diagnostics and error recovery.

Check NORAD TLE sets column by column, report every problem at once, and
salvage what can be salvaged from corrupted input.

Modules:
    issues:        Severities, error codes, issues, recovery actions, exceptions.
    normalize:     Line-ending, whitespace and comment normalization.
    checksum:      NORAD modulo-10 line checksum.
    fields:        Fixed-column field extraction and the parsed record type.
    validator:     Structure and numeric range checks.
    diagnostics:   Advisory warnings for unusual-but-valid data.
    tle_parser:    Validation-first entry points and parser profiles.
    state_machine: Phase-by-phase parser with error recovery.
    elements:      Typed orbital elements and derived quantities.
    batch:         Multi-TLE files, filters and pandas summaries.
    cli:           Command-line interface.

Example:
    >>> from tlelint import parse_tle, parse_with_state_machine
    >>>
    >>> record = parse_tle(open("iss.tle").read())
    >>> print(record.satellite_name, record.inclination)
    >>>
    >>> result = parse_with_state_machine(open("corrupted.tle").read())
    >>> for issue in result.errors:
    ...     print(issue)
"""

from .checksum import compute_checksum, verify_checksum
from .fields import ParsedRecord
from .issues import (
    ErrorCode,
    Issue,
    ParserState,
    RecoveryAction,
    RecoveryKind,
    Severity,
    TLEError,
    TLEFormatError,
    TLEValidationError,
)
from .state_machine import (
    ParseResult,
    StateMachineOptions,
    TLEStateMachineParser,
    parse_with_state_machine,
)
from .tle_parser import ParseMode, ParseOptions, ValidationResult, parse_tle, validate_tle

__version__ = "0.1.0"

__all__ = [
    "ErrorCode",
    "Issue",
    "ParseMode",
    "ParseOptions",
    "ParseResult",
    "ParsedRecord",
    "ParserState",
    "RecoveryAction",
    "RecoveryKind",
    "Severity",
    "StateMachineOptions",
    "TLEError",
    "TLEFormatError",
    "TLEStateMachineParser",
    "TLEValidationError",
    "ValidationResult",
    "compute_checksum",
    "parse_tle",
    "parse_with_state_machine",
    "validate_tle",
    "verify_checksum",
]
