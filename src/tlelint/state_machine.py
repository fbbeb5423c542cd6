"""State-machine TLE parser with error recovery.

Where :func:`tlelint.tle_parser.parse_tle` is all-or-nothing, this parser
walks the input through explicit phases and keeps going whenever it safely
can, so that malformed or corrupted TLEs still yield as many fields as
possible together with a full account of what went wrong::

    INITIAL → DETECTING_FORMAT → [PARSING_NAME] → PARSING_LINE1
            → PARSING_LINE2 → VALIDATING → COMPLETED | ERROR

Transitions only move forward. Every issue is recorded with the phase it
was raised in, and every decision to continue past one is logged as a
:class:`~tlelint.issues.RecoveryAction`.

Outcome rules:
    - A ``critical`` issue always ends the parse in ``ERROR`` at the next
      phase boundary.
    - ``error`` issues end the parse in ``ERROR`` only in strict mode, when
      recovery is disabled or when partial results are not wanted.
    - ``warning`` issues never affect the outcome.

:meth:`TLEStateMachineParser.parse` never raises; failures are reported
through :attr:`ParseResult.success` and :attr:`ParseResult.final_state`.

Example:
    >>> result = parse_with_state_machine(text)
    >>> if result.success:
    ...     print(result.data["inclination"])
    ... else:
    ...     for issue in result.errors:
    ...         print(issue)
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Optional

from .diagnostics import run_diagnostics
from .fields import LINE1_FIELDS, LINE2_FIELDS, FieldSpec, ParsedRecord, extract_fields
from .issues import (
    ErrorCode,
    Issue,
    ParserState,
    RecoveryAction,
    RecoveryKind,
    Severity,
    make_issue,
)
from .normalize import normalize_lines
from .validator import (
    check_checksum,
    check_classification,
    check_line_length,
    check_line_number,
    check_ranges,
    check_satellite_name,
    check_satellite_numbers,
)

logger = logging.getLogger(__name__)

S = ParserState

TRANSITIONS: dict[ParserState, frozenset[ParserState]] = {
    S.INITIAL: frozenset({S.DETECTING_FORMAT, S.ERROR}),
    S.DETECTING_FORMAT: frozenset({S.PARSING_NAME, S.PARSING_LINE1, S.ERROR}),
    S.PARSING_NAME: frozenset({S.PARSING_LINE1, S.ERROR}),
    S.PARSING_LINE1: frozenset({S.PARSING_LINE2, S.ERROR}),
    S.PARSING_LINE2: frozenset({S.VALIDATING, S.ERROR}),
    S.VALIDATING: frozenset({S.COMPLETED, S.ERROR}),
    S.COMPLETED: frozenset(),
    S.ERROR: frozenset(),
}
"""Allowed forward edges. Terminal states have none."""

MAX_ITERATIONS = 16
"""Guard against handler bugs; a healthy parse needs at most 6 steps."""

BUDGETED_RECOVERIES = frozenset({RecoveryKind.CONTINUE, RecoveryKind.ATTEMPT_FIX})
"""Recovery kinds charged against ``max_recovery_attempts``. Field defaults
taken for short lines are free."""

_CONTINUE_REASONS = {
    ErrorCode.INVALID_LINE_LENGTH: "Attempting to parse Line {line} despite incorrect length",
    ErrorCode.INVALID_LINE_NUMBER: "Continuing despite wrong line number on Line {line}",
    ErrorCode.INVALID_CLASSIFICATION: "Continuing despite invalid classification",
    ErrorCode.CHECKSUM_MISMATCH: "Continuing despite checksum mismatch on Line {line}",
    ErrorCode.INVALID_CHECKSUM_CHARACTER: "Continuing despite unreadable checksum on Line {line}",
}


class TLEFormat(str, Enum):
    """Layout detected for the input."""
    UNKNOWN = "unknown"
    TWO_LINE = "2-line"
    THREE_LINE = "3-line"


# Configuration
@dataclass(frozen=True)
class StateMachineOptions:
    """Configuration for :class:`TLEStateMachineParser`.

    Attributes:
        attempt_recovery: Continue past non-critical issues (and try to
            salvage inputs with too many lines).
        max_recovery_attempts: Budget of ``continue`` and ``attempt-fix``
            actions per parse. Exceeding it raises a critical
            ``RECOVERY_LIMIT_EXCEEDED``.
        include_partial_results: Return extracted fields even when the
            parse fails, and tolerate error-severity issues.
        strict_mode: Fail on the first phase that raises an error.
        validate: Run cross-field validation and diagnostics.
        validate_ranges: Run numeric range checks during validation.
        reference_time: "Now" for the stale-epoch check (naive UTC).
            Defaults to the current time.
    """
    attempt_recovery: bool = True
    max_recovery_attempts: int = 10
    include_partial_results: bool = True
    strict_mode: bool = False
    validate: bool = True
    validate_ranges: bool = True
    reference_time: Optional[datetime] = None

    def __post_init__(self) -> None:
        if isinstance(self.max_recovery_attempts, bool) or not isinstance(self.max_recovery_attempts, int):
            raise TypeError("max_recovery_attempts must be an integer")
        if self.max_recovery_attempts < 0:
            raise ValueError("max_recovery_attempts must be >= 0")
        if self.reference_time is not None and not isinstance(self.reference_time, datetime):
            raise TypeError("reference_time must be a datetime")

    @property
    def fail_fast(self) -> bool:
        """Whether error-severity issues stop the parse."""
        return self.strict_mode or not self.attempt_recovery


# Context and result
@dataclass
class ParseContext:
    """Working state of one parse call. Never shared between calls."""
    lines: list[str] = field(default_factory=list)
    comments: list[str] = field(default_factory=list)
    name_index: int = -1
    line1_index: int = -1
    line2_index: int = -1
    format: TLEFormat = TLEFormat.UNKNOWN
    recovery_attempts: int = 0

    @property
    def has_name(self) -> bool:
        return self.name_index >= 0

    def summary(self) -> ContextSummary:
        return ContextSummary(
            line_count=len(self.lines),
            has_name=self.has_name,
            format=self.format,
            recovery_attempts=self.recovery_attempts,
        )


@dataclass(frozen=True)
class ContextSummary:
    """What the caller gets to see of the :class:`ParseContext`."""
    line_count: int
    has_name: bool
    format: TLEFormat
    recovery_attempts: int


@dataclass(frozen=True)
class ParseResult:
    """Everything one state-machine parse produced.

    Attributes:
        success: True iff ``final_state`` is ``COMPLETED``.
        final_state: ``COMPLETED`` or ``ERROR``.
        data: Extracted fields, or None if nothing was extracted or the
            parse failed with partial results disabled.
        issues: All issues in the order raised.
        recovery_actions: All recovery actions in the order taken.
        context: Line count, format and recovery counter.
        transitions: ``(from, to)`` pairs for every state change.
        comments: ``#`` lines found in the input.
    """
    success: bool
    final_state: ParserState
    data: Optional[ParsedRecord]
    issues: tuple[Issue, ...]
    recovery_actions: tuple[RecoveryAction, ...]
    context: ContextSummary
    transitions: tuple[tuple[ParserState, ParserState], ...] = ()
    comments: tuple[str, ...] = ()

    @property
    def errors(self) -> tuple[Issue, ...]:
        """Error and critical issues."""
        return tuple(i for i in self.issues if not i.is_warning)

    @property
    def warnings(self) -> tuple[Issue, ...]:
        return tuple(i for i in self.issues if i.is_warning)

    @property
    def codes(self) -> list[ErrorCode]:
        return [i.code for i in self.issues]

    def summary(self) -> str:
        """One-line human-readable summary."""
        name = (self.data or {}).get("satellite_name") or "UNKNOWN"
        number = (self.data or {}).get("satellite_number1") or "?"
        return (
            f"{name} ({number}): {self.final_state.value} | "
            f"{len(self.errors)} error(s), {len(self.warnings)} warning(s), "
            f"{len(self.recovery_actions)} recovery action(s)"
        )


# Parser
class TLEStateMachineParser:
    """Phase-by-phase TLE parser with error recovery.

    The instance only holds immutable options. Each :meth:`parse` call
    builds its own working state, so an instance can be reused freely.

    Args:
        options: Parser configuration. Defaults to ``StateMachineOptions()``.
        **overrides: Individual option overrides, e.g. ``strict_mode=True``.
    """

    def __init__(self, options: Optional[StateMachineOptions] = None, **overrides: Any) -> None:
        base = options or StateMachineOptions()
        self.options = replace(base, **overrides) if overrides else base

    def parse(self, text: Any) -> ParseResult:
        """Parse one TLE. Never raises for bad input."""
        return _ParseRun(self.options, text).execute()


def parse_with_state_machine(
    text: Any,
    options: Optional[StateMachineOptions] = None,
    **overrides: Any,
) -> ParseResult:
    """Create a parser and parse ``text`` in one call."""
    return TLEStateMachineParser(options, **overrides).parse(text)


# ── Private helpers ──


class _ParseRun:
    """Mutable state for exactly one parse call."""

    def __init__(self, options: StateMachineOptions, text: Any) -> None:
        self.options = options
        self.text = text
        self.state = S.INITIAL
        self.context = ParseContext()
        self.values: dict[str, Optional[str]] = {}
        self.issues: list[Issue] = []
        self.recoveries: list[RecoveryAction] = []
        self.transitions: list[tuple[ParserState, ParserState]] = []
        self._limit_reported = False
        self._handlers: dict[ParserState, Callable[[], ParserState]] = {
            S.INITIAL: self._start,
            S.DETECTING_FORMAT: self._detect_format,
            S.PARSING_NAME: self._parse_name,
            S.PARSING_LINE1: lambda: self._parse_line(1, LINE1_FIELDS, S.PARSING_LINE2),
            S.PARSING_LINE2: lambda: self._parse_line(2, LINE2_FIELDS, S.VALIDATING),
            S.VALIDATING: self._validate,
        }

    # Main loop

    def execute(self) -> ParseResult:
        iterations = 0
        while not self.state.is_terminal:
            if iterations >= MAX_ITERATIONS:
                self._add(
                    Severity.CRITICAL,
                    ErrorCode.STATE_MACHINE_LOOP,
                    "State machine exceeded maximum iterations",
                    iterations=iterations,
                )
                self._move(S.ERROR)
                break
            self._move(self._handlers[self.state]())
            iterations += 1

        if self.state is S.ERROR:
            logger.warning(
                "TLE parse failed: %s",
                "; ".join(i.message for i in self.issues if not i.is_warning) or "no errors recorded",
            )
        return self._result()

    def _move(self, target: ParserState) -> None:
        if target not in TRANSITIONS[self.state]:
            self._add(
                Severity.CRITICAL,
                ErrorCode.INVALID_STATE_TRANSITION,
                f"Illegal transition {self.state.value} -> {target.value}",
                source=self.state.value,
                target=target.value,
            )
            target = S.ERROR
        logger.debug("%s -> %s", self.state.value, target.value)
        self.transitions.append((self.state, target))
        self.state = target

    def _advance(self, target: ParserState) -> ParserState:
        """Phase boundary: decide between ``target`` and ``ERROR``."""
        if any(i.is_critical for i in self.issues):
            return S.ERROR
        if self.options.fail_fast and self._has_errors():
            self._recover(RecoveryKind.ABORT, "Aborting on error-severity issue")
            return S.ERROR
        return target

    # Bookkeeping

    def _add(self, severity: Severity, code: ErrorCode, message: str, **details: Any) -> Issue:
        issue = make_issue(severity, code, message, self.state, **details)
        self.issues.append(issue)
        logger.debug("%s", issue)
        return issue

    def _has_errors(self) -> bool:
        return any(not i.is_warning for i in self.issues)

    def _recover(self, kind: RecoveryKind, description: str, **details: Any) -> None:
        """Record a recovery action, enforcing the recovery budget.

        Aborts are always recorded. Anything else is skipped when recovery
        is disabled. Budgeted kinds turn into a critical issue once the
        budget is spent.
        """
        if kind is not RecoveryKind.ABORT:
            if not self.options.attempt_recovery:
                return
            if kind in BUDGETED_RECOVERIES:
                if self.context.recovery_attempts >= self.options.max_recovery_attempts:
                    if not self._limit_reported:
                        self._limit_reported = True
                        self._add(
                            Severity.CRITICAL,
                            ErrorCode.RECOVERY_LIMIT_EXCEEDED,
                            f"Exceeded maximum of {self.options.max_recovery_attempts} recovery attempts",
                            max_recovery_attempts=self.options.max_recovery_attempts,
                        )
                        self._recover(RecoveryKind.ABORT, "Recovery budget exhausted")
                    return
                self.context.recovery_attempts += 1

        logger.debug("Recovery [%s]: %s", kind.value, description)
        self.recoveries.append(RecoveryAction(
            kind,
            description,
            self.state,
            sequence=len(self.recoveries),
            details=details,
        ))

    def _add_with_recovery(self, issues: list[Issue], line: int) -> None:
        """Record structural issues, each followed by a ``continue`` recovery."""
        for issue in issues:
            self.issues.append(issue)
            logger.debug("%s", issue)
            if issue.is_warning or issue.is_critical:
                continue
            if issue.code is ErrorCode.CHECKSUM_MISMATCH:
                logger.warning("Line %d: %s", line, issue.message)
            reason = _CONTINUE_REASONS.get(issue.code, "Continuing despite error on Line {line}")
            self._recover(RecoveryKind.CONTINUE, reason.format(line=line), line=line, code=issue.code.value)

    # Phase handlers

    def _start(self) -> ParserState:
        if not isinstance(self.text, str):
            self._add(
                Severity.CRITICAL,
                ErrorCode.INVALID_INPUT_TYPE,
                "TLE data must be a string",
                input_type=type(self.text).__name__,
            )
            return S.ERROR

        if not self.text.strip():
            self._add(
                Severity.CRITICAL,
                ErrorCode.EMPTY_INPUT,
                "TLE string cannot be empty",
                input_length=len(self.text),
            )
            return S.ERROR

        normalized = normalize_lines(self.text)
        self.context.lines = list(normalized.lines)
        self.context.comments = list(normalized.comments)
        return S.DETECTING_FORMAT

    def _detect_format(self) -> ParserState:
        ctx = self.context
        count = len(ctx.lines)

        if count < 2:
            self._add(
                Severity.CRITICAL,
                ErrorCode.INVALID_LINE_COUNT,
                f"TLE must contain at least 2 lines (found {count})",
                expected="2 or 3",
                actual=count,
            )
            self._recover(RecoveryKind.ABORT, "Insufficient lines to parse TLE", line_count=count)
            return S.ERROR

        if count == 2:
            ctx.format = TLEFormat.TWO_LINE
            ctx.line1_index, ctx.line2_index = 0, 1
            return self._advance(S.PARSING_LINE1)

        if count == 3:
            if ctx.lines[0][0] in "12":
                self._add(
                    Severity.WARNING,
                    ErrorCode.SATELLITE_NAME_FORMAT_WARNING,
                    'First line starts with "1" or "2", might be missing satellite name',
                    field="satellite_name",
                    actual=ctx.lines[0],
                )
            ctx.format = TLEFormat.THREE_LINE
            ctx.name_index, ctx.line1_index, ctx.line2_index = 0, 1, 2
            return self._advance(S.PARSING_NAME)

        return self._recover_excess_lines()

    def _recover_excess_lines(self) -> ParserState:
        """Salvage input with more than 3 lines, if it holds one unambiguous TLE.

        Exactly one line must start with ``1`` and exactly one with ``2``,
        in that order. The line right before line 1 (if any) is taken as the
        name; everything else is discarded as noise. Several candidates for
        either line is ambiguous and fails rather than guessing.
        """
        ctx = self.context
        count = len(ctx.lines)
        ones = [i for i, line in enumerate(ctx.lines) if line.startswith("1")]
        twos = [i for i, line in enumerate(ctx.lines) if line.startswith("2")]
        details = {"expected": "2 or 3", "actual": count, "line1_candidates": len(ones),
                   "line2_candidates": len(twos)}

        recoverable = (
            self.options.attempt_recovery
            and len(ones) == 1
            and len(twos) == 1
            and ones[0] < twos[0]
        )

        if not recoverable:
            self._add(
                Severity.CRITICAL,
                ErrorCode.INVALID_LINE_COUNT,
                f"TLE must contain 2 or 3 lines (found {count}) and no unique "
                f"line 1 / line 2 pair could be identified",
                **details,
            )
            if self.options.attempt_recovery:
                self._recover(
                    RecoveryKind.ATTEMPT_FIX,
                    "Attempting to identify valid TLE lines from excess lines",
                    line_count=count,
                )
            self._recover(RecoveryKind.ABORT, "Could not isolate a unique TLE in excess lines",
                          line_count=count)
            return S.ERROR

        self._add(
            Severity.ERROR,
            ErrorCode.INVALID_LINE_COUNT,
            f"TLE should contain 2 or 3 lines (found {count})",
            **details,
        )
        self._recover(
            RecoveryKind.ATTEMPT_FIX,
            "Attempting to identify valid TLE lines from excess lines",
            line_count=count,
        )

        line1, line2 = ones[0], twos[0]
        keep = ([line1 - 1] if line1 > 0 else []) + [line1, line2]
        ctx.lines = [ctx.lines[i] for i in keep]
        if len(keep) == 3:
            ctx.format = TLEFormat.THREE_LINE
            ctx.name_index, ctx.line1_index, ctx.line2_index = 0, 1, 2
        else:
            ctx.format = TLEFormat.TWO_LINE
            ctx.line1_index, ctx.line2_index = 0, 1

        self._recover(
            RecoveryKind.CONTINUE,
            "Successfully identified TLE lines from excess input",
            extracted_lines=len(keep),
            discarded_lines=count - len(keep),
        )
        return self._advance(S.PARSING_NAME if ctx.has_name else S.PARSING_LINE1)

    def _parse_name(self) -> ParserState:
        name = self.context.lines[self.context.name_index]
        self.values["satellite_name"] = name
        for issue in check_satellite_name(name, self.state):
            # The "starts with 1/2" case was already reported during detection.
            if issue.code is ErrorCode.SATELLITE_NAME_TOO_LONG:
                self.issues.append(issue)
        return self._advance(S.PARSING_LINE1)

    def _parse_line(self, number: int, specs: tuple[FieldSpec, ...], target: ParserState) -> ParserState:
        ctx = self.context
        index = ctx.line1_index if number == 1 else ctx.line2_index
        if not 0 <= index < len(ctx.lines):
            self._add(
                Severity.CRITICAL,
                ErrorCode.INVALID_LINE_COUNT,
                f"Line {number} is not available",
                index=index,
            )
            return S.ERROR

        line = ctx.lines[index]
        self._add_with_recovery(check_line_length(line, number, self.state), number)

        extraction = extract_fields(line, specs, self.state)
        self.values.update(extraction.values)
        self.issues.extend(extraction.issues)
        for action in extraction.recoveries:
            self._recover(action.kind, action.description, **action.details)

        structural = check_line_number(self.values.get(f"line_number{number}"), number, self.state)
        if number == 1:
            structural.extend(check_classification(self.values.get("classification"), self.state))
        structural.extend(check_checksum(line, number, self.state))
        self._add_with_recovery(structural, number)

        return self._advance(target)

    def _validate(self) -> ParserState:
        if self.options.validate:
            self.issues.extend(check_satellite_numbers(
                self.values.get("satellite_number1"),
                self.values.get("satellite_number2"),
                self.state,
            ))
            if self.options.validate_ranges:
                self.issues.extend(check_ranges(self.values, self.state))
            self.issues.extend(run_diagnostics(self.values, self.options.reference_time, self.state))

        if any(i.is_critical for i in self.issues):
            return S.ERROR
        if self._has_errors() and (self.options.fail_fast or not self.options.include_partial_results):
            self._recover(RecoveryKind.ABORT, "Rejecting TLE with error-severity issues")
            return S.ERROR
        return S.COMPLETED

    # Result

    def _result(self) -> ParseResult:
        success = self.state is S.COMPLETED
        data: Optional[ParsedRecord] = None
        if self.values and (success or self.options.include_partial_results):
            data = ParsedRecord(self.values, comments=tuple(self.context.comments))

        return ParseResult(
            success=success,
            final_state=self.state,
            data=data,
            issues=tuple(self.issues),
            recovery_actions=tuple(self.recoveries),
            context=self.context.summary(),
            transitions=tuple(self.transitions),
            comments=tuple(self.context.comments),
        )
