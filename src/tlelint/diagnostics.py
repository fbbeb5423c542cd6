"""Advisory checks for unusual-but-valid TLE values.

Everything here returns warnings only. A warning never changes whether a
parse succeeds; it tells the caller the data deserves a second look
(stale epoch, highly elliptical orbit, classified marker, and so on).
All functions are pure: same record and reference time in, same
warnings out.
"""
from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Mapping, Optional

from .elements import epoch_to_datetime, expand_epoch_year, parse_implied_decimal
from .issues import ErrorCode, Issue, ParserState, Severity, make_issue
from .validator import parse_number

logger = logging.getLogger(__name__)

STALE_AFTER_DAYS = 30
HIGH_ECCENTRICITY = 0.25
LOW_MEAN_MOTION = 1.0
"""rev/day; below this the orbit is beyond geosynchronous altitude."""
REVOLUTION_ROLLOVER_MARGIN = 90000
"""Revolution numbers wrap at 99999; warn once they pass this."""

_ZERO_DRAG = ("00000-0", "00000+0", "00000 0", "00000", "0")

Record = Mapping[str, Optional[str]]


def _warn(code: ErrorCode, message: str, state: Optional[ParserState], **details) -> Issue:
    return make_issue(Severity.WARNING, code, message, state, **details)


def check_classification_warnings(
    record: Record,
    state: Optional[ParserState] = ParserState.VALIDATING,
) -> list[Issue]:
    """Flag classified (C) or secret (S) markers in what is usually public data."""
    classification = record.get("classification")
    if classification not in ("C", "S"):
        return []
    return [_warn(
        ErrorCode.CLASSIFIED_DATA_WARNING,
        f"Classification '{classification}' is unusual in public TLE data "
        f"(typically 'U' for unclassified)",
        state,
        field="classification",
        actual=classification,
    )]


def check_epoch_warnings(
    record: Record,
    now: Optional[datetime] = None,
    state: Optional[ParserState] = ParserState.VALIDATING,
) -> list[Issue]:
    """Flag 1900s epochs and epochs more than 30 days before ``now``.

    Args:
        record: Parsed fields.
        now: Reference time (naive UTC). Defaults to the current time.
        state: Phase to tag warnings with.
    """
    year = parse_number(record.get("epoch_year") or "")
    day = parse_number(record.get("epoch_day") or "")
    if year is None or day is None or not year.is_integer():
        return []

    warnings: list[Issue] = []
    two_digit = int(year)
    full_year = expand_epoch_year(two_digit)

    if full_year < 2000:
        warnings.append(_warn(
            ErrorCode.DEPRECATED_EPOCH_YEAR_WARNING,
            f"Epoch year {full_year} is in the deprecated 1900s range (two-digit year: {two_digit:02d})",
            state,
            field="epoch_year",
            actual=two_digit,
            full_year=full_year,
        ))

    try:
        epoch = epoch_to_datetime(full_year, day)
    except (OverflowError, ValueError):
        logger.debug("Epoch day %s out of range", day)
        return warnings

    if now is None:
        now = datetime.now(timezone.utc).replace(tzinfo=None)
    elif now.tzinfo is not None:
        now = now.astimezone(timezone.utc).replace(tzinfo=None)

    days_since = (now - epoch).total_seconds() / 86400.0
    if days_since > STALE_AFTER_DAYS:
        warnings.append(_warn(
            ErrorCode.STALE_TLE_WARNING,
            f"TLE epoch is {math.floor(days_since)} days old (epoch: {epoch:%Y-%m-%d}). "
            f"TLE data may be stale.",
            state,
            field="epoch",
            days_since_epoch=math.floor(days_since),
            epoch_date=f"{epoch:%Y-%m-%d}",
        ))
    return warnings


def check_orbital_parameter_warnings(
    record: Record,
    state: Optional[ParserState] = ParserState.VALIDATING,
) -> list[Issue]:
    """Flag high eccentricity, very low mean motion and revolution rollover."""
    warnings: list[Issue] = []

    raw_ecc = record.get("eccentricity")
    eccentricity = parse_number("0." + raw_ecc) if raw_ecc else None
    if eccentricity is not None and eccentricity > HIGH_ECCENTRICITY:
        warnings.append(_warn(
            ErrorCode.HIGH_ECCENTRICITY_WARNING,
            f"Eccentricity {eccentricity:.7f} is unusually high. "
            f"This indicates a highly elliptical orbit.",
            state,
            field="eccentricity",
            actual=eccentricity,
        ))

    mean_motion = parse_number(record.get("mean_motion") or "")
    if mean_motion is not None and mean_motion < LOW_MEAN_MOTION:
        warnings.append(_warn(
            ErrorCode.LOW_MEAN_MOTION_WARNING,
            f"Mean motion {mean_motion:.8f} rev/day is unusually low. "
            f"This indicates a very high orbit.",
            state,
            field="mean_motion",
            actual=mean_motion,
        ))

    revolution = parse_number(record.get("revolution_number") or "")
    if revolution is not None and revolution > REVOLUTION_ROLLOVER_MARGIN:
        warnings.append(_warn(
            ErrorCode.REVOLUTION_NUMBER_ROLLOVER_WARNING,
            f"Revolution number {int(revolution)} is approaching rollover limit (99999). "
            f"Counter may reset soon.",
            state,
            field="revolution_number",
            actual=int(revolution),
        ))
    return warnings


def check_drag_and_ephemeris_warnings(
    record: Record,
    state: Optional[ParserState] = ParserState.VALIDATING,
) -> list[Issue]:
    """Flag zero B*, negative decay and non-SGP4 ephemeris types."""
    warnings: list[Issue] = []

    bstar = record.get("bstar")
    if bstar is not None and _is_zero_drag(bstar):
        warnings.append(_warn(
            ErrorCode.NEAR_ZERO_DRAG_WARNING,
            "B* drag term is zero or near-zero, which is unusual for most satellites in LEO",
            state,
            field="bstar",
            actual=bstar,
        ))

    first_derivative = parse_number(record.get("first_derivative") or "")
    if first_derivative is not None and first_derivative < 0:
        warnings.append(_warn(
            ErrorCode.NEGATIVE_DECAY_WARNING,
            f"First derivative of mean motion is negative ({first_derivative}), "
            f"indicating orbital decay",
            state,
            field="first_derivative",
            actual=first_derivative,
        ))

    ephemeris = record.get("ephemeris_type")
    if ephemeris not in (None, "", "0"):
        warnings.append(_warn(
            ErrorCode.NON_STANDARD_EPHEMERIS_WARNING,
            f"Ephemeris type '{ephemeris}' is non-standard (expected '0' for SGP4/SDP4)",
            state,
            field="ephemeris_type",
            actual=ephemeris,
        ))
    return warnings


def run_diagnostics(
    record: Record,
    now: Optional[datetime] = None,
    state: Optional[ParserState] = ParserState.VALIDATING,
) -> list[Issue]:
    """Run every advisory check against a record."""
    warnings = check_classification_warnings(record, state)
    warnings.extend(check_epoch_warnings(record, now, state))
    warnings.extend(check_drag_and_ephemeris_warnings(record, state))
    warnings.extend(check_orbital_parameter_warnings(record, state))
    if warnings:
        logger.debug("Diagnostics raised %d warning(s)", len(warnings))
    return warnings


# ── Private helpers ──


def _is_zero_drag(raw: str) -> bool:
    if not raw.strip():
        return False
    if raw in _ZERO_DRAG:
        return True
    try:
        return parse_implied_decimal(raw) == 0.0
    except ValueError:
        return False
