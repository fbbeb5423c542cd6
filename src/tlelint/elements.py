"""Typed orbital elements from a parsed record.

A :class:`~tlelint.fields.ParsedRecord` keeps every field as the raw string
found in the TLE. This module coerces those strings into numbers and
datetimes and adds a few two-body quantities (semi-major axis, altitude,
period) that are handy when eyeballing a catalog.

References:
    - Kelso, T.S. "CelesTrak TLE Format Documentation"
      https://celestrak.org/columns/v04n03/
    - Vallado, D. (2013). Fundamentals of Astrodynamics and Applications.
"""
from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

# ── Physical constants (WGS84) ──

MU_EARTH = 398600.4418
"""Earth gravitational parameter (km³/s²)."""

R_EARTH = 6378.137
"""Earth equatorial radius (km)."""

SOLAR_DAY = 86400.0
"""Seconds in a solar day."""

TWO_PI = 2.0 * math.pi
"""2π constant."""

EPOCH_PIVOT = 57
"""Two-digit epoch years at or above this belong to the 1900s (Sputnik, 1957)."""

_IMPLIED_DECIMAL = re.compile(r"^([+-]?)(\d+)([+-]\d)?$")


@dataclass(slots=True)
class OrbitalElements:
    """Numeric view of one TLE with derived two-body quantities.

    Attributes:
        name: Spacecraft name from line 0 (if present).
        norad_id: NORAD catalog number.
        intl_designator: International designator (launch year/number/piece).
        classification: Security classification (U/C/S).
        epoch_year: Full 4-digit epoch year.
        epoch_day: Fractional day of year at epoch.
        epoch_dt: Epoch as a Python datetime (UTC, naive).
        mean_motion_dot: First derivative of mean motion / 2 (rev/day²).
        mean_motion_ddot: Second derivative of mean motion / 6 (rev/day³).
        bstar: B* drag term (1/Earth radii).
        inclination: Orbital inclination (degrees).
        raan: Right ascension of ascending node (degrees).
        eccentricity: Orbital eccentricity (dimensionless).
        arg_perigee: Argument of perigee (degrees).
        mean_anomaly: Mean anomaly (degrees).
        mean_motion: Mean motion (revolutions per day).
        rev_number: Revolution number at epoch.
        semi_major_axis: Derived semi-major axis (km).
        altitude: Derived altitude above the equatorial radius (km).
        period: Derived orbital period (seconds).
    """

    # Identity
    name: Optional[str]
    norad_id: int
    intl_designator: str
    classification: str

    # Epoch
    epoch_year: int
    epoch_day: float
    epoch_dt: datetime

    # Line 1 fields
    mean_motion_dot: float
    mean_motion_ddot: float
    bstar: float

    # Line 2 fields
    inclination: float
    raan: float
    eccentricity: float
    arg_perigee: float
    mean_anomaly: float
    mean_motion: float
    rev_number: int

    # Derived (computed in __post_init__)
    semi_major_axis: float = field(init=False)
    altitude: float = field(init=False)
    period: float = field(init=False)

    def __post_init__(self) -> None:
        """Compute derived orbital quantities from the elements."""
        if self.mean_motion <= 0:
            self.semi_major_axis = math.inf
            self.altitude = math.inf
            self.period = math.inf
            return

        n_rad_s = self.mean_motion * TWO_PI / SOLAR_DAY
        self.semi_major_axis = (MU_EARTH / n_rad_s**2) ** (1.0 / 3.0)
        self.altitude = self.semi_major_axis - R_EARTH
        self.period = SOLAR_DAY / self.mean_motion

    @staticmethod
    def from_record(record: Mapping[str, Optional[str]]) -> OrbitalElements:
        """Coerce a parsed record into typed elements.

        Args:
            record: Raw field mapping, normally a ``ParsedRecord``.

        Returns:
            Typed elements with derived quantities.

        Raises:
            ValueError: If a required field is missing or not numeric.
        """
        def required(key: str) -> str:
            value = record.get(key)
            if value is None or value == "":
                raise ValueError(f"Field '{key}' is missing")
            return value

        try:
            epoch_year = expand_epoch_year(int(required("epoch_year")))
            epoch_day = float(required("epoch_day"))
            designator = "".join(
                record.get(key) or ""
                for key in ("intl_designator_year", "intl_designator_launch", "intl_designator_piece")
            )
            return OrbitalElements(
                name=record.get("satellite_name") or None,
                norad_id=int(required("satellite_number1")),
                intl_designator=designator,
                classification=required("classification"),
                epoch_year=epoch_year,
                epoch_day=epoch_day,
                epoch_dt=epoch_to_datetime(epoch_year, epoch_day),
                mean_motion_dot=float(required("first_derivative")),
                mean_motion_ddot=parse_implied_decimal(record.get("second_derivative")),
                bstar=parse_implied_decimal(record.get("bstar")),
                inclination=float(required("inclination")),
                raan=float(required("right_ascension")),
                eccentricity=float(f"0.{required('eccentricity')}"),
                arg_perigee=float(required("arg_perigee")),
                mean_anomaly=float(required("mean_anomaly")),
                mean_motion=float(required("mean_motion")),
                rev_number=int(record.get("revolution_number") or "0"),
            )
        except ValueError as exc:
            logger.debug("Cannot build elements: %s", exc)
            raise ValueError(f"Cannot convert record to orbital elements: {exc}") from exc

    def to_dict(self) -> dict:
        """Convert to a flat dictionary suitable for DataFrame construction."""
        return {
            "norad_id": self.norad_id,
            "name": self.name,
            "epoch": self.epoch_dt,
            "epoch_year": self.epoch_year,
            "epoch_day": self.epoch_day,
            "sma_km": self.semi_major_axis,
            "altitude_km": self.altitude,
            "period_s": self.period,
            "inclination_deg": self.inclination,
            "raan_deg": self.raan,
            "eccentricity": self.eccentricity,
            "arg_perigee_deg": self.arg_perigee,
            "mean_anomaly_deg": self.mean_anomaly,
            "mean_motion_rev_day": self.mean_motion,
            "mean_motion_dot": self.mean_motion_dot,
            "bstar": self.bstar,
            "rev_number": self.rev_number,
        }


def parse_implied_decimal(raw: Optional[str]) -> float:
    """Decode an implied-decimal field (B*, second derivative of mean motion).

    These fields read ``±NNNNN±E``: a mantissa with an assumed leading
    ``0.`` followed by a one-digit power of ten, so ``-11606-4`` is
    ``-0.11606e-4``. A missing or blank field, as left by a short line,
    reads as zero.

    Raises:
        ValueError: If the field does not have that shape.
    """
    if raw is None or not raw.strip():
        return 0.0
    match = _IMPLIED_DECIMAL.match(raw.strip())
    if match is None:
        raise ValueError(f"Not an implied-decimal field: {raw!r}")

    sign, mantissa, exponent = match.groups()
    value = int(mantissa) / 10 ** len(mantissa)
    if exponent:
        value *= 10.0 ** int(exponent)
    return -value if sign == "-" else value


def expand_epoch_year(two_digit_year: int) -> int:
    """Map a two-digit epoch year to four digits (57-99 → 19xx, 00-56 → 20xx)."""
    if two_digit_year >= EPOCH_PIVOT:
        return 1900 + two_digit_year
    return 2000 + two_digit_year


def epoch_to_datetime(year: int, day_of_year: float) -> datetime:
    """Epoch year and fractional day-of-year as a naive UTC datetime.

    ``year`` may be the two-digit value from the TLE or already expanded.
    Day ``1.0`` is midnight on January 1.

    Raises:
        ValueError: If ``day_of_year`` falls outside 1-366.
    """
    if year < 100:
        year = expand_epoch_year(year)
    if not 1.0 <= day_of_year < 367.0:
        raise ValueError(f"Epoch day {day_of_year} is outside 1-366")
    return datetime(year, 1, 1) + timedelta(days=day_of_year - 1.0)
