"""Fixed-column field extraction and the parsed record type.

Column layout (0-based, end-exclusive), after Kelso's CelesTrak format
documentation (https://celestrak.org/columns/v04n03/)::

    Line 1                                   Line 2
    0      line number                       0      line number
    2-7    satellite number                  2-7    satellite number
    7      classification                    8-16   inclination (deg)
    9-11   intl designator year              17-25  right ascension (deg)
    11-14  intl designator launch number     26-33  eccentricity (implied 0.)
    14-17  intl designator piece             34-42  argument of perigee (deg)
    18-20  epoch year                        43-51  mean anomaly (deg)
    20-32  epoch day of year                 52-63  mean motion (rev/day)
    33-43  first derivative of mean motion   63-68  revolution number
    44-52  second derivative (implied dec.)  68     checksum
    53-61  B* drag term (implied dec.)
    62     ephemeris type
    64-68  element set number
    68     checksum

Values are kept as trimmed strings. Numeric coercion is left to callers
(see :mod:`tlelint.elements`) so the original formatting survives.
"""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Iterator, Optional

from .issues import (
    ErrorCode,
    Issue,
    ParserState,
    RecoveryAction,
    RecoveryKind,
    Severity,
    make_issue,
)


@dataclass(frozen=True)
class FieldSpec:
    """A named ``[start, end)`` column range on one TLE line."""
    name: str
    start: int
    end: int
    label: str


LINE1_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("line_number1", 0, 1, "Line 1 number"),
    FieldSpec("satellite_number1", 2, 7, "Satellite number"),
    FieldSpec("classification", 7, 8, "Classification"),
    FieldSpec("intl_designator_year", 9, 11, "Int. designator year"),
    FieldSpec("intl_designator_launch", 11, 14, "Int. designator launch"),
    FieldSpec("intl_designator_piece", 14, 17, "Int. designator piece"),
    FieldSpec("epoch_year", 18, 20, "Epoch year"),
    FieldSpec("epoch_day", 20, 32, "Epoch day"),
    FieldSpec("first_derivative", 33, 43, "First derivative"),
    FieldSpec("second_derivative", 44, 52, "Second derivative"),
    FieldSpec("bstar", 53, 61, "B* drag term"),
    FieldSpec("ephemeris_type", 62, 63, "Ephemeris type"),
    FieldSpec("element_set_number", 64, 68, "Element set number"),
    FieldSpec("checksum1", 68, 69, "Line 1 checksum"),
)

LINE2_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("line_number2", 0, 1, "Line 2 number"),
    FieldSpec("satellite_number2", 2, 7, "Satellite number"),
    FieldSpec("inclination", 8, 16, "Inclination"),
    FieldSpec("right_ascension", 17, 25, "Right ascension"),
    FieldSpec("eccentricity", 26, 33, "Eccentricity"),
    FieldSpec("arg_perigee", 34, 42, "Argument of perigee"),
    FieldSpec("mean_anomaly", 43, 51, "Mean anomaly"),
    FieldSpec("mean_motion", 52, 63, "Mean motion"),
    FieldSpec("revolution_number", 63, 68, "Revolution number"),
    FieldSpec("checksum2", 68, 69, "Line 2 checksum"),
)

FIELD_NAMES: tuple[str, ...] = ("satellite_name",) + tuple(
    spec.name for spec in LINE1_FIELDS + LINE2_FIELDS
)
"""Canonical order of the fields in a :class:`ParsedRecord`."""


@dataclass
class Extraction:
    """Fields pulled from one line, with the issues and recoveries it cost."""
    values: dict[str, Optional[str]] = field(default_factory=dict)
    issues: list[Issue] = field(default_factory=list)
    recoveries: list[RecoveryAction] = field(default_factory=list)


def extract_fields(
    line: str,
    specs: tuple[FieldSpec, ...],
    state: Optional[ParserState] = None,
) -> Extraction:
    """Slice every field in ``specs`` out of ``line``.

    Short lines degrade instead of failing: a field cut off by the end of
    the line keeps whatever characters are there (``PARTIAL_FIELD``), a field
    that starts past the end becomes ``None`` (``MISSING_FIELD``). Both are
    warnings with a ``use-default`` recovery attached.

    Args:
        line: One TLE data line.
        specs: Column table for that line.
        state: Parser phase to tag issues and recoveries with.

    Returns:
        The extracted values plus any issues and recovery actions.
    """
    out = Extraction()
    length = len(line)

    for spec in specs:
        if length >= spec.end:
            out.values[spec.name] = line[spec.start:spec.end].strip()
            continue

        details = {"field": spec.name, "expected": [spec.start, spec.end], "actual": length}
        if length > spec.start:
            out.values[spec.name] = line[spec.start:].strip()
            out.issues.append(make_issue(
                Severity.WARNING,
                ErrorCode.PARTIAL_FIELD,
                f"{spec.label} is incomplete due to short line",
                state,
                **details,
            ))
            description = f"Using partial value for {spec.label}"
        else:
            out.values[spec.name] = None
            out.issues.append(make_issue(
                Severity.WARNING,
                ErrorCode.MISSING_FIELD,
                f"{spec.label} is missing due to short line",
                state,
                **details,
            ))
            description = f"Using null for missing {spec.label}"

        out.recoveries.append(RecoveryAction(
            RecoveryKind.USE_DEFAULT,
            description,
            state,
            details={"field": spec.name},
        ))

    return out


class ParsedRecord(Mapping):
    """Read-only, ordered mapping of raw TLE field strings.

    Every name in :data:`FIELD_NAMES` is present; fields that could not be
    extracted map to ``None``. Fields are also readable as attributes::

        >>> record["inclination"]
        '51.6453'
        >>> record.satellite_number1
        '25544'

    Attributes:
        issues: Warnings attached by the parser (empty unless requested).
        comments: ``#`` lines from the input (empty unless requested).
    """

    __slots__ = ("_fields", "issues", "comments")

    def __init__(
        self,
        values: Optional[Mapping[str, Optional[str]]] = None,
        issues: tuple[Issue, ...] = (),
        comments: tuple[str, ...] = (),
    ):
        values = dict(values or {})
        unknown = set(values) - set(FIELD_NAMES)
        if unknown:
            raise KeyError(f"Unknown TLE field(s): {', '.join(sorted(unknown))}")
        object.__setattr__(self, "_fields", {name: values.get(name) for name in FIELD_NAMES})
        object.__setattr__(self, "issues", tuple(issues))
        object.__setattr__(self, "comments", tuple(comments))

    def __getitem__(self, key: str) -> Optional[str]:
        return self._fields[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __getattr__(self, name: str) -> Optional[str]:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self._fields[name]
        except KeyError:
            raise AttributeError(name) from None

    def __setattr__(self, name: str, value) -> None:
        raise AttributeError("ParsedRecord is read-only")

    def __repr__(self) -> str:
        name = self._fields["satellite_name"]
        number = self._fields["satellite_number1"]
        return f"ParsedRecord(satellite_name={name!r}, satellite_number1={number!r})"

    @property
    def warnings(self) -> tuple[Issue, ...]:
        return tuple(i for i in self.issues if i.is_warning)

    def to_dict(self) -> dict:
        """Plain-dict copy of the fields (issues and comments excluded)."""
        return dict(self._fields)
