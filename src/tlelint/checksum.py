"""NORAD modulo-10 line checksum.

The last column of each TLE line holds a check digit: the sum of all digits
in columns 1-68, plus one for every minus sign, modulo 10. Letters, blanks,
periods and plus signs count as zero. Providers compute it exactly this way,
so it has to match bit for bit.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .issues import ErrorCode

LINE_LENGTH = 69
"""Exact length of a TLE data line."""

CHECKSUM_INDEX = LINE_LENGTH - 1
"""0-based position of the check digit."""


@dataclass(frozen=True)
class ChecksumResult:
    """Outcome of :func:`verify_checksum`.

    Attributes:
        ok: True if the stored digit matches the computed one.
        expected: Computed checksum, or None if the line length is wrong.
        actual: Digit stored in the line, or None if absent/not a digit.
        code: Why verification failed, None on success.
    """
    ok: bool
    expected: Optional[int]
    actual: Optional[int]
    code: Optional[ErrorCode] = None


def compute_checksum(line: str) -> int:
    """Compute the checksum of a TLE line.

    Only the first 68 characters are summed; the check digit itself never
    contributes.

    Args:
        line: TLE line, with or without its check digit.

    Returns:
        Checksum digit 0-9.
    """
    total = 0
    for ch in line[:CHECKSUM_INDEX]:
        if "0" <= ch <= "9":
            total += ord(ch) - ord("0")
        elif ch == "-":
            total += 1
    return total % 10


def verify_checksum(line: str) -> ChecksumResult:
    """Compare a line's stored check digit with the computed one.

    A line that is not exactly 69 characters is a length failure, not a
    checksum failure, and reports ``INVALID_LINE_LENGTH``.
    """
    if len(line) != LINE_LENGTH:
        return ChecksumResult(False, None, None, ErrorCode.INVALID_LINE_LENGTH)

    expected = compute_checksum(line)
    stored = line[CHECKSUM_INDEX]
    if not ("0" <= stored <= "9"):
        return ChecksumResult(False, expected, None, ErrorCode.INVALID_CHECKSUM_CHARACTER)

    actual = int(stored)
    if actual != expected:
        return ChecksumResult(False, expected, actual, ErrorCode.CHECKSUM_MISMATCH)
    return ChecksumResult(True, expected, actual)


def with_checksum(line: str) -> str:
    """Return ``line`` padded/truncated to 68 columns plus a correct check digit."""
    body = line[:CHECKSUM_INDEX].ljust(CHECKSUM_INDEX)
    return body + str(compute_checksum(body))
