"""
NTP Timestamp Conversion

ntpq prints NTP timestamps (seconds since 1900-01-01, 32.32 fixed point)
either as decimal ("3900000000.5") or as the raw hexadecimal dump of the
two 32-bit halves ("e3a5c1f2.1a2b3c4d"). This module turns either form
into Unix epoch seconds.

Base detection:
    A part is hexadecimal when it carries a 0x prefix or contains one of
    the letters a-f. A digits-only part is decimal. For the fractional
    half this means a hex dump such as "00000000" or "12345678" is read
    as the decimal fraction 0.00000000 / 0.12345678 rather than as a
    binary fraction of 2**32. Reported values depend on this rule, so it
    is kept as is.

Reference:
- http://www.ntp.org/ntpfaq/NTP-s-related.htm#AEN6780
"""

from typing import Optional, Tuple

# Seconds between 1900-01-01 and 1970-01-01 (17 leap days in between)
NTP_UNIX_EPOCH_OFFSET = (70 * 365 + 17) * 86400

# The NTP seconds field is an unsigned 32-bit counter
NTP_ERA_SECONDS = 65536 * 65536

# Resolution of the fractional half
NTP_FRACTION_SCALE = 2 ** 32

_HEX_LETTERS = frozenset('abcdefABCDEF')


class TimestampError(ValueError):
    """Timestamp text is empty or cannot be parsed."""


def is_hex_part(part: str) -> bool:
    """True if a timestamp component should be read as base 16."""
    if part[:2] in ('0x', '0X'):
        return True
    return any(c in _HEX_LETTERS for c in part)


def split_timestamp(raw: str) -> Tuple[str, str]:
    """Split "int.frac" on the first dot; the fraction defaults to "0"."""
    int_part, _, frac_part = raw.partition('.')
    return int_part, frac_part or '0'


def _strip_hex_prefix(part: str) -> str:
    return part[2:] if part[:2] in ('0x', '0X') else part


def _parse_hex(part: str, raw: str) -> int:
    digits = _strip_hex_prefix(part)
    try:
        value = int(digits, 16)
    except ValueError:
        raise TimestampError(f"Invalid hexadecimal timestamp: {raw!r}")
    if value < 0:
        raise TimestampError(f"Negative timestamp: {raw!r}")
    return value


def ntp_to_unix(raw: Optional[str]) -> float:
    """
    Convert an NTP timestamp string to Unix epoch seconds.

    Args:
        raw: Timestamp as printed by ntpq, decimal or hexadecimal

    Returns:
        Unix time in seconds, fractional part included. Values that fall
        before 1970 are wrapped forward by 2**32 seconds (NTP era rollover).

    Raises:
        TimestampError: raw is None, empty, or not a valid timestamp
    """
    if raw is None or not raw.strip():
        raise TimestampError("No timestamp to convert")

    raw = raw.strip()
    int_part, frac_part = split_timestamp(raw)
    if not int_part:
        raise TimestampError(f"Timestamp has no integer part: {raw!r}")

    if is_hex_part(int_part):
        seconds = _parse_hex(int_part, raw)
        if is_hex_part(frac_part):
            fraction = _parse_hex(frac_part, raw) / NTP_FRACTION_SCALE
        else:
            try:
                fraction = float(f"0.{frac_part}")
            except ValueError:
                raise TimestampError(f"Invalid timestamp fraction: {raw!r}")
    else:
        try:
            seconds = int(int_part)
            if is_hex_part(frac_part):
                # Hex dump whose seconds happen to be all digits; the
                # fraction cannot be read against decimal seconds
                fraction = 0.0
            else:
                # Taking the fraction from the whole value avoids rounding
                # the digits of the split string a second time
                fraction = float(raw) - seconds
        except ValueError:
            raise TimestampError(f"Invalid decimal timestamp: {raw!r}")
        if seconds < 0:
            raise TimestampError(f"Negative timestamp: {raw!r}")

    unix_seconds = seconds - NTP_UNIX_EPOCH_OFFSET
    while unix_seconds < 0:
        unix_seconds += NTP_ERA_SECONDS

    return unix_seconds + fraction
