"""
Unit tests for NTP timestamp conversion.

Covers both textual forms ntpq prints (decimal and hexadecimal), the
1900 -> 1970 epoch shift, and 32-bit era wraparound.
"""

import pytest

from ntp_stats_collector.timing.ntp_timestamp import (
    ntp_to_unix,
    is_hex_part,
    split_timestamp,
    TimestampError,
    NTP_UNIX_EPOCH_OFFSET,
    NTP_ERA_SECONDS,
)


class TestEpochOffset:
    """The NTP to Unix epoch offset."""

    def test_offset_is_seventy_years_with_leap_days(self):
        assert NTP_UNIX_EPOCH_OFFSET == (70 * 365 + 17) * 86400

    def test_offset_value(self):
        """Well-known constant 2208988800."""
        assert NTP_UNIX_EPOCH_OFFSET == 2208988800


class TestDecimalTimestamps:
    """Decimal ntpq timestamps."""

    def test_unix_epoch(self):
        assert ntp_to_unix("2208988800.0") == 0.0

    def test_integer_and_fraction(self):
        result = ntp_to_unix("3900000000.5")
        assert result == pytest.approx(3900000000 - NTP_UNIX_EPOCH_OFFSET + 0.5)

    def test_fraction_taken_from_full_value(self):
        result = ntp_to_unix("3900000000.25")
        assert result - int(result) == pytest.approx(0.25, abs=1e-6)

    def test_no_fraction(self):
        assert ntp_to_unix("3900000000") == 3900000000 - NTP_UNIX_EPOCH_OFFSET

    def test_wraparound_before_1970(self):
        """Seconds before the Unix epoch wrap forward one NTP era."""
        result = ntp_to_unix("100.0")
        assert result == 100 - NTP_UNIX_EPOCH_OFFSET + NTP_ERA_SECONDS
        assert result >= 0

    def test_surrounding_whitespace_ignored(self):
        assert ntp_to_unix("  3900000000.0\n") == ntp_to_unix("3900000000.0")


class TestHexTimestamps:
    """Hexadecimal ntpq timestamps."""

    def test_hex_integer_and_hex_fraction(self):
        result = ntp_to_unix("e3a5c1f2.c0000000")
        expected = int("e3a5c1f2", 16) - NTP_UNIX_EPOCH_OFFSET + 0.75
        assert result == pytest.approx(expected)

    def test_hex_fraction_scaled_by_2_32(self):
        # 0x83aa7e80 is the Unix epoch, so only the fraction remains
        assert ntp_to_unix("83aa7e80.0000000a") == 10 / 2 ** 32
        assert ntp_to_unix("83aa7e80.8000000a") == (0x8000000a) / 2 ** 32

    def test_digits_only_fraction_read_as_decimal(self):
        """A hex dump fraction with no letters is read literally as 0.<digits>."""
        result = ntp_to_unix("c1a2b3c4.25000000")
        seconds = int("c1a2b3c4", 16) - NTP_UNIX_EPOCH_OFFSET
        assert result - seconds == pytest.approx(0.25)

    def test_zero_fraction(self):
        result = ntp_to_unix("c1a2b3c4.00000000")
        assert result == int("c1a2b3c4", 16) - NTP_UNIX_EPOCH_OFFSET

    def test_prefixed_parts(self):
        assert ntp_to_unix("0xe3a5c1f2.0xc0000000") == ntp_to_unix("e3a5c1f2.c0000000")

    def test_uppercase_digits(self):
        assert ntp_to_unix("E3A5C1F2.C0000000") == ntp_to_unix("e3a5c1f2.c0000000")

    def test_hex_wraparound(self):
        result = ntp_to_unix("0000000a.00000000")
        assert result == 10 - NTP_UNIX_EPOCH_OFFSET + NTP_ERA_SECONDS

    def test_digits_only_seconds_with_hex_fraction(self):
        """Seconds without letters stay decimal; the hex fraction is dropped."""
        result = ntp_to_unix("00012345.abcdef01")
        assert result == 12345 - NTP_UNIX_EPOCH_OFFSET + NTP_ERA_SECONDS

    def test_decimal_seconds_with_exponent_like_fraction(self):
        assert ntp_to_unix("3900000000.5e3") == 3900000000 - NTP_UNIX_EPOCH_OFFSET

    def test_deterministic(self):
        assert ntp_to_unix("e3a5c1f2.1a2b3c4d") == ntp_to_unix("e3a5c1f2.1a2b3c4d")


class TestInvalidTimestamps:
    """Bad input raises instead of turning into zero."""

    @pytest.mark.parametrize("raw", ["", "   ", None])
    def test_empty_input_raises(self, raw):
        with pytest.raises(TimestampError):
            ntp_to_unix(raw)

    def test_missing_integer_part(self):
        with pytest.raises(TimestampError):
            ntp_to_unix(".5")

    def test_garbage(self):
        with pytest.raises(TimestampError):
            ntp_to_unix("not-a-time")

    def test_is_value_error(self):
        assert issubclass(TimestampError, ValueError)


class TestHelpers:

    def test_split_defaults_fraction(self):
        assert split_timestamp("123") == ("123", "0")

    def test_split_on_first_dot(self):
        assert split_timestamp("1.2.3") == ("1", "2.3")

    @pytest.mark.parametrize("part,expected", [
        ("123456", False),
        ("c1a2b3c4", True),
        ("0x10", True),
        ("0X10", True),
        ("00000000", False),
        ("ABCDEF", True),
    ])
    def test_is_hex_part(self, part, expected):
        assert is_hex_part(part) is expected
