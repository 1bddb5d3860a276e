"""
NTP timestamp handling for ntp-stats-collector.
"""

from .ntp_timestamp import ntp_to_unix, TimestampError, NTP_UNIX_EPOCH_OFFSET

__all__ = ['ntp_to_unix', 'TimestampError', 'NTP_UNIX_EPOCH_OFFSET']
