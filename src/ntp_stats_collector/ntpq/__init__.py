"""ntpq invocation and output parsing."""

from .status_parser import NtpqStatusParser, NtpqError, SYSTEM_RULES, PEER_RULES

__all__ = ['NtpqStatusParser', 'NtpqError', 'SYSTEM_RULES', 'PEER_RULES']
