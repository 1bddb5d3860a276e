"""Output adapters - esmond measurement archive."""

from .esmond_client import EsmondClient, EsmondError, NtpReporter, NTP_EVENT_TYPES

__all__ = ['EsmondClient', 'EsmondError', 'NtpReporter', 'NTP_EVENT_TYPES']
