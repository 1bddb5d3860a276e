"""Data models shared between the parser, state tracker and reporter."""

from .ntp_stats import StatusFields, RunOutcome, PEER_DETAIL_FIELDS

__all__ = ['StatusFields', 'RunOutcome', 'PEER_DETAIL_FIELDS']
