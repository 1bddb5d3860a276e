"""Persisted sync state used to skip unchanged samples."""

from .sync_state import SyncStateTracker

__all__ = ['SyncStateTracker']
