"""
NTP Statistics Data Models

These dataclasses define the contract between the ntpq status parser and
the reporting side of the collector. A StatusFields instance is built up
field by field while ntpq output is scanned; fields the daemon did not
report stay None so consumers can tell "absent" from "zero".
"""

from dataclasses import dataclass, asdict, fields as dataclass_fields
from enum import Enum
from typing import Any, Dict, List, Optional
import json


# Fields that only the peer-detail query ("rv <assoc>") provides
PEER_DETAIL_FIELDS = (
    'destination',
    'reach',
    'delay',
    'dispersion',
    'polling_interval',
)


class RunOutcome(str, Enum):
    """Result of one collection cycle."""
    REPORTED = "REPORTED"   # Telemetry posted to the archive
    SKIPPED = "SKIPPED"     # Daemon has not resynchronized since last report
    ABORTED = "ABORTED"     # Fatal error, nothing reported


@dataclass
class StatusFields:
    """
    Telemetry scraped from ntpq for the currently selected system peer.

    Timestamps (clock, sync_time) are already normalized to Unix epoch
    seconds by the time they land here.
    """
    # System variables ("rv")
    source: Optional[str] = None         # refid of the upstream time source
    offset: Optional[float] = None       # ms
    jitter: Optional[float] = None       # sys_jitter, ms
    wander: Optional[float] = None       # clk_wander, ppm
    stratum: Optional[int] = None
    clock: Optional[float] = None        # Unix seconds
    sync_time: Optional[float] = None    # reftime, Unix seconds
    peer: Optional[int] = None           # association id of the system peer

    # Peer variables ("rv <peer>")
    destination: Optional[str] = None    # dstadr, the local address
    reach: Optional[int] = None
    delay: Optional[float] = None
    dispersion: Optional[float] = None
    polling_interval: Optional[int] = None  # seconds, 2**ppoll

    def set(self, key: str, value: Any):
        """Record a parsed value under its field name."""
        if key not in self.field_names():
            raise KeyError(f"Unknown status field: {key}")
        setattr(self, key, value)

    @property
    def peer_id(self) -> int:
        """Selected peer association id, 0 when none is selected."""
        try:
            return int(self.peer or 0)
        except (TypeError, ValueError):
            return 0

    @classmethod
    def field_names(cls) -> List[str]:
        return [f.name for f in dataclass_fields(cls)]

    def missing_fields(self) -> List[str]:
        """Names of recognized fields that were not found in ntpq output."""
        return [name for name in self.field_names() if getattr(self, name) is None]

    def has_peer_detail(self) -> bool:
        return all(getattr(self, name) is not None for name in PEER_DETAIL_FIELDS)

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)
