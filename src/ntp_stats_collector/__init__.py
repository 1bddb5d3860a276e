"""
ntp-stats-collector: local NTP statistics for perfSONAR esmond archives

Runs out of cron, scrapes the NTP daemon's view of its selected
synchronization source through ntpq, and posts the statistics to an esmond
measurement archive whenever the daemon has resynchronized since the
previous run.

Pipeline:
    ntpq (rv, rv <peer>) → StatusFields → sync-state check → esmond archive

Version: 1.0.0
"""

__version__ = "1.0.0"

from .interfaces.ntp_stats import StatusFields, RunOutcome
from .timing.ntp_timestamp import ntp_to_unix, TimestampError, NTP_UNIX_EPOCH_OFFSET

__all__ = [
    "StatusFields",
    "RunOutcome",
    "ntp_to_unix",
    "TimestampError",
    "NTP_UNIX_EPOCH_OFFSET",
    "__version__",
]
