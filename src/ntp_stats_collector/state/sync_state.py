"""
Sync-State Change Detection

The collector runs out of cron, usually far more often than ntpd
resynchronizes. To avoid posting the same sample again, the reftime of
the last reported sample is kept in a small state file and compared with
the current one.

State file format: one line holding the last reported sync time as whole
Unix seconds, e.g.

    1691011200

The file is replaced atomically (write to temp, rename) so an interrupted
run never leaves a half-written value behind.

Usage:
    tracker = SyncStateTracker('/var/run/ntp.info')
    if tracker.should_report(fields.sync_time):
        reporter.report(fields)
        tracker.record(fields.sync_time)
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class SyncStateTracker:
    """
    Remembers the last reported sync time between runs.

    A missing, empty or garbled state file counts as "no prior state",
    which always leads to a report.
    """

    DEFAULT_PATH = "/var/run/ntp.info"

    def __init__(self, state_file: Optional[str] = None):
        """
        Args:
            state_file: Path to the state file (default: /var/run/ntp.info)
        """
        self.state_file = Path(state_file or self.DEFAULT_PATH)

    def read_last_sync_time(self) -> Optional[int]:
        """
        Read the persisted sync time.

        Returns:
            Whole Unix seconds, or None if there is no usable prior state
        """
        try:
            with open(self.state_file, 'r') as f:
                row = f.readline().strip()
        except FileNotFoundError:
            logger.debug(f"No state file at {self.state_file}")
            return None
        except OSError as e:
            logger.warning(f"Could not read state file '{self.state_file}': {e}")
            return None

        if not row:
            logger.debug(f"State file {self.state_file} is empty")
            return None

        try:
            return int(float(row))
        except (ValueError, OverflowError):
            logger.warning(f"Ignoring unparsable state file '{self.state_file}': {row!r}")
            return None

    def should_report(self, sync_time: float) -> bool:
        """
        Decide whether the daemon has resynchronized since the last report.

        Compares whole seconds only. Does not touch the state file.
        """
        last_sync_time = self.read_last_sync_time()
        if last_sync_time is None:
            logger.debug("No prior sync state, reporting")
            return True

        if int(sync_time) != last_sync_time:
            logger.debug(f"sync_time changed: {last_sync_time} -> {int(sync_time)}")
            return True

        logger.info("No updates since last write. Not updating.")
        return False

    def record(self, sync_time: float) -> bool:
        """
        Persist the reported sync time, replacing any previous value.

        Returns:
            True if written, False on error (logged)
        """
        value = int(sync_time)
        try:
            fd, temp_path = tempfile.mkstemp(
                dir=self.state_file.parent,
                prefix=f'.{self.state_file.name}.',
                suffix='.tmp'
            )
        except OSError as e:
            logger.error(f"Could not open file for write: '{self.state_file}' {e}")
            return False

        try:
            with os.fdopen(fd, 'w') as f:
                f.write(f"{value}\n")
            os.replace(temp_path, self.state_file)
        except OSError as e:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            logger.error(f"Could not write state file '{self.state_file}': {e}")
            return False

        logger.debug(f"Recorded sync_time {value} in {self.state_file}")
        return True
