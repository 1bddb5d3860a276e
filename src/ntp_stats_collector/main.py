#!/usr/bin/env python3
"""
ntp-stats-collector: send local NTP statistics to an esmond archive

Main entry point, meant to be run out of cron. Each run:
1. Queries ntpd through ntpq (system variables, then the system peer)
2. Converts the daemon's NTP timestamps to Unix time
3. Compares reftime with the sync time stored by the previous run
4. Posts metadata and data points to the measurement archive if the
   daemon has resynchronized since then (or unconditionally with --force)
5. Stores the new sync time

Usage:
    ntp-stats-collector --config /etc/ntp-stats-collector/ntp-stats-collector.toml

    # Report even if nothing changed
    ntp-stats-collector --force --verbose

Exit status:
    0   reported, or skipped because nothing changed
    1   aborted, nothing reported
    2   reported, but the state file could not be written
"""

import argparse
import logging
import sys
from typing import Optional

# Set up logging before imports that use it
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger('ntp-stats-collector')

from .config import CollectorConfig, ConfigError, DEFAULT_CONFIG_FILE, load_config
from .interfaces.ntp_stats import RunOutcome, StatusFields
from .ntpq.status_parser import NtpqStatusParser, NtpqError
from .output.esmond_client import EsmondClient, EsmondError, NtpReporter
from .state.sync_state import SyncStateTracker


EXIT_OK = 0
EXIT_ABORTED = 1
EXIT_STATE_ERROR = 2


class NtpStatsCollector:
    """
    One collection cycle: ntpq -> change detection -> archive.

    Components are built from the given CollectorConfig unless passed in
    explicitly.
    """

    def __init__(
        self,
        config: CollectorConfig,
        parser: Optional[NtpqStatusParser] = None,
        tracker: Optional[SyncStateTracker] = None,
        reporter: Optional[NtpReporter] = None
    ):
        self.config = config
        self.parser = parser or NtpqStatusParser(
            config.ntpq_path, timeout=config.command_timeout
        )
        self.tracker = tracker or SyncStateTracker(config.state_file)
        self.reporter = reporter or NtpReporter(EsmondClient(
            config.archive_url,
            config.username,
            config.api_key,
            timeout=config.archive_timeout,
            verify_ssl=config.verify_ssl,
        ))

        # Set when a report went out but the state file could not be updated
        self.state_error = False
        self.last_fields: Optional[StatusFields] = None

    def run(self) -> RunOutcome:
        """Run one cycle. Errors are logged and turned into ABORTED."""
        self.state_error = False

        try:
            fields = self.parser.collect()
        except NtpqError as e:
            logger.error(f"No stats found: {e}")
            return RunOutcome.ABORTED
        self.last_fields = fields

        if not fields.has_peer_detail():
            logger.warning(
                f"Incomplete NTP stats, missing: {', '.join(fields.missing_fields())}"
            )

        if self.config.check_state:
            if fields.sync_time is None:
                logger.error("sync_time not found.")
                return RunOutcome.ABORTED
            if not self.tracker.should_report(fields.sync_time):
                return RunOutcome.SKIPPED

        try:
            self.reporter.report(fields)
        except EsmondError as e:
            logger.error(f"Failed to post NTP stats: {e}")
            return RunOutcome.ABORTED

        if self.config.check_state:
            if not self.tracker.record(fields.sync_time):
                self.state_error = True
                logger.error(
                    "Sync state not saved; the next run will report again "
                    "even if nothing changes"
                )

        return RunOutcome.REPORTED

    def exit_code(self, outcome: RunOutcome) -> int:
        if outcome == RunOutcome.ABORTED:
            return EXIT_ABORTED
        if self.state_error:
            return EXIT_STATE_ERROR
        return EXIT_OK


def main(argv=None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description='Send local NTP stats to an esmond measurement archive',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Normal cron run
    ntp-stats-collector --config /etc/ntp-stats-collector/ntp-stats-collector.toml

    # Alternate state file, debug output
    ntp-stats-collector --statefile /tmp/ntp.info --verbose
"""
    )
    parser.add_argument(
        '--config',
        default=DEFAULT_CONFIG_FILE,
        help=f'Path to TOML configuration file (default: {DEFAULT_CONFIG_FILE})'
    )
    parser.add_argument(
        '--statefile',
        help='State file holding the last reported sync time (overrides config)'
    )
    parser.add_argument(
        '--force',
        action='store_true',
        help='Report even if ntpd has not resynchronized since the last run'
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable debug logging'
    )
    parser.add_argument(
        '--log-file',
        help='Also write log messages to this file'
    )

    args = parser.parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    if args.log_file:
        try:
            handler = logging.FileHandler(args.log_file)
        except OSError as e:
            logger.error(f"Could not open log file {args.log_file}: {e}")
            logger.info(f"Run outcome: {RunOutcome.ABORTED.value}")
            return EXIT_ABORTED
        handler.setFormatter(logging.Formatter(
            '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
        ))
        logging.getLogger().addHandler(handler)

    try:
        config = CollectorConfig.from_dict(load_config(args.config))
        config = config.with_overrides(state_file=args.statefile, force=args.force)
        config.validate_ntpq()
    except ConfigError as e:
        logger.error(str(e))
        logger.info(f"Run outcome: {RunOutcome.ABORTED.value}")
        return EXIT_ABORTED

    logger.debug(f"config: ntpq={config.ntpq_path}, state_file={config.state_file}, "
                 f"check_state={config.check_state}, archive={config.archive_url}")

    collector = NtpStatsCollector(config)
    outcome = collector.run()
    code = collector.exit_code(outcome)
    logger.info(f"Run outcome: {outcome.value}")
    return code


if __name__ == '__main__':
    sys.exit(main())
