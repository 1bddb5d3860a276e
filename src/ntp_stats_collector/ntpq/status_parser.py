"""
ntpq Status Parser

Runs ntpq twice and scrapes the selected peer's synchronization state:

    1. ntpq -c rv -p -n      System variables plus the peer billboard.
                             Gives refid, offset, jitter, wander, stratum,
                             clock, reftime and the system peer's id.
    2. ntpq -c "rv <peer>"   Peer variables of the selected peer.
                             Gives dstadr, reach, delay, dispersion, ppoll.

The second query needs the peer id from the first, so the two run in
order. Each output line is matched against every rule of a table of
(field, pattern, converter) entries; a later match overwrites an earlier
one for the same field.

Sample "rv" output:

    associd=0 status=0615 leap_none, sync_ntp, 1 event, clock_sync,
    version="ntpd 4.2.8p15@1.3728-o", processor="x86_64",
    system="Linux/5.15.0", leap=00, stratum=2, precision=-24,
    rootdelay=1.025, rootdisp=18.313, refid=127.127.1.0,
    reftime=e3a5c1f2.1a2b3c4d  Mon, Jan 30 2021 10:15:14.102,
    clock=e3a5c2a0.8f5c28f5  Mon, Jan 30 2021 10:18:08.560, peer=5,
    tc=10, mintc=3, offset=0.123, frequency=-12.345, sys_jitter=0.456,
    clk_jitter=0.078, clk_wander=0.009
"""

import logging
import re
import subprocess
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence

from ..interfaces.ntp_stats import StatusFields
from ..timing.ntp_timestamp import ntp_to_unix, TimestampError

logger = logging.getLogger(__name__)


# Valid range for the ppoll exponent; 2**17 s is about 36 hours
MIN_POLL_EXPONENT = 0
MAX_POLL_EXPONENT = 17

DEFAULT_COMMAND_TIMEOUT = 10.0


class NtpqError(Exception):
    """ntpq could not be run."""


def poll_exponent_to_interval(value: str) -> int:
    """Convert a ppoll exponent to seconds, rejecting unreasonable exponents."""
    exponent = int(value)
    if not MIN_POLL_EXPONENT <= exponent <= MAX_POLL_EXPONENT:
        raise ValueError(
            f"polling exponent {exponent} outside "
            f"{MIN_POLL_EXPONENT}..{MAX_POLL_EXPONENT}"
        )
    return 2 ** exponent


@dataclass(frozen=True)
class FieldRule:
    """One field extraction rule: regex with a single capture group."""
    key: str
    pattern: "re.Pattern"
    convert: Callable[[str], Any]

    def match(self, line: str) -> Optional[str]:
        m = self.pattern.search(line)
        return m.group(1) if m else None


def _rule(key: str, pattern: str, convert: Callable[[str], Any] = str) -> FieldRule:
    return FieldRule(key, re.compile(pattern), convert)


# Timestamps end at whitespace (ntpq follows them with a date string),
# a comma, or the end of the line
_NTP_TIMESTAMP = r'([0-9a-fA-FxX.]+)(?=[\s,]|$)'

SYSTEM_RULES: List[FieldRule] = [
    _rule('source', r'refid=([^,\s]+)'),
    _rule('offset', r'\boffset=([0-9.\-]+),', float),
    _rule('jitter', r'sys_jitter=([0-9.\-]+),', float),
    _rule('wander', r'clk_wander=([0-9.\-]+),?', float),
    _rule('stratum', r'\bstratum=(\d+)', int),
    _rule('clock', r'\bclock=' + _NTP_TIMESTAMP, ntp_to_unix),
    _rule('sync_time', r'\breftime=' + _NTP_TIMESTAMP, ntp_to_unix),
    _rule('peer', r'\bpeer=(\d+)', int),
]

PEER_RULES: List[FieldRule] = [
    _rule('destination', r'dstadr=([^,\s]+)'),
    _rule('reach', r'(?:^|\s)reach=(\d+)', int),
    _rule('delay', r'(?:^|\s)delay=([0-9.]+)', float),
    _rule('dispersion', r'(?:^|\s)dispersion=([0-9.\-]+)', float),
    _rule('polling_interval', r'\bppoll=(\d+)', poll_exponent_to_interval),
]


def parse_lines(
    lines: Sequence[str],
    rules: Sequence[FieldRule],
    fields: Optional[StatusFields] = None
) -> StatusFields:
    """
    Apply a rule table to ntpq output, merging matches into fields.

    A value that fails conversion is logged and left unset; it does not
    stop the other fields from being collected.
    """
    if fields is None:
        fields = StatusFields()

    for line in lines:
        for rule in rules:
            text = rule.match(line)
            if text is None:
                continue
            try:
                fields.set(rule.key, rule.convert(text))
            except TimestampError as e:
                logger.error(f"Could not convert {rule.key} timestamp: {e}")
            except ValueError as e:
                logger.warning(f"Ignoring {rule.key}={text!r}: {e}")

    return fields


class NtpqStatusParser:
    """
    Collects StatusFields from the local NTP daemon via ntpq.

    Usage:
        parser = NtpqStatusParser('/usr/sbin/ntpq', timeout=10)
        fields = parser.collect()
    """

    def __init__(
        self,
        ntpq_path: str,
        timeout: float = DEFAULT_COMMAND_TIMEOUT,
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run
    ):
        """
        Args:
            ntpq_path: Path to the ntpq executable
            timeout: Seconds to wait for each ntpq invocation
            runner: subprocess.run compatible callable (replaced in tests)
        """
        self.ntpq_path = ntpq_path
        self.timeout = timeout
        self.runner = runner

    def system_command(self) -> List[str]:
        return [self.ntpq_path, '-c', 'rv', '-p', '-n']

    def peer_command(self, peer: int) -> List[str]:
        return [self.ntpq_path, '-c', f'rv {peer}']

    def _run(self, cmd: List[str]) -> subprocess.CompletedProcess:
        logger.debug(f"command: {' '.join(cmd)}")
        try:
            return self.runner(
                cmd, capture_output=True, text=True, errors='replace',
                timeout=self.timeout
            )
        except subprocess.TimeoutExpired:
            raise NtpqError(f"ntpq timed out after {self.timeout}s: {' '.join(cmd)}")
        except OSError as e:
            raise NtpqError(f"Error running ntpq: {e}")
        except UnicodeDecodeError as e:
            raise NtpqError(f"Unreadable ntpq output: {e}")

    def collect(self) -> StatusFields:
        """
        Query system variables, then the selected peer if there is one.

        Returns:
            StatusFields; peer detail fields stay None when no peer is
            selected or the peer query fails

        Raises:
            NtpqError: the system variable query could not be run
        """
        result = self._run(self.system_command())
        if result.returncode != 0:
            logger.warning(
                f"ntpq exited with status {result.returncode}: "
                f"{(result.stderr or '').strip()}"
            )
        fields = parse_lines(result.stdout.splitlines(), SYSTEM_RULES)

        peer = fields.peer_id
        if peer > 0:
            self._collect_peer(peer, fields)
        else:
            logger.warning(f"invalid primary peer: {fields.peer!r}")

        logger.debug(f"ntp stats: {fields.to_json()}")
        return fields

    def _collect_peer(self, peer: int, fields: StatusFields):
        try:
            result = self._run(self.peer_command(peer))
        except NtpqError as e:
            logger.warning(f"Error getting peer {peer}: {e}")
            return

        if result.returncode != 0:
            logger.warning(
                f"ntpq peer query exited with status {result.returncode}: "
                f"{(result.stderr or '').strip()}"
            )
            return

        parse_lines(result.stdout.splitlines(), PEER_RULES, fields)
