"""
Pytest configuration and fixtures for ntp-stats-collector tests.
"""

import pytest
import subprocess
import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))


SYSTEM_OUTPUT = """\
associd=0 status=0615 leap_none, sync_ntp, 1 event, clock_sync,
version="ntpd 4.2.8p15@1.3728-o Wed Sep 23 11:46:38 UTC 2020 (1)",
processor="x86_64", system="Linux/5.15.0", leap=00, stratum=2,
precision=-24, rootdelay=1.025, rootdisp=18.313, refid=127.127.1.0,
reftime=c1a2b3c4.00000000  Thu, Dec 23 2002  3:32:04.000,
clock=c1a2b3f0.c0000000  Thu, Dec 23 2002  3:32:48.750, peer=5, tc=6,
mintc=3, offset=0.123, frequency=-12.345, sys_jitter=0.456,
clk_jitter=0.078, clk_wander=0.009
     remote           refid      st t when poll reach   delay   offset  jitter
==============================================================================
*127.127.1.0     .LOCL.          10 l   42   64  377    0.000    0.123   0.456
"""

PEER_OUTPUT = """\
associd=5 status=961a conf, reach, sel_sys.peer, 1 event, popcorn,
srcadr=127.127.1.0, srcport=123, dstadr=192.0.2.10, dstport=123,
leap=00, stratum=1, precision=-20, rootdelay=0.000, rootdisp=10.000,
refid=LOCL, reftime=c1a2b3c4.00000000  Thu, Dec 23 2002  3:32:04.000,
rec=c1a2b3c4.00000000  Thu, Dec 23 2002  3:32:04.000, reach=377,
unreach=0, hmode=3, pmode=4, hpoll=6, ppoll=6, headway=0, flash=00 ok,
keyid=0, offset=0.123, delay=1.234, dispersion=0.567, jitter=0.089,
xleave=0.031
"""


class FakeRunner:
    """Stands in for subprocess.run, replaying canned ntpq output."""

    def __init__(self, system_output=SYSTEM_OUTPUT, peer_output=PEER_OUTPUT,
                 system_returncode=0, peer_returncode=0,
                 system_error=None, peer_error=None):
        self.system_output = system_output
        self.peer_output = peer_output
        self.system_returncode = system_returncode
        self.peer_returncode = peer_returncode
        self.system_error = system_error
        self.peer_error = peer_error
        self.calls = []

    def __call__(self, cmd, **kwargs):
        self.calls.append((list(cmd), kwargs))
        is_peer_query = cmd[-1].startswith('rv ')
        if is_peer_query:
            if self.peer_error:
                raise self.peer_error
            return subprocess.CompletedProcess(
                cmd, self.peer_returncode, self.peer_output, '')
        if self.system_error:
            raise self.system_error
        return subprocess.CompletedProcess(
            cmd, self.system_returncode, self.system_output, '')


@pytest.fixture
def system_output():
    """ntpq -c rv -p -n output with peer 5 selected."""
    return SYSTEM_OUTPUT


@pytest.fixture
def peer_output():
    """ntpq -c "rv 5" output."""
    return PEER_OUTPUT


@pytest.fixture
def fake_runner():
    """Factory for FakeRunner instances."""
    return FakeRunner


@pytest.fixture
def collector_config(tmp_path):
    """CollectorConfig pointing at a temp state file."""
    from ntp_stats_collector.config import CollectorConfig
    return CollectorConfig(
        archive_url='https://archive.example.net/esmond/perfsonar/archive/',
        username='ntp',
        api_key='secret',
        state_file=str(tmp_path / 'ntp.info'),
        ntpq_path='/usr/sbin/ntpq',
    )
