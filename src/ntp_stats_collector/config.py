"""
Configuration for ntp-stats-collector.

Configuration is read from a TOML file and turned into a frozen
CollectorConfig that is handed to each component explicitly.

Example /etc/ntp-stats-collector/ntp-stats-collector.toml:

    [measurement_archive]
    database = "https://archive.example.net/esmond/perfsonar/archive/"
    username = "ntp"
    password = "0123456789abcdef"

    [local]
    state_file = "/var/run/ntp.info"
    ntpq_path = "/usr/sbin/ntpq"
    check_state = true
"""

import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Optional

import toml

logger = logging.getLogger(__name__)


DEFAULT_CONFIG_FILE = '/etc/ntp-stats-collector/ntp-stats-collector.toml'
DEFAULT_STATE_FILE = '/var/run/ntp.info'
DEFAULT_NTPQ_PATH = '/usr/sbin/ntpq'
DEFAULT_COMMAND_TIMEOUT = 10.0
DEFAULT_ARCHIVE_TIMEOUT = 30.0


class ConfigError(Exception):
    """Configuration is missing or unusable."""


@dataclass(frozen=True)
class CollectorConfig:
    """Validated collector settings."""
    archive_url: str
    username: str
    api_key: str
    state_file: str = DEFAULT_STATE_FILE
    ntpq_path: str = DEFAULT_NTPQ_PATH
    check_state: bool = True
    command_timeout: float = DEFAULT_COMMAND_TIMEOUT
    archive_timeout: float = DEFAULT_ARCHIVE_TIMEOUT
    verify_ssl: bool = True

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "CollectorConfig":
        """
        Build a CollectorConfig from a parsed TOML document.

        Raises:
            ConfigError: a required setting is missing or invalid
        """
        archive = config.get('measurement_archive')
        if not isinstance(archive, dict):
            raise ConfigError("No measurement archive settings in config file.")

        local = config.get('local', {}) or {}

        archive_url = archive.get('database')
        username = archive.get('username')
        api_key = archive.get('password')
        if not archive_url:
            raise ConfigError("No measurement archive URL specified in config file.")
        if not username:
            raise ConfigError("No measurement archive username specified in config file.")
        if not api_key:
            raise ConfigError("No measurement archive password specified in config file.")

        # An explicit false is a valid value, only a missing key gets the default
        check_state = local.get('check_state')
        if check_state is None:
            check_state = True

        try:
            command_timeout = float(local.get('command_timeout', DEFAULT_COMMAND_TIMEOUT))
            archive_timeout = float(archive.get('timeout', DEFAULT_ARCHIVE_TIMEOUT))
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid timeout in config file: {e}")

        return cls(
            archive_url=str(archive_url),
            username=str(username),
            api_key=str(api_key),
            state_file=str(local.get('state_file') or DEFAULT_STATE_FILE),
            ntpq_path=str(local.get('ntpq_path') or DEFAULT_NTPQ_PATH),
            check_state=bool(check_state),
            command_timeout=command_timeout,
            archive_timeout=archive_timeout,
            verify_ssl=bool(archive.get('verify_ssl', True)),
        )

    def with_overrides(
        self,
        state_file: Optional[str] = None,
        force: bool = False
    ) -> "CollectorConfig":
        """Apply command-line overrides."""
        updated = self
        if state_file:
            updated = replace(updated, state_file=state_file)
        if force:
            updated = replace(updated, check_state=False)
        return updated

    def validate_ntpq(self):
        """Check that ntpq exists and is executable."""
        path = Path(self.ntpq_path)
        if not path.is_file() or not os.access(path, os.X_OK):
            raise ConfigError(f"ntpq not found at configured location: {self.ntpq_path}")


def load_config(config_path: str) -> Dict[str, Any]:
    """Load configuration from TOML file."""
    path = Path(config_path)
    if not path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with open(path, 'r') as f:
            return toml.load(f)
    except (OSError, toml.TomlDecodeError) as e:
        raise ConfigError(f"Could not read config file {config_path}: {e}")
