"""
esmond Measurement Archive Client

Posts NTP statistics to a perfSONAR esmond archive in two steps:

    1. POST metadata describing the measurement (subject, tool, and the
       event types that will carry data) to the archive URL. The archive
       answers with the metadata record, including its "uri".
    2. PUT one bulk data record to that uri, with a single timestamp and
       one value per event type:

        {"data": [{"ts": 1691011200,
                   "val": [{"event-type": "ntp-offset", "val": 0.123}, ...]}]}

Authentication uses esmond's API key header:

    Authorization: ApiKey <username>:<api key>

Usage:
    client = EsmondClient(url, username, api_key)
    NtpReporter(client).report(fields)
"""

import http.client
import json
import logging
import ssl
import time
import urllib.error
import urllib.parse
import urllib.request
from typing import Any, Dict, List, Optional, Tuple

from ..interfaces.ntp_stats import StatusFields

logger = logging.getLogger(__name__)


SUBJECT_TYPE = 'network-element'
TOOL_NAME = 'ntp'
DEFAULT_TIMEOUT = 30.0

# (StatusFields attribute, esmond event type), in posting order
NTP_EVENT_TYPES: List[Tuple[str, str]] = [
    ('delay', 'ntp-delay'),
    ('dispersion', 'ntp-dispersion'),
    ('jitter', 'ntp-jitter'),
    ('offset', 'ntp-offset'),
    ('polling_interval', 'ntp-polling-interval'),
    ('reach', 'ntp-reach'),
    ('stratum', 'ntp-stratum'),
    ('wander', 'ntp-wander'),
]


class EsmondError(Exception):
    """The archive rejected a request or could not be reached."""


class EsmondClient:
    """Minimal esmond REST client for metadata and bulk data posts."""

    def __init__(
        self,
        url: str,
        username: str,
        api_key: str,
        timeout: float = DEFAULT_TIMEOUT,
        verify_ssl: bool = True
    ):
        """
        Args:
            url: Archive URL, e.g. https://host/esmond/perfsonar/archive/
            username: esmond user the API key belongs to
            api_key: esmond API key
            timeout: Seconds per HTTP request
            verify_ssl: Verify the archive's TLS certificate
        """
        self.url = url if url.endswith('/') else url + '/'
        self.username = username
        self.api_key = api_key
        self.timeout = timeout
        self.ssl_context: Optional[ssl.SSLContext] = None
        if not verify_ssl:
            self.ssl_context = ssl.create_default_context()
            self.ssl_context.check_hostname = False
            self.ssl_context.verify_mode = ssl.CERT_NONE

    def _request(self, url: str, payload: Dict[str, Any], method: str) -> Any:
        data = json.dumps(payload).encode('utf-8')
        logger.debug(f"{method} {url}: {payload}")

        try:
            req = urllib.request.Request(
                url,
                data=data,
                headers={
                    'Content-Type': 'application/json',
                    'Authorization': f'ApiKey {self.username}:{self.api_key}',
                    'User-Agent': 'ntp-stats-collector',
                },
                method=method,
            )
            with urllib.request.urlopen(
                req, timeout=self.timeout, context=self.ssl_context
            ) as resp:
                body = resp.read().decode('utf-8')
        except urllib.error.HTTPError as e:
            detail = e.read().decode('utf-8', errors='replace')[:200]
            raise EsmondError(f"{method} {url} failed: HTTP {e.code}: {detail}")
        except (urllib.error.URLError, OSError, ValueError, http.client.HTTPException) as e:
            raise EsmondError(f"{method} {url} failed: {e}")

        if not body.strip():
            return None
        try:
            return json.loads(body)
        except json.JSONDecodeError as e:
            raise EsmondError(f"Invalid JSON from archive: {e}")

    def post_metadata(self, metadata: Dict[str, Any]) -> str:
        """
        Create (or find) the metadata record.

        Returns:
            Absolute URL of the metadata record for bulk data posts
        """
        reply = self._request(self.url, metadata, 'POST')
        if not isinstance(reply, dict):
            raise EsmondError("Archive returned no metadata record")

        uri = reply.get('uri')
        if not uri:
            key = reply.get('metadata-key')
            if not key:
                raise EsmondError("Metadata record has no uri or metadata-key")
            uri = f"{key}/"

        return urllib.parse.urljoin(self.url, uri)

    def post_bulk_data(self, metadata_url: str, data_points: List[Dict[str, Any]]):
        """Upload data points ({"ts": ..., "val": [...]}) for a metadata record."""
        self._request(metadata_url, {'data': data_points}, 'PUT')


class NtpReporter:
    """
    Turns StatusFields into esmond metadata and data points.

    Only metrics that were actually collected are posted; fields missing
    from ntpq output are left out rather than sent as zero.
    """

    def __init__(self, client: EsmondClient):
        self.client = client

    @staticmethod
    def present_metrics(fields: StatusFields) -> List[Tuple[str, Any]]:
        """(event type, value) pairs for the metrics present in fields."""
        return [
            (event_type, getattr(fields, name))
            for name, event_type in NTP_EVENT_TYPES
            if getattr(fields, name) is not None
        ]

    def build_metadata(self, fields: StatusFields) -> Dict[str, Any]:
        """
        Build the metadata record.

        NTP calls the local address "destination" (dstadr); it identifies
        the measuring host.

        Raises:
            EsmondError: destination was not collected
        """
        local_ip = fields.destination
        if not local_ip:
            raise EsmondError(
                "No local address (dstadr) collected; peer detail unavailable"
            )

        return {
            'subject-type': SUBJECT_TYPE,
            'source': local_ip,
            'input-source': local_ip,
            'measurement-agent': local_ip,
            'tool-name': TOOL_NAME,
            'event-types': [
                {'event-type': event_type, 'summaries': []}
                for event_type, _ in self.present_metrics(fields)
            ],
        }

    def build_data_points(self, fields: StatusFields) -> List[Dict[str, Any]]:
        """One data point stamped with the daemon clock time."""
        if fields.clock is not None:
            ts = int(fields.clock)
        else:
            ts = int(time.time())
            logger.warning("clock not found, stamping data with current time")

        return [{
            'ts': ts,
            'val': [
                {'event-type': event_type, 'val': value}
                for event_type, value in self.present_metrics(fields)
            ],
        }]

    def report(self, fields: StatusFields):
        """
        Post metadata, then the data points.

        Raises:
            EsmondError: on any archive failure
        """
        metadata = self.build_metadata(fields)
        metadata_url = self.client.post_metadata(metadata)
        logger.debug(f"metadata uri: {metadata_url}")

        data_points = self.build_data_points(fields)
        self.client.post_bulk_data(metadata_url, data_points)
        logger.info(
            f"Posted {len(data_points[0]['val'])} NTP metrics for "
            f"{fields.destination} to {self.client.url}"
        )
