"""
HTTP sink for shipping progress logs to an external collector.

Retry policy: one automatic retry on ConnectionError/Timeout with a short
backoff. Anything else is logged locally and dropped; the export never
waits on the collector.
"""

import logging
import socket
import time

import requests as _requests

logger = logging.getLogger("board_export")


class LogWebhook:
    """POST batches of log entries as JSON to ``url``."""

    _TIMEOUT = 10        # seconds per request
    _RETRY_BACKOFF = 2   # seconds before the single retry

    def __init__(self, url: str, *, session=None, sleep=time.sleep):
        self.url = url
        self._session = session or _requests.Session()
        self._sleep = sleep
        self._source = socket.gethostname()

    def send(self, entries: list) -> bool:
        """Return True once the collector accepted the batch."""
        if not entries:
            return True
        body = {"source": self._source, "entries": entries}
        for attempt in range(2):
            try:
                r = self._session.post(self.url, json=body, timeout=self._TIMEOUT)
                r.raise_for_status()
                return True
            except (_requests.ConnectionError, _requests.Timeout) as exc:
                if attempt == 0:
                    logger.debug(f"POST {self.url} failed ({exc}), retrying in {self._RETRY_BACKOFF}s")
                    self._sleep(self._RETRY_BACKOFF)
            except _requests.RequestException as exc:
                logger.debug(f"POST {self.url} error: {exc}")
                return False
        return False
