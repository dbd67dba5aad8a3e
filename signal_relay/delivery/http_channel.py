"""JSON-over-HTTP channel transport."""

import json
import socket
from typing import Any, Optional
from urllib.error import HTTPError, URLError
from urllib.parse import urlparse
from urllib.request import Request, urlopen

from ..errors import DeliveryError
from .base import BaseChannel, ChannelPermanentError, ChannelRetryableError

RATE_LIMITED = 429


def _retry_after_hint(body: str, header: Optional[str]) -> Optional[float]:
    """Extract a rate-limit wait from a Discord/Telegram error body or Retry-After header."""
    try:
        data = json.loads(body) if body else {}
    except ValueError:
        data = {}

    if isinstance(data, dict):
        if isinstance(data.get("retry_after"), (int, float)):
            return float(data["retry_after"])
        parameters = data.get("parameters")
        if isinstance(parameters, dict) and isinstance(parameters.get("retry_after"), (int, float)):
            return float(parameters["retry_after"])

    if header:
        try:
            return float(header)
        except ValueError:
            return None
    return None


class HttpChannel(BaseChannel):
    """Channel that delivers by POSTing JSON documents."""

    user_agent = "signal-relay/0.1"

    @staticmethod
    def validate_url(url: Optional[str], channel: str) -> str:
        parsed = urlparse(url or "")
        if not parsed.scheme or not parsed.netloc:
            raise DeliveryError(f"Invalid URL for channel {channel}", channel=channel)
        return url

    def post_json(self, url: str, payload: dict[str, Any]) -> str:
        """
        POST one JSON document with the configured per-attempt timeout.

        Returns:
            Response body text

        Raises:
            ChannelRetryableError: 5xx, 429 and network errors
            ChannelPermanentError: Other non-2xx responses
        """
        data = json.dumps(payload).encode("utf-8")
        headers = {
            "Content-Type": "application/json",
            "Content-Length": str(len(data)),
            "User-Agent": self.user_agent,
        }
        req = Request(url, data=data, headers=headers, method="POST")

        try:
            with urlopen(req, timeout=self.params.timeout_seconds) as response:
                response_code = response.getcode()
                response_data = response.read().decode("utf-8", errors="replace")

        except HTTPError as e:
            body = e.read().decode("utf-8", errors="replace") if e.fp else ""
            self._raise_for_status(e.code, body, e.headers.get("Retry-After") if e.headers else None)

        except (OSError, URLError, socket.timeout) as e:
            self.logger.warning("Channel network error", error=str(e))
            raise ChannelRetryableError(f"Network error: {e}") from e

        if not 200 <= response_code < 300:
            self._raise_for_status(response_code, response_data, None)

        return response_data

    def _raise_for_status(self, code: int, body: str, retry_after_header: Optional[str]) -> None:
        error_msg = f"HTTP {code}: {body[:200]}"
        self.logger.warning("Channel returned HTTP error", response_code=code, response_data=body[:200])

        if code == RATE_LIMITED:
            raise ChannelRetryableError(
                error_msg,
                status_code=code,
                retry_after=_retry_after_hint(body, retry_after_header)
            )
        if code >= 500:
            raise ChannelRetryableError(error_msg, status_code=code)
        raise ChannelPermanentError(error_msg, status_code=code)
