"""HTTP URL shortener: POST {"longUrl"} and read back {"shortUrl"}."""

import json
import logging
import urllib.request
from typing import Optional

from radioshelf.domain.ports import ShortenerPort
from radioshelf.version import __version__

logger = logging.getLogger("radioshelf.sharing")


class HttpShortener(ShortenerPort):

    def __init__(self, endpoint: str, timeout: float = 5.0):
        self.endpoint = endpoint
        self.timeout = timeout

    def shorten(self, long_url: str) -> Optional[str]:
        """Returns None on any failure; callers keep the long URL."""
        body = json.dumps({"longUrl": long_url}).encode("utf-8")
        try:
            req = urllib.request.Request(
                self.endpoint,
                data=body,
                method="POST",
                headers={"Content-Type": "application/json", "User-Agent": f"Radioshelf/{__version__}"},
            )
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                data = json.loads(resp.read().decode("utf-8"))
        except Exception:
            logger.exception("URL shortener request failed")
            return None

        short_url = data.get("shortUrl") if isinstance(data, dict) else None
        if not short_url:
            logger.warning("URL shortener response had no shortUrl")
            return None
        return str(short_url)
