"""Radio Browser JSON API adapter (station lookup by uuid and search)."""

import json
import logging
import urllib.parse
import urllib.request
from typing import Optional, Sequence

from radioshelf.config import CATALOG_SEARCH_LIMIT, CATALOG_SERVERS, CATALOG_TIMEOUT_SECONDS
from radioshelf.domain.errors import CatalogUnavailableError, ValidationError
from radioshelf.domain.model import StationCandidate
from radioshelf.domain.ports import CatalogPort
from radioshelf.version import __version__

logger = logging.getLogger("radioshelf.catalog")

SEARCH_FIELDS = ("name", "tag", "country", "language")


class RadioBrowserCatalog(CatalogPort):
    """Tries each server in order; the first one that answers wins."""

    def __init__(
        self,
        servers: Sequence[str] = CATALOG_SERVERS,
        timeout: float = CATALOG_TIMEOUT_SECONDS,
    ):
        if not servers:
            raise ValueError("At least one catalog server is required")
        self.servers = [server.rstrip("/") for server in servers]
        self.timeout = timeout

    def lookup(self, remote_id: str) -> Optional[StationCandidate]:
        items = self._get("/json/stations/byuuid", {"uuids": remote_id})
        for item in items:
            candidate = StationCandidate.from_catalog(item)
            if candidate.stream_url:
                return candidate
        return None

    def search(self, query: str, by: str = "name", limit: int = CATALOG_SEARCH_LIMIT) -> list[StationCandidate]:
        if by not in SEARCH_FIELDS:
            raise ValidationError(f"Unsupported search field: {by}")
        params = {by: query, "limit": limit, "hidebroken": "true", "order": "votes", "reverse": "true"}
        items = self._get("/json/stations/search", params)
        candidates = [StationCandidate.from_catalog(item) for item in items]
        return [c for c in candidates if c.stream_url and c.display_name]

    def _get(self, path: str, params: dict) -> list[dict]:
        query = urllib.parse.urlencode(params)
        last_error: Optional[Exception] = None
        for server in self.servers:
            url = f"{server}{path}?{query}"
            try:
                req = urllib.request.Request(
                    url,
                    headers={"Accept": "application/json", "User-Agent": f"Radioshelf/{__version__}"},
                )
                with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                    data = json.loads(resp.read().decode("utf-8"))
            except Exception as exc:
                logger.warning("Catalog server %s failed: %s", server, exc)
                last_error = exc
                continue
            if not isinstance(data, list):
                logger.warning("Catalog server %s returned %s instead of a list", server, type(data).__name__)
                last_error = ValueError("unexpected response shape")
                continue
            return [item for item in data if isinstance(item, dict)]

        raise CatalogUnavailableError(f"All catalog servers failed: {last_error}")
