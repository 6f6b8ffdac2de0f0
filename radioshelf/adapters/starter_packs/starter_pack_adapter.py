"""Starter packs: curated catalog station lists read from disk or over HTTP."""

import json
import logging
import os
import urllib.parse
import urllib.request

from radioshelf.config import STARTER_PACK_BASE_URL
from radioshelf.domain.errors import CatalogUnavailableError, ValidationError
from radioshelf.domain.model import StationCandidate
from radioshelf.domain.ports import StarterPackPort
from radioshelf.services.library_store import validate_candidate
from radioshelf.version import __version__

logger = logging.getLogger("radioshelf.starter_packs")


def parse_starter_pack(payload) -> list[StationCandidate]:
    if not isinstance(payload, dict) or not isinstance(payload.get("stations"), list):
        raise ValidationError("Starter pack must be an object with a 'stations' list")
    candidates = []
    for item in payload["stations"]:
        if not isinstance(item, dict):
            continue
        candidate = StationCandidate.from_catalog(item)
        try:
            validate_candidate(candidate)
        except ValidationError as exc:
            logger.warning("Skipping starter pack station %r: %s", item.get("name"), exc)
            continue
        candidates.append(candidate)
    return candidates


class StarterPackLoader(StarterPackPort):
    """Resolves a pack name to a local file, an absolute URL, or ``<base_url>/<name>.json``."""

    def __init__(self, base_url: str = STARTER_PACK_BASE_URL, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def load(self, name: str) -> list[StationCandidate]:
        if os.path.isfile(name):
            with open(name, "r", encoding="utf-8") as f:
                payload = json.load(f)
            logger.info("Loaded starter pack from %s", name)
            return parse_starter_pack(payload)

        scheme = urllib.parse.urlparse(name).scheme
        url = name if scheme in ("http", "https") else f"{self.base_url}/{urllib.parse.quote(name)}.json"
        req = urllib.request.Request(url, headers={"Accept": "application/json", "User-Agent": f"Radioshelf/{__version__}"})
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                payload = json.loads(resp.read().decode("utf-8"))
        except OSError as exc:
            raise CatalogUnavailableError(f"Could not fetch starter pack {url}: {exc}") from exc
        except ValueError as exc:
            raise ValidationError(f"Starter pack {url} is not valid JSON: {exc}") from exc
        logger.info("Loaded starter pack from %s", url)
        return parse_starter_pack(payload)
