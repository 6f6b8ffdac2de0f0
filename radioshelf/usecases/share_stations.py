"""Use case: turn a selection of stations into a (possibly shortened) share link."""

import logging
from typing import Optional, Sequence

from radioshelf.config import SHARE_BASE_URL
from radioshelf.domain.errors import ValidationError
from radioshelf.domain.model import ShareLink, StationRecord
from radioshelf.domain.ports import ShortenerPort
from radioshelf.services.share_codec import build_share_payload, encode_share_url

logger = logging.getLogger("radioshelf.sharing")


class ShareStationsUseCase:

    def __init__(self, shortener: Optional[ShortenerPort] = None, base_url: str = SHARE_BASE_URL):
        self.shortener = shortener
        self.base_url = base_url

    def execute(self, username: str, stations: Sequence[StationRecord], list_name: Optional[str] = None) -> ShareLink:
        if not stations:
            raise ValidationError("Nothing to share")
        payload = build_share_payload(username or "Someone", stations, list_name)
        long_url = encode_share_url(payload, self.base_url)

        if self.shortener is None:
            return ShareLink(long_url=long_url, url=long_url)
        short_url = self.shortener.shorten(long_url)
        if not short_url:
            logger.info("Falling back to the long share URL")
            return ShareLink(long_url=long_url, url=long_url)
        return ShareLink(long_url=long_url, url=short_url, shortened=True)
