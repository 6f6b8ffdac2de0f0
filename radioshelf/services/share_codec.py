"""Share payload encoding: ``{u, i, name?}`` carried in a ``?share=`` query parameter."""

import json
import urllib.parse
from typing import Iterable, Optional

from radioshelf.config import SHARE_QUERY_PARAM
from radioshelf.domain.errors import ValidationError
from radioshelf.domain.model import SharedStation, SharePayload, StationRecord

_INLINE_OPTIONAL = ("favicon", "homepage", "bitrate", "countrycode", "note")


def build_share_payload(username: str, records: Iterable[StationRecord], list_name: Optional[str] = None) -> SharePayload:
    """Catalog stations travel as their remote id; everything else inline."""
    items = []
    for record in records:
        if record.remote_id:
            items.append(record.remote_id)
            continue
        items.append(
            SharedStation(
                url=record.stream_url,
                name=record.display_name,
                favicon=record.favicon_url,
                homepage=record.homepage_url,
                bitrate=record.bitrate_kbps,
                countrycode=record.country_code,
                note=record.note,
            )
        )
    return SharePayload(username=username, items=items, list_name=list_name or None)


def payload_to_dict(payload: SharePayload) -> dict:
    items = []
    for item in payload.items:
        if isinstance(item, str):
            items.append(item)
            continue
        inline = {"url": item.url, "name": item.name}
        for key in _INLINE_OPTIONAL:
            value = getattr(item, key)
            if value not in (None, ""):
                inline[key] = value
        items.append(inline)

    data = {"u": payload.username, "i": items}
    if payload.list_name:
        data["name"] = payload.list_name
    return data


def payload_from_dict(data) -> SharePayload:
    if not isinstance(data, dict) or not data.get("u") or not isinstance(data.get("i"), list):
        raise ValidationError("Invalid share data: expected an object with 'u' and an 'i' list")

    items = []
    for raw in data["i"]:
        if isinstance(raw, str) and raw.strip():
            items.append(raw.strip())
        elif isinstance(raw, dict):
            items.append(
                SharedStation(
                    url=str(raw.get("url") or ""),
                    name=str(raw.get("name") or ""),
                    favicon=raw.get("favicon") or None,
                    homepage=raw.get("homepage") or None,
                    bitrate=raw.get("bitrate") or None,
                    countrycode=raw.get("countrycode") or None,
                    note=raw.get("note") or None,
                )
            )
        else:
            raise ValidationError(f"Invalid share item: {raw!r}")
    return SharePayload(username=str(data["u"]), items=items, list_name=data.get("name") or None)


def encode_share_url(payload: SharePayload, base_url: str) -> str:
    serialized = json.dumps(payload_to_dict(payload), separators=(",", ":"), ensure_ascii=False)
    return f"{base_url}?{SHARE_QUERY_PARAM}={urllib.parse.quote(serialized, safe='')}"


def decode_share(text: str) -> SharePayload:
    """Accepts a full share URL, a bare query string, or the raw JSON."""
    text = (text or "").strip()
    if not text:
        raise ValidationError("Nothing to decode")

    if text.startswith("{"):
        raw = text
    else:
        query = urllib.parse.urlparse(text).query if "://" in text else text.lstrip("?")
        values = urllib.parse.parse_qs(query).get(SHARE_QUERY_PARAM)
        if not values:
            raise ValidationError(f"No '{SHARE_QUERY_PARAM}' parameter found")
        raw = values[0]

    try:
        data = json.loads(raw)
    except ValueError as exc:
        raise ValidationError(f"Share data is not valid JSON: {exc}") from exc
    return payload_from_dict(data)
