"""Use case: resolve a shared station list and apply it to the library.

Resolution and application are two steps so the caller can show the
duplicate preview and let the user pick Merge or Replace in between.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from radioshelf.domain.errors import CatalogUnavailableError, ValidationError
from radioshelf.domain.model import ImportMode, MergePreview, MergeResult, SharePayload, StationCandidate
from radioshelf.domain.ports import CatalogPort
from radioshelf.services.library_store import validate_candidate
from radioshelf.services.merge_resolver import MergeResolver
from radioshelf.services.share_codec import decode_share

logger = logging.getLogger("radioshelf.sharing")


@dataclass
class SharedImport:
    username: str
    list_name: str
    candidates: list[StationCandidate] = field(default_factory=list)
    failed_count: int = 0
    preview: Optional[MergePreview] = None

    @property
    def resolved(self) -> bool:
        return bool(self.candidates)


class ImportSharedListUseCase:

    def __init__(self, catalog: CatalogPort, resolver: MergeResolver):
        self.catalog = catalog
        self.resolver = resolver

    def prepare(self, share: str | SharePayload) -> SharedImport:
        payload = decode_share(share) if isinstance(share, str) else share
        shared = SharedImport(
            username=payload.username,
            list_name=payload.list_name or f"{payload.username}'s Stations",
        )

        for item in payload.items:
            candidate = self._resolve_item(item)
            if candidate is None:
                shared.failed_count += 1
            else:
                shared.candidates.append(candidate)

        shared.preview = self.resolver.preview(shared.candidates)
        logger.info(
            "Shared list from %s resolved (stations=%s, failed=%s, duplicates=%s)",
            shared.username,
            len(shared.candidates),
            shared.failed_count,
            len(shared.preview.duplicates),
        )
        return shared

    def apply(self, shared: SharedImport, mode: ImportMode = ImportMode.MERGE) -> MergeResult:
        if not shared.resolved:
            raise ValidationError("Unable to import any stations from the shared link")
        return self.resolver.resolve(shared.candidates, mode)

    def _resolve_item(self, item) -> Optional[StationCandidate]:
        if isinstance(item, str):
            try:
                candidate = self.catalog.lookup(item)
            except CatalogUnavailableError:
                logger.warning("Catalog unavailable while resolving shared station %s", item)
                return None
            if candidate is None:
                return None
            label = item
        else:
            candidate = StationCandidate.from_shared(vars(item))
            label = item.name

        try:
            validate_candidate(candidate)
        except ValidationError as exc:
            logger.warning("Skipping invalid shared station %r: %s", label, exc)
            return None
        return candidate
