"""Deduplicate and reconcile imported or shared station batches."""

import logging
from typing import Sequence

from radioshelf.domain.model import ImportMode, MergePreview, MergeResult, StationCandidate
from radioshelf.services.library_store import LibraryStore, validate_candidate

logger = logging.getLogger("radioshelf.merge")


class MergeResolver:

    def __init__(self, library: LibraryStore):
        self.library = library

    def preview(self, batch: Sequence[StationCandidate]) -> MergePreview:
        """Split a batch into new stations and duplicates, without mutating anything."""
        seen = self.library.identities()
        preview = MergePreview()
        for candidate in batch:
            if candidate.identity in seen:
                preview.duplicates.append(candidate)
            else:
                seen.add(candidate.identity)
                preview.new.append(candidate)
        return preview

    def resolve(self, batch: Sequence[StationCandidate], mode: ImportMode) -> MergeResult:
        mode = ImportMode(mode)
        for candidate in batch:
            validate_candidate(candidate)

        replace = mode is ImportMode.REPLACE
        seen: set[str] = set() if replace else self.library.identities()
        capacity = self.library.max_stations - (0 if replace else len(self.library))
        result = MergeResult()

        for candidate in batch:
            if candidate.identity in seen:
                result.duplicate_count += 1
                continue
            if len(result.accepted) >= capacity:
                result.overflow_count += 1
                continue
            seen.add(candidate.identity)
            result.accepted.append(self.library.build_record(candidate))

        self.library.commit_import(result.accepted, replace=replace)
        logger.info(
            "Import resolved (mode=%s, incoming=%s, accepted=%s, duplicates=%s, overflow=%s)",
            mode.value,
            len(batch),
            len(result.accepted),
            result.duplicate_count,
            result.overflow_count,
        )
        return result
