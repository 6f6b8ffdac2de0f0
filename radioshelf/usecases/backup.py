"""Use cases: export the library to a JSON backup and import one back."""

import json
import logging
from pathlib import Path

from radioshelf.config import LEGACY_EXPORT_STATIONS_KEY
from radioshelf.domain.errors import ValidationError
from radioshelf.domain.model import ImportMode, MergeResult, StationCandidate
from radioshelf.services.library_store import LibraryStore
from radioshelf.services.merge_resolver import MergeResolver

logger = logging.getLogger("radioshelf.backup")


def parse_backup(payload) -> list[StationCandidate]:
    """Accepts ``{stations, version}`` and the legacy ``{radioStations}`` dump."""
    if isinstance(payload, dict):
        stations = payload.get("stations", payload.get(LEGACY_EXPORT_STATIONS_KEY))
    else:
        stations = None
    if not isinstance(stations, list):
        raise ValidationError("Invalid backup file: no station list found")

    candidates = []
    for index, item in enumerate(stations):
        if not isinstance(item, dict):
            raise ValidationError(f"Invalid backup file: station #{index + 1} is not an object")
        candidates.append(StationCandidate.from_record_dict(item))
    return candidates


class ExportBackupUseCase:

    def __init__(self, library: LibraryStore):
        self.library = library

    def execute(self, path: str) -> str:
        payload = self.library.export_payload()
        Path(path).write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
        logger.info("Exported %s stations to %s", len(payload["stations"]), path)
        return path


class ImportBackupUseCase:

    def __init__(self, resolver: MergeResolver):
        self.resolver = resolver

    def execute(self, path: str, mode: ImportMode = ImportMode.MERGE) -> MergeResult:
        try:
            payload = json.loads(Path(path).read_text(encoding="utf-8"))
        except OSError as exc:
            raise ValidationError(f"Cannot read backup file {path}: {exc}") from exc
        except ValueError as exc:
            raise ValidationError(f"Invalid backup file: {exc}") from exc
        return self.resolver.resolve(parse_backup(payload), mode)
