"""Use cases: search the station catalog and add catalog stations to the library."""

from dataclasses import dataclass

from radioshelf.config import CATALOG_SEARCH_LIMIT
from radioshelf.domain.errors import StationNotFoundError, ValidationError
from radioshelf.domain.model import StationCandidate, StationRecord
from radioshelf.domain.ports import CatalogPort
from radioshelf.services.library_store import LibraryStore


@dataclass
class SearchHit:
    candidate: StationCandidate
    in_library: bool


class SearchCatalogUseCase:

    def __init__(self, catalog: CatalogPort, library: LibraryStore):
        self.catalog = catalog
        self.library = library

    def execute(self, query: str, by: str = "name", limit: int = CATALOG_SEARCH_LIMIT) -> list[SearchHit]:
        if not query.strip():
            raise ValidationError("Search query is empty")
        known = self.library.identities()
        return [
            SearchHit(candidate=c, in_library=c.identity in known)
            for c in self.catalog.search(query.strip(), by=by, limit=limit)
        ]


class AddFromCatalogUseCase:

    def __init__(self, catalog: CatalogPort, library: LibraryStore):
        self.catalog = catalog
        self.library = library

    def execute(self, remote_id: str) -> StationRecord:
        candidate = self.catalog.lookup(remote_id)
        if candidate is None:
            raise StationNotFoundError(remote_id)
        return self.library.add(candidate)
