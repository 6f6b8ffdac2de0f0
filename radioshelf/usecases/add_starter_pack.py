"""Use case: merge a curated starter pack into the library."""

from radioshelf.domain.model import ImportMode, MergeResult
from radioshelf.domain.ports import StarterPackPort
from radioshelf.services.merge_resolver import MergeResolver


class AddStarterPackUseCase:

    def __init__(self, starter_packs: StarterPackPort, resolver: MergeResolver):
        self.starter_packs = starter_packs
        self.resolver = resolver

    def execute(self, name: str) -> MergeResult:
        return self.resolver.resolve(self.starter_packs.load(name), ImportMode.MERGE)
