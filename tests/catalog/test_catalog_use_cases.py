"""Bounded context: Station catalog

Users search the catalog and add stations from it to their library.
"""

import pytest

from radioshelf.domain.errors import DuplicateStationError, StationNotFoundError, ValidationError
from radioshelf.usecases.catalog_stations import AddFromCatalogUseCase, SearchCatalogUseCase


class TestUserSearchesCatalog:

    def test_results_flag_stations_already_in_library(self, catalog, library, jazz):
        hits = SearchCatalogUseCase(catalog, library).execute("jazz")

        assert [(h.candidate.display_name, h.in_library) for h in hits] == [("Jazz FM", True)]

    def test_new_stations_are_not_flagged(self, catalog, library):
        hits = SearchCatalogUseCase(catalog, library).execute("  kexp ")

        assert [h.in_library for h in hits] == [False]

    def test_blank_query_is_rejected(self, catalog, library):
        with pytest.raises(ValidationError):
            SearchCatalogUseCase(catalog, library).execute("   ")


class TestUserAddsFromCatalog:

    def test_station_is_added_with_catalog_metadata(self, catalog, library):
        record = AddFromCatalogUseCase(catalog, library).execute("uuid-jazz")

        assert record.remote_id == "uuid-jazz"
        assert record.country_code == "GB"
        assert library.all() == [record]

    def test_unknown_uuid_is_reported(self, catalog, library):
        with pytest.raises(StationNotFoundError):
            AddFromCatalogUseCase(catalog, library).execute("uuid-gone")

    def test_adding_twice_is_a_duplicate(self, catalog, library, jazz):
        with pytest.raises(DuplicateStationError):
            AddFromCatalogUseCase(catalog, library).execute("uuid-jazz")
