"""Domain exceptions raised by the library, import and catalog layers."""


class RadioshelfError(Exception):
    pass


class ValidationError(RadioshelfError):
    """Malformed input: the operation is aborted before any mutation."""


class DuplicateStationError(RadioshelfError):

    def __init__(self, identity: str):
        self.identity = identity
        super().__init__(f"Station already in library: {identity}")


class StationNotFoundError(RadioshelfError):

    def __init__(self, station_id: str):
        self.station_id = station_id
        super().__init__(f"No station with id {station_id!r}")


class LibraryFullError(RadioshelfError):

    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"Maximum number of stations ({limit}) reached")


class PersistenceError(RadioshelfError):
    pass


class CatalogUnavailableError(RadioshelfError):
    pass
