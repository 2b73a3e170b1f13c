"""Exception hierarchy for the sync pipeline."""


class CareerSyncError(Exception):
    """Base class for careersync errors."""


class FeedFetchError(CareerSyncError):
    """A category feed could not be retrieved or parsed."""

    def __init__(self, category_code: str, message: str):
        self.category_code = category_code
        super().__init__(f"Feed for category {category_code}: {message}")


class GeocodeError(CareerSyncError):
    """The geocoding provider was unreachable or answered with garbage.

    A location with no results is not an error; ``resolve`` returns None.
    """


class StoreWriteError(CareerSyncError):
    """An upsert or reconcile could not be written."""


class SyncError(CareerSyncError):
    """A sync run failed as a whole."""
