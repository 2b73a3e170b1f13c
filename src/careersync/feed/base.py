"""Abstract feed fetcher interface."""

from abc import ABC, abstractmethod

from careersync.models import RawPosting


class BaseFetcher(ABC):
    """Base class for per-category posting feeds."""

    @abstractmethod
    def fetch(self, category_code: str) -> list[RawPosting]:
        """Fetch and parse every posting listed for one category.

        Raises FeedFetchError when the feed as a whole is unavailable.
        """
        ...
