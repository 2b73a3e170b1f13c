"""RSS feed fetcher for the recruiting system's per-category job feeds."""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime

import requests

from careersync.config import FeedConfig
from careersync.errors import FeedFetchError
from careersync.feed.base import BaseFetcher
from careersync.models import RawPosting

logger = logging.getLogger(__name__)

# Namespaced item fields, matched by local name: RawPosting attribute -> tag
_NAMESPACED_FIELDS = {
    "description": "html-description",
    "location": "location",
    "location_country": "locationCountry",
    "location_state": "locationState",
    "location_city": "locationCity",
}


class FeedFetcher(BaseFetcher):
    """Fetch one category's RSS document over HTTP and parse its items."""

    def __init__(self, config: FeedConfig, session: requests.Session | None = None) -> None:
        self._config = config
        self._session = session or requests.Session()
        self._session.headers.update({"User-Agent": config.user_agent})

    def fetch(self, category_code: str) -> list[RawPosting]:
        params = dict(self._config.params)
        params[self._config.category_param] = category_code

        try:
            resp = self._session.get(self._config.url, params=params, timeout=self._config.timeout)
            resp.raise_for_status()
        except requests.Timeout as e:
            raise FeedFetchError(category_code, "request timed out") from e
        except requests.RequestException as e:
            raise FeedFetchError(category_code, str(e)) from e

        try:
            postings = parse_feed(resp.content)
        except (ET.ParseError, ValueError) as e:
            raise FeedFetchError(category_code, f"unparseable document: {e}") from e

        logger.debug("Category %s: %d feed items", category_code, len(postings))
        return postings

    def close(self) -> None:
        self._session.close()


def parse_feed(document: str | bytes) -> list[RawPosting]:
    """Parse every ``channel/item`` of an RSS document into RawPostings.

    Raises ET.ParseError if the document is not XML and ValueError if it is
    XML but not an RSS channel. Bad fields inside an item degrade to empty
    values; they never drop the item.
    """
    root = ET.fromstring(document)
    if _local_name(root.tag) != "rss":
        raise ValueError(f"expected an <rss> document, got <{_local_name(root.tag)}>")
    channel = root.find("channel")
    if channel is None:
        raise ValueError("rss document has no <channel>")
    return [_parse_item(item) for item in channel.findall("item")]


def _local_name(tag) -> str:
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1]


def _text(element: ET.Element | None) -> str:
    if element is None or element.text is None:
        return ""
    return element.text.strip()


def _parse_item(item: ET.Element) -> RawPosting:
    plain: dict[str, str] = {}
    namespaced: dict[str, str] = {}
    for child in item:
        if not isinstance(child.tag, str):
            continue
        if child.tag.startswith("{"):
            namespaced.setdefault(_local_name(child.tag), _text(child))
        else:
            plain.setdefault(child.tag, _text(child))

    fields = {attr: namespaced.get(tag, "") for attr, tag in _NAMESPACED_FIELDS.items()}
    return RawPosting(
        req_id=parse_req_id(namespaced.get("reqId")),
        title=plain.get("title", ""),
        link=plain.get("link", ""),
        post_date=parse_pub_date(plain.get("pubDate")),
        **fields,
    )


def parse_req_id(value: str | None) -> int | None:
    """Parse a requisition id; zero, blank or non-numeric values mean absent."""
    if not value:
        return None
    try:
        req_id = int(value.strip())
    except ValueError:
        logger.debug("Ignoring non-numeric reqId %r", value)
        return None
    return req_id if req_id > 0 else None


def parse_pub_date(value: str | None) -> datetime | None:
    """Parse an RFC 822 date into a naive UTC datetime."""
    if not value:
        return None
    try:
        dt = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        try:
            dt = datetime.fromisoformat(value)
        except ValueError:
            return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt
