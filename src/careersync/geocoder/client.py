"""Geocoding client for resolving posting locations to coordinates."""

from __future__ import annotations

import logging

import requests

from careersync.config import GeocoderConfig
from careersync.errors import GeocodeError
from careersync.models import Coordinates

logger = logging.getLogger(__name__)

_NO_RESULT_STATUSES = {"ZERO_RESULTS"}


class GeocoderClient:
    """Resolve free-text addresses through a Google-style geocoding API."""

    def __init__(self, config: GeocoderConfig, session: requests.Session | None = None) -> None:
        self._config = config
        self._session = session or requests.Session()

    def resolve(self, location_text: str) -> Coordinates | None:
        """Geocode a location string.

        Returns None when the provider has no match. Raises GeocodeError when
        the provider cannot be reached or answers with something unusable.
        """
        address = (location_text or "").strip()
        if not address:
            return None

        params = {"address": address}
        api_key = self._config.effective_api_key
        if api_key:
            params["key"] = api_key

        try:
            resp = self._session.get(self._config.url, params=params, timeout=self._config.timeout)
            resp.raise_for_status()
        except requests.Timeout as e:
            raise GeocodeError(f"Timed out geocoding {address!r}") from e
        except requests.RequestException as e:
            raise GeocodeError(f"Geocoding request failed for {address!r}: {e}") from e

        try:
            payload = resp.json()
        except ValueError as e:
            raise GeocodeError(f"Geocoder returned non-JSON for {address!r}") from e

        return _parse_response(address, payload)

    def close(self) -> None:
        self._session.close()


def _parse_response(address: str, payload) -> Coordinates | None:
    if not isinstance(payload, dict):
        raise GeocodeError(f"Unexpected geocoder payload for {address!r}")

    status = payload.get("status")
    if status in _NO_RESULT_STATUSES:
        return None
    if status not in (None, "OK"):
        message = payload.get("error_message") or status
        raise GeocodeError(f"Geocoder refused {address!r}: {message}")

    results = payload.get("results")
    if not isinstance(results, list):
        raise GeocodeError(f"Geocoder payload for {address!r} has no results list")
    if not results:
        return None

    try:
        point = results[0]["geometry"]["location"]
        return Coordinates(lat=float(point["lat"]), lng=float(point["lng"]))
    except (KeyError, TypeError, ValueError) as e:
        raise GeocodeError(f"Malformed geometry for {address!r}") from e
