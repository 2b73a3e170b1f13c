"""Tests for the geocoding client."""

import os
from unittest.mock import patch

import pytest
import requests

from careersync.config import GeocoderConfig
from careersync.errors import GeocodeError
from careersync.geocoder.client import GeocoderClient
from careersync.models import Coordinates

OK_PAYLOAD = {
    "status": "OK",
    "results": [
        {"geometry": {"location": {"lat": 39.9526, "lng": -75.1652}}},
        {"geometry": {"location": {"lat": 0.0, "lng": 0.0}}},
    ],
}


class FakeResponse:
    def __init__(self, payload=None, status_code=200, text=None):
        self.payload = payload
        self.status_code = status_code
        self.text = text

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")

    def json(self):
        if self.text is not None:
            raise ValueError("No JSON object could be decoded")
        return self.payload


class FakeSession:
    def __init__(self, response=None, exc=None):
        self.response = response
        self.exc = exc
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append({"url": url, "params": params, "timeout": timeout})
        if self.exc:
            raise self.exc
        return self.response

    def close(self):
        pass


def _client(response=None, exc=None, **config):
    session = FakeSession(response, exc)
    return GeocoderClient(GeocoderConfig(**config), session=session), session


class TestResolve:
    def test_first_result_wins(self):
        client, session = _client(FakeResponse(OK_PAYLOAD), api_key="k", timeout=3.0)
        assert client.resolve("Philadelphia, PA") == Coordinates(lat=39.9526, lng=-75.1652)
        assert session.calls[0]["params"] == {"address": "Philadelphia, PA", "key": "k"}
        assert session.calls[0]["timeout"] == 3.0

    def test_zero_results_is_none(self):
        client, _ = _client(FakeResponse({"status": "ZERO_RESULTS", "results": []}))
        assert client.resolve("Atlantis") is None

    def test_empty_results_without_status_is_none(self):
        client, _ = _client(FakeResponse({"results": []}))
        assert client.resolve("Atlantis") is None

    def test_blank_location_skips_provider(self):
        client, session = _client(FakeResponse(OK_PAYLOAD))
        assert client.resolve("   ") is None
        assert session.calls == []

    def test_env_key_overrides_config(self):
        client, session = _client(FakeResponse(OK_PAYLOAD), api_key="file-key")
        with patch.dict(os.environ, {"CAREERSYNC_GEOCODER_KEY": "env-key"}):
            client.resolve("Philadelphia, PA")
        assert session.calls[0]["params"]["key"] == "env-key"


class TestFailures:
    def test_timeout(self):
        client, _ = _client(exc=requests.Timeout())
        with pytest.raises(GeocodeError, match="Timed out"):
            client.resolve("Philadelphia, PA")

    def test_unreachable(self):
        client, _ = _client(exc=requests.ConnectionError("no route"))
        with pytest.raises(GeocodeError, match="request failed"):
            client.resolve("Philadelphia, PA")

    def test_http_error(self):
        client, _ = _client(FakeResponse(status_code=500))
        with pytest.raises(GeocodeError):
            client.resolve("Philadelphia, PA")

    def test_non_json(self):
        client, _ = _client(FakeResponse(text="<html>"))
        with pytest.raises(GeocodeError, match="non-JSON"):
            client.resolve("Philadelphia, PA")

    def test_error_status(self):
        client, _ = _client(FakeResponse({"status": "REQUEST_DENIED", "error_message": "bad key", "results": []}))
        with pytest.raises(GeocodeError, match="bad key"):
            client.resolve("Philadelphia, PA")

    def test_malformed_geometry(self):
        client, _ = _client(FakeResponse({"status": "OK", "results": [{"geometry": {}}]}))
        with pytest.raises(GeocodeError, match="Malformed"):
            client.resolve("Philadelphia, PA")

    def test_payload_not_an_object(self):
        client, _ = _client(FakeResponse(["unexpected"]))
        with pytest.raises(GeocodeError):
            client.resolve("Philadelphia, PA")
