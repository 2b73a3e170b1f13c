"""Location geocoding."""

from careersync.geocoder.client import GeocoderClient

__all__ = ["GeocoderClient"]
