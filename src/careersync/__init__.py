"""careersync: job feed synchronisation and search for a careers site."""

__version__ = "0.1.0"
