"""Job feed retrieval and parsing."""
