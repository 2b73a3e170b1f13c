"""Feed-to-store synchronisation."""
