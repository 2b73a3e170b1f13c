"""Read-only posting search."""
