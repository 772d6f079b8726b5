"""Weather resolution services."""
