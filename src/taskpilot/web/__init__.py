"""Web transport for task events."""
