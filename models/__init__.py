"""Data access and booking rules for the tray booking service."""
