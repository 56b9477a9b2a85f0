"""Flask blueprints for the tray booking service."""
