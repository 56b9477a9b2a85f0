"""Admin blueprint: tray grid, calendar overrides, manual bookings, reports."""
