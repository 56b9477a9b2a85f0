"""Booking workflow services."""
