"""
Booking blueprint initialization.
Customer-facing JSON API for availability, quotes, reservations and credits.

Route logic lives in:
- routes/availability.py - Availability, calendar and allocation preview
- routes/reservations.py - Quote, create, payment status, cancel, listing
- routes/credits.py - Cancellation credits
"""

from flask import Blueprint

booking_bp = Blueprint('booking', __name__)

# =============================================================================
# REGISTER ROUTE MODULES
# =============================================================================

from blueprints.booking.routes import availability, reservations, credits  # noqa: E402

availability.register_routes(booking_bp)
reservations.register_routes(booking_bp)
credits.register_routes(booking_bp)
