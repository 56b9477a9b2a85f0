"""
Reservation data access functions.

This module re-exports the reservation ledger from the split modules:
- reservation_crud.py: Ticket numbers, create and read operations
- reservation_state.py: Payment transitions, cancellation, expiry sweep
"""

# =============================================================================
# RE-EXPORTS
# =============================================================================

# CRUD operations
from .reservation_crud import (
    # Constants
    DELIVERY_METHODS,
    # Ticket generation
    generate_ticket_number,
    # Create
    create_reservation,
    admin_create_reservation,
    # Read
    get_reservation,
    get_reservation_by_ticket,
    get_reservations_for_date,
    get_reservations_by_owner,
    get_daily_report,
)

# State management
from .reservation_state import (
    # Constants
    VALID_PAYMENT_TRANSITIONS,
    # Transitions
    mark_payment_completed,
    mark_payment_failed,
    cancel_reservation,
    expire_stale_reservations,
    # History
    get_status_history,
)

__all__ = [
    'DELIVERY_METHODS',
    'generate_ticket_number',
    'create_reservation',
    'admin_create_reservation',
    'get_reservation',
    'get_reservation_by_ticket',
    'get_reservations_for_date',
    'get_reservations_by_owner',
    'get_daily_report',
    'VALID_PAYMENT_TRANSITIONS',
    'mark_payment_completed',
    'mark_payment_failed',
    'cancel_reservation',
    'expire_stale_reservations',
    'get_status_history',
]
