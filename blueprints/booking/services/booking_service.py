"""
Booking Service - Orchestrates tray allocation and reservation creation.

Handles:
- Turning dish lines into a tray count
- Allocating trays (auto or manual)
- Re-allocating when another booking claims the trays first (auto mode)
- Price previews including available credit
- Verifying signed payment callbacks
"""

import hashlib
import hmac
import logging

from flask import current_app

from models.cancellation_credit import get_available_credit_total
from models.dish_lines import (
    normalize_dish_lines,
    normalize_freeze_dried,
    total_trays,
    total_packets,
    vacuum_lines,
)
from models.errors import TrayConflict
from models.pricing import price_breakdown
from models.reservation import create_reservation, admin_create_reservation
from models.tray_availability import allocate_trays

logger = logging.getLogger(__name__)

MAX_ALLOCATION_ATTEMPTS = 3


def book_trays(
    owner_id: int,
    reservation_date: str,
    dishes,
    mode: str = 'auto',
    tray_numbers=None,
    num_packets: int = None,
    freeze_dried: dict = None,
    delivery_method: str = 'not_sure',
    use_credit: bool = False,
    role: str = 'customer'
) -> dict:
    """
    Allocate trays and create a pending reservation.

    In auto mode a TrayConflict (trays claimed between allocation and
    insert) triggers a fresh allocation, up to MAX_ALLOCATION_ATTEMPTS.
    Manual selections are never silently changed.

    Returns:
        dict: Created reservation

    Raises:
        BookingError subclasses, ValueError
    """
    lines = normalize_dish_lines(dishes)
    required = total_trays(lines)

    for attempt in range(1, MAX_ALLOCATION_ATTEMPTS + 1):
        trays = allocate_trays(
            reservation_date,
            required_count=required,
            mode=mode,
            explicit_trays=tray_numbers,
            role=role
        )
        try:
            return create_reservation(
                owner_id=owner_id,
                reservation_date=reservation_date,
                tray_numbers=trays,
                dish_lines=lines,
                num_packets=num_packets,
                freeze_dried=freeze_dried,
                delivery_method=delivery_method,
                use_credit=use_credit,
                role=role
            )
        except TrayConflict:
            if mode != 'auto' or attempt == MAX_ALLOCATION_ATTEMPTS:
                raise
            logger.info(
                f"[Booking] Trays {trays} taken on {reservation_date} while booking for "
                f"user {owner_id}, re-allocating (attempt {attempt}/{MAX_ALLOCATION_ATTEMPTS})"
            )


def admin_book_trays(
    admin_id: int,
    reservation_date: str,
    contact_name: str,
    contact_phone: str,
    tray_count: int = None,
    tray_numbers=None,
    owner_id: int = None,
    delivery_method: str = 'pickup'
) -> dict:
    """
    Allocate and book trays on behalf of a customer from the admin grid.

    Explicit tray numbers are booked as given; otherwise tray_count trays
    are auto-allocated with the same conflict retry as customer bookings.
    """
    mode = 'manual' if tray_numbers else 'auto'

    for attempt in range(1, MAX_ALLOCATION_ATTEMPTS + 1):
        trays = allocate_trays(
            reservation_date,
            required_count=tray_count if mode == 'auto' else None,
            mode=mode,
            explicit_trays=tray_numbers,
            role='admin'
        )
        try:
            return admin_create_reservation(
                admin_id=admin_id,
                reservation_date=reservation_date,
                tray_numbers=trays,
                contact_name=contact_name,
                contact_phone=contact_phone,
                owner_id=owner_id,
                delivery_method=delivery_method
            )
        except TrayConflict:
            if mode != 'auto' or attempt == MAX_ALLOCATION_ATTEMPTS:
                raise
            logger.info(f"[Booking] Admin allocation on {reservation_date} conflicted, retrying")


def quote(owner_id: int, dishes, num_packets: int = None, freeze_dried: dict = None,
          use_credit: bool = False) -> dict:
    """
    Price preview for an order.

    Whole credit rows are consumed until the subtotal is covered, so the
    credit that would be applied is min(available credit, subtotal).

    Returns:
        dict: price_breakdown plus tray_count, packet_count and available_credit
    """
    lines = normalize_dish_lines(dishes)
    extras = normalize_freeze_dried(freeze_dried)
    packets = total_packets(lines) if num_packets is None else num_packets
    available_credit = get_available_credit_total(owner_id) if use_credit else 0

    breakdown = price_breakdown(
        tray_count=total_trays(lines),
        packet_count=packets,
        vacuum_lines=vacuum_lines(lines),
        freeze_dried=extras,
        credit_to_apply=available_credit
    )
    breakdown.update({
        'tray_count': total_trays(lines),
        'packet_count': packets,
        'available_credit': available_credit,
        'dish_lines': lines,
    })
    return breakdown


def payment_signature(reservation_id: str, payment_reference: str, secret: str) -> str:
    """HMAC-SHA256 hex digest the gateway sends with a successful payment."""
    message = f"{reservation_id}|{payment_reference}".encode('utf-8')
    return hmac.new(secret.encode('utf-8'), message, hashlib.sha256).hexdigest()


def verify_payment_signature(reservation_id: str, payment_reference: str, signature: str) -> bool:
    """
    Check a payment callback against PAYMENT_GATEWAY_SECRET.

    Returns False when no secret is configured or any part is missing.
    """
    secret = current_app.config.get('PAYMENT_GATEWAY_SECRET')
    if not secret or not payment_reference or not signature:
        return False

    expected = payment_signature(reservation_id, payment_reference, secret)
    if not hmac.compare_digest(expected, str(signature)):
        logger.warning(f"[Payment] Rejected callback with bad signature for {reservation_id}")
        return False
    return True
