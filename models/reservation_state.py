"""
Reservation state management.
Payment status transitions, cancellation, and the expiry sweep for
abandoned payments.

    payment_status: pending -> completed | failed
    status:         active -> cancelled (only once paid)
"""

import logging

from database import get_db, transaction, storage_retry
from utils.datetime_helpers import get_today, parse_date
from .cancellation_credit import issue_credit, release_redeemed_credits
from .errors import InvalidTransition, NotFound, TrayConflict, Unauthorized
from .reservation_crud import get_reservation, record_history
from .tray_availability import compute_availability
from .tray_claims import (
    has_claims,
    hold_window_modifier,
    insert_claims,
    purge_expired_holds,
    release_claims,
)

logger = logging.getLogger(__name__)


# =============================================================================
# STATE CONSTANTS
# =============================================================================

VALID_PAYMENT_TRANSITIONS = {
    'pending': {'completed', 'failed'},
    'completed': set(),
    'failed': set(),
}


def _load(reservation_id: str, owner_id: int = None) -> dict:
    reservation = get_reservation(reservation_id)
    if not reservation:
        raise NotFound(f"Reservation {reservation_id} not found", reservation_id=reservation_id)
    if owner_id is not None and reservation['owner_id'] != owner_id:
        raise Unauthorized(reservation_id=reservation_id)
    return reservation


def _check_payment_transition(reservation: dict, new_status: str) -> None:
    current = reservation['payment_status']
    if new_status not in VALID_PAYMENT_TRANSITIONS.get(current, set()):
        raise InvalidTransition(
            f"Cannot change payment from '{current}' to '{new_status}'",
            reservation_id=reservation['id'],
            current=current,
            requested=new_status
        )


# =============================================================================
# PAYMENT TRANSITIONS
# =============================================================================

@storage_retry
def mark_payment_completed(reservation_id: str, payment_reference: str = None,
                           owner_id: int = None) -> dict:
    """
    Record a successful payment.

    Repeating the call for an already completed reservation is a no-op. If
    the payment hold lapsed, the trays are claimed again, which fails when
    someone else booked them in the meantime.

    Args:
        reservation_id: Reservation ID
        payment_reference: Gateway payment ID
        owner_id: Verify the reservation belongs to this customer

    Returns:
        dict: Updated reservation

    Raises:
        NotFound, Unauthorized, InvalidTransition, TrayConflict
    """
    with transaction() as conn:
        reservation = _load(reservation_id, owner_id)

        if reservation['status'] != 'active':
            raise InvalidTransition(
                "Cancelled reservations cannot be paid", reservation_id=reservation_id
            )
        if reservation['payment_status'] == 'completed':
            return reservation
        _check_payment_transition(reservation, 'completed')

        date_str = reservation['reservation_date']
        purge_expired_holds(date_str)

        if not has_claims(reservation_id):
            availability = compute_availability(date_str)
            free = set(availability['free_trays'])
            taken = sorted(n for n in reservation['tray_numbers'] if n not in free)
            if taken:
                logger.warning(
                    f"[Payment] {reservation['ticket_number']} paid after its hold expired; "
                    f"trays {taken} are taken"
                )
                raise TrayConflict(
                    f"Trays {taken} were booked by someone else after the payment window closed",
                    date=date_str,
                    trays=taken
                )
            insert_claims(reservation_id, date_str, reservation['tray_numbers'])

        conn.execute('''
            UPDATE reservations
            SET payment_status = 'completed', payment_reference = ?, updated_at = CURRENT_TIMESTAMP
            WHERE id = ?
        ''', (payment_reference, reservation_id))
        record_history(conn, reservation_id, 'payment_status', 'pending', 'completed',
                       owner_id, f"Payment {payment_reference}" if payment_reference else None)

    logger.info(f"[Payment] {reservation['ticket_number']} completed (ref {payment_reference})")
    return get_reservation(reservation_id)


@storage_retry
def mark_payment_failed(reservation_id: str, owner_id: int = None, notes: str = None) -> dict:
    """
    Record a failed or abandoned payment and release the trays.

    Idempotent for already failed reservations.

    Raises:
        NotFound, Unauthorized, InvalidTransition
    """
    with transaction() as conn:
        reservation = _load(reservation_id, owner_id)

        if reservation['payment_status'] == 'failed':
            return reservation
        _check_payment_transition(reservation, 'failed')

        _fail(conn, reservation, owner_id, notes or 'Payment failed')

    logger.info(f"[Payment] {reservation['ticket_number']} failed, trays released")
    return get_reservation(reservation_id)


def _fail(conn, reservation: dict, changed_by, notes: str) -> None:
    conn.execute('''
        UPDATE reservations
        SET payment_status = 'failed', updated_at = CURRENT_TIMESTAMP
        WHERE id = ?
    ''', (reservation['id'],))
    release_claims(reservation['id'])
    release_redeemed_credits(reservation['id'], conn=conn)
    record_history(conn, reservation['id'], 'payment_status', reservation['payment_status'],
                   'failed', changed_by, notes)


# =============================================================================
# CANCELLATION
# =============================================================================

@storage_retry
def cancel_reservation(reservation_id: str, owner_id: int, role: str = 'customer',
                       today=None) -> dict:
    """
    Cancel a paid reservation and issue the cancellation credit.

    Only active, completed reservations dated today or later qualify.
    Customers may cancel only their own; admins may cancel any.

    Args:
        reservation_id: Reservation ID
        owner_id: Acting user ID
        role: 'customer' or 'admin'
        today: Reference date (default: today in the configured timezone)

    Returns:
        dict: Issued credit

    Raises:
        NotFound, Unauthorized, InvalidTransition
    """
    today = parse_date(today) if today else get_today()

    with transaction() as conn:
        reservation = _load(reservation_id, None if role == 'admin' else owner_id)

        if reservation['status'] != 'active':
            raise InvalidTransition("Reservation is already cancelled", reservation_id=reservation_id)
        if reservation['payment_status'] != 'completed':
            raise InvalidTransition(
                "Only paid reservations can be cancelled", reservation_id=reservation_id
            )
        if parse_date(reservation['reservation_date']) < today:
            raise InvalidTransition(
                "Past reservations cannot be cancelled", reservation_id=reservation_id
            )

        conn.execute('''
            UPDATE reservations
            SET status = 'cancelled', cancelled_at = CURRENT_TIMESTAMP, updated_at = CURRENT_TIMESTAMP
            WHERE id = ?
        ''', (reservation_id,))
        release_claims(reservation_id)
        record_history(conn, reservation_id, 'status', 'active', 'cancelled', owner_id,
                       'Cancelled by admin' if role == 'admin' else 'Cancelled by customer')

        credit = issue_credit(reservation, today, conn=conn)

    logger.info(
        f"[Reservation] {reservation['ticket_number']} cancelled by user {owner_id} ({role}), "
        f"trays {reservation['tray_numbers']} released"
    )
    return credit


# =============================================================================
# EXPIRY SWEEP
# =============================================================================

@storage_retry
def expire_stale_reservations(hold_minutes: int = None) -> list:
    """
    Mark pending reservations older than the hold window as failed.

    Args:
        hold_minutes: Override PAYMENT_HOLD_MINUTES

    Returns:
        list: Ticket numbers that were expired
    """
    with transaction() as conn:
        rows = conn.execute('''
            SELECT * FROM reservations
            WHERE payment_status = 'pending'
              AND status = 'active'
              AND created_at < datetime('now', ?)
            ORDER BY created_at
        ''', (hold_window_modifier(hold_minutes),)).fetchall()

        expired = []
        for row in rows:
            reservation = dict(row)
            _fail(conn, reservation, None, 'Payment hold expired')
            expired.append(reservation['ticket_number'])

    if expired:
        logger.info(f"[Sweep] Expired {len(expired)} unpaid reservation(s): {expired}")
    return expired


# =============================================================================
# HISTORY
# =============================================================================

def get_status_history(reservation_id: str) -> list:
    """
    Get status change history for reservation.

    Args:
        reservation_id: Reservation ID

    Returns:
        list: History entries, oldest first
    """
    db = get_db()
    rows = db.execute('''
        SELECT * FROM reservation_status_history
        WHERE reservation_id = ?
        ORDER BY created_at, id
    ''', (reservation_id,)).fetchall()
    return [dict(r) for r in rows]