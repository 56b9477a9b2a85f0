"""
Cancellation credits.
A cancelled, paid reservation earns a time-boxed credit worth a share of its
subtotal, redeemable against a later booking by the same customer.
"""

import logging
from datetime import date

from flask import current_app

from database import get_db, transaction
from utils.datetime_helpers import get_today, parse_date, add_months
from .pricing import round_half_up

logger = logging.getLogger(__name__)


def calculate_credit_amount(subtotal: int) -> int:
    """Credit earned by cancelling a reservation with this subtotal."""
    ratio = current_app.config.get('CANCELLATION_CREDIT_RATIO', 0.5)
    return round_half_up((subtotal or 0) * ratio)


def issue_credit(reservation: dict, cancelled_on, conn=None) -> dict:
    """
    Record the credit for a cancelled reservation.

    Args:
        reservation: Reservation dict (id, owner_id, subtotal)
        cancelled_on: Cancellation date (date or 'YYYY-MM-DD')
        conn: Connection of an open transaction (default: own transaction)

    Returns:
        dict: Credit row
    """
    cancelled_on = parse_date(cancelled_on)
    months = current_app.config.get('CANCELLATION_CREDIT_VALIDITY_MONTHS', 6)
    amount = calculate_credit_amount(reservation['subtotal'])
    expiry = add_months(cancelled_on, months).isoformat()

    if conn is None:
        with transaction() as tx:
            credit_id = _insert_credit(tx, reservation, amount, expiry)
    else:
        credit_id = _insert_credit(conn, reservation, amount, expiry)

    logger.info(
        f"[Credit] Issued Rs {amount} to user {reservation['owner_id']} for "
        f"reservation {reservation['id']}, expires {expiry}"
    )
    return {
        'id': credit_id,
        'owner_id': reservation['owner_id'],
        'credit_amount': amount,
        'expiry_date': expiry,
        'used': False,
        'original_reservation_id': reservation['id'],
        'used_in_reservation_id': None,
    }


def _insert_credit(conn, reservation: dict, amount: int, expiry: str) -> int:
    cursor = conn.execute('''
        INSERT INTO cancellation_credits
            (owner_id, credit_amount, expiry_date, original_reservation_id)
        VALUES (?, ?, ?, ?)
    ''', (reservation['owner_id'], amount, expiry, reservation['id']))
    return cursor.lastrowid


def get_available_credits(owner_id: int, today: date = None, conn=None) -> list:
    """
    Unused, unexpired credits, soonest expiry first.

    A credit is valid through its expiry date.
    """
    today = parse_date(today) if today else get_today()
    db = conn or get_db()
    rows = db.execute('''
        SELECT * FROM cancellation_credits
        WHERE owner_id = ?
          AND used = 0
          AND credit_amount > 0
          AND expiry_date >= ?
        ORDER BY expiry_date, id
    ''', (owner_id, today.isoformat())).fetchall()

    credits = []
    for row in rows:
        credit = dict(row)
        credit['used'] = bool(credit['used'])
        credits.append(credit)
    return credits


def get_available_credit_total(owner_id: int, today: date = None) -> int:
    return sum(c['credit_amount'] for c in get_available_credits(owner_id, today))


def get_credit_history(owner_id: int) -> list:
    """All credits of a customer, newest first."""
    db = get_db()
    rows = db.execute('''
        SELECT * FROM cancellation_credits
        WHERE owner_id = ?
        ORDER BY created_at DESC, id DESC
    ''', (owner_id,)).fetchall()
    return [dict(row) for row in rows]


def redeem_credits(owner_id: int, amount_requested: int, reservation_id: str,
                   today: date = None, conn=None) -> int:
    """
    Consume whole credit rows against a reservation.

    Rows are taken soonest-expiry first until the request is covered. The
    applied amount never exceeds the request; whatever is left on the last
    consumed row is forfeited.

    Args:
        owner_id: Customer ID
        amount_requested: Amount to offset (usually the subtotal)
        reservation_id: Redeeming reservation
        today: Reference date for expiry (default: today)
        conn: Connection of an open transaction (default: own transaction)

    Returns:
        int: Amount applied
    """
    if not amount_requested or amount_requested <= 0:
        return 0

    if conn is None:
        with transaction() as tx:
            return _redeem(tx, owner_id, amount_requested, reservation_id, today)
    return _redeem(conn, owner_id, amount_requested, reservation_id, today)


def _redeem(conn, owner_id, amount_requested, reservation_id, today) -> int:
    consumed = 0
    used_ids = []

    for credit in get_available_credits(owner_id, today, conn=conn):
        if consumed >= amount_requested:
            break
        cursor = conn.execute('''
            UPDATE cancellation_credits
            SET used = 1, used_in_reservation_id = ?, used_at = CURRENT_TIMESTAMP
            WHERE id = ? AND used = 0
        ''', (reservation_id, credit['id']))
        if cursor.rowcount == 1:
            consumed += credit['credit_amount']
            used_ids.append(credit['id'])

    applied = min(consumed, amount_requested)
    if used_ids:
        logger.info(
            f"[Credit] Redeemed credits {used_ids} for reservation {reservation_id}: "
            f"applied Rs {applied}, forfeited Rs {consumed - applied}"
        )
    return applied


def release_redeemed_credits(reservation_id: str, conn=None) -> int:
    """
    Give back the credits consumed by a reservation whose payment never completed.

    Consumed rows stay used and keep their link to the reservation. Each one
    is replaced by a fresh row with the same amount and expiry, whose
    original_reservation_id points at the failed reservation.

    Returns:
        int: Number of replacement credit rows issued
    """
    db = conn or get_db()
    consumed = db.execute('''
        SELECT owner_id, credit_amount, expiry_date
        FROM cancellation_credits
        WHERE used_in_reservation_id = ? AND used = 1
        ORDER BY id
    ''', (reservation_id,)).fetchall()

    for row in consumed:
        db.execute('''
            INSERT INTO cancellation_credits
                (owner_id, credit_amount, expiry_date, original_reservation_id)
            VALUES (?, ?, ?, ?)
        ''', (row['owner_id'], row['credit_amount'], row['expiry_date'], reservation_id))

    if consumed:
        logger.info(f"[Credit] Reissued {len(consumed)} credit(s) from reservation {reservation_id}")
    return len(consumed)
