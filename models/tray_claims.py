"""
Tray claim rows.

Occupancy is always derived from reservation rows. The reservation_trays
table only mirrors the tray sets of live reservations so that the
UNIQUE(tray_date, tray_number) constraint rejects a second claim on the same
tray even if two writers got past validation.
"""

import logging
import sqlite3

from flask import current_app

from database import get_db
from .errors import TrayConflict

logger = logging.getLogger(__name__)


def hold_window_modifier(hold_minutes: int = None) -> str:
    """SQLite datetime() modifier for the start of the payment hold window."""
    if hold_minutes is None:
        hold_minutes = current_app.config.get('PAYMENT_HOLD_MINUTES', 15)
    return f'-{int(hold_minutes)} minutes'


def get_live_reservations(reservation_date: str) -> list:
    """
    Get the reservations that currently occupy trays on a date.

    Live = active and either paid, or pending and still inside the
    payment hold window.

    Args:
        reservation_date: Date (YYYY-MM-DD)

    Returns:
        list: Reservation rows (id, ticket_number, owner_id, tray_numbers,
              payment_status, admin_created)
    """
    db = get_db()
    rows = db.execute('''
        SELECT id, ticket_number, owner_id, tray_numbers, payment_status,
               admin_created, contact_name
        FROM reservations
        WHERE reservation_date = ?
          AND status = 'active'
          AND (payment_status = 'completed'
               OR (payment_status = 'pending' AND created_at >= datetime('now', ?)))
        ORDER BY created_at, ticket_number
    ''', (reservation_date, hold_window_modifier())).fetchall()
    return [dict(row) for row in rows]


def purge_expired_holds(reservation_date: str) -> int:
    """
    Drop claim rows of pending reservations whose hold window has passed.

    Must run inside a write transaction. The reservations themselves stay
    pending until the expiry sweep or a payment callback resolves them.

    Returns:
        int: Number of claim rows removed
    """
    db = get_db()
    cursor = db.execute('''
        DELETE FROM reservation_trays
        WHERE tray_date = ?
          AND reservation_id IN (
              SELECT id FROM reservations
              WHERE reservation_date = ?
                AND payment_status = 'pending'
                AND created_at < datetime('now', ?)
          )
    ''', (reservation_date, reservation_date, hold_window_modifier()))

    if cursor.rowcount:
        logger.info(f"[Claims] Released {cursor.rowcount} expired hold(s) on {reservation_date}")
    return cursor.rowcount


def insert_claims(reservation_id: str, reservation_date: str, tray_numbers: list) -> None:
    """
    Insert one claim row per tray.

    Raises:
        TrayConflict: If any tray is already claimed on that date
    """
    db = get_db()
    try:
        db.executemany('''
            INSERT INTO reservation_trays (reservation_id, tray_date, tray_number)
            VALUES (?, ?, ?)
        ''', [(reservation_id, reservation_date, n) for n in tray_numbers])
    except sqlite3.IntegrityError as e:
        logger.warning(f"[Claims] Unique claim violated on {reservation_date}: {e}")
        raise TrayConflict(
            "Selected trays were just booked by someone else",
            date=reservation_date,
            trays=sorted(tray_numbers)
        ) from e


def release_claims(reservation_id: str) -> int:
    """Delete all claim rows of a reservation."""
    db = get_db()
    cursor = db.execute('DELETE FROM reservation_trays WHERE reservation_id = ?', (reservation_id,))
    return cursor.rowcount


def has_claims(reservation_id: str) -> bool:
    db = get_db()
    row = db.execute(
        'SELECT 1 FROM reservation_trays WHERE reservation_id = ? LIMIT 1', (reservation_id,)
    ).fetchone()
    return row is not None
