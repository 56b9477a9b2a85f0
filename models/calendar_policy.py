"""
Calendar policy.
Decides which dates accept orders, which trays an admin has blocked, and
which weekdays carry a minimum tray requirement.
"""

import logging
from datetime import date, datetime
from typing import Optional

from flask import current_app

from database import get_db, transaction, storage_retry
from utils.datetime_helpers import get_now, parse_date
from utils.validators import parse_tray_numbers, format_tray_numbers
from .errors import TrayConflict
from .tray_claims import get_live_reservations, purge_expired_holds

logger = logging.getLogger(__name__)


# =============================================================================
# CLOSURE RULES
# =============================================================================

CLOSURE_MESSAGES = {
    'past_date': 'Cannot book a date in the past',
    'off_day': 'We are closed on this weekday',
    'holiday': 'Orders are not accepted on holidays',
    'holiday_override': 'Orders are not accepted on this date',
    'cutoff_passed': 'Same-day orders close at {cutoff}',
}


def is_fixed_holiday(check_date: date) -> bool:
    """
    Check the configured holiday list.

    Entries are either 'MM-DD' (every year) or 'YYYY-MM-DD' (one-off).
    """
    holidays = current_app.config.get('FIXED_HOLIDAYS', [])
    return (check_date.isoformat() in holidays
            or check_date.strftime('%m-%d') in holidays)


def get_closure_reason(reservation_date, now: datetime = None) -> Optional[str]:
    """
    Explain why a date is closed for new orders.

    Args:
        reservation_date: date or 'YYYY-MM-DD'
        now: Current datetime (default: now in the configured timezone)

    Returns:
        str or None: One of CLOSURE_MESSAGES keys, None if the date is open
    """
    check_date = parse_date(reservation_date)
    now = now or get_now()
    today = now.date()

    if check_date < today:
        return 'past_date'

    if check_date.weekday() == current_app.config.get('OFF_WEEKDAY', 6):
        return 'off_day'

    if is_fixed_holiday(check_date):
        return 'holiday'

    override = get_calendar_override(check_date)
    if override and override['is_holiday']:
        return 'holiday_override'

    cutoff = current_app.config.get('ORDER_CUTOFF_TIME', '13:00')
    if check_date == today and now.strftime('%H:%M') >= cutoff:
        return 'cutoff_passed'

    return None


def is_bookable(reservation_date, now: datetime = None) -> bool:
    """Return True if customers may place orders for the date."""
    return get_closure_reason(reservation_date, now) is None


def get_closure_message(reason: str) -> str:
    cutoff = current_app.config.get('ORDER_CUTOFF_TIME', '13:00')
    return CLOSURE_MESSAGES.get(reason, reason).format(cutoff=cutoff)


def get_minimum_trays_for(reservation_date) -> Optional[int]:
    """
    Minimum trays a booking must reach on the date, if any.

    Returns:
        int or None: SPECIAL_WEEKDAY_MIN_TRAYS on the special weekday, else None
    """
    check_date = parse_date(reservation_date)
    if check_date.weekday() == current_app.config.get('SPECIAL_WEEKDAY', 5):
        return current_app.config.get('SPECIAL_WEEKDAY_MIN_TRAYS', 6)
    return None


# =============================================================================
# CALENDAR OVERRIDES
# =============================================================================

def _row_to_override(row) -> dict:
    override = dict(row)
    override['is_holiday'] = bool(override['is_holiday'])
    override['blocked_trays'] = sorted(parse_tray_numbers(override['blocked_trays']))
    return override


def get_calendar_override(reservation_date) -> Optional[dict]:
    """
    Get the admin exception row for a date.

    Args:
        reservation_date: date or 'YYYY-MM-DD'

    Returns:
        dict or None: {override_date, is_holiday, notice, blocked_trays, ...}
    """
    date_str = parse_date(reservation_date).isoformat()
    db = get_db()
    row = db.execute(
        'SELECT * FROM calendar_overrides WHERE override_date = ?', (date_str,)
    ).fetchone()
    return _row_to_override(row) if row else None


def get_blocked_tray_numbers(reservation_date) -> list:
    """Admin-blocked trays for the date, ascending (empty if none)."""
    override = get_calendar_override(reservation_date)
    return override['blocked_trays'] if override else []


def get_overrides_between(date_from, date_to) -> list:
    """
    Get override rows in a date range (inclusive).

    Returns:
        list: Override dicts ordered by date
    """
    start = parse_date(date_from).isoformat()
    end = parse_date(date_to).isoformat()
    db = get_db()
    rows = db.execute('''
        SELECT * FROM calendar_overrides
        WHERE override_date BETWEEN ? AND ?
        ORDER BY override_date
    ''', (start, end)).fetchall()
    return [_row_to_override(row) for row in rows]


@storage_retry
def set_calendar_override(
    reservation_date,
    is_holiday: bool = False,
    notice: str = None,
    blocked_trays=None,
    updated_by: int = None
) -> dict:
    """
    Create or replace the exception for a date.

    Blocking a tray that a live reservation already holds is refused; the
    booking has to be cancelled first.

    Args:
        reservation_date: date or 'YYYY-MM-DD'
        is_holiday: Close the date for customer orders
        notice: Message shown to customers for the date
        blocked_trays: Trays unavailable for booking (list or CSV)
        updated_by: Admin user ID

    Returns:
        dict: Saved override

    Raises:
        ValueError: If a tray number is outside the pool
        TrayConflict: If a tray to block is already claimed
    """
    date_str = parse_date(reservation_date).isoformat()
    capacity = current_app.config['TRAY_POOL_CAPACITY']

    trays = set(parse_tray_numbers(blocked_trays))
    outside = sorted(n for n in trays if n < 1 or n > capacity)
    if outside:
        raise ValueError(f"Tray numbers outside 1-{capacity}: {outside}")

    notice = notice.strip() if notice else None

    with transaction() as conn:
        if trays:
            purge_expired_holds(date_str)
            claimed = {}
            for reservation in get_live_reservations(date_str):
                for n in parse_tray_numbers(reservation['tray_numbers']):
                    if n in trays:
                        claimed[n] = reservation['ticket_number']
            if claimed:
                raise TrayConflict(
                    f"Trays already booked on {date_str}: {sorted(claimed)}",
                    date=date_str,
                    trays=sorted(claimed),
                    tickets=sorted(set(claimed.values()))
                )

        conn.execute('''
            INSERT INTO calendar_overrides
                (override_date, is_holiday, notice, blocked_trays, updated_by)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(override_date) DO UPDATE SET
                is_holiday = excluded.is_holiday,
                notice = excluded.notice,
                blocked_trays = excluded.blocked_trays,
                updated_by = excluded.updated_by,
                updated_at = CURRENT_TIMESTAMP
        ''', (date_str, 1 if is_holiday else 0, notice, format_tray_numbers(trays), updated_by))

    logger.info(
        f"[Calendar] Override for {date_str} saved by user {updated_by}: "
        f"holiday={bool(is_holiday)} blocked={sorted(trays)}"
    )
    return get_calendar_override(date_str)


@storage_retry
def delete_calendar_override(reservation_date) -> bool:
    """
    Remove the exception for a date (date becomes open with no blocks).

    Returns:
        bool: True if a row was deleted
    """
    date_str = parse_date(reservation_date).isoformat()
    with transaction() as conn:
        cursor = conn.execute('DELETE FROM calendar_overrides WHERE override_date = ?', (date_str,))

    if cursor.rowcount:
        logger.info(f"[Calendar] Override for {date_str} removed")
    return cursor.rowcount > 0
