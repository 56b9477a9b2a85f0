"""
Tray availability.
Resolves booked, blocked, held and free trays for a date and picks trays
for new bookings.
"""

import logging
from datetime import timedelta

from flask import current_app

from utils.datetime_helpers import parse_date
from utils.validators import parse_tray_numbers
from .calendar_policy import (
    get_calendar_override,
    get_closure_reason,
    get_closure_message,
    get_minimum_trays_for,
)
from .errors import (
    DateClosed,
    BelowMinimumThreshold,
    InsufficientCapacity,
    InvalidSelection,
    TrayLimitExceeded,
)
from .tray_claims import get_live_reservations

logger = logging.getLogger(__name__)

MAX_SUMMARY_DAYS = 62
ALLOCATION_MODES = ('auto', 'manual')
CLOSED_DAY_REASONS = ('off_day', 'holiday', 'holiday_override')


# =============================================================================
# AVAILABILITY
# =============================================================================

def compute_availability(reservation_date) -> dict:
    """
    Compute tray occupancy for a date.

    free = pool - (booked | blocked | held), ascending. Pending reservations
    count as held only while their payment hold window is open. held_trays is
    the only occupancy beyond paid bookings; once no hold is open,
    free = pool - (booked | blocked) exactly.

    Args:
        reservation_date: date or 'YYYY-MM-DD'

    Returns:
        dict: {date, capacity, booked_trays, blocked_trays, held_trays,
               free_trays, notice}
    """
    date_str = parse_date(reservation_date).isoformat()
    capacity = current_app.config['TRAY_POOL_CAPACITY']

    booked = set()
    held = set()
    for reservation in get_live_reservations(date_str):
        trays = parse_tray_numbers(reservation['tray_numbers'])
        if reservation['payment_status'] == 'completed':
            booked.update(trays)
        else:
            held.update(trays)

    override = get_calendar_override(date_str)
    blocked = set(override['blocked_trays']) if override else set()
    taken = booked | blocked | held

    return {
        'date': date_str,
        'capacity': capacity,
        'booked_trays': sorted(booked),
        'blocked_trays': sorted(blocked),
        'held_trays': sorted(held),
        'free_trays': [n for n in range(1, capacity + 1) if n not in taken],
        'notice': override['notice'] if override else None,
    }


def _validate_count(required_count) -> int:
    if isinstance(required_count, bool) or not isinstance(required_count, int) or required_count < 1:
        raise ValueError("Tray count must be a positive whole number")
    return required_count


def allocate_trays(
    reservation_date,
    required_count: int = None,
    mode: str = 'auto',
    explicit_trays=None,
    role: str = 'customer'
) -> list:
    """
    Choose trays for a new booking.

    Auto mode takes the lowest-numbered free trays. Manual mode validates
    the caller's selection. Admins skip the closure, minimum and
    per-booking limits but never get trays that are already taken.

    Args:
        reservation_date: date or 'YYYY-MM-DD'
        required_count: Number of trays (defaults to len(explicit_trays) in manual mode)
        mode: 'auto' or 'manual'
        explicit_trays: Selected tray numbers for manual mode
        role: 'customer' or 'admin'

    Returns:
        list: Ascending tray numbers

    Raises:
        DateClosed, TrayLimitExceeded, BelowMinimumThreshold,
        InsufficientCapacity, InvalidSelection, ValueError
    """
    if mode not in ALLOCATION_MODES:
        raise ValueError(f"Invalid allocation mode '{mode}'")

    check_date = parse_date(reservation_date)
    date_str = check_date.isoformat()
    is_admin = role == 'admin'

    selection = []
    if mode == 'manual':
        selection = parse_tray_numbers(explicit_trays)
        if required_count is None:
            required_count = len(selection)
    required_count = _validate_count(required_count)

    if not is_admin:
        reason = get_closure_reason(check_date)
        if reason:
            raise DateClosed(get_closure_message(reason), date=date_str, reason=reason)

        limit = current_app.config['MAX_TRAYS_PER_RESERVATION']
        if required_count > limit:
            raise TrayLimitExceeded(
                f"A single booking can hold at most {limit} trays",
                requested=required_count,
                limit=limit
            )

    availability = compute_availability(check_date)

    if not is_admin:
        minimum = get_minimum_trays_for(check_date)
        already_booked = len(availability['booked_trays'])
        # The day as a whole must reach the minimum, not each booking
        if minimum and already_booked + required_count < minimum:
            raise BelowMinimumThreshold(
                f"At least {minimum} trays are required on {check_date.strftime('%A')}s",
                minimum=minimum,
                already_booked=already_booked,
                requested=required_count
            )

    free = availability['free_trays']
    if len(free) < required_count:
        raise InsufficientCapacity(
            f"Only {len(free)} trays left on {date_str}",
            requested=required_count,
            available=len(free)
        )

    if mode == 'auto':
        return free[:required_count]

    if len(selection) != len(set(selection)):
        raise InvalidSelection("Each tray can be selected only once", trays=selection)

    if len(selection) != required_count:
        raise InvalidSelection(
            f"Select exactly {required_count} trays",
            requested=required_count,
            selected=len(selection)
        )

    free_set = set(free)
    unavailable = sorted(n for n in selection if n not in free_set)
    if unavailable:
        raise InvalidSelection(f"Trays not available: {unavailable}", unavailable=unavailable)

    return sorted(selection)


# =============================================================================
# ADMIN VIEWS
# =============================================================================

def get_tray_grid(reservation_date) -> dict:
    """
    Per-tray status for the admin grid.

    Statuses: available, booked, admin-booked, held, blocked, holiday.

    Returns:
        dict: {date, capacity, closure_reason, notice, trays: [...], counts: {...}}
    """
    check_date = parse_date(reservation_date)
    date_str = check_date.isoformat()
    capacity = current_app.config['TRAY_POOL_CAPACITY']

    occupants = {}
    for reservation in get_live_reservations(date_str):
        if reservation['payment_status'] != 'completed':
            status = 'held'
        elif reservation['admin_created']:
            status = 'admin-booked'
        else:
            status = 'booked'
        for n in parse_tray_numbers(reservation['tray_numbers']):
            occupants[n] = (status, reservation)

    override = get_calendar_override(check_date)
    blocked = set(override['blocked_trays']) if override else set()
    closure_reason = get_closure_reason(check_date)
    closed_day = closure_reason in CLOSED_DAY_REASONS

    trays = []
    counts = {}
    for n in range(1, capacity + 1):
        entry = {'number': n, 'reservation_id': None, 'ticket_number': None}
        if n in occupants:
            status, reservation = occupants[n]
            entry['reservation_id'] = reservation['id']
            entry['ticket_number'] = reservation['ticket_number']
        elif n in blocked:
            status = 'blocked'
        elif closed_day:
            status = 'holiday'
        else:
            status = 'available'
        entry['status'] = status
        counts[status] = counts.get(status, 0) + 1
        trays.append(entry)

    return {
        'date': date_str,
        'capacity': capacity,
        'closure_reason': closure_reason,
        'notice': override['notice'] if override else None,
        'trays': trays,
        'counts': counts,
    }


def get_availability_summary(date_from, date_to) -> list:
    """
    Per-date counts and bookability for calendar views.

    Args:
        date_from: First date (inclusive)
        date_to: Last date (inclusive)

    Returns:
        list: [{date, is_bookable, closure_reason, minimum_trays, free_count,
                booked_count, held_count, blocked_count, notice}]

    Raises:
        ValueError: If the range is inverted or longer than MAX_SUMMARY_DAYS
    """
    start = parse_date(date_from)
    end = parse_date(date_to)
    if end < start:
        raise ValueError("End date must not be before start date")
    if (end - start).days + 1 > MAX_SUMMARY_DAYS:
        raise ValueError(f"Date range cannot exceed {MAX_SUMMARY_DAYS} days")

    summary = []
    current = start
    while current <= end:
        availability = compute_availability(current)
        reason = get_closure_reason(current)
        summary.append({
            'date': availability['date'],
            'is_bookable': reason is None,
            'closure_reason': reason,
            'minimum_trays': get_minimum_trays_for(current),
            'free_count': len(availability['free_trays']),
            'booked_count': len(availability['booked_trays']),
            'held_count': len(availability['held_trays']),
            'blocked_count': len(availability['blocked_trays']),
            'notice': availability['notice'],
        })
        current += timedelta(days=1)

    return summary
