"""
Reservation CRUD operations.
Handles creating and reading tray reservations.
"""

import json
import logging
import uuid

from flask import current_app

from database import get_db, transaction, storage_retry
from utils.datetime_helpers import parse_date
from utils.validators import parse_tray_numbers, format_tray_numbers
from .calendar_policy import get_closure_reason, get_closure_message, get_minimum_trays_for
from .cancellation_credit import redeem_credits
from .dish_lines import (
    normalize_dish_lines,
    normalize_freeze_dried,
    total_trays,
    total_packets,
    vacuum_lines,
)
from .errors import (
    DateClosed,
    BelowMinimumThreshold,
    InvalidSelection,
    TrayConflict,
    TrayLimitExceeded,
)
from .pricing import price_breakdown
from .tray_availability import compute_availability
from .tray_claims import insert_claims, purge_expired_holds

logger = logging.getLogger(__name__)

DELIVERY_METHODS = ('self_delivery', 'third_party', 'not_sure', 'pickup')


# =============================================================================
# TICKET NUMBER GENERATION
# =============================================================================

def generate_ticket_number(reservation_date: str, conn=None) -> str:
    """
    Generate the next ticket number for a reservation date.

    Format: YYMMDDNNN where:
    - YY = Year (2 digits)
    - MM = Month (2 digits)
    - DD = Day (2 digits)
    - NNN = Daily sequential (001-999)

    Example: 251018004 = Fourth booking for Oct 18, 2025

    Must run inside the write transaction that inserts the reservation.

    Args:
        reservation_date: Date (YYYY-MM-DD)
        conn: Active transaction connection

    Returns:
        str: Ticket number

    Raises:
        ValueError: If the daily sequence is exhausted
    """
    date_prefix = parse_date(reservation_date).strftime('%y%m%d')
    db = conn or get_db()

    row = db.execute('''
        SELECT MAX(CAST(SUBSTR(ticket_number, 7, 3) AS INTEGER)) as max_seq
        FROM reservations
        WHERE ticket_number LIKE ?
    ''', (f'{date_prefix}%',)).fetchone()

    next_seq = (row['max_seq'] or 0) + 1
    if next_seq > 999:
        raise ValueError(f"Daily booking limit (999) reached for {reservation_date}")

    return f"{date_prefix}{next_seq:03d}"


# =============================================================================
# VALIDATION
# =============================================================================

def _validate_tray_set(tray_numbers) -> list:
    trays = parse_tray_numbers(tray_numbers)
    if not trays:
        raise ValueError("At least one tray is required")
    if len(trays) != len(set(trays)):
        raise InvalidSelection("Each tray can be selected only once", trays=trays)

    capacity = current_app.config['TRAY_POOL_CAPACITY']
    outside = sorted(n for n in trays if n < 1 or n > capacity)
    if outside:
        raise InvalidSelection(f"Tray numbers outside 1-{capacity}: {outside}", unavailable=outside)
    return sorted(trays)


def _check_customer_rules(date_str: str, trays: list, booked_count: int) -> None:
    reason = get_closure_reason(date_str)
    if reason:
        raise DateClosed(get_closure_message(reason), date=date_str, reason=reason)

    limit = current_app.config['MAX_TRAYS_PER_RESERVATION']
    if len(trays) > limit:
        raise TrayLimitExceeded(
            f"A single booking can hold at most {limit} trays",
            requested=len(trays),
            limit=limit
        )

    minimum = get_minimum_trays_for(date_str)
    if minimum and booked_count + len(trays) < minimum:
        raise BelowMinimumThreshold(
            f"At least {minimum} trays are required on this day",
            minimum=minimum,
            already_booked=booked_count,
            requested=len(trays)
        )


def _revalidate_trays(date_str: str, trays: list, role: str) -> None:
    """Re-check the tray set against occupancy inside the write transaction."""
    purge_expired_holds(date_str)
    availability = compute_availability(date_str)

    if role != 'admin':
        _check_customer_rules(date_str, trays, len(availability['booked_trays']))

    free = set(availability['free_trays'])
    taken = sorted(n for n in trays if n not in free)
    if taken:
        logger.warning(f"[Reservation] Conflict on {date_str}: trays {taken} no longer free")
        raise TrayConflict(
            f"Trays {taken} were just booked on {date_str}",
            date=date_str,
            trays=taken
        )


def record_history(conn, reservation_id: str, field: str, old_value, new_value,
                   changed_by: int = None, notes: str = None) -> None:
    """Append a status change to the reservation audit trail."""
    conn.execute('''
        INSERT INTO reservation_status_history
            (reservation_id, field, old_value, new_value, changed_by, notes)
        VALUES (?, ?, ?, ?, ?, ?)
    ''', (reservation_id, field, old_value, new_value, changed_by, notes))


# =============================================================================
# CREATE
# =============================================================================

@storage_retry
def create_reservation(
    owner_id: int,
    reservation_date,
    tray_numbers,
    dish_lines,
    num_packets: int = None,
    freeze_dried: dict = None,
    delivery_method: str = 'not_sure',
    use_credit: bool = False,
    role: str = 'customer',
    created_by: int = None
) -> dict:
    """
    Create a pending reservation claiming an exact tray set.

    Validation, tray claims, pricing and credit redemption run in a single
    write transaction: either all of it is stored or none of it.

    Args:
        owner_id: Customer user ID
        reservation_date: date or 'YYYY-MM-DD'
        tray_numbers: Trays chosen by allocate_trays (list or CSV)
        dish_lines: Dish data in either accepted shape
        num_packets: Packing packets (default: sum of line packets)
        freeze_dried: Freeze-dried add-on {'packets', 'grams_per_packet'}
        delivery_method: self_delivery, third_party, not_sure or pickup
        use_credit: Offset the subtotal with available credits
        role: 'customer' or 'admin' (admins skip calendar and limit rules)
        created_by: User performing the action (default: owner)

    Returns:
        dict: Created reservation

    Raises:
        ValueError: Malformed input
        DateClosed, TrayLimitExceeded, BelowMinimumThreshold, InvalidSelection
        TrayConflict: Trays were claimed by someone else meanwhile
    """
    date_str = parse_date(reservation_date).isoformat()
    trays = _validate_tray_set(tray_numbers)
    lines = normalize_dish_lines(dish_lines)
    extras = normalize_freeze_dried(freeze_dried)

    if total_trays(lines) != len(trays):
        raise InvalidSelection(
            f"Dishes need {total_trays(lines)} trays but {len(trays)} were selected",
            required=total_trays(lines),
            selected=len(trays)
        )

    if delivery_method not in DELIVERY_METHODS:
        raise ValueError(f"Invalid delivery method '{delivery_method}'")

    if num_packets is None:
        num_packets = total_packets(lines)

    breakdown = price_breakdown(
        tray_count=len(trays),
        packet_count=num_packets,
        vacuum_lines=vacuum_lines(lines),
        freeze_dried=extras
    )

    reservation_id = uuid.uuid4().hex

    with transaction() as conn:
        _revalidate_trays(date_str, trays, role)
        ticket_number = generate_ticket_number(date_str, conn)

        conn.execute('''
            INSERT INTO reservations (
                id, ticket_number, owner_id, reservation_date, tray_numbers, total_trays,
                dish_lines, num_packets, freeze_dried_packets, freeze_dried_grams_per_packet,
                dehydration_cost, packing_cost, vacuum_cost, freeze_dried_cost,
                subtotal, applied_credit_amount, total_cost,
                payment_status, status, payment_method, delivery_method, created_by
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 0, ?, 'pending', 'active', 'online', ?, ?)
        ''', (
            reservation_id, ticket_number, owner_id, date_str, format_tray_numbers(trays), len(trays),
            json.dumps(lines), num_packets, extras['packets'], extras['grams_per_packet'],
            breakdown['dehydration_cost'], breakdown['packing_cost'],
            breakdown['vacuum_cost'], breakdown['freeze_dried_cost'],
            breakdown['subtotal'], breakdown['total_cost'],
            delivery_method, created_by or owner_id
        ))

        insert_claims(reservation_id, date_str, trays)

        applied = 0
        if use_credit:
            applied = redeem_credits(owner_id, breakdown['subtotal'], reservation_id, conn=conn)
            if applied:
                conn.execute('''
                    UPDATE reservations
                    SET applied_credit_amount = ?, total_cost = ?
                    WHERE id = ?
                ''', (applied, max(0, breakdown['subtotal'] - applied), reservation_id))

        record_history(conn, reservation_id, 'payment_status', None, 'pending',
                       created_by or owner_id, 'Reservation created')

        # Fully covered by credit: nothing left to collect
        if breakdown['subtotal'] and applied >= breakdown['subtotal']:
            conn.execute('''
                UPDATE reservations
                SET payment_status = 'completed', payment_reference = 'credit',
                    updated_at = CURRENT_TIMESTAMP
                WHERE id = ?
            ''', (reservation_id,))
            record_history(conn, reservation_id, 'payment_status', 'pending', 'completed',
                           created_by or owner_id, 'Paid with cancellation credit')

    logger.info(
        f"[Reservation] Created {ticket_number} ({reservation_id}) for user {owner_id} "
        f"on {date_str}: trays {trays}, subtotal Rs {breakdown['subtotal']}, credit Rs {applied}"
    )
    return get_reservation(reservation_id)


@storage_retry
def admin_create_reservation(
    admin_id: int,
    reservation_date,
    tray_numbers,
    contact_name: str,
    contact_phone: str,
    owner_id: int = None,
    delivery_method: str = 'pickup'
) -> dict:
    """
    Book trays on behalf of a walk-in or phone customer.

    The booking is stored as already settled (request_only, zero cost) and
    skips calendar, minimum and per-booking limits. Tray disjointness still
    applies.

    Args:
        admin_id: Admin user ID
        reservation_date: date or 'YYYY-MM-DD'
        tray_numbers: Trays to claim
        contact_name: Customer name
        contact_phone: Customer phone
        owner_id: Customer account, if any (default: the admin)
        delivery_method: Delivery method (default: pickup)

    Returns:
        dict: Created reservation
    """
    contact_name = (contact_name or '').strip()
    contact_phone = (contact_phone or '').strip()
    if not contact_name or not contact_phone:
        raise ValueError("Customer name and phone are required")
    if delivery_method not in DELIVERY_METHODS:
        raise ValueError(f"Invalid delivery method '{delivery_method}'")

    date_str = parse_date(reservation_date).isoformat()
    trays = _validate_tray_set(tray_numbers)
    lines = [{
        'name': f"Manual booking for {contact_name}",
        'tray_quantity': len(trays),
        'packet_quantity': 0,
        'vacuum_packets': 0,
    }]
    reservation_id = uuid.uuid4().hex

    with transaction() as conn:
        _revalidate_trays(date_str, trays, 'admin')
        ticket_number = generate_ticket_number(date_str, conn)

        conn.execute('''
            INSERT INTO reservations (
                id, ticket_number, owner_id, reservation_date, tray_numbers, total_trays,
                dish_lines, payment_status, status, payment_method, delivery_method,
                admin_created, contact_name, contact_phone, created_by
            ) VALUES (?, ?, ?, ?, ?, ?, ?, 'completed', 'active', 'request_only', ?, 1, ?, ?, ?)
        ''', (
            reservation_id, ticket_number, owner_id or admin_id, date_str,
            format_tray_numbers(trays), len(trays), json.dumps(lines),
            delivery_method, contact_name, contact_phone, admin_id
        ))

        insert_claims(reservation_id, date_str, trays)

        record_history(conn, reservation_id, 'payment_status', None, 'completed',
                       admin_id, f"Manual booking for {contact_name}")

    logger.info(
        f"[Reservation] Admin {admin_id} booked {ticket_number} on {date_str} "
        f"for {contact_name}: trays {trays}"
    )
    return get_reservation(reservation_id)


# =============================================================================
# READ
# =============================================================================

def row_to_reservation(row) -> dict:
    """Convert a reservations row to the API dict shape."""
    reservation = dict(row)
    reservation['tray_numbers'] = sorted(parse_tray_numbers(reservation['tray_numbers']))
    reservation['dish_lines'] = json.loads(reservation['dish_lines'] or '[]')
    reservation['admin_created'] = bool(reservation['admin_created'])
    reservation['freeze_dried'] = {
        'packets': reservation.pop('freeze_dried_packets'),
        'grams_per_packet': reservation.pop('freeze_dried_grams_per_packet'),
    }
    return reservation


def get_reservation(reservation_id: str) -> dict:
    """
    Get reservation by ID.

    Args:
        reservation_id: Reservation ID

    Returns:
        dict: Reservation or None
    """
    db = get_db()
    row = db.execute('SELECT * FROM reservations WHERE id = ?', (reservation_id,)).fetchone()
    return row_to_reservation(row) if row else None


def get_reservation_by_ticket(ticket_number: str) -> dict:
    """Get reservation by ticket number (YYMMDDNNN), or None."""
    db = get_db()
    row = db.execute(
        'SELECT * FROM reservations WHERE ticket_number = ?', (ticket_number,)
    ).fetchone()
    return row_to_reservation(row) if row else None


def get_reservations_for_date(reservation_date, include_inactive: bool = False) -> list:
    """
    Get reservations for a date.

    Args:
        reservation_date: date or 'YYYY-MM-DD'
        include_inactive: Also return cancelled and failed reservations

    Returns:
        list: Reservations ordered by ticket number
    """
    date_str = parse_date(reservation_date).isoformat()
    db = get_db()

    query = 'SELECT * FROM reservations WHERE reservation_date = ?'
    if not include_inactive:
        query += " AND status = 'active' AND payment_status != 'failed'"
    query += ' ORDER BY ticket_number'

    rows = db.execute(query, (date_str,)).fetchall()
    return [row_to_reservation(row) for row in rows]


def get_reservations_by_owner(owner_id: int) -> list:
    """Get all reservations of a customer, newest booking date first."""
    db = get_db()
    rows = db.execute('''
        SELECT * FROM reservations
        WHERE owner_id = ?
        ORDER BY reservation_date DESC, ticket_number DESC
    ''', (owner_id,)).fetchall()
    return [row_to_reservation(row) for row in rows]


def get_daily_report(reservation_date) -> dict:
    """
    Paid, active reservations for a date with customer contact details.

    Used for the day-before preparation list.

    Returns:
        dict: {date, reservation_count, total_trays, total_packets, reservations: [...]}
    """
    date_str = parse_date(reservation_date).isoformat()
    db = get_db()
    rows = db.execute('''
        SELECT r.*,
               COALESCE(r.contact_name, u.full_name, u.username) as customer_name,
               COALESCE(r.contact_phone, u.phone) as customer_phone,
               u.email as customer_email
        FROM reservations r
        JOIN users u ON r.owner_id = u.id
        WHERE r.reservation_date = ?
          AND r.status = 'active'
          AND r.payment_status = 'completed'
        ORDER BY r.ticket_number
    ''', (date_str,)).fetchall()

    reservations = [row_to_reservation(row) for row in rows]
    return {
        'date': date_str,
        'reservation_count': len(reservations),
        'total_trays': sum(r['total_trays'] for r in reservations),
        'total_packets': sum(r['num_packets'] or 0 for r in reservations),
        'reservations': reservations,
    }
