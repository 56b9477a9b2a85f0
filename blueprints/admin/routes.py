"""
Admin routes for capacity, calendar and order management.
JSON API used by the admin tray grid and calendar screens.
"""

from datetime import timedelta

from flask import request, Blueprint
from flask_login import login_required, current_user

from blueprints.booking.services.booking_service import admin_book_trays
from models.calendar_policy import (
    get_calendar_override,
    get_overrides_between,
    set_calendar_override,
    delete_calendar_override,
)
from models.errors import BookingError
from models.reservation import (
    DELIVERY_METHODS,
    get_reservations_for_date,
    get_daily_report,
    get_status_history,
    get_reservation,
    cancel_reservation,
    expire_stale_reservations,
)
from models.tray_availability import get_tray_grid, get_availability_summary
from utils.api_response import api_success, api_error, api_booking_error
from utils.datetime_helpers import get_today
from utils.decorators import role_required
from utils.messages import MESSAGES, get_message
from utils.validators import validate_date_format, validate_positive_integer, validate_phone

admin_bp = Blueprint('admin', __name__)


# =============================================================================
# TRAY GRID & AVAILABILITY
# =============================================================================

@admin_bp.route('/grid')
@login_required
@role_required('admin')
def tray_grid():
    """Per-tray status for a date (query param: date)."""
    date_str = request.args.get('date', '')
    if not validate_date_format(date_str):
        return api_error(MESSAGES['invalid_date'], 400)
    return api_success(data=get_tray_grid(date_str))


@admin_bp.route('/summary')
@login_required
@role_required('admin')
def availability_summary():
    """Per-date counts for a range (query params: from, to)."""
    date_from = request.args.get('from', '')
    date_to = request.args.get('to', '')
    if not validate_date_format(date_from) or not validate_date_format(date_to):
        return api_error(MESSAGES['invalid_date'], 400)

    try:
        summary = get_availability_summary(date_from, date_to)
    except ValueError as e:
        return api_error(str(e), 400)

    return api_success(data=summary)


# =============================================================================
# CALENDAR OVERRIDES
# =============================================================================

@admin_bp.route('/calendar')
@login_required
@role_required('admin')
def list_overrides():
    """Calendar exceptions between two dates (query params: from, to)."""
    date_from = request.args.get('from', '')
    date_to = request.args.get('to', '')
    if not validate_date_format(date_from) or not validate_date_format(date_to):
        return api_error(MESSAGES['invalid_date'], 400)
    if date_to < date_from:
        return api_error(MESSAGES['invalid_date_range'], 400)
    return api_success(data=get_overrides_between(date_from, date_to))


@admin_bp.route('/calendar/<date_str>', methods=['GET', 'PUT', 'DELETE'])
@login_required
@role_required('admin')
def calendar_override(date_str):
    """
    Read, replace or remove the exception for a date.

    PUT body:
        is_holiday: Close the date for customer orders
        notice: Message shown to customers
        blocked_trays: Tray numbers to block
    """
    if not validate_date_format(date_str):
        return api_error(MESSAGES['invalid_date'], 400)

    if request.method == 'GET':
        override = get_calendar_override(date_str)
        return api_success(data=override or {
            'override_date': date_str, 'is_holiday': False, 'notice': None, 'blocked_trays': []
        })

    if request.method == 'DELETE':
        deleted = delete_calendar_override(date_str)
        if not deleted:
            return api_error(MESSAGES['not_found'], 404, code='not_found')
        return api_success(message=MESSAGES['override_deleted'])

    data = request.get_json(silent=True)
    if data is None:
        return api_error(MESSAGES['json_required'], 400)

    try:
        override = set_calendar_override(
            date_str,
            is_holiday=bool(data.get('is_holiday')),
            notice=data.get('notice'),
            blocked_trays=data.get('blocked_trays') or [],
            updated_by=current_user.id
        )
    except BookingError as e:
        return api_booking_error(e)
    except ValueError as e:
        return api_error(str(e), 400)

    return api_success(data=override, message=MESSAGES['override_saved'])


# =============================================================================
# RESERVATIONS
# =============================================================================

@admin_bp.route('/reservations', methods=['GET'])
@login_required
@role_required('admin')
def reservations_for_date():
    """
    Reservations for a date.

    Query params:
        date: YYYY-MM-DD
        include_inactive: '1' to include cancelled and failed bookings
    """
    date_str = request.args.get('date', '')
    if not validate_date_format(date_str):
        return api_error(MESSAGES['invalid_date'], 400)

    include_inactive = request.args.get('include_inactive') in ('1', 'true')
    return api_success(data=get_reservations_for_date(date_str, include_inactive=include_inactive))


@admin_bp.route('/reservations', methods=['POST'])
@login_required
@role_required('admin')
def force_create_reservation():
    """
    Book trays for a walk-in or phone customer.

    Request body:
        date: YYYY-MM-DD
        contact_name: Customer name
        contact_phone: Customer phone
        trays: Tray numbers (optional, otherwise tray_count is auto-allocated)
        tray_count: Number of trays for auto allocation
        owner_id: Customer account (optional)
        delivery_method: Delivery method (optional, default: pickup)
    """
    data = request.get_json(silent=True)
    if not data:
        return api_error(MESSAGES['json_required'], 400)

    date_str = data.get('date', '')
    if not validate_date_format(date_str):
        return api_error(MESSAGES['invalid_date'], 400)

    contact_name = (data.get('contact_name') or '').strip()
    contact_phone = (data.get('contact_phone') or '').strip()
    if not contact_name or not contact_phone:
        return api_error(MESSAGES['contact_required'], 400)
    if not validate_phone(contact_phone):
        return api_error(MESSAGES['invalid_phone'], 400)

    delivery_method = data.get('delivery_method') or 'pickup'
    if delivery_method not in DELIVERY_METHODS:
        return api_error(MESSAGES['invalid_delivery_method'], 400)

    trays = data.get('trays')
    tray_count = None
    if not trays:
        valid, tray_count, err = validate_positive_integer(data.get('tray_count'), 'tray_count')
        if not valid:
            return api_error(MESSAGES['trays_required'], 400)

    owner_id = data.get('owner_id')
    if owner_id is not None:
        valid, owner_id, err = validate_positive_integer(owner_id, 'owner_id')
        if not valid:
            return api_error(err, 400)

    try:
        reservation = admin_book_trays(
            admin_id=current_user.id,
            reservation_date=date_str,
            contact_name=contact_name,
            contact_phone=contact_phone,
            tray_count=tray_count,
            tray_numbers=trays,
            owner_id=owner_id,
            delivery_method=delivery_method
        )
    except BookingError as e:
        return api_booking_error(e)
    except ValueError as e:
        return api_error(str(e), 400)

    return api_success(
        data=reservation,
        message=MESSAGES['reservation_created'],
        status=201,
        reservation_id=reservation['id'],
        ticket_number=reservation['ticket_number']
    )


@admin_bp.route('/reservations/<reservation_id>')
@login_required
@role_required('admin')
def reservation_detail(reservation_id):
    """Reservation with its status history."""
    reservation = get_reservation(reservation_id)
    if not reservation:
        return api_error(MESSAGES['not_found'], 404, code='not_found')
    reservation['history'] = get_status_history(reservation_id)
    return api_success(data=reservation)


@admin_bp.route('/reservations/<reservation_id>/cancel', methods=['POST'])
@login_required
@role_required('admin')
def cancel(reservation_id):
    """Cancel any paid reservation; the credit goes to its owner."""
    try:
        credit = cancel_reservation(reservation_id, current_user.id, role='admin')
    except BookingError as e:
        return api_booking_error(e)

    return api_success(
        data={'credit': credit},
        message=get_message('reservation_cancelled', amount=credit['credit_amount'])
    )


# =============================================================================
# REPORTS & MAINTENANCE
# =============================================================================

@admin_bp.route('/reports/daily')
@login_required
@role_required('admin')
def daily_report():
    """Paid bookings for a date (query param: date, default tomorrow)."""
    date_str = request.args.get('date') or (get_today() + timedelta(days=1)).isoformat()
    if not validate_date_format(date_str):
        return api_error(MESSAGES['invalid_date'], 400)
    return api_success(data=get_daily_report(date_str))


@admin_bp.route('/maintenance/expire-pending', methods=['POST'])
@login_required
@role_required('admin')
def expire_pending():
    """Fail pending reservations whose payment hold has lapsed."""
    expired = expire_stale_reservations()
    return api_success(
        data={'expired': expired},
        message=get_message('sweep_done', count=len(expired))
    )
