"""
Availability API routes.
Tray availability per date, calendar summaries and allocation previews.
"""

from flask import request
from flask_login import login_required, current_user

from models.calendar_policy import get_closure_reason, get_closure_message, get_minimum_trays_for
from models.errors import BookingError
from models.tray_availability import compute_availability, allocate_trays, get_availability_summary
from utils.api_response import api_success, api_error, api_booking_error
from utils.messages import MESSAGES
from utils.validators import validate_date_format, validate_positive_integer


def register_routes(bp):
    """Register availability routes on the blueprint."""

    @bp.route('/availability')
    @login_required
    def availability():
        """
        Tray availability for one date.

        Query params:
            date: YYYY-MM-DD

        Returns:
            JSON with booked/blocked/held/free trays and bookability
        """
        date_str = request.args.get('date', '')
        if not validate_date_format(date_str):
            return api_error(MESSAGES['invalid_date'], 400)

        data = compute_availability(date_str)
        reason = get_closure_reason(date_str)
        data.update({
            'is_bookable': reason is None,
            'closure_reason': reason,
            'closure_message': get_closure_message(reason) if reason else None,
            'minimum_trays': get_minimum_trays_for(date_str),
        })
        return api_success(data=data)

    @bp.route('/calendar')
    @login_required
    def calendar_summary():
        """
        Bookability and free tray counts for a date range.

        Query params:
            from: First date (YYYY-MM-DD)
            to: Last date (YYYY-MM-DD)
        """
        date_from = request.args.get('from', '')
        date_to = request.args.get('to', '')
        if not validate_date_format(date_from) or not validate_date_format(date_to):
            return api_error(MESSAGES['invalid_date'], 400)

        try:
            summary = get_availability_summary(date_from, date_to)
        except ValueError as e:
            return api_error(str(e), 400)

        return api_success(data=summary)

    @bp.route('/allocate', methods=['POST'])
    @login_required
    def allocate_preview():
        """
        Preview which trays a booking would get.

        Request body:
            date: YYYY-MM-DD
            tray_count: Number of trays (required in auto mode)
            mode: 'auto' (default) or 'manual'
            trays: Selected tray numbers (manual mode)
        """
        data = request.get_json(silent=True)
        if not data:
            return api_error(MESSAGES['json_required'], 400)

        date_str = data.get('date', '')
        if not validate_date_format(date_str):
            return api_error(MESSAGES['invalid_date'], 400)

        mode = data.get('mode', 'auto')
        tray_count = data.get('tray_count')
        if tray_count is not None:
            valid, tray_count, err = validate_positive_integer(tray_count, 'tray_count')
            if not valid:
                return api_error(err, 400)
        elif mode == 'auto':
            return api_error(MESSAGES['trays_required'], 400)

        try:
            trays = allocate_trays(
                date_str,
                required_count=tray_count,
                mode=mode,
                explicit_trays=data.get('trays'),
                role=current_user.role_name
            )
        except BookingError as e:
            return api_booking_error(e)
        except ValueError as e:
            return api_error(str(e), 400)

        return api_success(data={'date': date_str, 'trays': trays, 'mode': mode})
