"""
Reservation API routes.
Quote, create, payment status write-back, cancellation and listing.
"""

from flask import current_app, request
from flask_login import login_required, current_user

from blueprints.booking.services.booking_service import (
    book_trays,
    quote,
    verify_payment_signature,
)
from models.errors import BookingError, TrayConflict
from models.reservation import (
    DELIVERY_METHODS,
    get_reservation,
    get_reservations_by_owner,
    mark_payment_completed,
    mark_payment_failed,
    cancel_reservation,
)
from utils.api_response import api_success, api_error, api_booking_error
from utils.messages import MESSAGES, get_message
from utils.validators import validate_date_format, validate_positive_integer


def _parse_order_extras(data: dict) -> tuple:
    """
    Validate optional order fields shared by quote and create.

    Returns:
        Tuple of (num_packets, error_message)
    """
    num_packets = data.get('num_packets')
    if num_packets is None or num_packets == '':
        return None, ''
    valid, num_packets, err = validate_positive_integer(num_packets, 'num_packets', allow_zero=True)
    if not valid:
        return None, err
    return num_packets, ''


def register_routes(bp):
    """Register reservation routes on the blueprint."""

    @bp.route('/quote', methods=['POST'])
    @login_required
    def quote_order():
        """
        Price preview for dishes and add-ons.

        Request body:
            dishes: Legacy map or list of dish lines
            num_packets: Packing packets (optional, default: sum of dish packets)
            freeze_dried: {packets, grams_per_packet} (optional)
            use_credit: Apply available cancellation credit (optional)
        """
        data = request.get_json(silent=True)
        if not data:
            return api_error(MESSAGES['json_required'], 400)
        if not data.get('dishes'):
            return api_error(MESSAGES['dishes_required'], 400)

        num_packets, err = _parse_order_extras(data)
        if err:
            return api_error(err, 400)

        try:
            breakdown = quote(
                current_user.id,
                data['dishes'],
                num_packets=num_packets,
                freeze_dried=data.get('freeze_dried'),
                use_credit=bool(data.get('use_credit'))
            )
        except ValueError as e:
            return api_error(str(e), 400)

        return api_success(data=breakdown)

    @bp.route('/reservations', methods=['POST'])
    @login_required
    def create():
        """
        Create a pending reservation.

        Request body:
            date: YYYY-MM-DD
            dishes: Legacy map or list of dish lines
            mode: 'auto' (default) or 'manual'
            trays: Selected tray numbers (manual mode)
            num_packets, freeze_dried, delivery_method, use_credit: optional

        Returns:
            JSON with the reservation, 201 on success
        """
        data = request.get_json(silent=True)
        if not data:
            return api_error(MESSAGES['json_required'], 400)

        date_str = data.get('date', '')
        if not validate_date_format(date_str):
            return api_error(MESSAGES['invalid_date'], 400)
        if not data.get('dishes'):
            return api_error(MESSAGES['dishes_required'], 400)

        delivery_method = data.get('delivery_method') or 'not_sure'
        if delivery_method not in DELIVERY_METHODS:
            return api_error(MESSAGES['invalid_delivery_method'], 400)

        num_packets, err = _parse_order_extras(data)
        if err:
            return api_error(err, 400)

        try:
            reservation = book_trays(
                owner_id=current_user.id,
                reservation_date=date_str,
                dishes=data['dishes'],
                mode=data.get('mode', 'auto'),
                tray_numbers=data.get('trays'),
                num_packets=num_packets,
                freeze_dried=data.get('freeze_dried'),
                delivery_method=delivery_method,
                use_credit=bool(data.get('use_credit')),
                role=current_user.role_name
            )
        except TrayConflict as e:
            current_app.logger.warning(f'Booking conflict for user {current_user.id}: {e}')
            return api_booking_error(e)
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

    @bp.route('/reservations')
    @login_required
    def my_reservations():
        """List the current customer's reservations."""
        return api_success(data=get_reservations_by_owner(current_user.id))

    @bp.route('/reservations/<reservation_id>')
    @login_required
    def reservation_detail(reservation_id):
        """Get one of the current customer's reservations."""
        reservation = get_reservation(reservation_id)
        if not reservation:
            return api_error(MESSAGES['not_found'], 404, code='not_found')
        if reservation['owner_id'] != current_user.id and not current_user.is_admin:
            return api_error(MESSAGES['permission_denied'], 403, code='unauthorized')
        return api_success(data=reservation)

    @bp.route('/reservations/<reservation_id>/payment', methods=['POST'])
    @login_required
    def payment_status(reservation_id):
        """
        Record the payment outcome reported by the gateway.

        Customers may only report a failed or abandoned payment. 'completed'
        needs a gateway signature over 'reservation_id|payment_reference',
        unless an admin records it.

        Request body:
            status: 'completed' or 'failed'
            payment_reference: Gateway payment ID (completed only)
            signature: Gateway HMAC signature (completed only)
        """
        data = request.get_json(silent=True)
        if not data:
            return api_error(MESSAGES['json_required'], 400)

        status = data.get('status')
        if status not in ('completed', 'failed'):
            return api_error("status must be 'completed' or 'failed'", 400)

        owner_id = None if current_user.is_admin else current_user.id

        try:
            if status == 'completed':
                payment_reference = data.get('payment_reference')
                if not current_user.is_admin and not verify_payment_signature(
                        reservation_id, payment_reference, data.get('signature')):
                    return api_error(MESSAGES['payment_unverified'], 403, code='unauthorized')

                reservation = mark_payment_completed(
                    reservation_id,
                    payment_reference=payment_reference,
                    owner_id=owner_id
                )
                message = MESSAGES['payment_completed']
            else:
                reservation = mark_payment_failed(reservation_id, owner_id=owner_id)
                message = MESSAGES['payment_failed']
        except BookingError as e:
            return api_booking_error(e)

        return api_success(data=reservation, message=message)

    @bp.route('/reservations/<reservation_id>/cancel', methods=['POST'])
    @login_required
    def cancel(reservation_id):
        """Cancel an own paid reservation and receive a credit."""
        try:
            credit = cancel_reservation(reservation_id, current_user.id, role='customer')
        except BookingError as e:
            return api_booking_error(e)

        return api_success(
            data={'credit': credit},
            message=get_message('reservation_cancelled', amount=credit['credit_amount'])
        )
