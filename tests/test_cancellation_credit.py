"""
Tests for cancellation and cancellation credits.
"""

import pytest
from datetime import timedelta


def _add_credit(owner_id, amount, expiry_date):
    """Insert a credit row directly; returns its ID."""
    from database import get_db

    db = get_db()
    cursor = db.execute('''
        INSERT INTO cancellation_credits (owner_id, credit_amount, expiry_date)
        VALUES (?, ?, ?)
    ''', (owner_id, amount, expiry_date))
    db.commit()
    return cursor.lastrowid


class TestCancelReservation:
    """Test cancelling paid reservations."""

    def test_cancel_frees_trays_and_issues_credit(self, app, weekday_date, customer_id,
                                                  paid_reservation):
        with app.app_context():
            from models.cancellation_credit import get_credit_history
            from models.reservation import cancel_reservation, get_reservation
            from models.tray_availability import compute_availability
            from utils.datetime_helpers import get_today, add_months

            reservation = paid_reservation(customer_id, weekday_date, [1, 2, 3])
            assert reservation['subtotal'] == 1050

            credit = cancel_reservation(reservation['id'], customer_id)

            assert credit['credit_amount'] == 525
            assert credit['expiry_date'] == add_months(get_today(), 6).isoformat()
            assert credit['original_reservation_id'] == reservation['id']

            cancelled = get_reservation(reservation['id'])
            assert cancelled['status'] == 'cancelled'
            assert cancelled['cancelled_at'] is not None
            assert 1 in compute_availability(weekday_date)['free_trays']
            assert len(get_credit_history(customer_id)) == 1

    def test_credit_rounds_half_up(self, app, weekday_date, customer_id):
        with app.app_context():
            from models.reservation import (
                create_reservation, mark_payment_completed, cancel_reservation
            )

            reservation = create_reservation(customer_id, weekday_date, [1], [
                {'name': 'Chicken curry', 'quantity': 1,
                 'vacuumPacking': {'enabled': True, 'packets': 1}},
            ])
            mark_payment_completed(reservation['id'], payment_reference='pay_1')
            assert reservation['subtotal'] == 375

            credit = cancel_reservation(reservation['id'], customer_id)
            assert credit['credit_amount'] == 188

    def test_cancelled_trays_can_be_rebooked(self, app, weekday_date, customer_id,
                                             other_customer_id, paid_reservation):
        with app.app_context():
            from models.reservation import cancel_reservation, create_reservation

            reservation = paid_reservation(customer_id, weekday_date, [9])
            cancel_reservation(reservation['id'], customer_id)

            rebooked = create_reservation(other_customer_id, weekday_date, [9], {'Dal': 1})
            assert rebooked['tray_numbers'] == [9]

    def test_pending_reservation_cannot_be_cancelled(self, app, weekday_date, customer_id):
        with app.app_context():
            from models.errors import InvalidTransition
            from models.reservation import create_reservation, cancel_reservation

            reservation = create_reservation(customer_id, weekday_date, [1], {'Dal': 1})

            with pytest.raises(InvalidTransition):
                cancel_reservation(reservation['id'], customer_id)

    def test_cancel_twice_rejected(self, app, weekday_date, customer_id, paid_reservation):
        with app.app_context():
            from models.errors import InvalidTransition
            from models.reservation import cancel_reservation

            reservation = paid_reservation(customer_id, weekday_date, [1])
            cancel_reservation(reservation['id'], customer_id)

            with pytest.raises(InvalidTransition):
                cancel_reservation(reservation['id'], customer_id)

    def test_past_reservation_cannot_be_cancelled(self, app, weekday_date, customer_id,
                                                  paid_reservation):
        with app.app_context():
            from datetime import date
            from models.errors import InvalidTransition
            from models.reservation import cancel_reservation

            reservation = paid_reservation(customer_id, weekday_date, [1])
            day_after = date.fromisoformat(weekday_date) + timedelta(days=1)

            with pytest.raises(InvalidTransition):
                cancel_reservation(reservation['id'], customer_id, today=day_after)

    def test_customer_cannot_cancel_others(self, app, weekday_date, customer_id,
                                           other_customer_id, paid_reservation):
        with app.app_context():
            from models.errors import Unauthorized
            from models.reservation import cancel_reservation

            reservation = paid_reservation(customer_id, weekday_date, [1])

            with pytest.raises(Unauthorized):
                cancel_reservation(reservation['id'], other_customer_id)

    def test_admin_cancel_credits_owner(self, app, weekday_date, admin_id, customer_id,
                                        paid_reservation):
        with app.app_context():
            from models.cancellation_credit import get_available_credit_total
            from models.reservation import cancel_reservation

            reservation = paid_reservation(customer_id, weekday_date, [1])
            credit = cancel_reservation(reservation['id'], admin_id, role='admin')

            assert credit['owner_id'] == customer_id
            assert get_available_credit_total(customer_id) == 175
            assert get_available_credit_total(admin_id) == 0

    def test_zero_cost_booking_issues_zero_credit(self, app, weekday_date, admin_id, customer_id):
        with app.app_context():
            from models.cancellation_credit import get_available_credits, get_credit_history
            from models.reservation import admin_create_reservation, cancel_reservation

            reservation = admin_create_reservation(
                admin_id, weekday_date, [1], 'Meena', '9876512345', owner_id=customer_id
            )
            credit = cancel_reservation(reservation['id'], admin_id, role='admin')

            assert credit['credit_amount'] == 0
            assert len(get_credit_history(customer_id)) == 1
            assert get_available_credits(customer_id) == []


class TestAvailableCredits:
    """Test credit validity."""

    def test_expired_credit_excluded(self, app, customer_id):
        with app.app_context():
            from models.cancellation_credit import get_available_credits
            from utils.datetime_helpers import get_today

            today = get_today()
            _add_credit(customer_id, 100, (today - timedelta(days=1)).isoformat())
            valid_id = _add_credit(customer_id, 200, today.isoformat())

            credits = get_available_credits(customer_id)
            assert [c['id'] for c in credits] == [valid_id]

    def test_ordered_by_expiry(self, app, customer_id):
        with app.app_context():
            from models.cancellation_credit import get_available_credits
            from utils.datetime_helpers import get_today

            today = get_today()
            later = _add_credit(customer_id, 100, (today + timedelta(days=90)).isoformat())
            sooner = _add_credit(customer_id, 200, (today + timedelta(days=10)).isoformat())

            assert [c['id'] for c in get_available_credits(customer_id)] == [sooner, later]


class TestRedeemCredits:
    """Test whole-row redemption."""

    def test_soonest_expiry_consumed_first(self, app, weekday_date, customer_id):
        with app.app_context():
            from models.cancellation_credit import redeem_credits, get_available_credits
            from models.reservation import create_reservation
            from utils.datetime_helpers import get_today

            today = get_today()
            later = _add_credit(customer_id, 100, (today + timedelta(days=90)).isoformat())
            _add_credit(customer_id, 200, (today + timedelta(days=10)).isoformat())
            reservation = create_reservation(customer_id, weekday_date, [1], {'Dal': 1})

            applied = redeem_credits(customer_id, 150, reservation['id'])

            assert applied == 150
            assert [c['id'] for c in get_available_credits(customer_id)] == [later]

    def test_remainder_forfeited(self, app, weekday_date, customer_id):
        with app.app_context():
            from models.cancellation_credit import redeem_credits, get_available_credit_total
            from models.reservation import create_reservation
            from utils.datetime_helpers import get_today

            expiry = (get_today() + timedelta(days=30)).isoformat()
            _add_credit(customer_id, 200, expiry)
            _add_credit(customer_id, 100, expiry)
            reservation = create_reservation(customer_id, weekday_date, [1], {'Dal': 1})

            applied = redeem_credits(customer_id, 250, reservation['id'])

            assert applied == 250
            assert get_available_credit_total(customer_id) == 0

    def test_nothing_requested(self, app, customer_id):
        with app.app_context():
            from models.cancellation_credit import redeem_credits

            assert redeem_credits(customer_id, 0, 'unused') == 0


class TestCreditOnBooking:
    """Test use_credit when creating reservations."""

    def test_partial_credit_leaves_balance(self, app, weekday_date, customer_id):
        with app.app_context():
            from models.reservation import create_reservation
            from utils.datetime_helpers import get_today

            _add_credit(customer_id, 200, (get_today() + timedelta(days=30)).isoformat())

            reservation = create_reservation(customer_id, weekday_date, [1], {'Dal': 1},
                                             use_credit=True)

            assert reservation['applied_credit_amount'] == 200
            assert reservation['total_cost'] == 150
            assert reservation['payment_status'] == 'pending'

    def test_full_credit_completes_payment(self, app, weekday_date, customer_id):
        with app.app_context():
            from models.reservation import create_reservation
            from utils.datetime_helpers import get_today

            _add_credit(customer_id, 400, (get_today() + timedelta(days=30)).isoformat())

            reservation = create_reservation(customer_id, weekday_date, [1], {'Dal': 1},
                                             use_credit=True)

            assert reservation['applied_credit_amount'] == 350
            assert reservation['total_cost'] == 0
            assert reservation['payment_status'] == 'completed'
            assert reservation['payment_reference'] == 'credit'

    def test_credit_not_used_unless_requested(self, app, weekday_date, customer_id):
        with app.app_context():
            from models.cancellation_credit import get_available_credit_total
            from models.reservation import create_reservation
            from utils.datetime_helpers import get_today

            _add_credit(customer_id, 200, (get_today() + timedelta(days=30)).isoformat())

            reservation = create_reservation(customer_id, weekday_date, [1], {'Dal': 1})

            assert reservation['applied_credit_amount'] == 0
            assert get_available_credit_total(customer_id) == 200

    def test_failed_payment_reissues_credit(self, app, weekday_date, customer_id):
        with app.app_context():
            from database import get_db
            from models.cancellation_credit import get_available_credits
            from models.reservation import create_reservation, mark_payment_failed
            from utils.datetime_helpers import get_today

            expiry = (get_today() + timedelta(days=30)).isoformat()
            credit_id = _add_credit(customer_id, 200, expiry)
            reservation = create_reservation(customer_id, weekday_date, [1], {'Dal': 1},
                                             use_credit=True)
            assert get_available_credits(customer_id) == []

            mark_payment_failed(reservation['id'], owner_id=customer_id)

            original = get_db().execute(
                'SELECT * FROM cancellation_credits WHERE id = ?', (credit_id,)
            ).fetchone()
            assert original['used'] == 1
            assert original['used_in_reservation_id'] == reservation['id']

            available = get_available_credits(customer_id)
            assert len(available) == 1
            assert available[0]['id'] != credit_id
            assert available[0]['credit_amount'] == 200
            assert available[0]['expiry_date'] == expiry
            assert available[0]['original_reservation_id'] == reservation['id']

    def test_reissued_credit_is_redeemable(self, app, weekday_date, customer_id):
        with app.app_context():
            from models.reservation import create_reservation, mark_payment_failed
            from utils.datetime_helpers import get_today

            _add_credit(customer_id, 200, (get_today() + timedelta(days=30)).isoformat())
            failed = create_reservation(customer_id, weekday_date, [1], {'Dal': 1},
                                        use_credit=True)
            mark_payment_failed(failed['id'], owner_id=customer_id)

            retry = create_reservation(customer_id, weekday_date, [2], {'Dal': 1},
                                       use_credit=True)

            assert retry['applied_credit_amount'] == 200
            assert retry['total_cost'] == 150

    def test_expired_hold_reissues_credit(self, app, weekday_date, customer_id, age):
        with app.app_context():
            from models.cancellation_credit import get_available_credit_total, get_credit_history
            from models.reservation import create_reservation, expire_stale_reservations
            from utils.datetime_helpers import get_today

            _add_credit(customer_id, 200, (get_today() + timedelta(days=30)).isoformat())
            reservation = create_reservation(customer_id, weekday_date, [1], {'Dal': 1},
                                             use_credit=True)
            age(reservation['id'], 20)

            expire_stale_reservations()

            assert get_available_credit_total(customer_id) == 200
            history = get_credit_history(customer_id)
            assert len(history) == 2
            assert sum(1 for c in history if c['used']) == 1
