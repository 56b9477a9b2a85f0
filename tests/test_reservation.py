"""
Tests for reservation creation and queries.
"""

import re
import pytest


class TestTicketNumber:
    """Test ticket number generation."""

    def test_ticket_format_and_sequence(self, app, weekday_date, customer_id):
        with app.app_context():
            from datetime import date
            from models.reservation import create_reservation

            first = create_reservation(customer_id, weekday_date, [1], {'Dal': 1})
            second = create_reservation(customer_id, weekday_date, [2], {'Dal': 1})

            prefix = date.fromisoformat(weekday_date).strftime('%y%m%d')
            assert re.fullmatch(r'\d{9}', first['ticket_number'])
            assert first['ticket_number'] == f'{prefix}001'
            assert second['ticket_number'] == f'{prefix}002'


class TestCreateReservation:
    """Test customer reservation creation."""

    def test_create_pending_reservation(self, app, weekday_date, customer_id):
        with app.app_context():
            from models.reservation import create_reservation

            reservation = create_reservation(
                owner_id=customer_id,
                reservation_date=weekday_date,
                tray_numbers=[3, 1, 2],
                dish_lines=[
                    {'name': 'Chicken curry', 'quantity': 2, 'packets': 4,
                     'vacuumPacking': {'enabled': True, 'packets': 3}},
                    {'name': 'Dal', 'quantity': 1, 'packets': 2},
                ],
                delivery_method='pickup'
            )

            assert len(reservation['id']) == 32
            assert reservation['payment_status'] == 'pending'
            assert reservation['status'] == 'active'
            assert reservation['tray_numbers'] == [1, 2, 3]
            assert reservation['total_trays'] == 3
            assert reservation['num_packets'] == 6
            assert reservation['dehydration_cost'] == 1050
            assert reservation['packing_cost'] == 60
            assert reservation['vacuum_cost'] == 75
            assert reservation['subtotal'] == 1185
            assert reservation['total_cost'] == 1185
            assert reservation['dish_lines'][0] == {
                'name': 'Chicken curry', 'tray_quantity': 2,
                'packet_quantity': 4, 'vacuum_packets': 3
            }

    def test_legacy_dish_map_accepted(self, app, weekday_date, customer_id):
        with app.app_context():
            from models.reservation import create_reservation

            reservation = create_reservation(customer_id, weekday_date, [1, 2],
                                             {'Dal': 1, 'Sambar': 1})

            assert [line['name'] for line in reservation['dish_lines']] == ['Dal', 'Sambar']
            assert reservation['num_packets'] == 0

    def test_explicit_packet_count_overrides_lines(self, app, weekday_date, customer_id):
        with app.app_context():
            from models.reservation import create_reservation

            reservation = create_reservation(customer_id, weekday_date, [1], {'Dal': 1},
                                             num_packets=5)
            assert reservation['num_packets'] == 5
            assert reservation['packing_cost'] == 50

    def test_freeze_dried_stored(self, app, weekday_date, customer_id):
        with app.app_context():
            from models.reservation import create_reservation

            reservation = create_reservation(
                customer_id, weekday_date, [1], {'Dal': 1},
                freeze_dried={'packets': 2, 'grams_per_packet': 100}
            )
            assert reservation['freeze_dried'] == {'packets': 2, 'grams_per_packet': 100}
            assert reservation['freeze_dried_cost'] == 400

    def test_dish_trays_must_match_selection(self, app, weekday_date, customer_id):
        with app.app_context():
            from models.errors import InvalidSelection
            from models.reservation import create_reservation

            with pytest.raises(InvalidSelection):
                create_reservation(customer_id, weekday_date, [1, 2], {'Dal': 3})

    def test_invalid_delivery_method(self, app, weekday_date, customer_id):
        with app.app_context():
            from models.reservation import create_reservation

            with pytest.raises(ValueError):
                create_reservation(customer_id, weekday_date, [1], {'Dal': 1},
                                   delivery_method='drone')

    def test_tray_outside_pool(self, app, weekday_date, customer_id):
        with app.app_context():
            from models.errors import InvalidSelection
            from models.reservation import create_reservation

            with pytest.raises(InvalidSelection):
                create_reservation(customer_id, weekday_date, [51], {'Dal': 1})

    def test_taken_tray_conflicts(self, app, weekday_date, customer_id, other_customer_id,
                                  paid_reservation):
        with app.app_context():
            from models.errors import TrayConflict
            from models.reservation import create_reservation, get_reservations_for_date

            paid_reservation(customer_id, weekday_date, [1, 2])

            with pytest.raises(TrayConflict) as exc:
                create_reservation(other_customer_id, weekday_date, [2, 3], {'Dal': 2})

            assert exc.value.details['trays'] == [2]
            assert len(get_reservations_for_date(weekday_date)) == 1

    def test_held_tray_conflicts(self, app, weekday_date, customer_id, other_customer_id):
        with app.app_context():
            from models.errors import TrayConflict
            from models.reservation import create_reservation

            create_reservation(customer_id, weekday_date, [1], {'Dal': 1})

            with pytest.raises(TrayConflict):
                create_reservation(other_customer_id, weekday_date, [1], {'Dal': 1})

    def test_expired_hold_can_be_taken(self, app, weekday_date, customer_id,
                                       other_customer_id, age):
        with app.app_context():
            from models.reservation import create_reservation

            stale = create_reservation(customer_id, weekday_date, [1], {'Dal': 1})
            age(stale['id'], 20)

            fresh = create_reservation(other_customer_id, weekday_date, [1], {'Dal': 1})
            assert fresh['tray_numbers'] == [1]

    def test_closed_date_rejected(self, app, sunday_date, customer_id):
        with app.app_context():
            from models.errors import DateClosed
            from models.reservation import create_reservation

            with pytest.raises(DateClosed):
                create_reservation(customer_id, sunday_date, [1], {'Dal': 1})

    def test_saturday_minimum_enforced_on_create(self, app, saturday_date, customer_id):
        with app.app_context():
            from models.errors import BelowMinimumThreshold
            from models.reservation import create_reservation

            with pytest.raises(BelowMinimumThreshold):
                create_reservation(customer_id, saturday_date, [1, 2], {'Dal': 2})

    def test_history_records_creation(self, app, weekday_date, customer_id):
        with app.app_context():
            from models.reservation import create_reservation, get_status_history

            reservation = create_reservation(customer_id, weekday_date, [1], {'Dal': 1})
            history = get_status_history(reservation['id'])

            assert len(history) == 1
            assert history[0]['new_value'] == 'pending'
            assert history[0]['changed_by'] == customer_id


class TestAdminCreateReservation:
    """Test admin force-create."""

    def test_admin_booking_is_settled(self, app, sunday_date, admin_id):
        with app.app_context():
            from models.reservation import admin_create_reservation

            reservation = admin_create_reservation(
                admin_id, sunday_date, list(range(1, 31)), 'Meena', '9876512345'
            )

            assert reservation['payment_status'] == 'completed'
            assert reservation['payment_method'] == 'request_only'
            assert reservation['admin_created'] is True
            assert reservation['total_trays'] == 30
            assert reservation['subtotal'] == 0
            assert reservation['owner_id'] == admin_id
            assert reservation['dish_lines'][0]['name'] == 'Manual booking for Meena'

    def test_admin_booking_respects_claims(self, app, weekday_date, admin_id,
                                           customer_id, paid_reservation):
        with app.app_context():
            from models.errors import TrayConflict
            from models.reservation import admin_create_reservation

            paid_reservation(customer_id, weekday_date, [5])

            with pytest.raises(TrayConflict):
                admin_create_reservation(admin_id, weekday_date, [5, 6], 'Meena', '9876512345')

    def test_admin_booking_requires_contact(self, app, weekday_date, admin_id):
        with app.app_context():
            from models.reservation import admin_create_reservation

            with pytest.raises(ValueError):
                admin_create_reservation(admin_id, weekday_date, [1], '  ', '9876512345')


class TestReservationQueries:
    """Test read helpers."""

    def test_lookup_by_id_and_ticket(self, app, weekday_date, customer_id):
        with app.app_context():
            from models.reservation import (
                create_reservation, get_reservation, get_reservation_by_ticket
            )

            created = create_reservation(customer_id, weekday_date, [1], {'Dal': 1})

            assert get_reservation(created['id'])['ticket_number'] == created['ticket_number']
            assert get_reservation_by_ticket(created['ticket_number'])['id'] == created['id']
            assert get_reservation('missing') is None

    def test_reservations_for_date_hides_inactive(self, app, weekday_date, customer_id,
                                                  paid_reservation):
        with app.app_context():
            from models.reservation import (
                create_reservation, mark_payment_failed, get_reservations_for_date
            )

            paid = paid_reservation(customer_id, weekday_date, [1])
            failed = create_reservation(customer_id, weekday_date, [2], {'Dal': 1})
            mark_payment_failed(failed['id'])

            active = get_reservations_for_date(weekday_date)
            everything = get_reservations_for_date(weekday_date, include_inactive=True)

            assert [r['id'] for r in active] == [paid['id']]
            assert len(everything) == 2

    def test_reservations_by_owner(self, app, date_factory, customer_id, other_customer_id,
                                   paid_reservation):
        with app.app_context():
            from models.reservation import get_reservations_by_owner

            early = date_factory(1)
            late = date_factory(2, weeks_ahead=6)
            paid_reservation(customer_id, early, [1])
            paid_reservation(customer_id, late, [1])
            paid_reservation(other_customer_id, early, [2])

            mine = get_reservations_by_owner(customer_id)
            assert [r['reservation_date'] for r in mine] == [late, early]

    def test_daily_report(self, app, weekday_date, admin_id, customer_id, paid_reservation):
        with app.app_context():
            from models.reservation import (
                create_reservation, admin_create_reservation, get_daily_report
            )

            paid_reservation(customer_id, weekday_date, [1, 2], num_packets=3)
            admin_create_reservation(admin_id, weekday_date, [3], 'Meena', '9876512345')
            create_reservation(customer_id, weekday_date, [4], {'Dal': 1})

            report = get_daily_report(weekday_date)

            assert report['reservation_count'] == 2
            assert report['total_trays'] == 3
            assert report['total_packets'] == 3
            names = [r['customer_name'] for r in report['reservations']]
            assert names == ['Asha', 'Meena']
            assert report['reservations'][0]['customer_phone'] == '9876543210'
