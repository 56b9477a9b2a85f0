"""
Tests for calendar policy: bookable dates, overrides, minimum trays.
"""

import pytest
from datetime import date, datetime, timedelta


class TestIsBookable:
    """Test date closure rules."""

    def test_regular_future_weekday_is_bookable(self, app, weekday_date):
        with app.app_context():
            from models.calendar_policy import is_bookable, get_closure_reason

            assert is_bookable(weekday_date)
            assert get_closure_reason(weekday_date) is None

    def test_past_date_is_closed(self, app):
        with app.app_context():
            from models.calendar_policy import get_closure_reason

            now = datetime(2030, 6, 12, 9, 0)
            assert get_closure_reason('2030-06-11', now=now) == 'past_date'

    def test_sunday_is_closed(self, app, sunday_date):
        with app.app_context():
            from models.calendar_policy import is_bookable, get_closure_reason

            assert not is_bookable(sunday_date)
            assert get_closure_reason(sunday_date) == 'off_day'

    def test_annual_fixed_holiday_is_closed(self, app):
        with app.app_context():
            from models.calendar_policy import get_closure_reason

            # Aug 15, 2031 is a Friday
            now = datetime(2031, 8, 1, 9, 0)
            assert get_closure_reason('2031-08-15', now=now) == 'holiday'

    def test_one_off_holiday_only_applies_to_its_year(self, app):
        app.config['FIXED_HOLIDAYS'] = ['2031-03-14']
        with app.app_context():
            from models.calendar_policy import get_closure_reason

            now = datetime(2031, 1, 1, 9, 0)
            assert get_closure_reason('2031-03-14', now=now) == 'holiday'
            # Mar 14, 2032 is a Sunday; Mar 15, 2032 is the comparable weekday
            assert get_closure_reason('2032-03-15', now=now) is None

    def test_holiday_override_closes_date(self, app, weekday_date, admin_id):
        with app.app_context():
            from models.calendar_policy import set_calendar_override, is_bookable, get_closure_reason

            set_calendar_override(weekday_date, is_holiday=True, notice='Maintenance',
                                  updated_by=admin_id)

            assert not is_bookable(weekday_date)
            assert get_closure_reason(weekday_date) == 'holiday_override'

    def test_same_day_cutoff(self, app):
        with app.app_context():
            from models.calendar_policy import is_bookable, get_closure_reason

            # Wednesday, not a holiday
            before = datetime(2030, 6, 12, 12, 59)
            after = datetime(2030, 6, 12, 13, 0)

            assert is_bookable('2030-06-12', now=before)
            assert not is_bookable('2030-06-12', now=after)
            assert get_closure_reason('2030-06-12', now=after) == 'cutoff_passed'
            # Tomorrow stays open after today's cutoff
            assert is_bookable('2030-06-13', now=after)

    def test_accepts_date_objects(self, app, weekday_date):
        with app.app_context():
            from models.calendar_policy import is_bookable

            assert is_bookable(date.fromisoformat(weekday_date))

    def test_invalid_date_string_raises(self, app):
        with app.app_context():
            from models.calendar_policy import is_bookable

            with pytest.raises(ValueError):
                is_bookable('2030-13-45')


class TestMinimumTrays:
    """Test special weekday minimum."""

    def test_saturday_has_minimum(self, app, saturday_date):
        with app.app_context():
            from models.calendar_policy import get_minimum_trays_for

            assert get_minimum_trays_for(saturday_date) == 6

    def test_other_days_have_no_minimum(self, app, weekday_date):
        with app.app_context():
            from models.calendar_policy import get_minimum_trays_for

            assert get_minimum_trays_for(weekday_date) is None


class TestCalendarOverrides:
    """Test admin calendar exceptions."""

    def test_no_override_means_open_and_unblocked(self, app, weekday_date):
        with app.app_context():
            from models.calendar_policy import get_calendar_override, get_blocked_tray_numbers

            assert get_calendar_override(weekday_date) is None
            assert get_blocked_tray_numbers(weekday_date) == []

    def test_set_override_stores_sorted_blocked_trays(self, app, weekday_date, admin_id):
        with app.app_context():
            from models.calendar_policy import set_calendar_override, get_blocked_tray_numbers

            override = set_calendar_override(weekday_date, notice='  Half day  ',
                                             blocked_trays=[12, 3, 3, 7], updated_by=admin_id)

            assert override['blocked_trays'] == [3, 7, 12]
            assert override['notice'] == 'Half day'
            assert override['is_holiday'] is False
            assert get_blocked_tray_numbers(weekday_date) == [3, 7, 12]

    def test_set_override_replaces_existing(self, app, weekday_date, admin_id):
        with app.app_context():
            from models.calendar_policy import set_calendar_override, get_overrides_between

            set_calendar_override(weekday_date, blocked_trays=[1, 2], updated_by=admin_id)
            set_calendar_override(weekday_date, is_holiday=True, blocked_trays=[5],
                                  updated_by=admin_id)

            overrides = get_overrides_between(weekday_date, weekday_date)
            assert len(overrides) == 1
            assert overrides[0]['blocked_trays'] == [5]
            assert overrides[0]['is_holiday'] is True

    def test_blocked_tray_outside_pool_rejected(self, app, weekday_date, admin_id):
        with app.app_context():
            from models.calendar_policy import set_calendar_override

            with pytest.raises(ValueError):
                set_calendar_override(weekday_date, blocked_trays=[51], updated_by=admin_id)
            with pytest.raises(ValueError):
                set_calendar_override(weekday_date, blocked_trays=[0], updated_by=admin_id)

    def test_blocking_booked_tray_conflicts(self, app, weekday_date, admin_id,
                                            customer_id, paid_reservation):
        with app.app_context():
            from models.calendar_policy import set_calendar_override, get_blocked_tray_numbers
            from models.errors import TrayConflict

            paid_reservation(customer_id, weekday_date, [4, 5])

            with pytest.raises(TrayConflict) as exc:
                set_calendar_override(weekday_date, blocked_trays=[5, 6], updated_by=admin_id)

            assert exc.value.details['trays'] == [5]
            assert get_blocked_tray_numbers(weekday_date) == []

    def test_delete_override(self, app, weekday_date, admin_id):
        with app.app_context():
            from models.calendar_policy import (
                set_calendar_override, delete_calendar_override, get_calendar_override
            )

            set_calendar_override(weekday_date, is_holiday=True, updated_by=admin_id)

            assert delete_calendar_override(weekday_date) is True
            assert get_calendar_override(weekday_date) is None
            assert delete_calendar_override(weekday_date) is False

    def test_overrides_between_is_ordered(self, app, admin_id, date_factory):
        with app.app_context():
            from models.calendar_policy import set_calendar_override, get_overrides_between

            first = date_factory(1)
            second = (date.fromisoformat(first) + timedelta(days=1)).isoformat()
            set_calendar_override(second, notice='b', updated_by=admin_id)
            set_calendar_override(first, notice='a', updated_by=admin_id)

            overrides = get_overrides_between(first, second)
            assert [o['override_date'] for o in overrides] == [first, second]
