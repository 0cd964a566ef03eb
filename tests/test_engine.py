"""Tests for the availability matching engine."""

from datetime import date, datetime, timedelta, timezone

import pytest

from intake_scheduling.matching import InvalidPreference, match_availability, resolve_horizon
from intake_scheduling.matching.recurrence import expand_record, split_occurrence
from intake_scheduling.schemas.preference_schema import DateConstraints, PreferenceModel
from intake_scheduling.utils import to_zone
from tests.conftest import (
    EASTERN,
    NOW,
    ORG_ID,
    PACIFIC,
    local,
    make_preferences,
    make_record,
    time_range,
)


def run(prefs, records, **kwargs):
    kwargs.setdefault("max_results", 25)
    kwargs.setdefault("horizon_days", 60)
    kwargs.setdefault("slot_minutes", 0)
    return match_availability(prefs, records, organization_id=ORG_ID, now=NOW, **kwargs)


class TestHorizon:
    def test_default_window(self):
        horizon = resolve_horizon(NOW, 60, None, PACIFIC)
        assert horizon.start == NOW
        assert horizon.end == NOW + timedelta(days=60)

    def test_date_constraints_narrow_window(self):
        constraints = DateConstraints(start_date=date(2025, 10, 20), end_date=date(2025, 10, 26))
        horizon = resolve_horizon(NOW, 60, constraints, PACIFIC)
        assert horizon.start == local("2025-10-20T00:00")
        assert horizon.end == local("2025-10-27T00:00")

    def test_constraints_cannot_widen_window(self):
        constraints = DateConstraints(start_date=date(2025, 1, 1), end_date=date(2026, 12, 31))
        horizon = resolve_horizon(NOW, 60, constraints, PACIFIC)
        assert horizon.start == NOW
        assert horizon.end == NOW + timedelta(days=60)

    def test_reversed_dates_rejected(self):
        constraints = DateConstraints(start_date=date(2025, 10, 26), end_date=date(2025, 10, 20))
        with pytest.raises(InvalidPreference, match="after endDate"):
            resolve_horizon(NOW, 60, constraints, PACIFIC)

    def test_past_window_rejected(self):
        constraints = DateConstraints(end_date=date(2025, 10, 1))
        with pytest.raises(InvalidPreference, match="empty"):
            resolve_horizon(NOW, 60, constraints, PACIFIC)

    def test_naive_now_rejected(self):
        with pytest.raises(InvalidPreference, match="timezone-aware"):
            resolve_horizon(datetime(2025, 10, 13, 12, 0), 60, None, PACIFIC)


class TestRecurrence:
    def test_weekly_template_expands_each_week(self):
        record = make_record(start="2025-10-06T17:00", end="2025-10-06T18:00", day_of_week=1, is_repeating=True)
        horizon = resolve_horizon(NOW, 60, None, PACIFIC)
        starts = [to_zone(s.start, PACIFIC) for s in expand_record(record, horizon)]
        # Mondays from Oct 13 through Dec 8
        assert len(starts) == 9
        assert all(s.weekday() == 0 for s in starts)

    def test_wall_clock_kept_across_dst_change(self):
        record = make_record(start="2025-10-06T17:00", end="2025-10-06T18:00", day_of_week=1, is_repeating=True)
        horizon = resolve_horizon(NOW, 60, None, PACIFIC)
        slots = list(expand_record(record, horizon))
        assert {to_zone(s.start, PACIFIC).hour for s in slots} == {17}
        offsets = {to_zone(s.start, PACIFIC).utcoffset() for s in slots}
        assert len(offsets) == 2

    def test_end_on_bounds_expansion(self):
        record = make_record(
            start="2025-10-06T17:00", end="2025-10-06T18:00",
            day_of_week=1, is_repeating=True, end_on=date(2025, 10, 27),
        )
        slots = run(make_preferences(), [record])
        assert len(slots) == 3
        assert all(local_day(s) <= date(2025, 10, 27) for s in slots)

    def test_overnight_template(self):
        record = make_record(start="2025-10-06T22:00", end="2025-10-07T01:00", day_of_week=1, is_repeating=True)
        horizon = resolve_horizon(NOW, 7, None, PACIFIC)
        slots = list(expand_record(record, horizon))
        assert len(slots) == 1
        assert slots[0].end - slots[0].start == timedelta(hours=3)

    def test_repeating_without_day_skipped(self):
        record = make_record(is_repeating=True, day_of_week=None)
        horizon = resolve_horizon(NOW, 60, None, PACIFIC)
        assert list(expand_record(record, horizon)) == []

    def test_one_off_outside_horizon(self):
        record = make_record(start="2026-03-01T09:00", end="2026-03-01T10:00")
        horizon = resolve_horizon(NOW, 60, None, PACIFIC)
        assert list(expand_record(record, horizon)) == []

    def test_split_drops_remainder(self):
        record = make_record(start="2025-10-14T09:00", end="2025-10-14T10:45")
        horizon = resolve_horizon(NOW, 60, None, PACIFIC)
        [occurrence] = expand_record(record, horizon)
        pieces = split_occurrence(occurrence, 30)
        assert len(pieces) == 3
        assert pieces[-1].end == local("2025-10-14T10:30")


def local_day(slot):
    return to_zone(slot.start, slot.source_timezone).date()


class TestMatchAvailability:
    def test_deterministic(self):
        records = [
            make_record(id=3, owner_id=300, start="2025-10-15T09:00", end="2025-10-15T10:00"),
            make_record(id=1, owner_id=100, start="2025-10-14T09:00", end="2025-10-14T10:00"),
            make_record(id=2, owner_id=200, day_of_week=3, is_repeating=True,
                        start="2025-10-08T17:00", end="2025-10-08T19:00"),
        ]
        prefs = make_preferences(timeRanges=[time_range("08:00", "20:00")])
        assert run(prefs, records) == run(prefs, list(reversed(records)))

    def test_soft_deleted_excluded(self):
        records = [
            make_record(id=1),
            make_record(id=2, owner_id=200, deleted_at=datetime(2025, 10, 1, tzinfo=timezone.utc)),
        ]
        slots = run(make_preferences(), records)
        assert [s.record_id for s in slots] == [1]

    def test_other_organization_excluded(self):
        records = [make_record(id=1), make_record(id=2, owner_id=200, organization_id=40001)]
        slots = run(make_preferences(), records)
        assert [s.record_id for s in slots] == [1]

    def test_time_range_overlap_inclusion(self):
        # 09:30-09:45 sits inside a 09:00-10:00 Pacific window
        record = make_record(start="2025-10-14T09:30", end="2025-10-14T09:45")
        prefs = make_preferences(timeRanges=[time_range("09:00", "10:00")])
        assert len(run(prefs, [record])) == 1

    def test_time_range_touching_end_excluded(self):
        # 10:00-10:15 only touches the window end
        record = make_record(start="2025-10-14T10:00", end="2025-10-14T10:15")
        prefs = make_preferences(timeRanges=[time_range("09:00", "10:00")])
        assert run(prefs, [record]) == []

    def test_time_range_in_other_zone(self):
        # 12:00-13:00 Eastern is 09:00-10:00 Pacific
        record = make_record(start="2025-10-14T12:00", end="2025-10-14T13:00", tz=EASTERN)
        prefs = make_preferences(timeRanges=[time_range("09:00", "10:00")])
        assert len(run(prefs, [record])) == 1

    def test_time_range_wrapping_midnight(self):
        record = make_record(start="2025-10-15T00:30", end="2025-10-15T01:00")
        prefs = make_preferences(timeRanges=[time_range("22:00", "02:00")])
        assert len(run(prefs, [record])) == 1

    def test_zero_length_time_range_matches_nothing(self):
        record = make_record(start="2025-10-14T15:00", end="2025-10-14T16:00")
        prefs = make_preferences(timeRanges=[time_range("09:00", "09:00")])
        assert run(prefs, [record]) == []

    def test_zero_length_range_does_not_hide_others(self):
        record = make_record(start="2025-10-14T15:00", end="2025-10-14T16:00")
        prefs = make_preferences(timeRanges=[time_range("09:00", "09:00"), time_range("15:30", "17:00")])
        assert len(run(prefs, [record])) == 1

    def test_any_time_range_may_match(self):
        record = make_record(start="2025-10-14T18:00", end="2025-10-14T19:00")
        prefs = make_preferences(timeRanges=[time_range("08:00", "09:00"), time_range("17:30", "18:30")])
        assert len(run(prefs, [record])) == 1

    def test_day_of_week_filter(self):
        records = [
            make_record(id=1, start="2025-10-20T09:00", end="2025-10-20T10:00"),  # Monday
            make_record(id=2, start="2025-10-21T09:00", end="2025-10-21T10:00"),  # Tuesday
        ]
        slots = run(make_preferences(daysOfWeek=[2]), records)
        assert [s.record_id for s in slots] == [2]

    def test_weekends_pattern(self):
        records = [
            make_record(id=1, start="2025-10-18T09:00", end="2025-10-18T10:00"),  # Saturday
            make_record(id=2, start="2025-10-20T09:00", end="2025-10-20T10:00"),  # Monday
        ]
        slots = run(make_preferences(recurringPattern="weekends"), records)
        assert [s.record_id for s in slots] == [1]

    def test_weekdays_pattern(self):
        records = [
            make_record(id=1, start="2025-10-18T09:00", end="2025-10-18T10:00"),  # Saturday
            make_record(id=2, start="2025-10-20T09:00", end="2025-10-20T10:00"),  # Monday
        ]
        slots = run(make_preferences(recurringPattern="weekdays"), records)
        assert [s.record_id for s in slots] == [2]

    def test_specific_dates(self):
        records = [
            make_record(id=1, start="2025-10-20T09:00", end="2025-10-20T10:00"),
            make_record(id=2, start="2025-10-21T09:00", end="2025-10-21T10:00"),
        ]
        slots = run(make_preferences(specificDates=["2025-10-21"]), records)
        assert [s.record_id for s in slots] == [2]

    def test_date_constraints_limit_results(self):
        record = make_record(start="2025-10-06T17:00", end="2025-10-06T18:00", day_of_week=1, is_repeating=True)
        prefs = make_preferences(dateConstraints={"startDate": "2025-10-20", "endDate": "2025-10-26"})
        slots = run(prefs, [record])
        assert [local_day(s) for s in slots] == [date(2025, 10, 20)]

    def test_empty_result_is_not_an_error(self):
        record = make_record(start="2025-10-14T09:00", end="2025-10-14T10:00")
        prefs = make_preferences(timeRanges=[time_range("17:00", "23:59")])
        assert run(prefs, [record]) == []

    def test_ordering_by_start_then_owner_then_id(self):
        records = [
            make_record(id=5, owner_id=200, start="2025-10-14T09:00", end="2025-10-14T10:00"),
            make_record(id=4, owner_id=100, start="2025-10-14T09:00", end="2025-10-14T10:00"),
            make_record(id=1, owner_id=300, start="2025-10-14T08:00", end="2025-10-14T09:00"),
        ]
        slots = run(make_preferences(), records)
        assert [(s.owner_id, s.record_id) for s in slots] == [(300, 1), (100, 4), (200, 5)]

    def test_identical_slots_collapsed(self):
        records = [
            make_record(id=7, owner_id=100),
            make_record(id=3, owner_id=100),
        ]
        slots = run(make_preferences(), records)
        assert len(slots) == 1
        assert slots[0].record_id == 3

    def test_result_cap(self):
        record = make_record(start="2025-10-06T17:00", end="2025-10-06T18:00", day_of_week=1, is_repeating=True)
        slots = run(make_preferences(), [record], max_results=2)
        assert len(slots) == 2
        assert slots[0].start < slots[1].start

    @pytest.mark.parametrize("cap", [0, -1])
    def test_non_positive_cap_returns_nothing(self, cap):
        records = [
            make_record(id=1, owner_id=100),
            make_record(id=2, owner_id=200),
            make_record(id=3, owner_id=300),
        ]
        assert run(make_preferences(), records, max_results=cap) == []

    def test_cap_equal_to_matches_keeps_all(self):
        records = [make_record(id=1, owner_id=100), make_record(id=2, owner_id=200)]
        assert len(run(make_preferences(), records, max_results=2)) == 2

    def test_split_then_filter(self):
        record = make_record(start="2025-10-14T09:00", end="2025-10-14T10:00")
        prefs = make_preferences(timeRanges=[time_range("09:30", "10:00")])
        slots = run(prefs, [record], slot_minutes=30)
        assert len(slots) == 1
        assert slots[0].start == local("2025-10-14T09:30")

    def test_slots_are_utc_and_within_horizon(self):
        record = make_record(start="2025-10-06T17:00", end="2025-10-06T18:00", day_of_week=1, is_repeating=True)
        for slot in run(make_preferences(), [record]):
            assert slot.start.tzinfo is not None
            assert slot.start.utcoffset() == timedelta(0)
            assert slot.start < NOW + timedelta(days=60)
            assert slot.end > NOW

    def test_invalid_day_rejected(self):
        prefs = PreferenceModel.model_construct(
            days_of_week=(9,), time_ranges=(), date_constraints=None,
            specific_dates=(), recurring_pattern="none",
        )
        with pytest.raises(InvalidPreference, match="daysOfWeek"):
            run(prefs, [make_record()])

    def test_reversed_date_constraints_rejected(self):
        prefs = make_preferences(dateConstraints={"startDate": "2025-10-26", "endDate": "2025-10-20"})
        with pytest.raises(InvalidPreference):
            run(prefs, [make_record()])
