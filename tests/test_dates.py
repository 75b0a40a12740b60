"""
Unit tests for the date normalizer.

Covers:
- the canonical output form and the Toronto offset
- every strategy of the ladder, in order
- cleaning of bullets, pipes and ranges
- failures (never a fabricated "now") and parse-log recording
- display helpers
"""

from datetime import date, datetime, timedelta

import pytest

from eventfeed.core.dates import (
    CANONICAL_PATTERN,
    CIVIL_TZ,
    assume_civil_zone,
    clean_date_text,
    first_success,
    format_date_for_display,
    format_time_for_display,
    is_canonical,
    is_multi_day,
    normalize_date,
    parse_canonical,
    parse_clock_time,
    parse_relative,
    parse_yearless,
    to_display_form,
)

from tests.conftest import NOW


class TestCanonicalForm:
    """Output shape and zone."""

    def test_output_matches_pattern(self, clock):
        result = normalize_date("January 27, 2026 8:00 PM", clock=clock)
        assert CANONICAL_PATTERN.match(result)

    def test_winter_offset(self, clock):
        assert normalize_date("2026-01-27T20:00:00", clock=clock) == "2026-01-27T20:00:00-05:00"

    def test_summer_offset(self, clock):
        assert normalize_date("2026-07-01T20:00:00", clock=clock) == "2026-07-01T20:00:00-04:00"

    def test_canonical_value_is_a_fixed_point(self, clock):
        value = "2026-03-15T19:30:00-04:00"
        assert normalize_date(value, clock=clock) == value

    def test_normalizing_twice_changes_nothing(self, clock):
        once = normalize_date("Sat, Jan 31 • 9:00 PM", clock=clock)
        assert normalize_date(once, clock=clock) == once

    def test_spring_forward_gap_moves_ahead(self, clock):
        """02:30 does not exist in Toronto on 2026-03-08; the clock jumps to 03:00."""
        result = normalize_date("2026-03-08T02:30:00", clock=clock)
        assert result == "2026-03-08T03:30:00-04:00"
        assert is_canonical(result)
        assert normalize_date(result, clock=clock) == result


class TestMachineFormats:
    """ISO 8601 inputs."""

    def test_utc_timestamp_converted_to_toronto(self, clock):
        assert normalize_date("2026-01-26T13:30:00.000Z", clock=clock) == "2026-01-26T08:30:00-05:00"

    def test_numeric_offset_converted(self, clock):
        assert normalize_date("2026-06-01T23:00:00+00:00", clock=clock) == "2026-06-01T19:00:00-04:00"

    def test_date_only_means_noon(self, clock):
        """A bare date must not slide to the previous evening."""
        assert normalize_date("2026-03-15", clock=clock) == "2026-03-15T12:00:00-04:00"

    def test_utc_midnight_means_the_day(self, clock):
        assert normalize_date("2026-02-14T00:00:00.000Z", clock=clock) == "2026-02-14T12:00:00-05:00"

    def test_datetime_input(self, clock):
        assert normalize_date(datetime(2026, 7, 1, 20, 0), clock=clock) == "2026-07-01T20:00:00-04:00"

    def test_date_input(self, clock):
        assert normalize_date(date(2026, 2, 1), clock=clock) == "2026-02-01T12:00:00-05:00"


class TestHumanFormats:
    """Free text with explicit years, abbreviations and templates."""

    def test_long_form_with_at(self, clock):
        assert normalize_date("Saturday, March 14, 2026 at 7:30 PM", clock=clock) == "2026-03-14T19:30:00-04:00"

    def test_date_then_time_after_hyphen(self, clock):
        assert normalize_date("Jan 27, 2026 - 7:00 PM", clock=clock) == "2026-01-27T19:00:00-05:00"

    def test_zone_abbreviation(self, clock):
        assert normalize_date("Jan 27, 2026 8:00 PM EST", clock=clock) == "2026-01-27T20:00:00-05:00"

    def test_utc_abbreviation(self, clock):
        assert normalize_date("Jan 27, 2026 8:00 PM UTC", clock=clock) == "2026-01-27T15:00:00-05:00"

    def test_us_numeric_date(self, clock):
        assert normalize_date("02/14/2026", clock=clock) == "2026-02-14T12:00:00-05:00"

    def test_ordinal_day(self, clock):
        assert normalize_date("February 3rd, 2026", clock=clock) == "2026-02-03T12:00:00-05:00"


    @pytest.mark.parametrize(
        "text, expected",
        [
            ("March 5-7, 2026", "2026-03-05T12:00:00-05:00"),
            ("Feb 13-15 2026", "2026-02-13T12:00:00-05:00"),
            ("Feb 13th-15th, 2026 7pm", "2026-02-13T19:00:00-05:00"),
        ],
    )
    def test_hyphen_day_range_keeps_start(self, clock, text, expected):
        """The end day of a range is never read as a two-digit year."""
        assert normalize_date(text, clock=clock) == expected

class TestYearlessDates:
    """Month/day without a year takes the year from the clock."""

    def test_pipe_separated_time(self, clock):
        assert normalize_date("Jan 27 | 11:00 PM", clock=clock) == "2026-01-27T23:00:00-05:00"

    def test_bullet_and_weekday(self, clock):
        assert normalize_date("Sat, Jan 31 • 9:00 PM", clock=clock) == "2026-01-31T21:00:00-05:00"

    def test_missing_time_means_noon(self, clock):
        assert normalize_date("Feb 5", clock=clock) == "2026-02-05T12:00:00-05:00"

    def test_recent_past_stays_this_year(self, clock):
        """A few days behind the clock is not rolled forward."""
        assert normalize_date("Jan 2", clock=clock) == "2026-01-02T12:00:00-05:00"

    def test_distant_past_rolls_to_next_year(self):
        late_year = lambda: datetime(2026, 10, 17, 12, 0, tzinfo=CIVIL_TZ)
        assert normalize_date("Jan 27 | 11:00 PM", clock=late_year) == "2027-01-27T23:00:00-05:00"

    def test_strategy_directly(self):
        result = parse_yearless("Dec 31 10pm", NOW)
        assert result == datetime(2026, 12, 31, 22, 0)

    def test_range_keeps_start(self, clock):
        assert normalize_date("Jan 27 – Jan 29", clock=clock) == "2026-01-27T12:00:00-05:00"

    def test_hyphen_range_without_year(self, clock):
        assert normalize_date("Jan 27-29", clock=clock) == "2026-01-27T12:00:00-05:00"

    def test_leap_day_goes_to_next_leap_year(self, clock):
        assert normalize_date("Feb 29", clock=clock) == "2028-02-29T12:00:00-05:00"
        assert parse_yearless("Feb 29 8pm", NOW) == datetime(2028, 2, 29, 20, 0)


class TestRelativeDates:
    """Today, tonight and tomorrow."""

    def test_tomorrow_with_time(self, clock):
        assert normalize_date("Tomorrow at 7pm", clock=clock) == "2026-01-11T19:00:00-05:00"

    def test_tonight_defaults_to_evening(self, clock):
        assert normalize_date("Tonight", clock=clock) == "2026-01-10T19:00:00-05:00"

    def test_today_defaults_to_noon(self, clock):
        assert normalize_date("today", clock=clock) == "2026-01-10T12:00:00-05:00"

    def test_unreadable_time_rejected(self):
        assert parse_relative("Tomorrow at sunset", NOW) is None


class TestFailures:
    """Unresolvable input gives None, never the current time."""

    @pytest.mark.parametrize("value", [None, "", "   ", "TBA", "null", "Invalid Date", "not a date", "|"])
    def test_returns_none(self, value, clock):
        assert normalize_date(value, clock=clock) is None

    def test_year_outside_band(self, clock):
        assert normalize_date("1999-05-01", clock=clock) is None
        assert normalize_date("2150-05-01T10:00:00", clock=clock) is None

    def test_failure_is_logged(self, clock, parse_log):
        normalize_date("someday soon", clock=clock, log=parse_log, event_id="abc", event_title="Mystery Gig")
        errors = parse_log.errors()
        assert len(errors) == 1
        assert errors[0].type == "date"
        assert errors[0].raw_value == "someday soon"
        assert errors[0].event_id == "abc"

    def test_success_is_not_logged(self, clock, parse_log):
        normalize_date("2026-02-01", clock=clock, log=parse_log)
        assert len(parse_log) == 0

    def test_first_success_skips_failing_strategies(self):
        def broken(text, now):
            raise ValueError("nope")

        def fixed(text, now):
            return datetime(2026, 5, 5, 10, 0)

        result = first_success([broken, fixed], "anything", NOW)
        assert result == datetime(2026, 5, 5, 10, 0, tzinfo=CIVIL_TZ)


class TestCleaning:
    """Text cleanup before the strategies run."""

    def test_bullet_keeps_date_and_time(self):
        assert clean_date_text("Sat, Jan 27 • 11:00 PM") == "Sat, Jan 27 11:00 PM"

    def test_extra_segments_dropped(self):
        assert clean_date_text("Jan 27 | The Rex | Toronto") == "Jan 27"

    def test_leading_on_removed(self):
        assert clean_date_text("on Feb 3") == "Feb 3"

    def test_day_range_collapsed_to_start(self):
        assert clean_date_text("March 5-7, 2026") == "March 5, 2026"
        assert clean_date_text("Jan 27th-29th") == "Jan 27"
        assert clean_date_text("Jan 27 - 7:00 PM") == "Jan 27 7:00 PM"
        assert clean_date_text("2026-02-14") == "2026-02-14"

    def test_clock_time_parsing(self):
        assert parse_clock_time("7pm").hour == 19
        assert parse_clock_time("12:30 AM").hour == 0
        assert parse_clock_time("19:45").minute == 45
        assert parse_clock_time("7") is None


class TestZonePolicy:
    """The single place that decides what a zoneless value means."""

    def test_naive_is_local(self):
        assert assume_civil_zone(datetime(2026, 1, 1, 9, 0)).utcoffset() == timedelta(hours=-5)

    def test_aware_is_converted(self):
        utc = parse_canonical("2026-01-01T14:00:00+00:00")
        assert utc.hour == 9

    def test_policy_can_be_swapped(self, clock):
        from dateutil import tz

        def zoneless_is_utc(dt):
            if dt.tzinfo is None:
                dt = dt.replace(tzinfo=tz.UTC)
            return dt.astimezone(CIVIL_TZ)

        result = normalize_date("2026-01-27T20:00:00", clock=clock, zone_policy=zoneless_is_utc)
        assert result == "2026-01-27T15:00:00-05:00"


class TestDisplayHelpers:
    """Formatting stored values for people."""

    def test_display_form_round_trips(self, clock):
        value = "2026-01-27T23:00:00-05:00"
        shown = to_display_form(value)
        assert shown == "Jan 27, 2026, 11:00 PM"
        assert normalize_date(shown, clock=clock) == value

    def test_display_form_keeps_seconds(self, clock):
        value = "2026-01-27T23:00:15-05:00"
        assert normalize_date(to_display_form(value), clock=clock) == value

    def test_format_date(self):
        assert format_date_for_display("2026-02-14T20:00:00-05:00") == "Feb 14"
        assert format_date_for_display("2026-02-14T20:00:00-05:00", include_time=True, include_year=True) == (
            "Feb 14, 2026, 8:00 PM"
        )
        assert format_date_for_display("garbage") == "Invalid Date"

    def test_format_time(self):
        assert format_time_for_display("2026-02-14T09:05:00-05:00") == "9:05 AM"
        assert format_time_for_display(None) == "Invalid Time"

    def test_is_canonical(self):
        assert is_canonical("2026-02-14T20:00:00-05:00")
        assert not is_canonical("2026-02-14T20:00:00+00:00")
        assert not is_canonical("2026-02-14")
        assert not is_canonical(None)

    def test_multi_day(self):
        assert is_multi_day("2026-02-14T20:00:00-05:00", "2026-02-16T20:00:00-05:00")
        assert not is_multi_day("2026-02-14T20:00:00-05:00", "2026-02-14T23:00:00-05:00")
        assert not is_multi_day("2026-02-14T20:00:00-05:00", "2026-05-14T20:00:00-04:00")
        assert not is_multi_day("2026-02-14T20:00:00-05:00", None)
