"""Unit tests for building events from raw scraper records and ingesting them."""

from eventfeed.core.dedupe import generate_event_id
from eventfeed.core.models import MULTI_DAY, PRICE_SENTINEL, EventStatus, GenderSoldOut, LocationDetails, RawEvent
from eventfeed.core.pipeline import build_event, ingest


def raw(**kwargs) -> RawEvent:
    defaults = {
        "url": "https://www.eventbrite.ca/e/late-night-jazz-42",
        "title": "Late Night Jazz",
        "date": "Jan 27 | 11:00 PM",
        "price": "CA$0",
        "source": "Eventbrite",
    }
    defaults.update(kwargs)
    return RawEvent(**defaults)


class TestBuildEvent:
    def test_normalizes_date_and_price(self, clock):
        event = build_event(raw(), clock=clock)
        assert event.date == "2026-01-27T23:00:00-05:00"
        assert event.price == "Free"
        assert event.price_amount == 0
        assert event.is_free
        assert event.id == generate_event_id("https://www.eventbrite.ca/e/late-night-jazz-42")
        assert event.categories == ["Music"]
        assert event.start_time == "Jan 27 | 11:00 PM"
        assert event.last_updated == "2026-01-10T12:00:00-05:00"

    def test_unknown_date_stays_unknown(self, clock, parse_log, raw_log):
        event = build_event(raw(date="Date to be confirmed"), clock=clock, log=parse_log, raw_log=raw_log)
        assert event.date is None
        assert parse_log.by_type("date")
        assert raw_log.entries()[0].raw_date == "Date to be confirmed"

    def test_unknown_price(self, clock):
        event = build_event(raw(price="See tickets"), clock=clock)
        assert event.price == PRICE_SENTINEL
        assert event.price_amount is None
        assert not event.is_free

    def test_numeric_price(self, clock):
        assert build_event(raw(price=18.5), clock=clock).price == "$18.50"

    def test_online_location(self, clock):
        details = LocationDetails(is_online=True, online_platform="Zoom")
        event = build_event(raw(location="123 Fake St", location_details=details), clock=clock)
        assert event.location == "Online (Zoom)"

    def test_sold_out_title_cancels(self, clock):
        event = build_event(raw(title="Late Night Jazz - SOLD OUT"), clock=clock)
        assert event.is_sold_out
        assert event.status == EventStatus.CANCELLED

    def test_gender_sold_out_kept_upcoming(self, clock):
        event = build_event(raw(description="Male tickets sold out, ladies still available"), clock=clock)
        assert event.gender_sold_out == GenderSoldOut.MALE
        assert event.status == EventStatus.UPCOMING

    def test_not_yet_sold_out_stays_upcoming(self, clock):
        event = build_event(raw(description="Tickets are not yet sold out, grab yours now"), clock=clock)
        assert not event.is_sold_out
        assert event.status == EventStatus.UPCOMING

    def test_multi_day_tag(self, clock):
        event = build_event(raw(date="2026-02-13", end_date="2026-02-15"), clock=clock)
        assert MULTI_DAY in event.categories

    def test_placeholder_image_dropped(self, clock):
        assert build_event(raw(image="https://cdn.example.com/placeholder.png"), clock=clock).image is None

    def test_placeholder_description_dropped(self, clock):
        event = build_event(raw(description="No description available"), clock=clock)
        assert event.description is None

    def test_short_sold_out_notice_still_read(self, clock):
        """Too short to keep as a description, but the notice still counts."""
        event = build_event(raw(description="SOLD OUT"), clock=clock)
        assert event.description is None
        assert event.is_sold_out


class TestIngest:
    def test_adds_updates_and_rejects(self, make_event, gate):
        existing = make_event(
            title="Old title",
            url="https://www.eventbrite.ca/e/late-night-jazz-42",
            status=EventStatus.CANCELLED,
        )
        other = make_event(url="https://example.com/other")
        raws = [
            raw(),
            raw(url="https://example.com/new", title="Comedy Open Mic", date="Feb 3 8pm", price="$10"),
            raw(url="https://example.com/undated", title="Mystery", date="soon"),
        ]
        events, report = ingest(raws, [existing, other], gate)

        assert report.total == 3
        assert report.added == 1
        assert report.updated == 1
        assert report.rejected == 1
        assert report.rejected_ids == [generate_event_id("https://example.com/undated")]
        assert [e.title for e in events] == ["Late Night Jazz", "Rooftop Salsa Night", "Comedy Open Mic"]
        assert events[0].status == EventStatus.CANCELLED

    def test_moved_status_survives_refresh(self, make_event, gate):
        existing = make_event(url="https://www.eventbrite.ca/e/late-night-jazz-42", status=EventStatus.MOVED)
        events, _ = ingest([raw()], [existing], gate)
        assert events[0].status == EventStatus.MOVED

    def test_fresh_cancellation_beats_moved(self, make_event, gate):
        existing = make_event(url="https://www.eventbrite.ca/e/late-night-jazz-42", status=EventStatus.MOVED)
        events, _ = ingest([raw(title="Late Night Jazz SOLD OUT")], [existing], gate)
        assert events[0].status == EventStatus.CANCELLED

    def test_report_as_dict(self, gate):
        _, report = ingest([raw()], [], gate)
        assert report.as_dict()["added"] == 1


class TestVanishedEvents:
    """Stored events the scrape no longer lists get their page checked."""

    def _collection(self, make_event):
        return [
            make_event(title="Listed", url="https://www.eventbrite.ca/e/late-night-jazz-42"),
            make_event(title="Gone", url="https://example.com/gone"),
            make_event(title="Still there", url="https://example.com/alive"),
            make_event(title="Last month", url="https://example.com/past", date="2026-01-02T20:00:00-05:00"),
            make_event(title="Cancelled", url="https://example.com/cancelled", status=EventStatus.CANCELLED),
        ]

    def test_missing_page_cancels(self, make_event, gate):
        checked = []

        def link_check(url):
            checked.append(url)
            return url != "https://example.com/gone"

        events, report = ingest([raw()], self._collection(make_event), gate, link_check=link_check)

        assert checked == ["https://example.com/gone", "https://example.com/alive"]
        assert report.stale_checked == 2
        assert report.stale_cancelled == 1
        assert report.cancelled_ids == [generate_event_id("https://example.com/gone")]
        by_title = {e.title: e for e in events}
        assert by_title["Gone"].status == EventStatus.CANCELLED
        assert by_title["Gone"].last_updated == "2026-01-10T12:00:00-05:00"
        assert by_title["Still there"].status == EventStatus.UPCOMING
        assert by_title["Last month"].status == EventStatus.UPCOMING

    def test_no_check_without_checker(self, make_event, gate):
        events, report = ingest([raw()], self._collection(make_event), gate)
        assert report.stale_checked == 0
        assert all(e.status != EventStatus.CANCELLED for e in events if e.title != "Cancelled")
