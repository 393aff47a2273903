"""Alert event log: append-only firings, read back in reverse-chronological pages.

Pages are cursored on the event timestamp. The next page is everything
strictly older than the last timestamp seen, so events that share that
exact timestamp can be skipped across a page boundary.
"""
import logging

from models.alerts import EventPage
from utils.timeutil import to_iso
from utils.validation import optional_timestamp

logger = logging.getLogger("metricwatch.alerts.events")

DEFAULT_PAGE_SIZE = 4
MAX_PAGE_SIZE = 500


class EventLog:
    def __init__(self, db, default_page_size=DEFAULT_PAGE_SIZE, max_page_size=MAX_PAGE_SIZE):
        self.db = db
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size

    def insert(self, user_id, alert_id, metric_name, metric_value, timestamp, alert_message):
        return self.db.insert_event(
            user_id=user_id,
            alert_id=alert_id,
            metric_name=metric_name,
            metric_value=metric_value,
            timestamp=timestamp,
            alert_message=alert_message,
        )

    def page_size(self, raw_limit):
        """Requested limit if it is an integer in (0, max_page_size], else the default.

        Only plain integer text counts; "10.0" and "1e2" fall back to the default.
        """
        if raw_limit is None or isinstance(raw_limit, bool):
            return self.default_page_size
        try:
            limit = int(str(raw_limit).strip())
        except ValueError:
            return self.default_page_size
        if 0 < limit <= self.max_page_size:
            return limit
        return self.default_page_size

    def list_page(self, user_id, metric_name=None, alert_id=None, cursor=None, limit=None):
        page_size = self.page_size(limit)
        before = optional_timestamp(cursor, field="cursor")

        # One extra row tells us whether another page exists.
        rows = self.db.list_events(
            user_id,
            metric_name=metric_name or None,
            alert_id=alert_id or None,
            before=to_iso(before) if before else None,
            limit=page_size + 1,
        )
        has_more = len(rows) > page_size
        events = rows[:page_size]
        next_cursor = events[-1].timestamp if has_more and events else None
        return EventPage(events=events, next_cursor=next_cursor, has_more=has_more)
