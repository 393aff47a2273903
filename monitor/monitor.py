"""Metric ingestion pipeline and metric name directory."""
import logging

from utils.timeutil import to_iso, utc_now
from utils.validation import require_object, require_text, require_number, optional_timestamp

logger = logging.getLogger("metricwatch.monitor")

NAME_SCAN_LIMIT = 5000


class MetricMonitor:
    """Records metric samples for a user and runs alert evaluation on each one."""

    def __init__(self, db, alert_engine, clock=utc_now, name_scan_limit=NAME_SCAN_LIMIT):
        self.db = db
        self.alert_engine = alert_engine
        self.clock = clock
        self.name_scan_limit = name_scan_limit

    def ingest(self, user_id, metric_name, value, timestamp=None):
        """Persist one sample, then evaluate the user's rules for its metric.

        Validation happens before anything is written. The sample is kept even
        when no rule matches, and even when a later rule write fails.
        """
        metric_name = require_text(metric_name, "metric_name")
        value = require_number(value, "value")
        recorded = optional_timestamp(timestamp)
        recorded_at = to_iso(recorded or self.clock())

        sample = self.db.insert_metric(user_id, metric_name, value, recorded_at)
        summary = self.alert_engine.evaluate(sample)

        logger.info(
            f"Ingested {metric_name}={value}: evaluated={summary.evaluated} "
            f"triggered={summary.triggered} cooldown_skipped={summary.cooldown_skipped}"
        )
        return summary

    def ingest_payload(self, user_id, body):
        """Ingest from a request body ``{metric_name, value, timestamp?}``."""
        require_object(body)
        return self.ingest(user_id, body.get("metric_name"), body.get("value"), body.get("timestamp"))

    def list_metric_names(self, user_id, search=None):
        """Distinct metric names from the user's samples and rules, sorted.

        Only the ``name_scan_limit`` most recent sample rows are scanned. ``search``
        filters by case-insensitive containment.
        """
        names = set(self.db.get_metric_names(user_id, limit=self.name_scan_limit))
        names.update(self.db.get_rule_metric_names(user_id))
        names.discard("")
        result = sorted(names)

        needle = (search or "").strip().lower()
        if needle:
            result = [n for n in result if needle in n.lower()]
        return result

    def recent_samples(self, user_id, metric_name=None, limit=20):
        return self.db.get_recent_metrics(user_id, metric_name=metric_name, limit=limit)
