"""Alert evaluation engine."""
import logging

from models.alerts import AlertRule
from models.enums import Comparator
from models.metrics import IngestSummary, TriggeredAlert
from utils.errors import NotFound, StorageError
from utils.timeutil import parse_timestamp, utc_now

logger = logging.getLogger("metricwatch.alerts.engine")

COMPARATOR_MAP = {
    Comparator.GT: lambda v, t: v > t,
    Comparator.LT: lambda v, t: v < t,
    Comparator.GTE: lambda v, t: v >= t,
    Comparator.LTE: lambda v, t: v <= t,
    Comparator.EQ: lambda v, t: v == t,
}


def evaluate_comparator(value, threshold, comparator):
    """True when ``value`` relates to ``threshold`` as ``comparator`` says.

    EQ is exact numeric equality. A comparator outside the five known kinds
    never matches.
    """
    comp = Comparator.parse(comparator)
    if comp is None:
        return False
    return COMPARATOR_MAP[comp](value, threshold)


def is_cooldown_active(last_triggered_at, cooldown_seconds, now=None):
    """True while a rule that fired at ``last_triggered_at`` is still suppressed."""
    if not last_triggered_at or not cooldown_seconds:
        return False
    last = parse_timestamp(last_triggered_at)
    now = now or utc_now()
    elapsed_ms = (now - last).total_seconds() * 1000
    return elapsed_ms < cooldown_seconds * 1000


class AlertEngine:
    def __init__(self, rules_manager, event_log, db, clock=utc_now):
        self.rules_manager = rules_manager
        self.event_log = event_log
        self.db = db
        self.clock = clock

    def evaluate(self, sample):
        """Evaluate every rule matching ``sample`` and record the ones that fire.

        Each firing rule's state update and event insert commit together; a
        storage failure stops the loop but leaves earlier firings in place.
        """
        rules = self.rules_manager.find_by_metric_name(sample.user_id, sample.metric_name)
        summary = IngestSummary()

        for rule in rules:
            summary.evaluated += 1

            if is_cooldown_active(rule.last_triggered_at, rule.cooldown_seconds, now=self.clock()):
                logger.debug(f"Rule {rule.id} on cooldown, skipped")
                summary.cooldown_skipped += 1
                continue

            if not evaluate_comparator(sample.value, rule.threshold, rule.comparator):
                continue

            outcome = self._fire(rule, sample)
            if outcome == "claimed":
                summary.cooldown_skipped += 1
                continue
            if outcome == "missing":
                continue

            summary.triggered += 1
            summary.triggered_alerts.append(TriggeredAlert(
                id=rule.id,
                metric_name=rule.metric_name,
                message=rule.message,
            ))

        return summary

    def _fire(self, rule: AlertRule, sample):
        """Record one firing. Returns "fired", "claimed" or "missing"."""
        # With a cooldown the update is a compare-and-swap on the value we read,
        # so two concurrent samples cannot both pass the gate.
        expected = {"expected": rule.last_triggered_at} if rule.cooldown_seconds else {}
        try:
            with self.db.transaction():
                try:
                    updated = self.rules_manager.update_trigger_state(
                        sample.user_id, rule.id, sample.recorded_at, **expected
                    )
                except NotFound:
                    logger.warning(f"Rule {rule.id} disappeared during evaluation")
                    return "missing"
                if updated is None:
                    logger.debug(f"Rule {rule.id} fired concurrently, skipped")
                    return "claimed"
                self.event_log.insert(
                    user_id=sample.user_id,
                    alert_id=rule.id,
                    metric_name=sample.metric_name,
                    metric_value=sample.value,
                    timestamp=sample.recorded_at,
                    alert_message=rule.message,
                )
        except StorageError:
            logger.error(f"Recording firing of rule {rule.id} failed; aborting evaluation")
            raise

        logger.info(f"Alert fired: {rule.metric_name} = {sample.value} ({rule.message})")
        return "fired"
