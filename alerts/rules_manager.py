"""Alert rule management: validated, per-user CRUD over the alerts table."""
import logging

from utils.errors import NotFound
from utils.timeutil import to_iso, utc_now
from utils.validation import (
    require_object, require_text, require_number, require_comparator, require_cooldown,
)

logger = logging.getLogger("metricwatch.alerts.rules")


class RulesManager:
    def __init__(self, db, clock=utc_now):
        self.db = db
        self.clock = clock

    def _parse_create(self, body):
        require_object(body)
        metric_name = require_text(body.get("metric_name"), "metric_name")
        threshold = require_number(body.get("threshold"), "threshold")
        comparator = require_comparator(body.get("comparator"))
        message = require_text(body.get("message"), "message")
        cooldown = body.get("cooldown_seconds")
        cooldown_seconds = require_cooldown(cooldown) if cooldown is not None else 0
        return {
            "metric_name": metric_name,
            "threshold": threshold,
            "comparator": comparator,
            "message": message,
            "cooldown_seconds": cooldown_seconds,
        }

    def _parse_update(self, body):
        require_object(body)
        fields = {}
        if body.get("metric_name") is not None:
            fields["metric_name"] = require_text(
                body["metric_name"], "metric_name", "metric_name cannot be empty")
        if body.get("threshold") is not None:
            fields["threshold"] = require_number(body["threshold"], "threshold")
        if body.get("comparator") is not None:
            fields["comparator"] = require_comparator(body["comparator"])
        if body.get("message") is not None:
            fields["message"] = require_text(body["message"], "message", "message cannot be empty")
        if body.get("cooldown_seconds") is not None:
            fields["cooldown_seconds"] = require_cooldown(body["cooldown_seconds"])
        return fields

    def create_rule(self, user_id, body):
        data = self._parse_create(body)
        rule = self.db.insert_rule(user_id, created_at=to_iso(self.clock()), **data)
        logger.info(f"Created rule {rule.id} for {rule.metric_name}")
        return rule

    def update_rule(self, user_id, rule_id, body):
        fields = self._parse_update(body)
        rule = self.db.update_rule(rule_id, user_id, fields, updated_at=to_iso(self.clock()))
        if rule is None:
            raise NotFound("Alert not found")
        return rule

    def delete_rule(self, user_id, rule_id):
        if not self.db.delete_rule(rule_id, user_id):
            raise NotFound("Alert not found")
        logger.info(f"Deleted rule {rule_id}")

    def get_rule(self, user_id, rule_id):
        rule = self.db.get_rule(rule_id, user_id)
        if rule is None:
            raise NotFound("Alert not found")
        return rule

    def list_rules(self, user_id):
        return self.db.list_rules(user_id)

    def find_by_metric_name(self, user_id, metric_name):
        return self.db.find_rules_by_metric_name(user_id, metric_name)

    def update_trigger_state(self, user_id, rule_id, timestamp, **cas):
        """Set last_triggered_at (and updated_at) to ``timestamp``.

        Passing ``expected=`` makes it a compare-and-swap: when the stored
        last_triggered_at no longer equals it, nothing is written and None
        is returned. Raises NotFound when the rule does not exist.
        """
        rule = self.db.update_trigger_state(rule_id, user_id, timestamp, **cas)
        if rule is None:
            if self.db.get_rule(rule_id, user_id) is None:
                raise NotFound("Alert not found")
            return None
        return rule
