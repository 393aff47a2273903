"""Alert system module."""
from alerts.engine import AlertEngine, evaluate_comparator, is_cooldown_active
from alerts.rules_manager import RulesManager
from alerts.events import EventLog
