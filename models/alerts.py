"""Dataclasses for alert rules, alert events and event pages."""
from dataclasses import dataclass, field, asdict
from typing import Optional

from models.enums import Comparator


@dataclass
class AlertRule:
    id: str = ""
    user_id: str = ""
    metric_name: str = ""
    threshold: float = 0.0
    comparator: Comparator = Comparator.GT
    message: str = ""
    cooldown_seconds: float = 0
    last_triggered_at: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def to_dict(self):
        d = asdict(self)
        d["comparator"] = self.comparator.value if isinstance(self.comparator, Comparator) else self.comparator
        return d

    @classmethod
    def from_dict(cls, d):
        # Rows written before the comparator column was constrained may hold
        # other strings; keep them verbatim so evaluation can reject them.
        comparator = Comparator.parse(d["comparator"]) or d["comparator"]
        return cls(
            id=d["id"],
            user_id=d["user_id"],
            metric_name=d["metric_name"],
            threshold=d["threshold"],
            comparator=comparator,
            message=d["message"],
            cooldown_seconds=d.get("cooldown_seconds") or 0,
            last_triggered_at=d.get("last_triggered_at"),
            created_at=d.get("created_at"),
            updated_at=d.get("updated_at"),
        )


@dataclass(frozen=True)
class AlertEvent:
    """Immutable record of one rule firing.

    Keeps its own copy of the metric name and message so it stays readable
    after the rule is edited or deleted.
    """
    id: str
    user_id: str
    alert_id: str
    metric_name: str
    metric_value: float
    timestamp: str
    alert_message: str

    def to_dict(self):
        return asdict(self)

    @classmethod
    def from_dict(cls, d):
        return cls(
            id=d["id"],
            user_id=d["user_id"],
            alert_id=d["alert_id"],
            metric_name=d["metric_name"],
            metric_value=d["metric_value"],
            timestamp=d["timestamp"],
            alert_message=d["alert_message"],
        )


@dataclass
class EventPage:
    events: list = field(default_factory=list)
    next_cursor: Optional[str] = None
    has_more: bool = False

    def to_dict(self):
        return {
            "events": [e.to_dict() for e in self.events],
            "nextCursor": self.next_cursor,
            "hasMore": self.has_more,
        }
