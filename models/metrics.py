"""Dataclasses for metric samples and ingestion results."""
from dataclasses import dataclass, field, asdict
from typing import Optional


@dataclass(frozen=True)
class MetricSample:
    """One observed value of a named metric. Immutable once created."""
    id: str
    user_id: str
    metric_name: str
    value: float
    recorded_at: str
    created_at: Optional[str] = None

    def to_dict(self):
        return asdict(self)

    @classmethod
    def from_dict(cls, d):
        return cls(
            id=d["id"],
            user_id=d["user_id"],
            metric_name=d["metric_name"],
            value=d["value"],
            recorded_at=d["recorded_at"],
            created_at=d.get("created_at"),
        )


@dataclass
class TriggeredAlert:
    id: str
    metric_name: str
    message: str


@dataclass
class IngestSummary:
    message: str = "Metric processed"
    evaluated: int = 0
    triggered: int = 0
    cooldown_skipped: int = 0
    triggered_alerts: list = field(default_factory=list)

    def to_dict(self):
        return {
            "message": self.message,
            "evaluated": self.evaluated,
            "triggered": self.triggered,
            "cooldown_skipped": self.cooldown_skipped,
            "triggered_alerts": [asdict(a) for a in self.triggered_alerts],
        }
