"""Data models."""
from models.enums import Comparator
from models.metrics import MetricSample, IngestSummary, TriggeredAlert
from models.alerts import AlertRule, AlertEvent, EventPage
