"""Metric ingestion and metric name directory."""
from monitor.monitor import MetricMonitor
