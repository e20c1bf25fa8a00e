"""
Monitoring Module for the Sync Agent

Prometheus metrics for reconciliation passes and alert rule definitions.

Usage:
    from sfsync.monitoring import SyncMetrics, AlertRuleGenerator

    metrics = SyncMetrics()
    metrics.start_server(9108)

    AlertRuleGenerator(interval_seconds=300).export_to_yaml("alerts.yml")
"""

from sfsync.monitoring.metrics import SyncMetrics
from sfsync.monitoring.alerts import AlertRuleGenerator

__all__ = [
    "SyncMetrics",
    "AlertRuleGenerator",
]
