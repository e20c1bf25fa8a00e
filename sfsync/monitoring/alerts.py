"""
Alert Rule Generator for Prometheus AlertManager

Generates alert rule definitions for the sync agent: aborted passes,
per-record error rates and stale synchronization.
"""

import logging
from typing import Dict, Any

import yaml

logger = logging.getLogger(__name__)


class AlertRuleGenerator:
    """Generates Prometheus AlertManager alert rules."""

    def __init__(self, interval_seconds: int = 300, namespace: str = "sfsync"):
        """
        Initialize alert rule generator.

        Args:
            interval_seconds: Configured pass interval, used for staleness
            namespace: Metric name prefix
        """
        self.interval_seconds = interval_seconds
        self.namespace = namespace

    def generate_alert_rules(self) -> Dict[str, Any]:
        """
        Generate complete alert rule configuration.

        Returns:
            Dict with alert rule groups in Prometheus format
        """
        groups = [
            self._generate_pass_alerts(),
            self._generate_mutation_alerts(),
        ]

        logger.info(f"Generated {len(groups)} alert rule groups")
        return {"groups": groups}

    def _generate_pass_alerts(self) -> Dict[str, Any]:
        ns = self.namespace
        stale_after = self.interval_seconds * 3

        return {
            "name": f"{ns}_passes",
            "interval": "1m",
            "rules": [
                {
                    "alert": "SyncPassAborted",
                    "expr": f"increase({ns}_passes_total{{status=\"failure\"}}[1h]) > 0",
                    "for": "5m",
                    "labels": {
                        "severity": "warning",
                        "component": "sync"
                    },
                    "annotations": {
                        "summary": "Sync passes are aborting",
                        "description": "Passes for {{ $labels.record_type }} aborted (credential, SAP query or Salesforce index failure)"
                    }
                },
                {
                    "alert": "SyncStale",
                    "expr": f"time() - {ns}_last_success_timestamp_seconds > {stale_after}",
                    "for": "5m",
                    "labels": {
                        "severity": "critical",
                        "component": "sync"
                    },
                    "annotations": {
                        "summary": "Salesforce mirror is stale",
                        "description": f"No completed pass for {{{{ $labels.record_type }}}} in over {stale_after}s"
                    }
                }
            ]
        }

    def _generate_mutation_alerts(self) -> Dict[str, Any]:
        ns = self.namespace

        return {
            "name": f"{ns}_mutations",
            "interval": "1m",
            "rules": [
                {
                    "alert": "SyncRecordErrors",
                    "expr": f"{ns}_last_pass_errors > 0",
                    "for": "15m",
                    "labels": {
                        "severity": "warning",
                        "component": "mutations"
                    },
                    "annotations": {
                        "summary": "Records failing to sync",
                        "description": "{{ $value }} records of {{ $labels.record_type }} failed in the last pass"
                    }
                },
                {
                    "alert": "HighUpsertFailureRate",
                    "expr": (
                        f"rate({ns}_mutations_total{{operation=\"upsert\",outcome=\"failed\"}}[1h]) "
                        f"/ rate({ns}_mutations_total{{operation=\"upsert\"}}[1h]) > 0.1"
                    ),
                    "for": "30m",
                    "labels": {
                        "severity": "critical",
                        "component": "mutations"
                    },
                    "annotations": {
                        "summary": "High upsert failure rate",
                        "description": "More than 10% of {{ $labels.record_type }} upserts are failing"
                    }
                }
            ]
        }

    def export_to_yaml(self, output_file: str) -> None:
        """
        Export alert rules to YAML file.

        Args:
            output_file: Path to output YAML file
        """
        config = self.generate_alert_rules()

        with open(output_file, 'w') as f:
            yaml.safe_dump(config, f, default_flow_style=False, sort_keys=False)

        logger.info(f"Alert rules exported to {output_file}")

    def get_alert_summary(self) -> Dict[str, int]:
        """
        Get summary of alert rules.

        Returns:
            Dict with counts by severity
        """
        summary = {"critical": 0, "warning": 0, "total": 0}

        for group in self.generate_alert_rules()["groups"]:
            for rule in group["rules"]:
                severity = rule["labels"]["severity"]
                summary[severity] = summary.get(severity, 0) + 1
                summary["total"] += 1

        return summary
