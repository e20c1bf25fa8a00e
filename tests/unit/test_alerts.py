"""
Unit tests for the alert rule generator.
"""

import yaml

from sfsync.monitoring.alerts import AlertRuleGenerator


class TestAlertRuleGenerator:
    """Test suite for AlertRuleGenerator."""

    def test_groups(self):
        rules = AlertRuleGenerator().generate_alert_rules()

        assert [group["name"] for group in rules["groups"]] == ["sfsync_passes", "sfsync_mutations"]

    def test_stale_threshold_follows_interval(self):
        rules = AlertRuleGenerator(interval_seconds=60).generate_alert_rules()
        stale = next(r for r in rules["groups"][0]["rules"] if r["alert"] == "SyncStale")

        assert stale["expr"].endswith("> 180")
        assert "{{ $labels.record_type }}" in stale["annotations"]["description"]

    def test_summary(self):
        assert AlertRuleGenerator().get_alert_summary() == {"critical": 2, "warning": 2, "total": 4}

    def test_export_to_yaml(self, tmp_path):
        output = tmp_path / "alerts.yml"

        AlertRuleGenerator(namespace="acos").export_to_yaml(str(output))

        data = yaml.safe_load(output.read_text())
        exprs = [rule["expr"] for group in data["groups"] for rule in group["rules"]]
        assert all("acos_" in expr for expr in exprs)
