"""
SAP to Salesforce Sync Agent

Mirrors SAP records into Salesforce, keyed by an external-id field:
- Records missing in Salesforce are created, existing ones updated
- Records no longer in SAP are deleted from Salesforce
- One structured summary per record type and pass

Usage:
    sfsync once --config config/payment_terms.yaml
    sfsync once --config config/payment_terms.yaml --record payment_terms
    sfsync run --config config/payment_terms.yaml
    sfsync alerts --config config/payment_terms.yaml --output alerts.yml
"""

import argparse
import json
import logging
import signal
import sys
import threading
from typing import Any, Dict, List, Optional

from sfsync.config import SyncConfig, load_config, resolve_secrets
from sfsync.monitoring.alerts import AlertRuleGenerator
from sfsync.monitoring.metrics import SyncMetrics
from sfsync.reconciliation.errors import PassAbortedError, SyncError
from sfsync.reconciliation.orchestrator import ReconciliationOrchestrator
from sfsync.salesforce.auth import SalesforceAuth
from sfsync.salesforce.client import SalesforceClient
from sfsync.sap.connector import SapConnector
from sfsync.scheduler import build_scheduler
from sfsync.utils.logging_config import configure_logging

logger = logging.getLogger(__name__)


class SyncAgent:
    """Wires configuration, clients and one orchestrator per record type."""

    def __init__(
        self,
        config: SyncConfig,
        metrics: Optional[SyncMetrics] = None,
        salesforce_credentials: Optional[Dict[str, str]] = None,
        sap_credentials: Optional[Dict[str, str]] = None
    ):
        """
        Initialize sync agent.

        Args:
            config: Loaded configuration
            metrics: Optional metrics sink
            salesforce_credentials: Salesforce OAuth credentials (resolved if omitted)
            sap_credentials: SAP database credentials (resolved if omitted)
        """
        self.config = config
        self.metrics = metrics

        if salesforce_credentials is None or sap_credentials is None:
            salesforce_credentials, sap_credentials = resolve_secrets(config)

        sf = config.salesforce
        self.auth = SalesforceAuth(
            instance_url=sf.instance_url,
            credentials=salesforce_credentials,
            grant_type=sf.grant_type,
            auth_path=sf.auth_path,
            token_ttl_seconds=sf.token_ttl_seconds,
            timeout=sf.request_timeout
        )
        self.client = SalesforceClient(
            instance_url=sf.instance_url,
            api_version=sf.api_version,
            timeout=sf.request_timeout
        )

        sap = config.sap
        self.connector = SapConnector.from_settings(
            url=sap.url,
            host=sap.host,
            port=sap.port,
            database=sap.database,
            user=sap_credentials.get("user"),
            password=sap_credentials.get("password"),
            drivername=sap.drivername
        )

        self.orchestrators = [
            ReconciliationOrchestrator(
                mapping=record,
                credential_provider=self.auth,
                source_executor=self.connector,
                client=self.client,
                metrics=metrics,
                max_pages=config.runtime.max_pages
            )
            for record in config.records
        ]

        logger.info(f"SyncAgent initialized with {len(self.orchestrators)} record types")

    def select(self, record: Optional[str] = None) -> List[ReconciliationOrchestrator]:
        if record is None:
            return list(self.orchestrators)
        self.config.get_record(record)
        return [o for o in self.orchestrators if o.record_type == record]

    def run_once(self, record: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Run one pass per selected record type.

        Returns:
            One result dict per record type; aborted passes carry an error
        """
        results = []

        for orchestrator in self.select(record):
            try:
                summary = orchestrator.run_pass()
                results.append({"status": "success", **summary.as_dict()})
            except PassAbortedError as e:
                results.append({
                    "status": "aborted",
                    "record_type": e.record_type,
                    "stage": e.stage,
                    "error": str(e.cause)
                })

        return results

    def close(self) -> None:
        self.client.close()
        self.connector.dispose()


def _install_signal_handlers(scheduler, cancel_event: threading.Event) -> None:
    def _shutdown(signum, frame):
        logger.info(f"Received signal {signum}, stopping after the current record")
        cancel_event.set()
        scheduler.shutdown(wait=False)

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="SAP to Salesforce Sync Agent",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    once_parser = subparsers.add_parser("once", help="Run a single reconciliation pass")
    once_parser.add_argument("--config", required=True, help="YAML configuration file")
    once_parser.add_argument("--record", help="Only reconcile this record type")

    run_parser = subparsers.add_parser("run", help="Run passes on a fixed schedule")
    run_parser.add_argument("--config", required=True, help="YAML configuration file")
    run_parser.add_argument("--interval", type=int, help="Override the pass interval in seconds")

    alerts_parser = subparsers.add_parser("alerts", help="Export Prometheus alert rules")
    alerts_parser.add_argument("--config", help="YAML configuration file (for the interval)")
    alerts_parser.add_argument("--output", required=True, help="Output YAML file")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    config = None
    try:
        if args.config:
            config = load_config(args.config)
    except SyncError as e:
        configure_logging(verbose=args.verbose)
        logger.error(f"Error: {e}")
        return 1

    configure_logging(
        verbose=args.verbose,
        json_logging=bool(config and config.runtime.json_logging)
    )

    try:
        if args.command == "alerts":
            interval = config.runtime.interval_seconds if config else 300
            AlertRuleGenerator(interval_seconds=interval).export_to_yaml(args.output)
            return 0

        if args.command == "once":
            agent = SyncAgent(config)
            try:
                results = agent.run_once(args.record)
            finally:
                agent.close()
            print(json.dumps(results, indent=2, default=str))
            return 1 if any(r["status"] == "aborted" for r in results) else 0

        if args.command == "run":
            metrics = SyncMetrics()
            metrics.start_server(config.runtime.metrics_port)

            agent = SyncAgent(config, metrics=metrics)
            cancel_event = threading.Event()
            interval = args.interval or config.runtime.interval_seconds
            scheduler = build_scheduler(agent.orchestrators, interval, cancel_event)
            _install_signal_handlers(scheduler, cancel_event)

            try:
                scheduler.start()
            finally:
                agent.close()
                logger.info("Sync agent stopped")
            return 0

        return 1

    except Exception as e:
        logger.error(f"Error: {e}", exc_info=args.verbose)
        return 1


if __name__ == "__main__":
    sys.exit(main())
