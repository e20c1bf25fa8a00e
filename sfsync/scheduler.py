"""
Recurring Pass Scheduler for the Sync Agent

One APScheduler interval job runs every configured record type in order.
The first run fires at start-up, then every interval. A tick that comes due
while a pass is still running is skipped, never run concurrently.

A failed pass for one record type is logged and the next record type in the
same tick still runs; the failed one is retried on the next tick.
"""

import logging
import threading
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from apscheduler.schedulers.blocking import BlockingScheduler

from sfsync.reconciliation.errors import PassAbortedError
from sfsync.reconciliation.models import RunSummary
from sfsync.reconciliation.orchestrator import ReconciliationOrchestrator

logger = logging.getLogger(__name__)

JOB_ID = "sync_all_records"


def run_all_passes(
    orchestrators: Iterable[ReconciliationOrchestrator],
    cancel_event: Optional[threading.Event] = None
) -> List[RunSummary]:
    """
    Run one pass per record type.

    Args:
        orchestrators: One orchestrator per record type
        cancel_event: Optional event; when set, remaining record types are skipped

    Returns:
        Summaries of the passes that completed
    """
    summaries = []

    for orchestrator in orchestrators:
        if cancel_event is not None and cancel_event.is_set():
            logger.info("Cancellation requested, skipping remaining record types")
            break

        try:
            summaries.append(orchestrator.run_pass(cancel_event=cancel_event))
        except PassAbortedError as e:
            logger.error(f"{e.record_type} pass aborted, retrying next tick: {e.cause}")
        except Exception as e:
            logger.exception(f"{orchestrator.record_type} pass failed unexpectedly, retrying next tick: {e}")

    return summaries


def build_scheduler(
    orchestrators: List[ReconciliationOrchestrator],
    interval_seconds: int,
    cancel_event: Optional[threading.Event] = None
) -> BlockingScheduler:
    """
    Build the recurring sync job.

    Args:
        orchestrators: One orchestrator per record type
        interval_seconds: Seconds between ticks
        cancel_event: Event forwarded to every pass

    Returns:
        Configured BlockingScheduler (not started)
    """
    scheduler = BlockingScheduler(timezone="UTC")

    scheduler.add_job(
        run_all_passes,
        trigger="interval",
        seconds=interval_seconds,
        args=[orchestrators, cancel_event],
        id=JOB_ID,
        name="SAP to Salesforce reconciliation",
        next_run_time=datetime.now(timezone.utc),
        max_instances=1,
        coalesce=True,
        replace_existing=True,
        misfire_grace_time=interval_seconds
    )

    logger.info(f"Scheduled {len(orchestrators)} record types every {interval_seconds}s")
    return scheduler
