"""Worker for the order sync pipeline.

Listens on the order-sync task queue and executes OrderSyncWorkflow and
its batch activity.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from temporalio.worker import Worker

# Add repo root to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from temporal_client import get_temporal_client
from core.config import json_logs_enabled
from core.observability import configure_logging
from workflows.order_sync_workflow import OrderSyncWorkflow, TASK_QUEUE
from activities.order_sync import sync_orders_batch_activity


logger = logging.getLogger(__name__)

WORKFLOWS = [OrderSyncWorkflow]
ACTIVITIES = [sync_orders_batch_activity]


async def run_worker(task_queue: str = TASK_QUEUE):
    """Start a worker listening on the task queue.

    Raises:
        Exception: If connection to Temporal fails
    """
    client = None

    try:
        client = await get_temporal_client()
        logger.info(f"Connected to Temporal: {client.namespace}")

        worker = Worker(
            client,
            task_queue=task_queue,
            workflows=WORKFLOWS,
            activities=ACTIVITIES,
        )

        logger.info(f"Worker created for queue '{task_queue}':")
        logger.info(f"  - Workflows: {len(WORKFLOWS)}")
        logger.info(f"  - Activities: {len(ACTIVITIES)}")

        logger.info("Worker running... (Ctrl+C to stop)")
        await worker.run()

    except KeyboardInterrupt:
        logger.info("Worker interrupted by user")
    except Exception as e:
        logger.error(f"Worker error: {e}", exc_info=True)
        raise


def main():
    """Entry point for worker with CLI args."""
    parser = argparse.ArgumentParser(description="Order Sync Temporal Worker")
    parser.add_argument(
        "--queue", "-q",
        default=TASK_QUEUE,
        help=f"Task queue to poll (default: {TASK_QUEUE})"
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit JSON log lines (also enabled by ORDER_SYNC_LOG_JSON)"
    )

    args = parser.parse_args()
    configure_logging(level=logging.INFO, json_format=args.json_logs or json_logs_enabled())
    asyncio.run(run_worker(task_queue=args.queue))


if __name__ == "__main__":
    main()
