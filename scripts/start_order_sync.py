"""Start an order sync batch.

Connects to Temporal, starts an OrderSyncWorkflow for the given orders (or
for every order not yet linked to NetSuite) and prints the result. With
--local the batch runs in-process instead, without Temporal.
"""

import asyncio
import sys
from pathlib import Path
import logging

# Add repo root to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from temporal_client import get_temporal_client
from core.config import ConfigurationError, IntegrationSettings, json_logs_enabled
from core.observability import configure_logging
from order_store import SQLiteOrderRepository
from order_sync.pipeline import execute_batch, new_batch_id
from workflows.order_sync_workflow import OrderSyncWorkflow, OrderSyncInput, TASK_QUEUE


logger = logging.getLogger(__name__)


def find_unsynced_orders(limit: int = 200) -> list:
    """Order ids in the configured store that have no NetSuite id yet."""
    try:
        db_path = IntegrationSettings.from_env().db_path
    except ConfigurationError:
        from core.config.settings import DEFAULT_DB_PATH
        db_path = DEFAULT_DB_PATH
    return SQLiteOrderRepository(db_path).list_unsynced_order_ids(limit)


async def start_order_sync_workflow(order_ids: list) -> dict:
    """Start OrderSyncWorkflow and wait for its result."""
    batch_id = new_batch_id()

    logger.info(f"Starting order sync {batch_id} for {len(order_ids)} order(s)...")

    try:
        client = await get_temporal_client()
        logger.info(f"Connected to Temporal: {client.namespace}")

        handle = await client.start_workflow(
            OrderSyncWorkflow.run,
            OrderSyncInput(order_ids=order_ids, batch_id=batch_id),
            task_queue=TASK_QUEUE,
            id=f"order-sync-{batch_id}",
        )

        logger.info(f"Workflow started: {handle.id}")
        result = await handle.result()

        logger.info("Workflow completed")
        return result

    except Exception as e:
        logger.error(f"Workflow failed: {e}", exc_info=True)
        raise


async def run_local(order_ids: list) -> dict:
    """Run the batch in this process."""
    batch_id = new_batch_id()
    results = await execute_batch(order_ids, batch_id=batch_id)
    summary = {"batch_id": batch_id, "order_count": len(results)}
    for result in results:
        summary[result.order_id] = result.state.value
    return summary


def main():
    """Entry point."""
    import argparse

    parser = argparse.ArgumentParser(description="Start an order sync batch")
    parser.add_argument(
        "order_ids",
        nargs="*",
        help="Order ids to synchronize"
    )
    parser.add_argument(
        "--unsynced",
        action="store_true",
        help="Synchronize every order that has no NetSuite id yet"
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=200,
        help="Maximum orders picked up by --unsynced (default: 200)"
    )
    parser.add_argument(
        "--local",
        action="store_true",
        help="Run the batch in-process instead of through Temporal"
    )
    args = parser.parse_args()

    configure_logging(level=logging.INFO, json_format=json_logs_enabled())

    order_ids = list(args.order_ids)
    if args.unsynced:
        order_ids.extend(i for i in find_unsynced_orders(args.limit) if i not in order_ids)

    if not order_ids:
        print("No orders to synchronize", file=sys.stderr)
        return 1

    try:
        if args.local:
            result = asyncio.run(run_local(order_ids))
        else:
            result = asyncio.run(start_order_sync_workflow(order_ids))
        print("\n=== ORDER SYNC RESULT ===")
        for key, value in result.items():
            print(f"  {key}: {value}")
        print("=========================\n")
        return 0
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
