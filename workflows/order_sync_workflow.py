"""Order Sync Workflow.

Runs one batch of order synchronizations as a single activity. Each order
is attempted exactly once per batch, so the activity is never retried.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import List, Optional

from temporalio import workflow
from temporalio.common import RetryPolicy

with workflow.unsafe.imports_passed_through():
    from activities.order_sync import (
        sync_orders_batch_activity,
        OrderSyncActivityInput,
    )


TASK_QUEUE = "order-sync"

# Token request plus one 60s callout per order, with headroom
BASE_TIMEOUT = timedelta(minutes=2)
PER_ORDER_TIMEOUT = timedelta(seconds=65)


@dataclass
class OrderSyncInput:
    """Input for Order Sync Workflow.

    Attributes:
        order_ids: Orders to synchronize, in processing order
        batch_id: Identifier used to correlate logs and audit records
    """
    order_ids: List[str] = field(default_factory=list)
    batch_id: Optional[str] = None


def batch_timeout(order_count: int) -> timedelta:
    return BASE_TIMEOUT + PER_ORDER_TIMEOUT * max(order_count, 1)


@workflow.defn
class OrderSyncWorkflow:
    """Workflow for synchronizing a batch of orders to NetSuite."""

    @workflow.run
    async def run(self, input: OrderSyncInput) -> dict:
        """Execute the batch.

        Returns:
            dict with batch_id and the number of orders processed
        """
        batch_id = input.batch_id or f"batch-{workflow.info().workflow_id}"
        workflow.logger.info(f"Starting Order Sync Workflow for {len(input.order_ids)} order(s)")

        result = await workflow.execute_activity(
            sync_orders_batch_activity,
            OrderSyncActivityInput(order_ids=list(input.order_ids), batch_id=batch_id),
            start_to_close_timeout=batch_timeout(len(input.order_ids)),
            retry_policy=RetryPolicy(maximum_attempts=1),
        )

        workflow.logger.info(f"Batch {result.batch_id} processed {result.order_count} order(s)")
        return {
            "batch_id": result.batch_id,
            "order_count": result.order_count,
        }
