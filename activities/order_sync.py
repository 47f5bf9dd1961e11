"""
Order Sync Activities

- sync_orders_batch_activity: synchronize one batch of orders to NetSuite

The activity never fails because of an individual order, a token problem or
missing settings: those outcomes are written to the audit trail instead.
"""

import time
from dataclasses import dataclass, field
from typing import List, Optional

from temporalio import activity

from core.observability import with_correlation
from core.observability.logging import log_activity_complete, log_activity_error, log_activity_start
from order_sync.pipeline import execute_batch, new_batch_id


# =============================================================================
# Activity Input/Output Models
# =============================================================================

@dataclass
class OrderSyncActivityInput:
    """Input for sync_orders_batch_activity"""
    order_ids: List[str] = field(default_factory=list)
    batch_id: Optional[str] = None


@dataclass
class OrderSyncActivityOutput:
    """Output from sync_orders_batch_activity"""
    batch_id: str
    order_count: int


# =============================================================================
# Activities
# =============================================================================

@activity.defn
async def sync_orders_batch_activity(input: OrderSyncActivityInput) -> OrderSyncActivityOutput:
    """
    Synchronize a batch of orders to NetSuite.

    Settings are read from the environment of the worker process.
    """
    batch_id = input.batch_id or new_batch_id()
    info = activity.info()
    activity.logger.info(f"Syncing {len(input.order_ids)} order(s) in batch {batch_id}")
    start = time.time()

    with with_correlation(
        workflow_id=info.workflow_id,
        workflow_run_id=info.workflow_run_id,
        activity_name=info.activity_type,
        task_queue=info.task_queue,
        batch_id=batch_id,
    ):
        log_activity_start("sync_orders_batch", order_count=len(input.order_ids))
        try:
            results = await execute_batch(input.order_ids, batch_id=batch_id)
        except Exception as e:
            log_activity_error("sync_orders_batch", str(e))
            raise
        log_activity_complete(
            "sync_orders_batch",
            duration_ms=(time.time() - start) * 1000,
            synced=sum(1 for r in results if r.is_success),
            failed=sum(1 for r in results if not r.is_success),
        )
    return OrderSyncActivityOutput(batch_id=batch_id, order_count=len(results))
