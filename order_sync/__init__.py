"""Order Sync - batch entry point tying the store, mapping and NetSuite client together."""

from order_sync.pipeline import (
    OrderSyncPipeline,
    build_audit_logger,
    execute_batch,
    new_batch_id,
    sync_orders_batch,
)

__all__ = [
    "OrderSyncPipeline",
    "build_audit_logger",
    "execute_batch",
    "new_batch_id",
    "sync_orders_batch",
]
