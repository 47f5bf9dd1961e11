"""Activity definitions module."""

from activities.order_sync import (
    sync_orders_batch_activity,
    OrderSyncActivityInput,
    OrderSyncActivityOutput,
)

__all__ = [
    "sync_orders_batch_activity",
    "OrderSyncActivityInput",
    "OrderSyncActivityOutput",
]
