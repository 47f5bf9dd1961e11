"""Order Store - typed access to the source system of record.

This package provides the Record Fetcher side of the sync pipeline:
- Pydantic models for orders, milestones and milestone line items
- Versioned field lists that drive the SQLite column lists
- A repository interface with SQLite and in-memory implementations

Usage:
    from order_store import SQLiteOrderRepository, fetch_batch

    repo = SQLiteOrderRepository(db_path="order_sync.db")
    for item in fetch_batch(repo, ["O1", "O2"]):
        print(item.order.order_number, len(item.milestones))
"""

from order_store.models import (
    FEE_FIELDS,
    FIELDS_VERSION,
    REFUND_RECORD_TYPES,
    Milestone,
    MilestoneLineItem,
    MilestoneWithLineItems,
    Order,
    OrderWithChildren,
)
from order_store.repository import (
    InMemoryOrderRepository,
    OrderRepository,
    SQLiteOrderRepository,
    fetch_batch,
)
from order_store.db import (
    init_order_store_db,
    upsert_order,
    upsert_milestone,
    upsert_line_item,
    seed_sample_orders,
)

__all__ = [
    # Models
    "FEE_FIELDS",
    "FIELDS_VERSION",
    "REFUND_RECORD_TYPES",
    "Milestone",
    "MilestoneLineItem",
    "MilestoneWithLineItems",
    "Order",
    "OrderWithChildren",
    # Repository
    "OrderRepository",
    "SQLiteOrderRepository",
    "InMemoryOrderRepository",
    "fetch_batch",
    # Database
    "init_order_store_db",
    "upsert_order",
    "upsert_milestone",
    "upsert_line_item",
    "seed_sample_orders",
]
