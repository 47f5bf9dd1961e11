"""Order repository - typed read access to the source record store.

The repository is the only way the sync pipeline touches the store. Apart
from the guarded external-id write-back it is read-only.

Usage:
    repo = SQLiteOrderRepository(db_path)
    batch = fetch_batch(repo, ["O1", "O2"])
"""

import sqlite3
from abc import ABC, abstractmethod
from datetime import date
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from order_store.db import DEFAULT_DB_PATH, connect, init_order_store_db
from order_store.models import (
    LINE_ITEM_FIELDS,
    MILESTONE_FIELDS,
    ORDER_FIELDS,
    REFUND_RECORD_TYPES,
    Milestone,
    MilestoneLineItem,
    MilestoneWithLineItems,
    Order,
    OrderWithChildren,
)


def _sort_key(start: Optional[date], record_id: str) -> Tuple[int, date, str]:
    # Missing dates sort after every dated record
    return (1, date.min, record_id) if start is None else (0, start, record_id)


def _unique(order_ids: Iterable[str]) -> List[str]:
    seen = set()
    result = []
    for order_id in order_ids:
        if order_id and order_id not in seen:
            seen.add(order_id)
            result.append(order_id)
    return result


class OrderRepository(ABC):
    """Abstract access to orders, milestones and milestone line items."""

    @abstractmethod
    def get_order(self, order_id: str) -> Optional[Order]:
        """Load one order, or None if it does not exist."""

    @abstractmethod
    def list_milestones(
        self,
        order_id: str,
        excluded_record_types: Iterable[str] = REFUND_RECORD_TYPES,
    ) -> List[Milestone]:
        """Milestones of an order whose record type is not excluded."""

    @abstractmethod
    def list_line_items(self, milestone_id: str) -> List[MilestoneLineItem]:
        """Line items of a milestone."""

    @abstractmethod
    def set_external_order_id(self, order_id: str, external_id: str) -> bool:
        """Store the NetSuite id on an order whose id is still empty.

        Returns:
            True if the order was updated, False if it was already set or missing
        """

    @abstractmethod
    def list_unsynced_order_ids(self, limit: int = 200) -> List[str]:
        """Orders that have never been synchronized."""

    def get_external_order_id(self, order_id: str) -> Optional[str]:
        order = self.get_order(order_id)
        return order.external_order_id if order else None

    def fetch_batch(
        self,
        order_ids: Iterable[str],
        excluded_record_types: Iterable[str] = REFUND_RECORD_TYPES,
    ) -> List[OrderWithChildren]:
        """Load orders with their milestones and line items.

        Unknown ids are skipped. Milestones are ordered by term start date,
        line items by start date, both with the record id as tie-breaker.
        """
        excluded = frozenset(excluded_record_types)
        batch = []
        for order_id in _unique(order_ids):
            order = self.get_order(order_id)
            if order is None:
                continue

            milestones = sorted(
                self.list_milestones(order.id, excluded),
                key=lambda m: _sort_key(m.term_start_date, m.id),
            )
            children = []
            for milestone in milestones:
                line_items = sorted(
                    self.list_line_items(milestone.id),
                    key=lambda li: _sort_key(li.start_date, li.id),
                )
                children.append(MilestoneWithLineItems(milestone=milestone, line_items=line_items))

            batch.append(OrderWithChildren(order=order, milestones=children))
        return batch


def fetch_batch(
    repository: OrderRepository,
    order_ids: Iterable[str],
    excluded_record_types: Iterable[str] = REFUND_RECORD_TYPES,
) -> List[OrderWithChildren]:
    """Load a batch of orders with their children from a repository."""
    return repository.fetch_batch(order_ids, excluded_record_types)


# =============================================================================
# SQLite Repository
# =============================================================================

class SQLiteOrderRepository(OrderRepository):
    """Repository over the SQLite tables created by init_order_store_db."""

    def __init__(self, db_path: Path = DEFAULT_DB_PATH, initialize: bool = True):
        self.db_path = Path(db_path)
        if initialize:
            init_order_store_db(self.db_path)

    def get_order(self, order_id: str) -> Optional[Order]:
        conn = connect(self.db_path)
        try:
            row = conn.execute(
                f"SELECT {', '.join(ORDER_FIELDS)} FROM orders WHERE id = ?",
                (order_id,),
            ).fetchone()
            return Order.model_validate(dict(row)) if row else None
        finally:
            conn.close()

    def list_milestones(
        self,
        order_id: str,
        excluded_record_types: Iterable[str] = REFUND_RECORD_TYPES,
    ) -> List[Milestone]:
        excluded = sorted(excluded_record_types)
        query = f"SELECT {', '.join(MILESTONE_FIELDS)} FROM milestones WHERE order_id = ?"
        params: List[str] = [order_id]
        if excluded:
            placeholders = ", ".join("?" for _ in excluded)
            query += f" AND (record_type IS NULL OR record_type NOT IN ({placeholders}))"
            params.extend(excluded)

        conn = connect(self.db_path)
        try:
            rows = conn.execute(query, params).fetchall()
            return [Milestone.model_validate(dict(row)) for row in rows]
        finally:
            conn.close()

    def list_line_items(self, milestone_id: str) -> List[MilestoneLineItem]:
        conn = connect(self.db_path)
        try:
            rows = conn.execute(
                f"SELECT {', '.join(LINE_ITEM_FIELDS)} FROM milestone_line_items WHERE milestone_id = ?",
                (milestone_id,),
            ).fetchall()
            return [MilestoneLineItem.model_validate(dict(row)) for row in rows]
        finally:
            conn.close()

    def set_external_order_id(self, order_id: str, external_id: str) -> bool:
        conn = sqlite3.connect(str(self.db_path))
        try:
            cursor = conn.execute(
                """
                UPDATE orders SET external_order_id = ?
                WHERE id = ?
                  AND (external_order_id IS NULL OR TRIM(external_order_id) = '')
                """,
                (external_id, order_id),
            )
            conn.commit()
            return cursor.rowcount > 0
        finally:
            conn.close()

    def list_unsynced_order_ids(self, limit: int = 200) -> List[str]:
        conn = connect(self.db_path)
        try:
            rows = conn.execute(
                """
                SELECT id FROM orders
                WHERE external_order_id IS NULL OR TRIM(external_order_id) = ''
                ORDER BY id
                LIMIT ?
                """,
                (int(limit),),
            ).fetchall()
            return [row["id"] for row in rows]
        finally:
            conn.close()


# =============================================================================
# In-Memory Repository
# =============================================================================

class InMemoryOrderRepository(OrderRepository):
    """In-memory repository for testing."""

    def __init__(
        self,
        orders: Iterable[Order] = (),
        milestones: Iterable[Milestone] = (),
        line_items: Iterable[MilestoneLineItem] = (),
    ):
        self._orders: Dict[str, Order] = {o.id: o for o in orders}
        self._milestones: List[Milestone] = list(milestones)
        self._line_items: List[MilestoneLineItem] = list(line_items)
        self.write_count = 0

    def get_order(self, order_id: str) -> Optional[Order]:
        order = self._orders.get(order_id)
        return order.model_copy() if order else None

    def list_milestones(
        self,
        order_id: str,
        excluded_record_types: Iterable[str] = REFUND_RECORD_TYPES,
    ) -> List[Milestone]:
        excluded = frozenset(excluded_record_types)
        return [
            m for m in self._milestones
            if m.order_id == order_id and m.record_type not in excluded
        ]

    def list_line_items(self, milestone_id: str) -> List[MilestoneLineItem]:
        return [li for li in self._line_items if li.milestone_id == milestone_id]

    def set_external_order_id(self, order_id: str, external_id: str) -> bool:
        order = self._orders.get(order_id)
        if order is None or order.is_synced:
            return False
        self._orders[order_id] = order.model_copy(update={"external_order_id": external_id})
        self.write_count += 1
        return True

    def list_unsynced_order_ids(self, limit: int = 200) -> List[str]:
        return sorted(oid for oid, o in self._orders.items() if not o.is_synced)[:limit]
