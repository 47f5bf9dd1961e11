"""Order Store Database Operations.

This module handles the SQLite side of the source record store:
- Schema initialization for orders, milestones and milestone line items
- Upserts used by seeding and tests
- Sample data seeding

Column lists are generated from the field lists in order_store.models, so
the tables always carry exactly the fields the models declare.
"""

import sqlite3
from datetime import date
from pathlib import Path
from typing import Any, Dict, Iterable, Tuple

from order_store.models import (
    BOOLEAN_FIELDS,
    DATE_FIELDS,
    FEE_ATTRIBUTES,
    LINE_ITEM_FIELDS,
    MILESTONE_FIELDS,
    ORDER_FIELDS,
    Milestone,
    MilestoneLineItem,
    Order,
    check_field_lists,
)


# Default database path (repo root)
DEFAULT_DB_PATH = Path(__file__).resolve().parents[1] / "order_sync.db"

NUMERIC_FIELDS = frozenset(FEE_ATTRIBUTES) | {
    "adjustment_amount",
    "current_month_adjustment",
    "standard_monthly_amount",
}


def _column_type(field_name: str) -> str:
    if field_name in NUMERIC_FIELDS:
        return "REAL"
    if field_name in BOOLEAN_FIELDS:
        return "INTEGER"
    return "TEXT"


def _columns_ddl(fields: Iterable[str], primary_key: str = "id") -> str:
    columns = []
    for name in fields:
        ddl = f"{name} {_column_type(name)}"
        if name == primary_key:
            ddl += " PRIMARY KEY"
        columns.append(ddl)
    return ",\n                ".join(columns)


def connect(db_path: Path = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Open a connection with rows addressable by column name."""
    conn = sqlite3.connect(str(db_path))
    conn.row_factory = sqlite3.Row
    return conn


def init_order_store_db(db_path: Path = DEFAULT_DB_PATH) -> None:
    """Initialize order store tables.

    Creates:
    - orders: One row per order, customer/corporate/centre fields denormalized
    - milestones: Payment terms keyed to their order
    - milestone_line_items: Billing-period rows keyed to their milestone

    Args:
        db_path: Path to SQLite database file

    Raises:
        RuntimeError: If the model field lists are out of date
    """
    check_field_lists()

    conn = sqlite3.connect(str(db_path))
    try:
        cursor = conn.cursor()

        cursor.execute(f"""
            CREATE TABLE IF NOT EXISTS orders (
                {_columns_ddl(ORDER_FIELDS)}
            )
        """)
        cursor.execute(f"""
            CREATE TABLE IF NOT EXISTS milestones (
                {_columns_ddl(MILESTONE_FIELDS)}
            )
        """)
        cursor.execute(f"""
            CREATE TABLE IF NOT EXISTS milestone_line_items (
                {_columns_ddl(LINE_ITEM_FIELDS)}
            )
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_milestones_order
            ON milestones(order_id)
        """)
        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_line_items_milestone
            ON milestone_line_items(milestone_id)
        """)

        conn.commit()
    finally:
        conn.close()


# =============================================================================
# Upserts
# =============================================================================

def _to_column(name: str, value: Any) -> Any:
    if value is None:
        return None
    if name in DATE_FIELDS and isinstance(value, date):
        return value.isoformat()
    if name in BOOLEAN_FIELDS:
        return 1 if value else 0
    if name in NUMERIC_FIELDS:
        return float(value)
    return value


def _upsert(table: str, fields: Tuple[str, ...], record: Dict[str, Any], db_path: Path) -> None:
    placeholders = ", ".join("?" for _ in fields)
    values = tuple(_to_column(name, record.get(name)) for name in fields)

    conn = sqlite3.connect(str(db_path))
    try:
        conn.execute(
            f"INSERT OR REPLACE INTO {table} ({', '.join(fields)}) VALUES ({placeholders})",
            values,
        )
        conn.commit()
    finally:
        conn.close()


def upsert_order(order: Order, db_path: Path = DEFAULT_DB_PATH) -> Order:
    """Insert or replace an order row."""
    _upsert("orders", ORDER_FIELDS, order.model_dump(), db_path)
    return order


def upsert_milestone(milestone: Milestone, db_path: Path = DEFAULT_DB_PATH) -> Milestone:
    """Insert or replace a milestone row."""
    _upsert("milestones", MILESTONE_FIELDS, milestone.model_dump(), db_path)
    return milestone


def upsert_line_item(line_item: MilestoneLineItem, db_path: Path = DEFAULT_DB_PATH) -> MilestoneLineItem:
    """Insert or replace a milestone line item row."""
    _upsert("milestone_line_items", LINE_ITEM_FIELDS, line_item.model_dump(), db_path)
    return line_item


# =============================================================================
# Sample Data
# =============================================================================

def seed_sample_orders(db_path: Path = DEFAULT_DB_PATH) -> int:
    """Seed the store with a small set of orders for local runs.

    O1 carries one standard and one refund milestone, O2 is a corporate order
    with sparse data, O3 is already synchronized.

    Returns:
        Number of orders seeded
    """
    init_order_store_db(db_path)

    orders = [
        Order(
            id="O1",
            record_type="Standard",
            status="Active",
            order_number="ORD-0001",
            customer_external_id="CUST-1001",
            subsidiary="FYLS",
            order_date=date(2024, 3, 1),
            effective_date=date(2024, 4, 1),
            end_date=date(2025, 3, 31),
            academic_year="2024-25",
            joining_date=date(2024, 4, 1),
            location="Gurugram",
            centre_code="GGN-01",
            primary_parent_name="Asha Verma",
            primary_mobile="9800000001",
            primary_email="asha@example.com",
            program_id="PRG-DAYCARE",
            sub_program_id="SUB-FULLDAY",
            class_id="CLS-TODDLER",
        ),
        Order(
            id="O2",
            record_type="Corporate",
            status="Active",
            order_number="ORD-0002",
            corporate_external_id="CORP-2001",
            employee_id="EMP-77",
            corporate_email="hr@corp.example.com",
            effective_date=date(2024, 6, 1),
        ),
        Order(
            id="O3",
            record_type="Standard",
            status="Active",
            order_number="ORD-0003",
            customer_external_id="CUST-1003",
            external_order_id="NS-42",
        ),
    ]

    milestones = [
        Milestone(
            id="M1",
            order_id="O1",
            name="Term 1",
            record_type="Standard",
            status="Invoiced",
            is_paid=True,
            entity_backend="FYLS",
            term_start_date=date(2024, 4, 1),
            term_end_date=date(2024, 6, 30),
            tuition_fee=45000.0,
            food_fee=6000.0,
            security_deposit=10000.0,
        ),
        Milestone(
            id="M2",
            order_id="O1",
            name="Refund",
            record_type="Fee_Refunds",
            adjustment_amount=-2500.0,
            adjustment_remarks="Early withdrawal",
        ),
        Milestone(
            id="M3",
            order_id="O2",
            name="Term 1",
            record_type="Standard",
            corporate_tuition_fee=30000.0,
        ),
    ]

    line_items = [
        MilestoneLineItem(
            id="L1",
            milestone_id="M1",
            name="April",
            start_date=date(2024, 4, 1),
            end_date=date(2024, 4, 30),
            is_active=True,
            tuition_fee=15000.0,
            food_fee=2000.0,
            standard_monthly_amount=17000.0,
        ),
        MilestoneLineItem(
            id="L2",
            milestone_id="M1",
            name="May",
            start_date=date(2024, 5, 1),
            end_date=date(2024, 5, 31),
            is_active=True,
            tuition_fee=15000.0,
            food_fee=2000.0,
            standard_monthly_amount=17000.0,
        ),
        MilestoneLineItem(
            id="L3",
            milestone_id="M2",
            name="Refund line",
            current_month_adjustment=-2500.0,
        ),
    ]

    for order in orders:
        upsert_order(order, db_path)
    for milestone in milestones:
        upsert_milestone(milestone, db_path)
    for line_item in line_items:
        upsert_line_item(line_item, db_path)

    return len(orders)
