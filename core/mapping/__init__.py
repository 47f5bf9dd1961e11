"""Core mapping - source records to NetSuite payloads.

This module provides the pure transformation half of the sync pipeline:
- normalize: null/blank/boolean/date canonicalization per entity
- payload: typed payload structures and the order-level assembler
"""

from core.mapping.normalize import (
    DATE_FORMAT,
    to_amount,
    to_text,
    to_yes_no,
    to_date_string,
    normalize_order,
    normalize_milestone,
    normalize_line_item,
)
from core.mapping.payload import (
    OrderPayload,
    MilestonePayload,
    LineItemPayload,
    assemble,
    assemble_from,
)

__all__ = [
    # Normalizers
    "DATE_FORMAT",
    "to_amount",
    "to_text",
    "to_yes_no",
    "to_date_string",
    "normalize_order",
    "normalize_milestone",
    "normalize_line_item",
    # Payload
    "OrderPayload",
    "MilestonePayload",
    "LineItemPayload",
    "assemble",
    "assemble_from",
]
