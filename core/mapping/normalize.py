"""Field normalization - source records to NetSuite field vocabulary.

Every function here is pure and total: any input, including a record with
all optional fields empty, yields a fully populated map with no nulls.

Rules:
- numeric: Decimal, None or non-finite -> 0
- text: None or blank -> a per-field fallback ("" unless listed otherwise)
- boolean: truthy -> "Yes", anything else -> "No"
- date: dd/MM/yyyy of the calendar date at midnight, "" when absent
"""

from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Dict, Optional

from order_store.models import (
    FEE_FIELDS,
    Milestone,
    MilestoneLineItem,
    Order,
    calendar_date,
    parse_amount,
)


DATE_FORMAT = "%d/%m/%Y"

DEFAULT_SUBSIDIARY = "FYLS"
NONE_LABEL = "None"


# =============================================================================
# Scalar Normalizers
# =============================================================================

def to_amount(value: Any) -> Decimal:
    """Amount as Decimal, with None, blank, NaN and infinities mapped to 0."""
    amount = parse_amount(value)
    return Decimal(0) if amount is None else amount


def to_text(value: Any, fallback: str = "") -> str:
    """Text value, with None or blank mapped to ``fallback``."""
    if value is None:
        return fallback
    text = str(value)
    if not text.strip():
        return fallback
    return text


def to_yes_no(value: Any) -> str:
    """Boolean label expected by NetSuite checkbox fields."""
    return "Yes" if value else "No"


def to_date_string(value: Any) -> str:
    """Render a date as dd/MM/yyyy.

    The time-of-day of a datetime input is dropped before formatting, so a
    calendar date always renders the same way.
    """
    day: Optional[date] = calendar_date(value)
    if day is None:
        return ""
    return datetime.combine(day, time.min).strftime(DATE_FORMAT)


def _fees(record: Any) -> Dict[str, Decimal]:
    return {wire_key: to_amount(getattr(record, attr)) for attr, wire_key in FEE_FIELDS}


# =============================================================================
# Entity Normalizers
# =============================================================================

def normalize_order(order: Order) -> Dict[str, Any]:
    """Order-level fields, without the nested milestone list."""
    return {
        "orderid": to_text(order.id),
        "orderrecordtype": to_text(order.record_type),
        "customerID": to_text(order.customer_external_id),
        "Corporate__c": to_text(order.corporate_external_id),
        "subsidiary": to_text(order.subsidiary, DEFAULT_SUBSIDIARY),
        "date": to_date_string(order.order_date),
        "orderstartdate": to_date_string(order.effective_date),
        "orderenddate": to_date_string(order.end_date),
        "status": to_text(order.status),
        "ordernumber": to_text(order.order_number),
        "academicyear": to_text(order.academic_year, NONE_LABEL),
        "dateofjoining": to_date_string(order.joining_date),
        "location": to_text(order.location),
        "center": to_text(order.centre_code),
        "primaryparent": to_text(order.primary_parent_name),
        "primarymobno": to_text(order.primary_mobile),
        "primaryemailid": to_text(order.primary_email),
        "employeeid": to_text(order.employee_id, NONE_LABEL),
        "studentprogram": to_text(order.program_id),
        "subprogram": to_text(order.sub_program_id),
        "classid": to_text(order.class_id),
        "companyemaildcorporate": to_text(order.corporate_email, NONE_LABEL),
    }


def normalize_milestone(milestone: Milestone) -> Dict[str, Any]:
    """Milestone fields, without the nested line-item list."""
    fields: Dict[str, Any] = {
        "id": to_text(milestone.id),
        "Name": to_text(milestone.name),
        "Milestone_Status__c": to_text(milestone.status, NONE_LABEL),
        "Amount_Paid__c": to_yes_no(milestone.is_paid),
        "Adjustment__c": to_amount(milestone.adjustment_amount),
        "Adjustment_Fee_Remarks__c": to_text(milestone.adjustment_remarks, NONE_LABEL),
        "Entity_Backend__c": to_text(milestone.entity_backend, DEFAULT_SUBSIDIARY),
        "Term_Start_Date__c": to_date_string(milestone.term_start_date),
        "Term_End_Date__c": to_date_string(milestone.term_end_date),
    }
    fields.update(_fees(milestone))
    return fields


def normalize_line_item(line_item: MilestoneLineItem) -> Dict[str, Any]:
    fields: Dict[str, Any] = {
        "Id": to_text(line_item.id),
        "Term_Line_Item_Name": to_text(line_item.name),
        "Term_Line_Item_Start_Date__c": to_date_string(line_item.start_date),
        "Term_Line_Item_End_Date__c": to_date_string(line_item.end_date),
        "ActiveX__c": to_yes_no(line_item.is_active),
    }
    fields.update(_fees(line_item))
    fields["Adjustment_for_current_month"] = to_amount(line_item.current_month_adjustment)
    fields["Total_standard_amount"] = to_amount(line_item.standard_monthly_amount)
    return fields
