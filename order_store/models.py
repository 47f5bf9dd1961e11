"""Order Store Data Models.

This module defines the Pydantic models for the source record store:
- Order: The commercial record mirrored into NetSuite
- Milestone: A payment term under an order
- MilestoneLineItem: A billing-period breakdown of a milestone
- OrderWithChildren: An order with its filtered, ordered sub-records

Each model carries an explicit, versioned field list. The SQLite repository
builds its column lists from these tuples, so a schema drift surfaces as soon
as the store is initialized instead of inside a query string.
"""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field
from pydantic.functional_validators import BeforeValidator
from typing_extensions import Annotated


# Milestone record types that never leave the source system
REFUND_RECORD_TYPES = frozenset({"Fee_Refunds", "Deposit_Refunds"})


def calendar_date(value: Any) -> Optional[date]:
    """Reduce a date, datetime or ISO string to its calendar date."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if len(text) > 10:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        return date.fromisoformat(text)
    return value


def parse_amount(value: Any) -> Optional[Decimal]:
    """Money as Decimal; floats go through str so 0.1 stays 0.1.

    NaN and infinities carry no amount and read as missing.
    """
    if value is None:
        return None
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, int):
        amount = Decimal(value)
    elif isinstance(value, float):
        amount = Decimal(str(value))
    elif isinstance(value, str):
        text = value.strip().replace(",", "")
        if text == "":
            return None
        try:
            amount = Decimal(text)
        except InvalidOperation:
            raise ValueError(f"Not an amount: {value!r}")
    else:
        return value
    return amount if amount.is_finite() else None


DateValue = Annotated[Optional[date], BeforeValidator(calendar_date)]
AmountValue = Annotated[Optional[Decimal], BeforeValidator(parse_amount)]


# =============================================================================
# Fee Categories
# =============================================================================

# (model attribute, wire key) pairs shared by milestones and line items
FEE_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("tuition_fee", "Tuition_Fee__c"),
    ("food_fee", "Food_Fee__c"),
    ("transport_fee", "Transport_Fee__c"),
    ("security_deposit", "Security_Deposit__c"),
    ("kit_fee", "Kit_Fee__c"),
    ("admission_fee", "Admission_Fee__c"),
    ("annual_fee", "Annual_Fee__c"),
    ("activity_fee", "Activity_Fee__c"),
    ("extended_care_fee", "Extended_Care_Fee__c"),
    ("registration_fee", "Registration_Fee__c"),
    ("corporate_tuition_fee", "Corporate_Tuition_Fee__c"),
    ("corporate_food_fee", "Corporate_Food_Fee__c"),
    ("corporate_transport_fee", "Corporate_Transport_Fee__c"),
    ("corporate_security_deposit", "Corporate_Security_Deposit__c"),
    ("corporate_kit_fee", "Corporate_Kit_Fee__c"),
    ("corporate_admission_fee", "Corporate_Admission_Fee__c"),
    ("corporate_annual_fee", "Corporate_Annual_Fee__c"),
    ("corporate_activity_fee", "Corporate_Activity_Fee__c"),
    ("corporate_extended_care_fee", "Corporate_Extended_Care_Fee__c"),
    ("corporate_registration_fee", "Corporate_Registration_Fee__c"),
)

FEE_ATTRIBUTES: Tuple[str, ...] = tuple(attr for attr, _ in FEE_FIELDS)


class FeeAmounts(BaseModel):
    """Fee-category amounts common to milestones and line items."""
    model_config = ConfigDict(from_attributes=True)

    tuition_fee: AmountValue = None
    food_fee: AmountValue = None
    transport_fee: AmountValue = None
    security_deposit: AmountValue = None
    kit_fee: AmountValue = None
    admission_fee: AmountValue = None
    annual_fee: AmountValue = None
    activity_fee: AmountValue = None
    extended_care_fee: AmountValue = None
    registration_fee: AmountValue = None
    corporate_tuition_fee: AmountValue = None
    corporate_food_fee: AmountValue = None
    corporate_transport_fee: AmountValue = None
    corporate_security_deposit: AmountValue = None
    corporate_kit_fee: AmountValue = None
    corporate_admission_fee: AmountValue = None
    corporate_annual_fee: AmountValue = None
    corporate_activity_fee: AmountValue = None
    corporate_extended_care_fee: AmountValue = None
    corporate_registration_fee: AmountValue = None


# =============================================================================
# Source Records
# =============================================================================

class Order(BaseModel):
    """A commercial order as held by the source system.

    Customer, corporate and centre references are denormalized onto the
    order so the fetcher needs a single read per order.

    Attributes:
        id: Source record identifier
        record_type: Record-type label (e.g. "Standard", "Corporate")
        customer_external_id: NetSuite id of the individual customer
        corporate_external_id: NetSuite id of the corporate account
        centre_code: Centre the order belongs to
        external_order_id: NetSuite order id, empty until first sync
    """
    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="Source order identifier")
    record_type: Optional[str] = None
    status: Optional[str] = None
    order_number: Optional[str] = None
    customer_external_id: Optional[str] = None
    corporate_external_id: Optional[str] = None
    subsidiary: Optional[str] = None
    order_date: DateValue = None
    effective_date: DateValue = None
    end_date: DateValue = None
    academic_year: Optional[str] = None
    joining_date: DateValue = None
    location: Optional[str] = None
    centre_code: Optional[str] = None
    primary_parent_name: Optional[str] = None
    primary_mobile: Optional[str] = None
    primary_email: Optional[str] = None
    employee_id: Optional[str] = None
    program_id: Optional[str] = None
    sub_program_id: Optional[str] = None
    class_id: Optional[str] = None
    corporate_email: Optional[str] = None
    external_order_id: Optional[str] = Field(default=None, description="Write-once NetSuite id")

    @property
    def is_synced(self) -> bool:
        return bool(self.external_order_id and self.external_order_id.strip())


class Milestone(FeeAmounts):
    """A payment term belonging to exactly one order."""

    id: str = Field(..., description="Source milestone identifier")
    order_id: str = Field(..., description="Owning order")
    name: Optional[str] = None
    record_type: Optional[str] = None
    status: Optional[str] = None
    is_paid: Optional[bool] = None
    adjustment_amount: AmountValue = None
    adjustment_remarks: Optional[str] = None
    entity_backend: Optional[str] = None
    term_start_date: DateValue = None
    term_end_date: DateValue = None

    @property
    def is_refund(self) -> bool:
        return self.record_type in REFUND_RECORD_TYPES


class MilestoneLineItem(FeeAmounts):
    """A billing-period breakdown of a milestone."""

    id: str = Field(..., description="Source line item identifier")
    milestone_id: str = Field(..., description="Owning milestone")
    name: Optional[str] = None
    start_date: DateValue = None
    end_date: DateValue = None
    is_active: Optional[bool] = None
    current_month_adjustment: AmountValue = None
    standard_monthly_amount: AmountValue = None


class MilestoneWithLineItems(BaseModel):
    milestone: Milestone
    line_items: List[MilestoneLineItem] = Field(default_factory=list)


class OrderWithChildren(BaseModel):
    """An order with its synchronizable milestones and their line items."""
    order: Order
    milestones: List[MilestoneWithLineItems] = Field(default_factory=list)

    @property
    def order_id(self) -> str:
        return self.order.id


# =============================================================================
# Field Lists
# =============================================================================

FIELDS_VERSION = 1

ORDER_FIELDS: Tuple[str, ...] = (
    "id",
    "record_type",
    "status",
    "order_number",
    "customer_external_id",
    "corporate_external_id",
    "subsidiary",
    "order_date",
    "effective_date",
    "end_date",
    "academic_year",
    "joining_date",
    "location",
    "centre_code",
    "primary_parent_name",
    "primary_mobile",
    "primary_email",
    "employee_id",
    "program_id",
    "sub_program_id",
    "class_id",
    "corporate_email",
    "external_order_id",
)

MILESTONE_FIELDS: Tuple[str, ...] = (
    "id",
    "order_id",
    "name",
    "record_type",
    "status",
    "is_paid",
    "adjustment_amount",
    "adjustment_remarks",
    "entity_backend",
    "term_start_date",
    "term_end_date",
) + FEE_ATTRIBUTES

LINE_ITEM_FIELDS: Tuple[str, ...] = (
    "id",
    "milestone_id",
    "name",
    "start_date",
    "end_date",
    "is_active",
    "current_month_adjustment",
    "standard_monthly_amount",
) + FEE_ATTRIBUTES

DATE_FIELDS = frozenset({
    "order_date",
    "effective_date",
    "end_date",
    "joining_date",
    "term_start_date",
    "term_end_date",
    "start_date",
})

BOOLEAN_FIELDS = frozenset({"is_paid", "is_active"})


def check_field_lists() -> None:
    """Verify the declared field lists match the models.

    Raises:
        RuntimeError: If a field list and its model disagree
    """
    for model, fields in (
        (Order, ORDER_FIELDS),
        (Milestone, MILESTONE_FIELDS),
        (MilestoneLineItem, LINE_ITEM_FIELDS),
    ):
        declared = set(fields)
        actual = set(model.model_fields)
        if declared != actual:
            raise RuntimeError(
                f"{model.__name__} field list v{FIELDS_VERSION} out of date: "
                f"missing={sorted(actual - declared)} unknown={sorted(declared - actual)}"
            )
