"""Payload assembly - typed NetSuite order payloads.

The payload types name every field of the NetSuite integration contract.
Normalized maps are validated into these types (unknown keys are rejected)
and leave again only through ``OrderPayload.to_wire()`` / ``to_json()``.
"""

from __future__ import annotations

import json
from decimal import Decimal
from typing import Any, Dict, List, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer
from typing_extensions import Annotated

from core.mapping.normalize import normalize_line_item, normalize_milestone, normalize_order
from order_store.models import (
    Milestone,
    MilestoneLineItem,
    MilestoneWithLineItems,
    Order,
    OrderWithChildren,
)


ZERO = Decimal(0)

# Decimal in Python, a JSON number on the wire
WireAmount = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class PayloadBase(BaseModel):
    """Base model for wire payloads."""
    model_config = ConfigDict(populate_by_name=True, extra="forbid", frozen=True)


class FeePayload(PayloadBase):
    """Fee-category amounts shared by milestone and line-item payloads."""
    tuition_fee: WireAmount = Field(ZERO, alias="Tuition_Fee__c")
    food_fee: WireAmount = Field(ZERO, alias="Food_Fee__c")
    transport_fee: WireAmount = Field(ZERO, alias="Transport_Fee__c")
    security_deposit: WireAmount = Field(ZERO, alias="Security_Deposit__c")
    kit_fee: WireAmount = Field(ZERO, alias="Kit_Fee__c")
    admission_fee: WireAmount = Field(ZERO, alias="Admission_Fee__c")
    annual_fee: WireAmount = Field(ZERO, alias="Annual_Fee__c")
    activity_fee: WireAmount = Field(ZERO, alias="Activity_Fee__c")
    extended_care_fee: WireAmount = Field(ZERO, alias="Extended_Care_Fee__c")
    registration_fee: WireAmount = Field(ZERO, alias="Registration_Fee__c")
    corporate_tuition_fee: WireAmount = Field(ZERO, alias="Corporate_Tuition_Fee__c")
    corporate_food_fee: WireAmount = Field(ZERO, alias="Corporate_Food_Fee__c")
    corporate_transport_fee: WireAmount = Field(ZERO, alias="Corporate_Transport_Fee__c")
    corporate_security_deposit: WireAmount = Field(ZERO, alias="Corporate_Security_Deposit__c")
    corporate_kit_fee: WireAmount = Field(ZERO, alias="Corporate_Kit_Fee__c")
    corporate_admission_fee: WireAmount = Field(ZERO, alias="Corporate_Admission_Fee__c")
    corporate_annual_fee: WireAmount = Field(ZERO, alias="Corporate_Annual_Fee__c")
    corporate_activity_fee: WireAmount = Field(ZERO, alias="Corporate_Activity_Fee__c")
    corporate_extended_care_fee: WireAmount = Field(ZERO, alias="Corporate_Extended_Care_Fee__c")
    corporate_registration_fee: WireAmount = Field(ZERO, alias="Corporate_Registration_Fee__c")


class LineItemPayload(FeePayload):
    id: str = Field(..., alias="Id")
    name: str = Field("", alias="Term_Line_Item_Name")
    start_date: str = Field("", alias="Term_Line_Item_Start_Date__c")
    end_date: str = Field("", alias="Term_Line_Item_End_Date__c")
    active: str = Field("No", alias="ActiveX__c")
    current_month_adjustment: WireAmount = Field(ZERO, alias="Adjustment_for_current_month")
    standard_monthly_amount: WireAmount = Field(ZERO, alias="Total_standard_amount")


class MilestonePayload(FeePayload):
    id: str = Field(..., alias="id")
    name: str = Field("", alias="Name")
    status: str = Field("None", alias="Milestone_Status__c")
    amount_paid: str = Field("No", alias="Amount_Paid__c")
    adjustment: WireAmount = Field(ZERO, alias="Adjustment__c")
    adjustment_remarks: str = Field("None", alias="Adjustment_Fee_Remarks__c")
    entity_backend: str = Field("FYLS", alias="Entity_Backend__c")
    term_start_date: str = Field("", alias="Term_Start_Date__c")
    term_end_date: str = Field("", alias="Term_End_Date__c")
    line_items: List[LineItemPayload] = Field(default_factory=list, alias="milestoneline")


class OrderPayload(PayloadBase):
    """One order-level NetSuite payload with its milestones nested inside."""
    order_id: str = Field(..., alias="orderid")
    record_type: str = Field("", alias="orderrecordtype")
    customer_id: str = Field("", alias="customerID")
    corporate_id: str = Field("", alias="Corporate__c")
    subsidiary: str = Field("FYLS", alias="subsidiary")
    order_date: str = Field("", alias="date")
    start_date: str = Field("", alias="orderstartdate")
    end_date: str = Field("", alias="orderenddate")
    status: str = Field("", alias="status")
    order_number: str = Field("", alias="ordernumber")
    academic_year: str = Field("None", alias="academicyear")
    joining_date: str = Field("", alias="dateofjoining")
    location: str = Field("", alias="location")
    center: str = Field("", alias="center")
    primary_parent: str = Field("", alias="primaryparent")
    primary_mobile: str = Field("", alias="primarymobno")
    primary_email: str = Field("", alias="primaryemailid")
    employee_id: str = Field("None", alias="employeeid")
    program: str = Field("", alias="studentprogram")
    sub_program: str = Field("", alias="subprogram")
    class_id: str = Field("", alias="classid")
    corporate_email: str = Field("None", alias="companyemaildcorporate")
    milestones: List[MilestonePayload] = Field(default_factory=list, alias="milestone")

    def to_wire(self) -> Dict[str, Any]:
        """Serialize to the NetSuite key vocabulary."""
        return self.model_dump(by_alias=True, mode="json")

    def to_json(self) -> str:
        return json.dumps(self.to_wire(), allow_nan=False)


MilestoneInput = Union[Milestone, MilestoneWithLineItems]


def build_line_item(line_item: MilestoneLineItem) -> LineItemPayload:
    return LineItemPayload.model_validate(normalize_line_item(line_item))


def build_milestone(milestone: Milestone, line_items: Sequence[MilestoneLineItem] = ()) -> MilestonePayload:
    fields = normalize_milestone(milestone)
    fields["milestoneline"] = [build_line_item(li) for li in line_items]
    return MilestonePayload.model_validate(fields)


def assemble(order: Order, milestones: Sequence[MilestoneInput]) -> OrderPayload:
    """Compose one order payload.

    Milestones (bare, or paired with their line items) keep the order they
    are given in, and so do their line items.
    """
    milestone_payloads = []
    for item in milestones:
        if isinstance(item, MilestoneWithLineItems):
            milestone_payloads.append(build_milestone(item.milestone, item.line_items))
        else:
            milestone_payloads.append(build_milestone(item))

    fields = normalize_order(order)
    fields["milestone"] = milestone_payloads
    return OrderPayload.model_validate(fields)


def assemble_from(record: OrderWithChildren) -> OrderPayload:
    """Compose the payload for a fetched order graph."""
    return assemble(record.order, record.milestones)
