from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from move_portal.models import (
    CommentAuthor,
    DepositPaymentMethod,
    EntityKind,
    LoadingDock,
    MoveStatus,
    MoveType,
    MovingCompanyType,
)

# Fields a resident may still change while the request is Pending.
EDITABLE_DETAIL_FIELDS = (
    'move_date',
    'start_time',
    'end_time',
    'estimated_duration_hours',
    'loading_dock',
    'service_elevator',
    'visitor_parking_bay',
    'moving_trolleys',
    'access_cards_needed',
    'vehicle_details',
    'special_requirements',
    'oversized_items',
    'oversized_item_details',
    'moving_company_type',
    'moving_company_name',
    'moving_company_phone',
    'moving_company_insurance',
    'deposit_refund_account',
)


class MoveRequestCreate(BaseModel):
    move_type: MoveType
    move_date: date
    start_time: time = time(9, 0)
    end_time: time = time(17, 0)
    estimated_duration_hours: int = 8

    loading_dock: LoadingDock | None = None
    service_elevator: bool = True
    visitor_parking_bay: str | None = None
    moving_trolleys: int = 2
    access_cards_needed: int = 2
    vehicle_details: str | None = None
    special_requirements: str | None = None
    oversized_items: bool = False
    oversized_item_details: str | None = None

    moving_company_type: MovingCompanyType = MovingCompanyType.PROFESSIONAL
    moving_company_name: str | None = None
    moving_company_phone: str | None = None
    moving_company_insurance: bool | None = None

    deposit_refund_account: str | None = None
    deposit_payment_method: DepositPaymentMethod | None = None
    terms_accepted: bool = False


class MoveRequestUpdate(BaseModel):
    move_date: date | None = None
    start_time: time | None = None
    end_time: time | None = None
    estimated_duration_hours: int | None = None
    loading_dock: LoadingDock | None = None
    service_elevator: bool | None = None
    visitor_parking_bay: str | None = None
    moving_trolleys: int | None = None
    access_cards_needed: int | None = None
    vehicle_details: str | None = None
    special_requirements: str | None = None
    oversized_items: bool | None = None
    oversized_item_details: str | None = None
    moving_company_type: MovingCompanyType | None = None
    moving_company_name: str | None = None
    moving_company_phone: str | None = None
    moving_company_insurance: bool | None = None
    deposit_refund_account: str | None = None


class DepositApproval(BaseModel):
    method: DepositPaymentMethod
    amount: Decimal
    bank_details: str | None = None
    cash_date: date | None = None


class Rejection(BaseModel):
    reason: str


class PaymentClaim(BaseModel):
    paid_date: date
    proof_ref: str | None = None


class CashReceiptCreate(BaseModel):
    received_by: str
    notes: str | None = None


class InsuranceSelection(BaseModel):
    has_insurance: bool


class CommentCreate(BaseModel):
    message: str


class StatusChangeOut(BaseModel):
    from_: str = Field(alias='from', serialization_alias='from')
    to: str

    model_config = ConfigDict(populate_by_name=True)


class CommentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    entity_id: str
    entity_kind: EntityKind
    author: CommentAuthor
    author_name: str
    message: str
    created_at: datetime
    is_read: bool
    status_change: StatusChangeOut | None = None


class CashReceiptOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    receipt_number: str
    move_request_id: str
    receipt_date: date
    amount: Decimal
    payment_method: str
    received_by: str
    notes: str | None
    resident_name: str
    resident_unit: str
    created_by: str
    created_at: datetime


class MoveRequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    move_type: MoveType
    status: MoveStatus
    resident_name: str
    resident_unit: str
    resident_email: str
    resident_phone: str

    move_date: date
    start_time: time
    end_time: time
    estimated_duration_hours: int
    loading_dock: LoadingDock
    service_elevator: bool
    visitor_parking_bay: str | None
    moving_trolleys: int
    access_cards_needed: int
    vehicle_details: str | None
    special_requirements: str | None
    oversized_items: bool
    oversized_item_details: str | None

    moving_company_type: MovingCompanyType
    moving_company_name: str | None
    moving_company_phone: str | None
    moving_company_insurance: bool | None

    deposit_refund_account: str | None
    terms_accepted: bool
    terms_accepted_at: datetime | None

    deposit_payment_method: DepositPaymentMethod | None
    deposit_amount: Decimal | None
    deposit_bank_details: str | None
    deposit_cash_appointment_date: date | None
    deposit_paid: bool
    deposit_paid_date: date | None
    deposit_proof_ref: str | None
    deposit_verified_by: str | None
    deposit_verified_date: date | None
    cash_receipt_number: str | None

    insurance_selected: bool | None
    insurance_selection_date: date | None

    approved_by: str | None
    approved_date: date | None
    rejection_reason: str | None
    submitted_date: date
    completed_date: date | None


class ResidentStatsOut(BaseModel):
    active_move_requests: int
    pending_approvals: int
    awaiting_resident_action: int
