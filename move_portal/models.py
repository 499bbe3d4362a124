from __future__ import annotations

from datetime import date, datetime, time, timezone
from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Time,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _enum_column(enum_cls: type[Enum], name: str) -> SQLEnum:
    # Persist the enum values ('DepositPending'), which is also what the API exposes.
    return SQLEnum(enum_cls, name=name, values_callable=lambda members: [member.value for member in members])


class MoveType(str, Enum):
    MOVE_IN = 'MoveIn'
    MOVE_OUT = 'MoveOut'


class MoveStatus(str, Enum):
    PENDING = 'Pending'
    DEPOSIT_PENDING = 'DepositPending'
    PAYMENT_CLAIMED = 'PaymentClaimed'
    DEPOSIT_VERIFIED = 'DepositVerified'
    FULLY_APPROVED = 'FullyApproved'
    IN_PROGRESS = 'InProgress'
    COMPLETED = 'Completed'
    REJECTED = 'Rejected'
    CANCELLED = 'Cancelled'


TERMINAL_STATUSES = frozenset({MoveStatus.COMPLETED, MoveStatus.REJECTED, MoveStatus.CANCELLED})
NON_CANCELLABLE_STATUSES = TERMINAL_STATUSES | {MoveStatus.IN_PROGRESS}
DEPOSIT_STAGE_STATUSES = frozenset(
    {
        MoveStatus.DEPOSIT_PENDING,
        MoveStatus.PAYMENT_CLAIMED,
        MoveStatus.DEPOSIT_VERIFIED,
        MoveStatus.FULLY_APPROVED,
        MoveStatus.IN_PROGRESS,
    }
)
_DEPOSIT_STAGE_SQL = ', '.join(f"'{status.value}'" for status in MoveStatus if status in DEPOSIT_STAGE_STATUSES)


class LoadingDock(str, Enum):
    DOCK_1 = 'Dock1'
    DOCK_2 = 'Dock2'


class MovingCompanyType(str, Enum):
    PROFESSIONAL = 'Professional'
    SELF_MOVE = 'SelfMove'
    FAMILY_FRIENDS = 'FamilyFriends'


class DepositPaymentMethod(str, Enum):
    BANK = 'bank'
    CASH = 'cash'


class CommentAuthor(str, Enum):
    RESIDENT = 'resident'
    FM = 'fm'
    SYSTEM = 'system'


class EntityKind(str, Enum):
    MOVE = 'move'
    MAINTENANCE = 'maintenance'
    BOOKING = 'booking'


class MoveRequest(Base):
    __tablename__ = 'move_requests'
    __table_args__ = (
        CheckConstraint('deposit_amount IS NULL OR deposit_amount > 0', name='move_requests_deposit_amount_positive'),
        CheckConstraint(
            f'status NOT IN ({_DEPOSIT_STAGE_SQL}) OR deposit_amount IS NOT NULL',
            name='move_requests_deposit_amount_after_approval',
        ),
        CheckConstraint('moving_trolleys >= 0', name='move_requests_trolleys_non_negative'),
        CheckConstraint('access_cards_needed >= 0', name='move_requests_access_cards_non_negative'),
        Index('ix_move_requests_status', 'status'),
        Index('ix_move_requests_resident_unit', 'resident_unit'),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    move_type: Mapped[MoveType] = mapped_column(_enum_column(MoveType, 'move_type'), nullable=False)
    status: Mapped[MoveStatus] = mapped_column(
        _enum_column(MoveStatus, 'move_status'), nullable=False, default=MoveStatus.PENDING
    )

    resident_name: Mapped[str] = mapped_column(Text, nullable=False)
    resident_unit: Mapped[str] = mapped_column(Text, nullable=False)
    resident_email: Mapped[str] = mapped_column(Text, nullable=False, default='')
    resident_phone: Mapped[str] = mapped_column(Text, nullable=False, default='')

    move_date: Mapped[date] = mapped_column(Date, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    estimated_duration_hours: Mapped[int] = mapped_column(Integer, nullable=False)

    loading_dock: Mapped[LoadingDock] = mapped_column(_enum_column(LoadingDock, 'loading_dock'), nullable=False)
    service_elevator: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    visitor_parking_bay: Mapped[str | None] = mapped_column(Text)
    moving_trolleys: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    access_cards_needed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    vehicle_details: Mapped[str | None] = mapped_column(Text)
    special_requirements: Mapped[str | None] = mapped_column(Text)
    oversized_items: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    oversized_item_details: Mapped[str | None] = mapped_column(Text)

    moving_company_type: Mapped[MovingCompanyType] = mapped_column(
        _enum_column(MovingCompanyType, 'moving_company_type'), nullable=False
    )
    moving_company_name: Mapped[str | None] = mapped_column(Text)
    moving_company_phone: Mapped[str | None] = mapped_column(Text)
    moving_company_insurance: Mapped[bool | None] = mapped_column(Boolean)

    deposit_refund_account: Mapped[str | None] = mapped_column(Text)
    terms_accepted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    terms_accepted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    deposit_payment_method: Mapped[DepositPaymentMethod | None] = mapped_column(
        _enum_column(DepositPaymentMethod, 'deposit_payment_method')
    )
    deposit_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    deposit_bank_details: Mapped[str | None] = mapped_column(Text)
    deposit_cash_appointment_date: Mapped[date | None] = mapped_column(Date)
    deposit_paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    deposit_paid_date: Mapped[date | None] = mapped_column(Date)
    deposit_proof_ref: Mapped[str | None] = mapped_column(Text)
    deposit_verified_by: Mapped[str | None] = mapped_column(Text)
    deposit_verified_date: Mapped[date | None] = mapped_column(Date)
    cash_receipt_number: Mapped[str | None] = mapped_column(String(32))

    insurance_selected: Mapped[bool | None] = mapped_column(Boolean)
    insurance_selection_date: Mapped[date | None] = mapped_column(Date)

    approved_by: Mapped[str | None] = mapped_column(Text)
    approved_date: Mapped[date | None] = mapped_column(Date)
    rejection_reason: Mapped[str | None] = mapped_column(Text)
    submitted_date: Mapped[date] = mapped_column(Date, nullable=False)
    completed_date: Mapped[date | None] = mapped_column(Date)

    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now, server_default=func.now()
    )

    __mapper_args__ = {'version_id_col': version}


class Comment(Base):
    __tablename__ = 'comments'
    __table_args__ = (Index('ix_comments_entity', 'entity_kind', 'entity_id'),)

    id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, 'sqlite'), primary_key=True, autoincrement=True)
    entity_id: Mapped[str] = mapped_column(String(32), nullable=False)
    entity_kind: Mapped[EntityKind] = mapped_column(_enum_column(EntityKind, 'entity_kind'), nullable=False)
    author: Mapped[CommentAuthor] = mapped_column(_enum_column(CommentAuthor, 'comment_author'), nullable=False)
    author_name: Mapped[str] = mapped_column(Text, nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    status_from: Mapped[str | None] = mapped_column(String(32))
    status_to: Mapped[str | None] = mapped_column(String(32))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now, server_default=func.now()
    )

    @property
    def status_change(self) -> dict | None:
        if self.status_to is None:
            return None
        return {'from': self.status_from or '', 'to': self.status_to}


class CashReceipt(Base):
    __tablename__ = 'cash_receipts'
    __table_args__ = (
        UniqueConstraint('receipt_number', name='cash_receipts_receipt_number_key'),
        UniqueConstraint('move_request_id', name='cash_receipts_move_request_id_key'),
        CheckConstraint('amount > 0', name='cash_receipts_amount_positive'),
    )

    id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, 'sqlite'), primary_key=True, autoincrement=True)
    receipt_number: Mapped[str] = mapped_column(String(32), nullable=False)
    move_request_id: Mapped[str] = mapped_column(String(32), ForeignKey('move_requests.id'), nullable=False)
    receipt_date: Mapped[date] = mapped_column(Date, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    payment_method: Mapped[str] = mapped_column(String(16), nullable=False, default='Cash')
    received_by: Mapped[str] = mapped_column(Text, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)
    resident_name: Mapped[str] = mapped_column(Text, nullable=False)
    resident_unit: Mapped[str] = mapped_column(Text, nullable=False)
    created_by: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now, server_default=func.now()
    )
