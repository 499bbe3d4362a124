"""Guarded status transitions for move requests.

Each command loads the request for update, checks the acting role, the input
and the current status, and only then mutates the row and appends exactly one
comment describing the transition. A failed check raises before anything is
written, so the caller's unit of work can simply be rolled back.

    Pending -> DepositPending -> PaymentClaimed -> DepositVerified -> FullyApproved
    Pending -> Rejected
    any status before InProgress -> Cancelled
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation

from sqlalchemy.orm import Session

from move_portal.auth import Principal, Role
from move_portal.config import settings
from move_portal.exceptions import PreconditionFailed, RoleNotPermitted, ValidationFailed
from move_portal.models import (
    NON_CANCELLABLE_STATUSES,
    CashReceipt,
    CommentAuthor,
    DepositPaymentMethod,
    EntityKind,
    MoveRequest,
    MoveStatus,
)
from move_portal.services.cash_receipt_service import create_cash_receipt
from move_portal.services.comment_service import append_comment
from move_portal.services.move_request_service import ensure_visible_to, get_move_request

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _today() -> date:
    return _now().date()


def format_amount(amount: Decimal) -> str:
    return f'{settings.currency_symbol}{amount:,.2f}'


def _require_role(actor: Principal, *allowed: Role, action: str) -> None:
    if actor.role not in allowed:
        raise RoleNotPermitted(f'{actor.role.value} cannot {action}')


def _load(db: Session, move_id: str, actor: Principal) -> MoveRequest:
    move = get_move_request(db, move_id=move_id, for_update=True)
    ensure_visible_to(move, actor)
    return move


def _require_status(move: MoveRequest, expected: MoveStatus, *, action: str) -> None:
    if move.status != expected:
        raise PreconditionFailed(
            f'Cannot {action} move request {move.id}: status is {move.status.value}, expected {expected.value}'
        )


def _parse_amount(amount) -> Decimal:
    if amount is None or amount == '':
        raise ValidationFailed('Please enter a valid deposit amount')
    try:
        parsed = Decimal(str(amount))
    except InvalidOperation as exc:
        raise ValidationFailed('Please enter a valid deposit amount') from exc
    if not parsed.is_finite() or parsed <= 0:
        raise ValidationFailed('Please enter a valid deposit amount')
    return parsed.quantize(Decimal('0.01'))


def _apply_transition(
    db: Session,
    move: MoveRequest,
    *,
    to_status: MoveStatus,
    author: CommentAuthor,
    author_name: str,
    message: str,
) -> None:
    from_status = move.status
    move.status = to_status
    move.updated_at = _now()
    db.flush()
    append_comment(
        db,
        entity_id=move.id,
        entity_kind=EntityKind.MOVE,
        author=author,
        author_name=author_name,
        message=message,
        status_from=from_status.value,
        status_to=to_status.value,
    )
    logger.info('Move request %s: %s -> %s by %s', move.id, from_status.value, to_status.value, author_name)


def approve_with_deposit(
    db: Session,
    *,
    move_id: str,
    actor: Principal,
    method: DepositPaymentMethod,
    amount,
    bank_details: str | None = None,
    cash_date: date | None = None,
) -> MoveRequest:
    _require_role(actor, Role.FM, action='approve move requests')
    deposit_amount = _parse_amount(amount)
    method = DepositPaymentMethod(method)
    bank_details = (bank_details or '').strip() or None
    if method == DepositPaymentMethod.BANK and not bank_details:
        raise ValidationFailed('Please enter bank details')
    if method == DepositPaymentMethod.CASH and not cash_date:
        raise ValidationFailed('Please select a cash payment appointment date')

    move = _load(db, move_id, actor)
    _require_status(move, MoveStatus.PENDING, action='approve')
    if move.deposit_payment_method and move.deposit_payment_method != method:
        raise ValidationFailed(
            f'Resident chose to pay by {move.deposit_payment_method.value}; deposit instructions must match'
        )

    move.deposit_payment_method = method
    move.deposit_amount = deposit_amount
    if method == DepositPaymentMethod.BANK:
        move.deposit_bank_details = bank_details
        move.deposit_cash_appointment_date = None
        detail = f'by bank transfer. Bank details: {bank_details}'
    else:
        move.deposit_bank_details = None
        move.deposit_cash_appointment_date = cash_date
        detail = f'in cash at the management office on {cash_date.isoformat()}'
    move.approved_by = actor.name
    move.approved_date = _today()

    _apply_transition(
        db,
        move,
        to_status=MoveStatus.DEPOSIT_PENDING,
        author=CommentAuthor.SYSTEM,
        author_name=settings.system_display_name,
        message=f'Move request approved. Please pay the deposit of {format_amount(deposit_amount)} {detail}.',
    )
    return move


def reject(db: Session, *, move_id: str, actor: Principal, reason: str) -> MoveRequest:
    _require_role(actor, Role.FM, action='reject move requests')
    clean_reason = (reason or '').strip()
    if not clean_reason:
        raise ValidationFailed('Enter a rejection reason')

    move = _load(db, move_id, actor)
    _require_status(move, MoveStatus.PENDING, action='reject')

    move.rejection_reason = clean_reason
    move.completed_date = _today()
    _apply_transition(
        db,
        move,
        to_status=MoveStatus.REJECTED,
        author=CommentAuthor.FM,
        author_name=actor.name,
        message=f'Rejected: {clean_reason}',
    )
    return move


def claim_payment(
    db: Session,
    *,
    move_id: str,
    actor: Principal,
    paid_date: date,
    proof_ref: str | None = None,
) -> MoveRequest:
    _require_role(actor, Role.RESIDENT, action='claim deposit payments')
    if not paid_date:
        raise ValidationFailed('Enter the date the deposit was paid')
    if paid_date > _today():
        raise ValidationFailed('Payment date cannot be in the future')
    proof_ref = (proof_ref or '').strip() or None

    move = _load(db, move_id, actor)
    _require_status(move, MoveStatus.DEPOSIT_PENDING, action='claim payment for')
    if move.deposit_payment_method == DepositPaymentMethod.BANK and not proof_ref:
        raise ValidationFailed('Proof of payment is required for bank transfers')

    move.deposit_paid_date = paid_date
    move.deposit_proof_ref = proof_ref
    proof_note = 'Proof of payment attached.' if proof_ref else 'No proof of payment attached.'
    _apply_transition(
        db,
        move,
        to_status=MoveStatus.PAYMENT_CLAIMED,
        author=CommentAuthor.RESIDENT,
        author_name=actor.name,
        message=f'Deposit paid on {paid_date.isoformat()}. {proof_note}',
    )
    return move


def _mark_deposit_verified(move: MoveRequest, actor: Principal) -> None:
    move.deposit_paid = True
    move.deposit_verified_by = actor.name
    move.deposit_verified_date = _today()


def verify_payment(db: Session, *, move_id: str, actor: Principal) -> MoveRequest:
    _require_role(actor, Role.FM, action='verify deposit payments')
    move = _load(db, move_id, actor)
    _require_status(move, MoveStatus.PAYMENT_CLAIMED, action='verify payment for')
    if move.deposit_payment_method == DepositPaymentMethod.CASH:
        raise PreconditionFailed(f'Cash deposit for {move.id} must be verified by recording a cash receipt')

    _mark_deposit_verified(move, actor)
    _apply_transition(
        db,
        move,
        to_status=MoveStatus.DEPOSIT_VERIFIED,
        author=CommentAuthor.FM,
        author_name=actor.name,
        message='Deposit payment verified. Please select your moving insurance option to complete approval.',
    )
    return move


def record_cash_receipt(
    db: Session,
    *,
    move_id: str,
    actor: Principal,
    received_by: str,
    notes: str | None = None,
) -> CashReceipt:
    _require_role(actor, Role.FM, action='record cash receipts')
    if not (received_by or '').strip():
        raise ValidationFailed('Enter who received the payment')

    move = _load(db, move_id, actor)
    _require_status(move, MoveStatus.PAYMENT_CLAIMED, action='record a cash receipt for')
    if move.deposit_payment_method != DepositPaymentMethod.CASH:
        raise PreconditionFailed(f'Move request {move.id} is not paying its deposit in cash')

    receipt = create_cash_receipt(
        db,
        move_request=move,
        received_by=received_by,
        created_by=actor.name,
        notes=notes,
        receipt_date=_today(),
    )
    _mark_deposit_verified(move, actor)
    move.cash_receipt_number = receipt.receipt_number
    _apply_transition(
        db,
        move,
        to_status=MoveStatus.DEPOSIT_VERIFIED,
        author=CommentAuthor.FM,
        author_name=actor.name,
        message=(
            f'Cash receipt {receipt.receipt_number} issued for {format_amount(receipt.amount)}. '
            'Please select your moving insurance option to complete approval.'
        ),
    )
    return receipt


def select_insurance(db: Session, *, move_id: str, actor: Principal, has_insurance: bool) -> MoveRequest:
    _require_role(actor, Role.RESIDENT, action='select insurance')
    if not isinstance(has_insurance, bool):
        raise ValidationFailed('Choose yes or no for moving insurance')

    move = _load(db, move_id, actor)
    _require_status(move, MoveStatus.DEPOSIT_VERIFIED, action='select insurance for')

    move.insurance_selected = has_insurance
    move.insurance_selection_date = _today()
    choice = 'Yes, the move is covered by insurance' if has_insurance else 'No, the move is not insured'
    _apply_transition(
        db,
        move,
        to_status=MoveStatus.FULLY_APPROVED,
        author=CommentAuthor.RESIDENT,
        author_name=actor.name,
        message=f'Insurance selection: {choice}.',
    )
    return move


def cancel(db: Session, *, move_id: str, actor: Principal) -> MoveRequest:
    _require_role(actor, Role.RESIDENT, Role.FM, action='cancel move requests')
    move = _load(db, move_id, actor)
    if move.status in NON_CANCELLABLE_STATUSES:
        raise PreconditionFailed(f'Cannot cancel move request {move.id}: status is {move.status.value}')

    move.completed_date = _today()
    _apply_transition(
        db,
        move,
        to_status=MoveStatus.CANCELLED,
        author=actor.author,
        author_name=actor.name,
        message=f'Move request cancelled by {actor.name}',
    )
    return move
