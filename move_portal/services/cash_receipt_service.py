from __future__ import annotations

import secrets
from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session

from move_portal.exceptions import NotFound, PreconditionFailed, ValidationFailed
from move_portal.models import CashReceipt, MoveRequest

RECEIPT_PREFIX = 'CR'
MAX_NUMBER_ATTEMPTS = 20


def generate_receipt_number(receipt_date: date) -> str:
    suffix = secrets.randbelow(900) + 100
    return f"{RECEIPT_PREFIX}-{receipt_date.strftime('%Y%m%d')}-{suffix}"


def _allocate_receipt_number(db: Session, receipt_date: date) -> str:
    for _ in range(MAX_NUMBER_ATTEMPTS):
        candidate = generate_receipt_number(receipt_date)
        taken = db.execute(
            select(CashReceipt.id).where(CashReceipt.receipt_number == candidate)
        ).scalar_one_or_none()
        if not taken:
            return candidate
    raise PreconditionFailed(f'No free receipt number left for {receipt_date.isoformat()}')


def create_cash_receipt(
    db: Session,
    *,
    move_request: MoveRequest,
    received_by: str,
    created_by: str,
    notes: str | None = None,
    receipt_date: date | None = None,
) -> CashReceipt:
    clean_received_by = (received_by or '').strip()
    if not clean_received_by:
        raise ValidationFailed('Enter who received the payment')
    if not move_request.deposit_amount or move_request.deposit_amount <= 0:
        raise PreconditionFailed(f'Move request {move_request.id} has no deposit amount to receipt')

    existing = db.execute(
        select(CashReceipt.receipt_number).where(CashReceipt.move_request_id == move_request.id)
    ).scalar_one_or_none()
    if existing:
        raise PreconditionFailed(f'Move request {move_request.id} already has cash receipt {existing}')

    receipt_date = receipt_date or date.today()
    receipt = CashReceipt(
        receipt_number=_allocate_receipt_number(db, receipt_date),
        move_request_id=move_request.id,
        receipt_date=receipt_date,
        amount=move_request.deposit_amount,
        payment_method='Cash',
        received_by=clean_received_by,
        notes=notes.strip() if notes and notes.strip() else None,
        resident_name=move_request.resident_name,
        resident_unit=move_request.resident_unit,
        created_by=created_by,
    )
    db.add(receipt)
    db.flush()
    return receipt


def get_receipt_for_move(db: Session, *, move_id: str) -> CashReceipt:
    receipt = db.execute(select(CashReceipt).where(CashReceipt.move_request_id == move_id)).scalar_one_or_none()
    if not receipt:
        raise NotFound(f'No cash receipt recorded for move request {move_id}')
    return receipt


def get_receipt(db: Session, *, receipt_number: str) -> CashReceipt:
    receipt = db.execute(
        select(CashReceipt).where(CashReceipt.receipt_number == receipt_number.strip())
    ).scalar_one_or_none()
    if not receipt:
        raise NotFound(f'Cash receipt {receipt_number} not found')
    return receipt
