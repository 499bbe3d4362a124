from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from move_portal.auth import Principal, Role, require_role
from move_portal.db import get_db
from move_portal.models import EntityKind, MoveStatus
from move_portal.schemas import (
    CashReceiptCreate,
    CashReceiptOut,
    CommentCreate,
    CommentOut,
    DepositApproval,
    MoveRequestOut,
    Rejection,
)
from move_portal.services import move_workflow_service as workflow
from move_portal.services.cash_receipt_service import get_receipt, get_receipt_for_move
from move_portal.services.comment_service import add_comment, list_comments, mark_read, unread_count
from move_portal.services.move_request_service import get_move_request, list_move_requests

router = APIRouter(prefix='/facilities', tags=['facilities'])
fm_access = require_role(Role.FM)


@router.get('/move-requests', response_model=list[MoveRequestOut])
def move_requests(
    request: Request,
    _: Principal = Depends(fm_access),
    db: Session = Depends(get_db),
):
    status_raw = request.query_params.get('status', '').strip()
    try:
        selected_status = MoveStatus(status_raw) if status_raw else None
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f'Unknown status filter: {status_raw}') from exc
    return list_move_requests(db, status=selected_status)


@router.get('/move-requests/{move_id}', response_model=MoveRequestOut)
def move_request_detail(
    move_id: str,
    _: Principal = Depends(fm_access),
    db: Session = Depends(get_db),
):
    return get_move_request(db, move_id=move_id)


@router.post('/move-requests/{move_id}/approve', response_model=MoveRequestOut)
def approve_move_request(
    move_id: str,
    payload: DepositApproval,
    principal: Principal = Depends(fm_access),
    db: Session = Depends(get_db),
):
    move = workflow.approve_with_deposit(
        db,
        move_id=move_id,
        actor=principal,
        method=payload.method,
        amount=payload.amount,
        bank_details=payload.bank_details,
        cash_date=payload.cash_date,
    )
    db.commit()
    return move


@router.post('/move-requests/{move_id}/reject', response_model=MoveRequestOut)
def reject_move_request(
    move_id: str,
    payload: Rejection,
    principal: Principal = Depends(fm_access),
    db: Session = Depends(get_db),
):
    move = workflow.reject(db, move_id=move_id, actor=principal, reason=payload.reason)
    db.commit()
    return move


@router.post('/move-requests/{move_id}/verify-payment', response_model=MoveRequestOut)
def verify_payment(
    move_id: str,
    principal: Principal = Depends(fm_access),
    db: Session = Depends(get_db),
):
    move = workflow.verify_payment(db, move_id=move_id, actor=principal)
    db.commit()
    return move


@router.post(
    '/move-requests/{move_id}/cash-receipt',
    response_model=CashReceiptOut,
    status_code=status.HTTP_201_CREATED,
)
def record_cash_receipt(
    move_id: str,
    payload: CashReceiptCreate,
    principal: Principal = Depends(fm_access),
    db: Session = Depends(get_db),
):
    receipt = workflow.record_cash_receipt(
        db,
        move_id=move_id,
        actor=principal,
        received_by=payload.received_by,
        notes=payload.notes,
    )
    db.commit()
    return receipt


@router.get('/move-requests/{move_id}/cash-receipt', response_model=CashReceiptOut)
def cash_receipt_detail(
    move_id: str,
    _: Principal = Depends(fm_access),
    db: Session = Depends(get_db),
):
    get_move_request(db, move_id=move_id)
    return get_receipt_for_move(db, move_id=move_id)


@router.get('/cash-receipts/{receipt_number}', response_model=CashReceiptOut)
def cash_receipt_by_number(
    receipt_number: str,
    _: Principal = Depends(fm_access),
    db: Session = Depends(get_db),
):
    return get_receipt(db, receipt_number=receipt_number)


@router.post('/move-requests/{move_id}/cancel', response_model=MoveRequestOut)
def cancel_move_request(
    move_id: str,
    principal: Principal = Depends(fm_access),
    db: Session = Depends(get_db),
):
    move = workflow.cancel(db, move_id=move_id, actor=principal)
    db.commit()
    return move


@router.get('/move-requests/{move_id}/comments', response_model=list[CommentOut])
def move_request_comments(
    move_id: str,
    _: Principal = Depends(fm_access),
    db: Session = Depends(get_db),
):
    get_move_request(db, move_id=move_id)
    return list_comments(db, entity_id=move_id, entity_kind=EntityKind.MOVE)


@router.post('/move-requests/{move_id}/comments', response_model=CommentOut, status_code=status.HTTP_201_CREATED)
def post_comment(
    move_id: str,
    payload: CommentCreate,
    principal: Principal = Depends(fm_access),
    db: Session = Depends(get_db),
):
    comment = add_comment(db, move_id=move_id, message=payload.message, actor=principal)
    db.commit()
    return comment


@router.post('/move-requests/{move_id}/comments/read')
def mark_comments_read(
    move_id: str,
    principal: Principal = Depends(fm_access),
    db: Session = Depends(get_db),
):
    get_move_request(db, move_id=move_id)
    updated = mark_read(db, entity_id=move_id, entity_kind=EntityKind.MOVE, reader=principal.author)
    db.commit()
    return {'marked_read': updated}


@router.get('/move-requests/{move_id}/comments/unread')
def unread_comments(
    move_id: str,
    principal: Principal = Depends(fm_access),
    db: Session = Depends(get_db),
):
    get_move_request(db, move_id=move_id)
    return {'unread': unread_count(db, entity_id=move_id, entity_kind=EntityKind.MOVE, for_role=principal.author)}
