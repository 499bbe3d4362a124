from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from move_portal.auth import Principal, Role, require_role
from move_portal.db import get_db
from move_portal.models import EntityKind
from move_portal.schemas import (
    CommentCreate,
    CommentOut,
    InsuranceSelection,
    MoveRequestCreate,
    MoveRequestOut,
    MoveRequestUpdate,
    PaymentClaim,
    ResidentStatsOut,
)
from move_portal.services import move_workflow_service as workflow
from move_portal.services.comment_service import add_comment, list_comments, mark_read, unread_count
from move_portal.services.move_request_service import (
    create_move_request,
    get_move_request_for_resident,
    list_move_requests,
    resident_stats,
    update_move_details,
)

router = APIRouter(prefix='/resident', tags=['resident'])
resident_access = require_role(Role.RESIDENT)


@router.get('/stats', response_model=ResidentStatsOut)
def stats(
    principal: Principal = Depends(resident_access),
    db: Session = Depends(get_db),
):
    return resident_stats(db, resident_unit=principal.unit or '')


@router.post('/move-requests', response_model=MoveRequestOut, status_code=status.HTTP_201_CREATED)
def submit_move_request(
    payload: MoveRequestCreate,
    principal: Principal = Depends(resident_access),
    db: Session = Depends(get_db),
):
    move = create_move_request(db, actor=principal, details=payload)
    db.commit()
    return move


@router.get('/move-requests', response_model=list[MoveRequestOut])
def my_move_requests(
    principal: Principal = Depends(resident_access),
    db: Session = Depends(get_db),
):
    return list_move_requests(db, resident_unit=principal.unit or '')


@router.get('/move-requests/{move_id}', response_model=MoveRequestOut)
def move_request_detail(
    move_id: str,
    principal: Principal = Depends(resident_access),
    db: Session = Depends(get_db),
):
    return get_move_request_for_resident(db, move_id=move_id, actor=principal)


@router.patch('/move-requests/{move_id}', response_model=MoveRequestOut)
def edit_move_request(
    move_id: str,
    payload: MoveRequestUpdate,
    principal: Principal = Depends(resident_access),
    db: Session = Depends(get_db),
):
    get_move_request_for_resident(db, move_id=move_id, actor=principal)
    move = update_move_details(db, move_id=move_id, actor=principal, changes=payload)
    db.commit()
    return move


@router.post('/move-requests/{move_id}/claim-payment', response_model=MoveRequestOut)
def claim_payment(
    move_id: str,
    payload: PaymentClaim,
    principal: Principal = Depends(resident_access),
    db: Session = Depends(get_db),
):
    move = workflow.claim_payment(
        db,
        move_id=move_id,
        actor=principal,
        paid_date=payload.paid_date,
        proof_ref=payload.proof_ref,
    )
    db.commit()
    return move


@router.post('/move-requests/{move_id}/insurance', response_model=MoveRequestOut)
def select_insurance(
    move_id: str,
    payload: InsuranceSelection,
    principal: Principal = Depends(resident_access),
    db: Session = Depends(get_db),
):
    move = workflow.select_insurance(db, move_id=move_id, actor=principal, has_insurance=payload.has_insurance)
    db.commit()
    return move


@router.post('/move-requests/{move_id}/cancel', response_model=MoveRequestOut)
def cancel_move_request(
    move_id: str,
    principal: Principal = Depends(resident_access),
    db: Session = Depends(get_db),
):
    move = workflow.cancel(db, move_id=move_id, actor=principal)
    db.commit()
    return move


@router.get('/move-requests/{move_id}/comments', response_model=list[CommentOut])
def move_request_comments(
    move_id: str,
    principal: Principal = Depends(resident_access),
    db: Session = Depends(get_db),
):
    get_move_request_for_resident(db, move_id=move_id, actor=principal)
    return list_comments(db, entity_id=move_id, entity_kind=EntityKind.MOVE)


@router.post('/move-requests/{move_id}/comments', response_model=CommentOut, status_code=status.HTTP_201_CREATED)
def post_comment(
    move_id: str,
    payload: CommentCreate,
    principal: Principal = Depends(resident_access),
    db: Session = Depends(get_db),
):
    get_move_request_for_resident(db, move_id=move_id, actor=principal)
    comment = add_comment(db, move_id=move_id, message=payload.message, actor=principal)
    db.commit()
    return comment


@router.post('/move-requests/{move_id}/comments/read')
def mark_comments_read(
    move_id: str,
    principal: Principal = Depends(resident_access),
    db: Session = Depends(get_db),
):
    get_move_request_for_resident(db, move_id=move_id, actor=principal)
    updated = mark_read(db, entity_id=move_id, entity_kind=EntityKind.MOVE, reader=principal.author)
    db.commit()
    return {'marked_read': updated}


@router.get('/move-requests/{move_id}/comments/unread')
def unread_comments(
    move_id: str,
    principal: Principal = Depends(resident_access),
    db: Session = Depends(get_db),
):
    get_move_request_for_resident(db, move_id=move_id, actor=principal)
    return {'unread': unread_count(db, entity_id=move_id, entity_kind=EntityKind.MOVE, for_role=principal.author)}
