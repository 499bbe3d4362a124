from __future__ import annotations

import logging
import re
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from move_portal.auth import Principal, Role
from move_portal.config import settings
from move_portal.exceptions import NotFound, PreconditionFailed, RoleNotPermitted, ValidationFailed
from move_portal.models import (
    CommentAuthor,
    EntityKind,
    MoveRequest,
    MoveStatus,
    MoveType,
    MovingCompanyType,
    TERMINAL_STATUSES,
)
from move_portal.schemas import EDITABLE_DETAIL_FIELDS, MoveRequestCreate, MoveRequestUpdate
from move_portal.services.comment_service import append_comment

logger = logging.getLogger(__name__)

MOVE_ID_PREFIX = 'MOVE-'
_MOVE_ID_RE = re.compile(r'^MOVE-(\d+)$')

_AWAITING_RESIDENT = {MoveStatus.DEPOSIT_PENDING, MoveStatus.DEPOSIT_VERIFIED}
_REQUIRED_DETAIL_FIELDS = {
    'move_date',
    'start_time',
    'end_time',
    'estimated_duration_hours',
    'loading_dock',
    'service_elevator',
    'moving_trolleys',
    'access_cards_needed',
    'oversized_items',
    'moving_company_type',
}


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _next_move_id(db: Session) -> str:
    highest = 0
    for (move_id,) in db.execute(select(MoveRequest.id)).all():
        match = _MOVE_ID_RE.match(move_id)
        if match:
            highest = max(highest, int(match.group(1)))
    return f'{MOVE_ID_PREFIX}{highest + 1:03d}'


def validate_move_details(fields: dict, *, now: datetime | None = None) -> None:
    """Intake rules shared by submission and Pending-stage edits."""
    now = now or _now()

    move_date = fields.get('move_date')
    if not move_date:
        raise ValidationFailed('Please select a move date')
    earliest = (now + timedelta(hours=settings.min_advance_hours)).date()
    if move_date < earliest:
        raise ValidationFailed(f'Move date must be at least {settings.min_advance_hours} hours in advance')

    start_time = fields.get('start_time')
    end_time = fields.get('end_time')
    if not start_time or not end_time:
        raise ValidationFailed('Please select start and end times')
    if end_time <= start_time:
        raise ValidationFailed('End time must be after start time')
    if (fields.get('estimated_duration_hours') or 0) <= 0:
        raise ValidationFailed('Estimated duration must be at least one hour')

    if not fields.get('loading_dock'):
        raise ValidationFailed('Please select a loading dock')

    trolleys = fields.get('moving_trolleys') or 0
    if trolleys < 0 or trolleys > settings.max_trolleys:
        raise ValidationFailed(f'Moving trolleys must be between 0 and {settings.max_trolleys}')
    access_cards = fields.get('access_cards_needed') or 0
    if access_cards < 0 or access_cards > settings.max_access_cards:
        raise ValidationFailed(f'Access cards must be between 0 and {settings.max_access_cards}')

    if fields.get('moving_company_type') == MovingCompanyType.PROFESSIONAL:
        if not _clean(fields.get('moving_company_name')):
            raise ValidationFailed('Please enter moving company name')
        if fields.get('moving_company_insurance') is None:
            raise ValidationFailed('Please state whether the moving company is insured')

    if fields.get('move_type') == MoveType.MOVE_OUT and not _clean(fields.get('deposit_refund_account')):
        raise ValidationFailed('Please enter bank details for deposit refund')

    if fields.get('oversized_items') and not _clean(fields.get('oversized_item_details')):
        raise ValidationFailed('Please describe the oversized items')


def create_move_request(db: Session, *, actor: Principal, details: MoveRequestCreate) -> MoveRequest:
    if actor.role != Role.RESIDENT:
        raise RoleNotPermitted('Only residents can submit move requests')
    if not actor.unit:
        raise ValidationFailed('Resident unit is required')
    if not details.terms_accepted:
        raise ValidationFailed('Please accept the terms and conditions to proceed')

    fields = details.model_dump()
    validate_move_details(fields)
    if fields['moving_company_type'] != MovingCompanyType.PROFESSIONAL:
        fields['moving_company_name'] = None
        fields['moving_company_phone'] = None
        fields['moving_company_insurance'] = None

    now = _now()
    move = MoveRequest(
        id=_next_move_id(db),
        status=MoveStatus.PENDING,
        resident_name=actor.name,
        resident_unit=actor.unit,
        resident_email=actor.email,
        resident_phone=actor.phone,
        move_type=fields['move_type'],
        move_date=fields['move_date'],
        start_time=fields['start_time'],
        end_time=fields['end_time'],
        estimated_duration_hours=fields['estimated_duration_hours'],
        loading_dock=fields['loading_dock'],
        service_elevator=fields['service_elevator'],
        visitor_parking_bay=_clean(fields['visitor_parking_bay']),
        moving_trolleys=fields['moving_trolleys'],
        access_cards_needed=fields['access_cards_needed'],
        vehicle_details=_clean(fields['vehicle_details']),
        special_requirements=_clean(fields['special_requirements']),
        oversized_items=fields['oversized_items'],
        oversized_item_details=_clean(fields['oversized_item_details']),
        moving_company_type=fields['moving_company_type'],
        moving_company_name=_clean(fields['moving_company_name']),
        moving_company_phone=_clean(fields['moving_company_phone']),
        moving_company_insurance=fields['moving_company_insurance'],
        deposit_refund_account=_clean(fields['deposit_refund_account']),
        deposit_payment_method=fields['deposit_payment_method'],
        deposit_paid=False,
        terms_accepted=True,
        terms_accepted_at=now,
        submitted_date=now.date(),
        created_at=now,
        updated_at=now,
    )
    db.add(move)
    db.flush()

    append_comment(
        db,
        entity_id=move.id,
        entity_kind=EntityKind.MOVE,
        author=CommentAuthor.SYSTEM,
        author_name=settings.system_display_name,
        message=f'Move request created for {move.move_date.isoformat()}',
        status_from='',
        status_to=MoveStatus.PENDING.value,
        is_read=True,
    )
    logger.info('Move request %s submitted by %s (%s)', move.id, actor.name, actor.unit)
    return move


def get_move_request(db: Session, *, move_id: str, for_update: bool = False) -> MoveRequest:
    query = select(MoveRequest).where(MoveRequest.id == move_id)
    if for_update:
        query = query.with_for_update()
    move = db.execute(query).scalar_one_or_none()
    if not move:
        raise NotFound(f'Move request {move_id} not found')
    return move


def list_move_requests(
    db: Session,
    *,
    status: MoveStatus | None = None,
    resident_unit: str | None = None,
) -> list[MoveRequest]:
    query = select(MoveRequest).order_by(MoveRequest.submitted_date.desc(), MoveRequest.id.desc())
    if status:
        query = query.where(MoveRequest.status == status)
    if resident_unit is not None:
        query = query.where(MoveRequest.resident_unit == resident_unit)
    return db.execute(query).scalars().all()


def ensure_visible_to(move: MoveRequest, actor: Principal) -> None:
    # A resident without a unit matches no request.
    if actor.role == Role.RESIDENT and (not actor.unit or move.resident_unit != actor.unit):
        raise NotFound(f'Move request {move.id} not found')


def get_move_request_for_resident(db: Session, *, move_id: str, actor: Principal) -> MoveRequest:
    move = get_move_request(db, move_id=move_id)
    ensure_visible_to(move, actor)
    return move


def update_move_details(
    db: Session,
    *,
    move_id: str,
    actor: Principal,
    changes: MoveRequestUpdate,
) -> MoveRequest:
    if actor.role != Role.RESIDENT:
        raise RoleNotPermitted('Only the resident can edit move details')
    move = get_move_request(db, move_id=move_id, for_update=True)
    ensure_visible_to(move, actor)
    if move.status != MoveStatus.PENDING:
        raise PreconditionFailed(f'Move request {move_id} can only be edited while Pending (status is {move.status.value})')

    updates = {key: value for key, value in changes.model_dump(exclude_unset=True).items() if key in EDITABLE_DETAIL_FIELDS}
    if not updates:
        return move
    cleared = sorted(key for key, value in updates.items() if value is None and key in _REQUIRED_DETAIL_FIELDS)
    if cleared:
        raise ValidationFailed(f"Cannot clear required fields: {', '.join(cleared)}")

    merged = {field: getattr(move, field) for field in EDITABLE_DETAIL_FIELDS}
    merged['move_type'] = move.move_type
    merged.update(updates)
    validate_move_details(merged)

    for field, value in updates.items():
        setattr(move, field, _clean(value) if type(value) is str else value)
    if move.moving_company_type != MovingCompanyType.PROFESSIONAL:
        move.moving_company_name = None
        move.moving_company_phone = None
        move.moving_company_insurance = None
    move.updated_at = _now()
    db.flush()
    logger.info('Move request %s details updated: %s', move.id, ', '.join(sorted(updates)))
    return move


def resident_stats(db: Session, *, resident_unit: str) -> dict:
    statuses = db.execute(select(MoveRequest.status).where(MoveRequest.resident_unit == resident_unit)).scalars().all()
    return {
        'active_move_requests': sum(1 for status in statuses if status not in TERMINAL_STATUSES),
        'pending_approvals': sum(1 for status in statuses if status == MoveStatus.PENDING),
        'awaiting_resident_action': sum(1 for status in statuses if status in _AWAITING_RESIDENT),
    }
