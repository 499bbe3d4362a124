from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy import select

from move_portal.auth import Principal, Role
from move_portal.config import settings
from move_portal.db import SessionLocal, init_db
from move_portal.models import DepositPaymentMethod, LoadingDock, MoveRequest, MoveType, MovingCompanyType
from move_portal.schemas import MoveRequestCreate
from move_portal.services import move_workflow_service as workflow
from move_portal.services.move_request_service import create_move_request

RESIDENT = Principal(
    name='Willow Legg',
    role=Role.RESIDENT,
    unit='Unit 111',
    email='willow.legg@example.com',
    phone='(555) 987-6543',
)
MANAGER = Principal(name='Sarah Johnson', role=Role.FM)


def _details(move_type: MoveType, days_ahead: int, **overrides) -> MoveRequestCreate:
    values = {
        'move_type': move_type,
        'move_date': date.today() + timedelta(days=days_ahead),
        'loading_dock': LoadingDock.DOCK_1,
        'moving_company_type': MovingCompanyType.PROFESSIONAL,
        'moving_company_name': 'Swift Movers Ltd',
        'moving_company_phone': '(555) 123-4567',
        'moving_company_insurance': True,
        'terms_accepted': True,
    }
    values.update(overrides)
    return MoveRequestCreate(**values)


def seed() -> None:
    init_db()
    with SessionLocal() as db:
        if db.execute(select(MoveRequest.id).limit(1)).first():
            return

        bank_move = create_move_request(db, actor=RESIDENT, details=_details(MoveType.MOVE_IN, 10))
        workflow.approve_with_deposit(
            db,
            move_id=bank_move.id,
            actor=MANAGER,
            method=DepositPaymentMethod.BANK,
            amount=settings.standard_deposit,
            bank_details='Bank: First Strata Bank, Acct: 123456789, Ref: ' + bank_move.id,
        )
        workflow.claim_payment(
            db,
            move_id=bank_move.id,
            actor=RESIDENT,
            paid_date=date.today(),
            proof_ref=f'/uploads/proof-{bank_move.id.lower()}.pdf',
        )
        workflow.verify_payment(db, move_id=bank_move.id, actor=MANAGER)
        workflow.select_insurance(db, move_id=bank_move.id, actor=RESIDENT, has_insurance=True)

        cash_move = create_move_request(
            db,
            actor=RESIDENT,
            details=_details(
                MoveType.MOVE_OUT,
                20,
                loading_dock=LoadingDock.DOCK_2,
                moving_company_name='Elite Moving Services',
                deposit_refund_account='Acct: 987654321',
                deposit_payment_method=DepositPaymentMethod.CASH,
            ),
        )
        workflow.approve_with_deposit(
            db,
            move_id=cash_move.id,
            actor=MANAGER,
            method=DepositPaymentMethod.CASH,
            amount=Decimal('750'),
            cash_date=date.today() + timedelta(days=3),
        )
        workflow.claim_payment(db, move_id=cash_move.id, actor=RESIDENT, paid_date=date.today())

        create_move_request(
            db,
            actor=RESIDENT,
            details=_details(
                MoveType.MOVE_IN,
                30,
                moving_company_type=MovingCompanyType.FAMILY_FRIENDS,
                moving_company_name=None,
                moving_company_phone=None,
                moving_company_insurance=None,
            ),
        )
        db.commit()


if __name__ == '__main__':
    seed()
    print('Seed data inserted/verified.')
