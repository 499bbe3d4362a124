from __future__ import annotations

from datetime import date, timedelta

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from move_portal.auth import Principal, Role
from move_portal.models import Base, LoadingDock, MoveType, MovingCompanyType
from move_portal.schemas import MoveRequestCreate

RESIDENT = Principal(
    name='Willow Legg',
    role=Role.RESIDENT,
    unit='Unit 111',
    email='willow.legg@example.com',
    phone='(555) 987-6543',
)
NEIGHBOUR = Principal(name='Rowan Ash', role=Role.RESIDENT, unit='Unit 204')
MANAGER = Principal(name='Sarah Johnson', role=Role.FM)


def make_sessionmaker() -> sessionmaker:
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def make_session() -> Session:
    return make_sessionmaker()()


def move_details(**overrides) -> MoveRequestCreate:
    values = {
        'move_type': MoveType.MOVE_IN,
        'move_date': date.today() + timedelta(days=10),
        'loading_dock': LoadingDock.DOCK_1,
        'moving_company_type': MovingCompanyType.PROFESSIONAL,
        'moving_company_name': 'Swift Movers Ltd',
        'moving_company_phone': '(555) 123-4567',
        'moving_company_insurance': True,
        'terms_accepted': True,
    }
    values.update(overrides)
    return MoveRequestCreate(**values)
