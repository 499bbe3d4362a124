from __future__ import annotations

from fastapi import FastAPI, Request

from move_portal.auth import Principal, Role
from move_portal.config import settings

ROLE_HEADER = 'x-portal-role'
USER_HEADER = 'x-portal-user'
UNIT_HEADER = 'x-portal-unit'
EMAIL_HEADER = 'x-portal-email'
PHONE_HEADER = 'x-portal-phone'


def load_principal_from_headers(headers) -> Principal | None:
    raw_role = (headers.get(ROLE_HEADER) or '').strip().lower()
    if not raw_role:
        return None
    try:
        role = Role(raw_role)
    except ValueError:
        return None

    name = (headers.get(USER_HEADER) or '').strip()
    if not name:
        name = settings.fm_display_name if role == Role.FM else 'Resident'
    unit = (headers.get(UNIT_HEADER) or '').strip() or None
    if role == Role.RESIDENT and not unit:
        return None
    return Principal(
        name=name,
        role=role,
        unit=unit,
        email=(headers.get(EMAIL_HEADER) or '').strip(),
        phone=(headers.get(PHONE_HEADER) or '').strip(),
    )


def install_principal_middleware(app: FastAPI) -> None:
    # The role context is trusted from the calling portal; there is no login here.
    @app.middleware('http')
    async def principal_middleware(request: Request, call_next):
        request.state.principal = load_principal_from_headers(request.headers)
        return await call_next(request)
