from dataclasses import dataclass
from enum import Enum

from fastapi import Depends, HTTPException, Request, status

from move_portal.models import CommentAuthor


class Role(str, Enum):
    RESIDENT = 'resident'
    FM = 'fm'


@dataclass(frozen=True)
class Principal:
    name: str
    role: Role
    unit: str | None = None
    email: str = ''
    phone: str = ''

    @property
    def author(self) -> CommentAuthor:
        return CommentAuthor(self.role.value)


def get_current_principal(request: Request) -> Principal:
    principal = getattr(request.state, 'principal', None)
    if not principal:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
    return principal


def require_role(*allowed: Role):
    def _dep(principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.role not in allowed:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN)
        return principal

    return _dep
