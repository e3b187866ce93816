"""
Value types returned by the auth flows.

Flows never raise: they hand back an :class:`AuthResult` whose ``error`` is
one of the :mod:`portal.exceptions` classes, or ``None`` on success.
"""
from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Optional, TYPE_CHECKING

from portal.exceptions import PortalError

if TYPE_CHECKING:
    from portal.services.identity import Session


@dataclass(frozen=True)
class AuthUser:
    id: int
    email: str
    role: str
    username: str

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass
class AuthResult:
    user: Optional[AuthUser] = None
    error: Optional[PortalError] = None
    session: Optional['Session'] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def as_dict(self) -> dict:
        return {
            'user': self.user.as_dict() if self.user else None,
            'error': self.error.as_dict() if self.error else None,
        }

    @classmethod
    def failure(cls, error: PortalError) -> 'AuthResult':
        return cls(user=None, error=error)
