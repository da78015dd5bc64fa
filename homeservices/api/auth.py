# This file turns the identity forwarded by the authenticating gateway into a typed principal.
# Token issuance and verification happen upstream; the gateway sets `X-User-Id` and `X-User-Role`.
# Service operations receive the principal and assert role and ownership themselves.

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Final

from fastapi import Depends, Header

from homeservices.api.error_handlers import ForbiddenError, UnauthenticatedError

ROLE_USER: Final[str] = "USER"
ROLE_PROVIDER: Final[str] = "PROVIDER"
ROLE_ADMIN: Final[str] = "ADMIN"
ROLE_MANAGER: Final[str] = "MANAGER"
ROLES: Final[frozenset[str]] = frozenset({ROLE_USER, ROLE_PROVIDER, ROLE_ADMIN, ROLE_MANAGER})


@dataclass(frozen=True)
class Principal:
    id: str
    role: str


def require_role(principal: Principal, *allowed: str) -> None:
    """Raise ForbiddenError unless the principal holds one of the allowed roles."""

    if principal.role not in allowed:
        raise ForbiddenError(
            f"Role {principal.role} may not perform this operation.",
            details={"allowed_roles": sorted(allowed)},
        )


def get_principal(
    x_user_id: Annotated[str | None, Header()] = None,
    x_user_role: Annotated[str | None, Header()] = None,
) -> Principal:
    if not x_user_id or not x_user_id.strip():
        raise UnauthenticatedError("Missing authenticated user.")
    role = (x_user_role or "").strip().upper()
    if role not in ROLES:
        raise UnauthenticatedError(f"Unknown role: {x_user_role!r}")
    return Principal(id=x_user_id.strip(), role=role)


PrincipalDep = Annotated[Principal, Depends(get_principal)]
