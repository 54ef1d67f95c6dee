"""
Authenticated identity and capability checks

The auth collaborator supplies ``{user_id, role}``; every core operation
calls ``require_role`` (and, where relevant, ``require_owner``) once at its
entry instead of re-deriving permissions per handler.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel

from core.errors import AuthorizationError


class Role(str, Enum):
    BUYER = "buyer"
    SELLER = "seller"
    ADMIN = "admin"


class Identity(BaseModel):
    """Caller identity supplied by the auth service"""
    user_id: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


def require_role(identity: Optional[Identity], *roles: Role) -> Identity:
    """Reject callers whose role is not in ``roles``. Admin always passes."""
    if identity is None:
        raise AuthorizationError("Authentication required")
    if identity.is_admin or identity.role in roles:
        return identity
    allowed = ", ".join(r.value for r in roles)
    raise AuthorizationError(
        f"Operation requires role: {allowed}",
        {"role": identity.role.value},
    )


def require_owner(identity: Identity, owner_id: str, resource: str = "resource") -> Identity:
    """Reject callers who neither own the resource nor are admins"""
    if identity.is_admin or identity.user_id == owner_id:
        return identity
    raise AuthorizationError(f"Not authorized to access this {resource}")


__all__ = ["Role", "Identity", "require_role", "require_owner"]
