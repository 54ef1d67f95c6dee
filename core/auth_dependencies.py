"""
FastAPI Authentication Dependencies

The gateway authenticates the caller and forwards the identity as headers.
These dependencies turn the headers into an ``Identity`` the core trusts.
"""

from fastapi import Header, HTTPException, status
from typing import Optional
import logging

from core.identity import Identity, Role

logger = logging.getLogger(__name__)


async def require_identity(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
    x_user_role: Optional[str] = Header(None, alias="X-User-Role"),
) -> Identity:
    """
    Authentication dependency: resolve the forwarded caller identity

    Returns:
        Identity with user_id and role

    Raises:
        HTTPException 401: missing user id or unknown role

    Example:
        @app.post("/api/v1/orders")
        async def create_order(identity: Identity = Depends(require_identity)):
            ...
    """
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User authentication required"
        )

    try:
        role = Role((x_user_role or Role.BUYER.value).lower())
    except ValueError:
        logger.warning(f"Rejected unknown role '{x_user_role}' for user {x_user_id}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unknown user role"
        )

    return Identity(user_id=x_user_id, role=role)


__all__ = [
    "require_identity",
]
