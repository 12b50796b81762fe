"""Shared FastAPI dependencies for API routes."""

from __future__ import annotations

from uuid import UUID

from fastapi import Cookie, Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from app.db.session import get_db  # re-export
from app.models.user import User
from app.models.workspace import DEFAULT_WORKSPACE_ID
from app.services.identity import user_for_token
from app.services.workspace_access import can_access_workspace

__all__ = [
    "get_db",
    "get_current_user",
    "require_auth",
    "require_workspace_access",
    "parse_uuid_or_422",
]


def parse_uuid_or_422(value: str | None, param_name: str) -> UUID | None:
    """Parse value as a UUID; raise HTTPException 422 if invalid.

    Empty/None values return None (caller handles omission).
    """
    if not value or not value.strip():
        return None
    try:
        return UUID(value.strip())
    except (ValueError, TypeError):
        raise HTTPException(
            status_code=422,
            detail=f"Invalid {param_name}: must be a valid UUID",
        ) from None


def get_current_user(
    db: Session = Depends(get_db),
    authorization: str | None = Header(None),
    access_token: str | None = Cookie(None),
) -> User | None:
    """Local user for the identity-provider token on the request, or None.

    The bearer header wins over the ``access_token`` cookie.
    """
    token: str | None = None

    if authorization and authorization.startswith("Bearer "):
        token = authorization[len("Bearer ") :]

    if token is None and access_token:
        token = access_token

    if token is None:
        return None

    return user_for_token(db, token)


def require_auth(
    user: User | None = Depends(get_current_user),
) -> User:
    """Dependency that requires authentication. Returns 401 otherwise."""
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return user


def require_workspace_access(
    db: Session,
    user: User,
    workspace_id: str | None,
) -> UUID:
    """Resolve workspace_id (default workspace when omitted) and check membership.

    Raises 422 for a malformed id and 403 when the user is not a member.
    """
    ws_uuid = parse_uuid_or_422(workspace_id, "workspace_id") or DEFAULT_WORKSPACE_ID
    if not can_access_workspace(db, user, ws_uuid):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="No access to workspace",
        )
    return ws_uuid
