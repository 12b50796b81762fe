"""Identity provider interface.

Users sign in with the external identity provider, which issues HS256 JWTs
signed with the shared ``SECRET_KEY``. The engine never authenticates anyone
itself: it verifies the token, reads the ``sub`` claim and maps it to a local
``User`` row so workspace membership can be checked.

``issue_token`` mints the same kind of token for operators (``create_user
--print-token``) and tests.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt
from sqlalchemy.orm import Session

from app.config import get_settings
from app.models.user import User

logger = logging.getLogger(__name__)

TOKEN_ALGORITHM = "HS256"
TOKEN_TTL = timedelta(hours=24)


@dataclass(frozen=True)
class IdentityClaims:
    """Verified claims of an identity-provider token."""

    subject: str
    expires_at: datetime | None = None


def verify_token(token: str) -> IdentityClaims | None:
    """Verify signature and expiry. Returns None for any token we cannot trust."""
    try:
        payload = jwt.decode(token, get_settings().secret_key, algorithms=[TOKEN_ALGORITHM])
    except JWTError as exc:
        logger.debug("Rejected identity token: %s", exc)
        return None

    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject:
        return None
    exp = payload.get("exp")
    expires_at = datetime.fromtimestamp(exp, UTC) if isinstance(exp, int | float) else None
    return IdentityClaims(subject=subject, expires_at=expires_at)


def issue_token(subject: str, *, ttl: timedelta | None = None) -> str:
    """Sign a token for ``subject`` the way the identity provider does."""
    expires_at = datetime.now(UTC) + (ttl if ttl is not None else TOKEN_TTL)
    return jwt.encode(
        {"sub": subject, "exp": expires_at},
        get_settings().secret_key,
        algorithm=TOKEN_ALGORITHM,
    )


def user_for_token(db: Session, token: str) -> User | None:
    """Local user named by a verified token, or None.

    A valid token for a subject that was never registered locally yields None.
    """
    claims = verify_token(token)
    if claims is None:
        return None
    return db.query(User).filter(User.username == claims.subject).first()
