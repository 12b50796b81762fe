"""Which workspaces, and therefore which contacts, a user may work with.

Every user may use the default workspace. Any other workspace needs a
``user_workspaces`` membership row. Contacts are visible exactly when their
workspace is; a contact with no workspace is visible to nobody.
"""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.contact import Contact
from app.models.user import User
from app.models.user_workspace import UserWorkspace
from app.models.workspace import DEFAULT_WORKSPACE_ID

logger = logging.getLogger(__name__)


def member_workspace_ids(db: Session, user: User) -> set[UUID]:
    """Workspaces the user may access, the default workspace included."""
    stmt = select(UserWorkspace.workspace_id).where(UserWorkspace.user_id == user.id)
    return {DEFAULT_WORKSPACE_ID, *db.scalars(stmt).all()}


def can_access_workspace(db: Session, user: User, workspace_id: UUID | None) -> bool:
    if workspace_id is None:
        return False
    if workspace_id == DEFAULT_WORKSPACE_ID:
        return True
    return db.get(UserWorkspace, (user.id, workspace_id)) is not None


def visible_contact(db: Session, user: User, contact_id: int) -> Contact | None:
    """The contact, or None when it is missing or outside the user's workspaces."""
    contact = db.get(Contact, contact_id)
    if contact is None or not can_access_workspace(db, user, contact.workspace_id):
        return None
    return contact


def grant_workspace(db: Session, user: User, workspace_id: UUID) -> bool:
    """Add a membership. Returns False when the user already had one."""
    if db.get(UserWorkspace, (user.id, workspace_id)) is not None:
        return False
    db.add(UserWorkspace(user_id=user.id, workspace_id=workspace_id))
    db.commit()
    logger.info("Granted workspace %s to user %s", workspace_id, user.username)
    return True
