"""SQLAlchemy models."""

from app.models.contact import Contact
from app.models.job_run import JobRun
from app.models.user import User
from app.models.user_workspace import UserWorkspace
from app.models.workspace import DEFAULT_WORKSPACE_ID, Workspace

__all__ = [
    "Contact",
    "DEFAULT_WORKSPACE_ID",
    "JobRun",
    "User",
    "UserWorkspace",
    "Workspace",
]
