"""Register a user from the identity provider and optionally grant a workspace.

Usage:
    python -m app.scripts.create_user --username alice
    python -m app.scripts.create_user --username alice --workspace-id <uuid> --print-token
"""

from __future__ import annotations

import argparse
import sys
from uuid import UUID

from app.db.session import SessionLocal
from app.models.user import User
from app.models.workspace import Workspace
from app.services.identity import issue_token
from app.services.workspace_access import grant_workspace


def main() -> None:
    parser = argparse.ArgumentParser(description="Register a CadenceEngine user")
    parser.add_argument("--username", required=True, help="Identity-provider subject")
    parser.add_argument("--workspace-id", help="Grant membership in this workspace")
    parser.add_argument(
        "--print-token", action="store_true", help="Print a signed access token for the user"
    )
    args = parser.parse_args()

    db = SessionLocal()
    try:
        user = db.query(User).filter(User.username == args.username).first()
        if user is None:
            user = User(username=args.username)
            db.add(user)
            db.commit()
            db.refresh(user)
            print(f"User '{user.username}' created (id={user.id}).")
        else:
            print(f"User '{user.username}' already exists (id={user.id}).")

        if args.workspace_id:
            try:
                ws_uuid = UUID(args.workspace_id)
            except ValueError:
                print(f"Invalid workspace id: {args.workspace_id}", file=sys.stderr)
                sys.exit(1)
            if db.get(Workspace, ws_uuid) is None:
                print(f"Workspace {ws_uuid} does not exist.", file=sys.stderr)
                sys.exit(1)
            if grant_workspace(db, user, ws_uuid):
                print(f"Granted workspace {ws_uuid}.")
            else:
                print(f"Already a member of workspace {ws_uuid}.")

        if args.print_token:
            print(issue_token(user.username))
    finally:
        db.close()


if __name__ == "__main__":
    main()
