#!/usr/bin/env python3
"""Run the next-engagement reconciliation batch locally.

Usage:
    python scripts/run_engagement_recalc.py
    python scripts/run_engagement_recalc.py --workspace-id <uuid>

Recomputes every eligible contact in the workspace (all workspaces when
omitted) and clears stale dates on opted-out contacts.
Exits 0 on success, 1 when the database is unreachable or arguments are invalid.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from uuid import UUID

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from app.db.session import SessionLocal
from app.services.engagement.errors import ConfigurationError, StoreUnavailableError
from app.services.engagement.recompute import recalculate_for_tenant


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Recalculate next engagement dates")
    parser.add_argument("--workspace-id", help="Workspace UUID; all workspaces if omitted")
    args = parser.parse_args(argv)

    workspace_id: UUID | None = None
    if args.workspace_id:
        try:
            workspace_id = UUID(args.workspace_id)
        except ValueError:
            print(f"ERROR: invalid workspace id: {args.workspace_id}", file=sys.stderr)
            return 1

    db = SessionLocal()
    try:
        summary = recalculate_for_tenant(db, workspace_id)
        print(
            f"status={summary.status} "
            f"job_run_id={summary.job_run_id} "
            f"updated={summary.updated} "
            f"errors={summary.errors} "
            f"total={summary.total} "
            f"cleared={summary.cleared}"
        )
        for message in summary.error_messages:
            print(f"error={message}", file=sys.stderr)
        return 0
    except (StoreUnavailableError, ConfigurationError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
