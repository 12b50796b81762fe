"""Pipeline package: batch job executor and rate limits."""

from app.pipeline.executor import run_engagement_recalc_job
from app.pipeline.rate_limits import check_workspace_rate_limit, find_running_job

__all__ = ["run_engagement_recalc_job", "check_workspace_rate_limit", "find_running_job"]
