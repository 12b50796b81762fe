"""Pydantic schemas for request/response validation."""

from app.schemas.engagement import (
    ClassificationUpdate,
    EngagementAlertsResponse,
    EngagementBucketRead,
    EngagementList,
    EngagementRowRead,
    NextContactUpdate,
    RecalculationSummaryRead,
    RecomputeResponse,
    RemindMeUpdate,
    ResponseCreate,
    TouchCreate,
)

__all__ = [
    "ClassificationUpdate",
    "EngagementAlertsResponse",
    "EngagementBucketRead",
    "EngagementList",
    "EngagementRowRead",
    "NextContactUpdate",
    "RecalculationSummaryRead",
    "RecomputeResponse",
    "RemindMeUpdate",
    "ResponseCreate",
    "TouchCreate",
]
