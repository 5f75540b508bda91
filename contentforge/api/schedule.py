from fastapi import APIRouter, Depends, Query
from typing import List, Optional
from datetime import datetime
import logging

from contentforge.dependencies import ServiceContainer, get_services, get_team_id
from contentforge.models.scheduled_post import PostStatus
from contentforge.schemas.publishing import PublishAttempt
from contentforge.schemas.social_media import (
    PublishDueRequest,
    RescheduleRequest,
    ScheduleDraftRequest,
    SchedulePostRequest,
    ScheduledPostResponse,
    SuccessResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/schedule", tags=["Scheduling"])


@router.post("", response_model=ScheduledPostResponse)
async def schedule_post(
    request: SchedulePostRequest,
    team_id: str = Depends(get_team_id),
    services: ServiceContainer = Depends(get_services),
):
    """
    Schedule a variant on a connected account.

    Without `scheduled_at` the post is stored as a draft. Nothing is sent to
    the platform until the post is due or published explicitly.
    """
    variant = services.content.get_variant(request.variant_id, team_id)
    account = services.credentials.get_by_id(request.social_account_id, team_id)
    return services.schedule.create(team_id, variant, account, request.scheduled_at)


@router.get("", response_model=List[ScheduledPostResponse])
async def list_scheduled_posts(
    start: Optional[datetime] = Query(None, description="Only posts at or after this time"),
    end: Optional[datetime] = Query(None, description="Only posts before this time"),
    status: Optional[PostStatus] = Query(None),
    team_id: str = Depends(get_team_id),
    services: ServiceContainer = Depends(get_services),
):
    """Posts for the calendar and drafts views, earliest first."""
    return services.schedule.list_posts(team_id, start=start, end=end, status=status)


@router.post("/publish-due", response_model=List[PublishAttempt])
async def publish_due_posts(
    request: Optional[PublishDueRequest] = None,
    services: ServiceContainer = Depends(get_services),
):
    """Publish every post whose time has come (the scheduler does this periodically)."""
    return await services.orchestrator.publish_due_posts(request.now if request else None)


@router.get("/{post_id}", response_model=ScheduledPostResponse)
async def get_scheduled_post(
    post_id: int,
    team_id: str = Depends(get_team_id),
    services: ServiceContainer = Depends(get_services),
):
    return services.schedule.get(post_id, team_id)


@router.patch("/{post_id}", response_model=ScheduledPostResponse)
async def reschedule_post(
    post_id: int,
    request: RescheduleRequest,
    team_id: str = Depends(get_team_id),
    services: ServiceContainer = Depends(get_services),
):
    """Move a draft or scheduled post to a new date-time (calendar drag and drop)."""
    return services.schedule.reschedule(post_id, request.scheduled_at, team_id)


@router.post("/{post_id}/schedule", response_model=ScheduledPostResponse)
async def schedule_draft(
    post_id: int,
    request: Optional[ScheduleDraftRequest] = None,
    team_id: str = Depends(get_team_id),
    services: ServiceContainer = Depends(get_services),
):
    return services.schedule.schedule_draft(post_id, request.scheduled_at if request else None, team_id)


@router.post("/{post_id}/publish", response_model=PublishAttempt)
async def publish_now(
    post_id: int,
    team_id: str = Depends(get_team_id),
    services: ServiceContainer = Depends(get_services),
):
    return await services.orchestrator.publish_now(post_id, team_id)


@router.post("/{post_id}/retry", response_model=ScheduledPostResponse)
async def retry_post(
    post_id: int,
    team_id: str = Depends(get_team_id),
    services: ServiceContainer = Depends(get_services),
):
    """Put a failed post back on the schedule."""
    return services.schedule.retry(post_id, team_id)


@router.post("/{post_id}/cancel", response_model=ScheduledPostResponse)
async def cancel_post(
    post_id: int,
    team_id: str = Depends(get_team_id),
    services: ServiceContainer = Depends(get_services),
):
    return services.schedule.cancel(post_id, team_id)


@router.delete("/{post_id}", response_model=SuccessResponse)
async def delete_post(
    post_id: int,
    team_id: str = Depends(get_team_id),
    services: ServiceContainer = Depends(get_services),
):
    """Operator action: remove the post record entirely."""
    services.schedule.delete(post_id, team_id)
    return SuccessResponse(message=f"Scheduled post {post_id} deleted")
