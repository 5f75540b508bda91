import logging
from datetime import datetime
from typing import List, Optional, Set

from sqlalchemy.orm import Session, sessionmaker

from contentforge.database import session_scope
from contentforge.datetime_utils import as_utc, utcnow
from contentforge.errors import FailureReason, InvalidRequestError, InvalidStateError, NotFoundError
from contentforge.models.content_piece import SocialPostVariant
from contentforge.models.scheduled_post import ALLOWED_TRANSITIONS, RESCHEDULABLE, PostStatus, ScheduledPost
from contentforge.models.social_account import SocialAccount

logger = logging.getLogger(__name__)


class ScheduleStore:
    """
    Lifecycle of scheduled posts: draft -> scheduled -> published | failed.

    Every status change goes through ALLOWED_TRANSITIONS. Rescheduling only
    touches the date-time and only while the post is a draft or scheduled.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory
        # Posts a publisher is dispatching right now; they stay `scheduled` until the outcome is written
        self._claimed: Set[int] = set()

    # --- Publish claims ---

    def claim(self, post_id: int) -> bool:
        """Reserve a post for one publisher. False when someone else already holds it."""
        if post_id in self._claimed:
            return False
        self._claimed.add(post_id)
        return True

    def release(self, post_id: int) -> None:
        self._claimed.discard(post_id)

    def is_claimed(self, post_id: int) -> bool:
        return post_id in self._claimed

    # --- Reads ---

    def get(self, post_id: int, team_id: Optional[str] = None) -> ScheduledPost:
        with session_scope(self.session_factory) as db:
            return self._load(db, post_id, team_id)

    def list_posts(
        self,
        team_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        status: Optional[PostStatus] = None,
    ) -> List[ScheduledPost]:
        """Posts for the calendar and drafts views, earliest first."""
        with session_scope(self.session_factory) as db:
            query = db.query(ScheduledPost).filter(ScheduledPost.team_id == team_id)
            if start is not None:
                query = query.filter(ScheduledPost.scheduled_at >= as_utc(start))
            if end is not None:
                query = query.filter(ScheduledPost.scheduled_at < as_utc(end))
            if status is not None:
                query = query.filter(ScheduledPost.status == PostStatus(status).value)
            return query.order_by(ScheduledPost.scheduled_at.asc(), ScheduledPost.id.asc()).all()

    def due_posts(self, now: Optional[datetime] = None) -> List[ScheduledPost]:
        now = as_utc(now) or utcnow()
        with session_scope(self.session_factory) as db:
            return db.query(ScheduledPost).filter(
                ScheduledPost.status == PostStatus.SCHEDULED.value,
                ScheduledPost.scheduled_at <= now,
            ).order_by(ScheduledPost.scheduled_at.asc(), ScheduledPost.id.asc()).all()

    # --- Creation ---

    def create(
        self,
        team_id: str,
        variant: SocialPostVariant,
        account: SocialAccount,
        scheduled_at: Optional[datetime] = None,
    ) -> ScheduledPost:
        """Schedule a variant on an account; without a date-time the post starts as a draft."""
        if variant.platform != account.platform:
            raise InvalidRequestError(
                f"Variant is for {variant.platform} but account {account.id} is a {account.platform} account"
            )
        if account.team_id != team_id:
            raise NotFoundError("Social account", account.id)

        with session_scope(self.session_factory) as db:
            existing = db.query(ScheduledPost).filter(ScheduledPost.variant_id == variant.id).first()
            if existing is not None:
                raise InvalidStateError(
                    f"Variant {variant.id} is already attached to post {existing.id} ({existing.status})",
                    current=existing.status,
                )

            status = PostStatus.SCHEDULED if scheduled_at is not None else PostStatus.DRAFT
            post = ScheduledPost(
                team_id=team_id,
                variant_id=variant.id,
                social_account_id=account.id,
                platform=variant.platform,
                content=variant.text,
                media_url=variant.image_url,
                scheduled_at=as_utc(scheduled_at),
                status=status.value,
                attempt_count=0,
            )
            db.add(post)
            db.flush()
            logger.info(f"📅 Created {status.value} {post.platform} post {post.id} for {post.scheduled_at}")
            return post

    # --- Date-time changes ---

    def reschedule(self, post_id: int, scheduled_at: datetime, team_id: Optional[str] = None) -> ScheduledPost:
        """Move a draft or scheduled post; the status never changes here."""
        new_time = as_utc(scheduled_at)
        with session_scope(self.session_factory) as db:
            post = self._load(db, post_id, team_id)
            if post.post_status not in RESCHEDULABLE:
                raise InvalidStateError(
                    f"Cannot reschedule post {post_id} while it is {post.status}",
                    current=post.status,
                )
            if as_utc(post.scheduled_at) == new_time:
                return post
            post.scheduled_at = new_time
            db.flush()
            logger.info(f"🔄 Rescheduled post {post_id} to {new_time}")
            return post

    def schedule_draft(self, post_id: int, scheduled_at: Optional[datetime] = None,
                       team_id: Optional[str] = None) -> ScheduledPost:
        with session_scope(self.session_factory) as db:
            post = self._load(db, post_id, team_id)
            when = as_utc(scheduled_at) or as_utc(post.scheduled_at)
            if when is None:
                raise InvalidRequestError(f"Post {post_id} needs a date-time before it can be scheduled")
            self._transition(post, PostStatus.SCHEDULED)
            post.scheduled_at = when
            db.flush()
            return post

    # --- Status changes ---

    def cancel(self, post_id: int, team_id: Optional[str] = None) -> ScheduledPost:
        with session_scope(self.session_factory) as db:
            post = self._load(db, post_id, team_id)
            self._ensure_unclaimed(post)
            self._transition(post, PostStatus.CANCELLED)
            db.flush()
            logger.info(f"🛑 Cancelled post {post_id}")
            return post

    def retry(self, post_id: int, team_id: Optional[str] = None) -> ScheduledPost:
        """Re-enqueue a failed post; it becomes due again at its scheduled time."""
        with session_scope(self.session_factory) as db:
            post = self._load(db, post_id, team_id)
            self._transition(post, PostStatus.SCHEDULED)
            post.failure_reason = None
            post.error_message = None
            post.attempt_count = 0
            db.flush()
            logger.info(f"🔁 Post {post_id} re-enqueued for {post.scheduled_at}")
            return post

    def mark_published(self, post_id: int, remote_post_id: Optional[str], attempt_count: int,
                       attempted_at: datetime) -> ScheduledPost:
        with session_scope(self.session_factory) as db:
            post = self._load(db, post_id)
            self._transition(post, PostStatus.PUBLISHED)
            post.remote_post_id = remote_post_id
            post.failure_reason = None
            post.error_message = None
            post.attempt_count = attempt_count
            post.last_attempt_at = attempted_at
            post.published_at = attempted_at
            db.flush()
            return post

    def mark_failed(self, post_id: int, reason: FailureReason, message: str, attempt_count: int,
                    attempted_at: datetime) -> ScheduledPost:
        with session_scope(self.session_factory) as db:
            post = self._load(db, post_id)
            self._transition(post, PostStatus.FAILED)
            post.failure_reason = FailureReason(reason).value
            post.error_message = message
            post.attempt_count = attempt_count
            post.last_attempt_at = attempted_at
            db.flush()
            return post

    def delete(self, post_id: int, team_id: Optional[str] = None) -> None:
        """Hard delete. An operator action; cancellation is the normal way to drop a post."""
        with session_scope(self.session_factory) as db:
            post = self._load(db, post_id, team_id)
            self._ensure_unclaimed(post)
            db.delete(post)
            logger.warning(f"🗑️ Post {post_id} ({post.status}) deleted by operator")

    # --- Helpers ---

    @staticmethod
    def _load(db: Session, post_id: int, team_id: Optional[str] = None) -> ScheduledPost:
        query = db.query(ScheduledPost).filter(ScheduledPost.id == post_id)
        if team_id is not None:
            query = query.filter(ScheduledPost.team_id == team_id)
        post = query.first()
        if post is None:
            raise NotFoundError("Scheduled post", post_id)
        return post

    def _ensure_unclaimed(self, post: ScheduledPost) -> None:
        if self.is_claimed(post.id):
            raise InvalidStateError(
                f"Post {post.id} is being published right now",
                current=post.status,
            )

    @staticmethod
    def _transition(post: ScheduledPost, new_status: PostStatus) -> None:
        current = post.post_status
        if new_status not in ALLOWED_TRANSITIONS[current]:
            raise InvalidStateError(
                f"Post {post.id} cannot move from {current.value} to {new_status.value}",
                current=current.value,
                requested=new_status.value,
            )
        post.status = new_status.value
