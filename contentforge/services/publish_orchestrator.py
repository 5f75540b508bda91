import asyncio
import logging
from datetime import datetime
from typing import List, Optional, Sequence

from contentforge.datetime_utils import utcnow
from contentforge.errors import (
    AdapterError,
    CredentialRefreshError,
    ErrorKind,
    FailureReason,
    InvalidStateError,
)
from contentforge.models.scheduled_post import PostStatus, ScheduledPost
from contentforge.models.social_account import SocialAccount
from contentforge.schemas.publishing import PublishAttempt, PublishRequest
from contentforge.services.credential_store import CredentialStore
from contentforge.services.platforms.base import PlatformAdapter
from contentforge.services.platforms.registry import AdapterRegistry
from contentforge.services.schedule_store import ScheduleStore

logger = logging.getLogger(__name__)

VIDEO_EXTENSIONS = (".mp4", ".mov", ".m4v", ".avi", ".webm")


def media_type_for(media_url: Optional[str]) -> str:
    if media_url and media_url.split("?", 1)[0].lower().endswith(VIDEO_EXTENSIONS):
        return "video"
    return "image"


class PublishFailed(Exception):
    """Internal signal: stop the procedure and store this failure on the post."""

    def __init__(self, reason: FailureReason, message: str):
        super().__init__(message)
        self.reason = reason
        self.message = message


class PublishOrchestrator:
    """Publishes scheduled posts through the platform adapters."""

    def __init__(
        self,
        schedule_store: ScheduleStore,
        credential_store: CredentialStore,
        registry: AdapterRegistry,
        max_retries: int = 2,
        retry_delays: Sequence[float] = (1.0, 4.0),
        deadline_seconds: float = 60.0,
    ):
        self.schedule_store = schedule_store
        self.credential_store = credential_store
        self.registry = registry
        self.max_retries = max_retries
        self.retry_delays = list(retry_delays)
        self.deadline_seconds = deadline_seconds

    async def publish_now(self, post_id: int, team_id: Optional[str] = None) -> PublishAttempt:
        """Run the publish procedure for one post, regardless of its scheduled time."""
        # The claim lives on the store so cancel and delete can see it
        if not self.schedule_store.claim(post_id):
            raise InvalidStateError(f"Post {post_id} is already being published", current=PostStatus.SCHEDULED.value)

        try:
            return await self._run(post_id, team_id)
        finally:
            self.schedule_store.release(post_id)

    async def publish_due_posts(self, now: Optional[datetime] = None) -> List[PublishAttempt]:
        """Publish every scheduled post due at `now`, concurrently."""
        due = [post for post in self.schedule_store.due_posts(now) if not self.schedule_store.is_claimed(post.id)]
        if not due:
            return []

        logger.info(f"📤 Found {len(due)} posts due for publishing")
        results = await asyncio.gather(*(self.publish_now(post.id) for post in due), return_exceptions=True)

        attempts: List[PublishAttempt] = []
        for post, result in zip(due, results):
            if isinstance(result, InvalidStateError):
                logger.info(f"Skipping post {post.id}: {result}")
            elif isinstance(result, Exception):
                # Status was never written, so the post is picked up again next run
                logger.error(f"❌ Error publishing post {post.id}: {result}", exc_info=result)
            elif isinstance(result, BaseException):
                raise result
            else:
                attempts.append(result)

        published = sum(1 for attempt in attempts if attempt.success)
        logger.info(f"✅ Publish run finished: {published} published, {len(attempts) - published} failed")
        return attempts

    # --- Procedure ---

    async def _run(self, post_id: int, team_id: Optional[str]) -> PublishAttempt:
        post = self.schedule_store.get(post_id, team_id)
        if post.post_status != PostStatus.SCHEDULED:
            raise InvalidStateError(
                f"Post {post_id} is {post.status}, only scheduled posts can be published",
                current=post.status,
                requested=PostStatus.PUBLISHED.value,
            )

        attempt_count = 0
        account: Optional[SocialAccount] = None
        try:
            account = self._resolve_account(post)
            adapter = self.registry.get(post.platform)
            # Local checks first so an unpublishable post costs no remote call at all
            request = self._build_request(post, adapter)

            # The deadline covers validation and refresh as well as the publish calls
            loop = asyncio.get_running_loop()
            deadline = loop.time() + self.deadline_seconds
            request.deadline = deadline
            account, refreshed = await self._ensure_valid_token(account, deadline)
            account = self._recheck_account(post, account)

            retries = 0
            while True:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    raise PublishFailed(FailureReason.PUBLISH_EXHAUSTED, "Publish deadline exceeded")

                attempt_count += 1
                try:
                    result = await asyncio.wait_for(adapter.publish(account, request), timeout=remaining)
                except asyncio.TimeoutError:
                    message = f"Publish deadline of {self.deadline_seconds:g}s exceeded on attempt {attempt_count}"
                    if adapter.capabilities.two_step_publish:
                        # Cut off between the two calls: a media container may exist
                        raise PublishFailed(
                            FailureReason.PARTIAL_PUBLISH,
                            f"{message}; a {adapter.label} media container may have been created",
                        )
                    raise PublishFailed(FailureReason.PUBLISH_EXHAUSTED, message)

                if result.success:
                    logger.info(
                        f"✅ {post.platform} post {post.id} published on attempt {attempt_count}: {result.remote_post_id}"
                    )
                    self.schedule_store.mark_published(post.id, result.remote_post_id, attempt_count, utcnow())
                    return self._attempt(post, account, attempt_count, success=True,
                                         remote_post_id=result.remote_post_id)

                error = result.error or "Unknown publish error"
                logger.warning(
                    f"{post.platform} post {post.id} attempt {attempt_count} failed "
                    f"({result.error_kind.value if result.error_kind else 'unknown'}): {error}"
                )

                if result.error_kind == ErrorKind.ORPHANED_CONTAINER:
                    raise PublishFailed(FailureReason.PARTIAL_PUBLISH, error)

                if result.error_kind == ErrorKind.AUTH_EXPIRED:
                    if refreshed:
                        raise PublishFailed(FailureReason.CREDENTIAL_EXPIRED, error)
                    account = await self._refresh(account, deadline)
                    refreshed = True
                    account = self._recheck_account(post, account)
                    continue

                if result.error_kind != ErrorKind.RETRYABLE:
                    raise PublishFailed(FailureReason.PUBLISH_REJECTED, error)

                if retries >= self.max_retries:
                    raise PublishFailed(FailureReason.PUBLISH_EXHAUSTED, error)
                delay = self._retry_delay(retries)
                if loop.time() + delay >= deadline:
                    raise PublishFailed(
                        FailureReason.PUBLISH_EXHAUSTED,
                        f"{error} (retry in {delay:g}s would pass the publish deadline)",
                    )
                retries += 1
                logger.info(f"🔁 Retrying {post.platform} post {post.id} in {delay:g}s ({retries}/{self.max_retries})")
                await asyncio.sleep(delay)

        except PublishFailed as failure:
            logger.error(f"❌ {post.platform} post {post.id} failed: {failure.reason.value} - {failure.message}")
            self.schedule_store.mark_failed(post.id, failure.reason, failure.message, attempt_count, utcnow())
            return self._attempt(post, account, attempt_count, success=False,
                                 failure_reason=failure.reason, error=failure.message)

    def _resolve_account(self, post: ScheduledPost) -> SocialAccount:
        account = self.credential_store.get(post.team_id, post.platform, account_id=post.social_account_id)
        if account is None:
            raise PublishFailed(FailureReason.CREDENTIAL_MISSING, f"No {post.platform} account connected")
        if not account.is_active:
            raise PublishFailed(
                FailureReason.CREDENTIAL_MISSING,
                f"{post.platform} account {account.id} is inactive, reconnect it to publish",
            )
        return account

    def _recheck_account(self, post: ScheduledPost, account: SocialAccount) -> SocialAccount:
        """Re-read the account right before dispatch; it may have been deactivated meanwhile."""
        current = self.credential_store.get(post.team_id, post.platform, account_id=account.id)
        if current is None or not current.is_active:
            raise PublishFailed(
                FailureReason.CREDENTIAL_MISSING,
                f"{post.platform} account {account.id} was deactivated before publishing",
            )
        return current

    def _remaining(self, deadline: float) -> float:
        return max(0.0, deadline - asyncio.get_running_loop().time())

    async def _ensure_valid_token(self, account: SocialAccount, deadline: float):
        """Return (usable account, whether a refresh already happened)."""
        try:
            valid = await asyncio.wait_for(self.credential_store.validate(account), timeout=self._remaining(deadline))
        except asyncio.TimeoutError:
            raise PublishFailed(
                FailureReason.PUBLISH_EXHAUSTED,
                f"Publish deadline of {self.deadline_seconds:g}s exceeded while validating the token",
            )
        except AdapterError as e:
            # Platform unreachable: the token is not known to be bad, the publish retry budget decides
            logger.warning(f"Could not validate {account.platform} account {account.id}, publishing anyway: {e}")
            return account, False

        if valid:
            return account, False
        logger.info(f"Token for {account.platform} account {account.id} is invalid, refreshing")
        return await self._refresh(account, deadline), True

    async def _refresh(self, account: SocialAccount, deadline: float) -> SocialAccount:
        try:
            # Shielded: a refresh cut off by the deadline still stores the token it obtained
            return await asyncio.wait_for(
                asyncio.shield(self.credential_store.refresh(account)),
                timeout=self._remaining(deadline),
            )
        except asyncio.TimeoutError:
            raise PublishFailed(
                FailureReason.PUBLISH_EXHAUSTED,
                f"Publish deadline of {self.deadline_seconds:g}s exceeded while refreshing the token",
            )
        except CredentialRefreshError as e:
            raise PublishFailed(FailureReason.CREDENTIAL_EXPIRED, f"Credential unusable: {e}")
        except AdapterError as e:
            raise PublishFailed(FailureReason.CREDENTIAL_EXPIRED, f"Credential refresh failed: {e}")

    def _build_request(self, post: ScheduledPost, adapter: PlatformAdapter) -> PublishRequest:
        """Check the post against the platform's capabilities before any remote call."""
        capabilities = adapter.capabilities
        request = PublishRequest(
            text=post.content or "",
            media_url=post.media_url,
            media_type=media_type_for(post.media_url),
        )

        if capabilities.requires_media and not request.has_media:
            raise PublishFailed(
                FailureReason.UNSUPPORTED_REQUEST,
                f"{capabilities.label} requires an image or video",
            )
        if request.has_media and not capabilities.supports_media:
            raise PublishFailed(
                FailureReason.UNSUPPORTED_REQUEST,
                f"{capabilities.label} posts cannot carry media",
            )
        if not request.text.strip() and not request.has_media:
            raise PublishFailed(FailureReason.UNSUPPORTED_REQUEST, "Post has no text or media")
        if capabilities.char_limit is not None and len(request.text) > capabilities.char_limit:
            raise PublishFailed(
                FailureReason.UNSUPPORTED_REQUEST,
                f"{capabilities.label} allows {capabilities.char_limit} characters, post has {len(request.text)}",
            )
        return request

    def _retry_delay(self, retry_index: int) -> float:
        if not self.retry_delays:
            return 0.0
        return self.retry_delays[min(retry_index, len(self.retry_delays) - 1)]

    @staticmethod
    def _attempt(post: ScheduledPost, account: Optional[SocialAccount], attempt_count: int, **fields) -> PublishAttempt:
        return PublishAttempt(
            post_id=post.id,
            platform=post.platform,
            account_id=account.id if account is not None else post.social_account_id,
            attempt_count=attempt_count,
            attempted_at=utcnow(),
            **fields,
        )
