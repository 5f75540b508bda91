import asyncio
import logging
from typing import Any, Dict, Optional

from contentforge.errors import AdapterError, ErrorKind
from contentforge.models.social_account import SocialAccount
from contentforge.schemas.publishing import PlatformCapabilities, PublishRequest, PublishResult
from contentforge.services.platforms.graph import GraphApiAdapter

logger = logging.getLogger(__name__)

READY_STATUSES = ("FINISHED", "READY", "PUBLISHED")


class InstagramAdapter(GraphApiAdapter):
    """
    Instagram Business publishing: create a media container, then publish it.

    The two calls are one logical publish. When the container exists but the
    publish call fails or runs out of time before the publish deadline, the
    result is an ORPHANED_CONTAINER failure carrying the container id.
    Unpublished containers expire on Instagram's side, so no cleanup call is
    made.
    """

    capabilities = PlatformCapabilities(
        platform="instagram",
        label="Instagram",
        char_limit=2200,
        requires_media=True,
        two_step_publish=True,
        prompt_hint="Create an Instagram post with engaging copy and relevant hashtags.",
    )

    # Video containers are processed asynchronously before they can be published
    container_poll_attempts = 10
    container_poll_interval = 3.0
    # Time kept back from the publish deadline to report an orphaned container
    deadline_reserve = 0.5

    def instagram_user_id(self, account: SocialAccount) -> str:
        return account.metadata_value("instagram_user_id") or account.platform_user_id

    async def _publish(self, account: SocialAccount, request: PublishRequest) -> PublishResult:
        user_id = self.instagram_user_id(account)
        headers = self._auth_headers(account)

        media_params: Dict[str, Any] = {"caption": request.text}
        if request.media_type == "video":
            media_params.update({"video_url": request.media_url, "media_type": "REELS"})
        else:
            media_params["image_url"] = request.media_url

        # Step 1: create the media container. A failure here leaves nothing behind.
        response = await self._send("POST", f"{self.graph_url}/{user_id}/media", headers=headers, data=media_params)
        creation_id = self._json(response).get("id")
        if not creation_id:
            return PublishResult.failed("No creation ID returned from Instagram API", ErrorKind.NON_RETRYABLE)
        logger.info(f"Instagram container {creation_id} created for account {account.id}")

        # Step 2: publish the container
        try:
            if request.media_type == "video":
                await self._wait_until_ready(creation_id, headers, request.deadline)
            publish_response = await self._within_deadline(
                self._send(
                    "POST",
                    f"{self.graph_url}/{user_id}/media_publish",
                    headers=headers,
                    data={"creation_id": creation_id},
                ),
                request.deadline,
                "publishing the container",
            )
        except AdapterError as e:
            logger.warning(f"Instagram container {creation_id} orphaned: {e}")
            return PublishResult.failed(
                f"Container {creation_id} created but not published: {e}",
                ErrorKind.ORPHANED_CONTAINER,
                container_id=creation_id,
            )

        media_id = self._json(publish_response).get("id")
        logger.info(f"Instagram media {media_id} published for account {account.id}")
        return PublishResult.ok(media_id)

    def _time_left(self, deadline: Optional[float]) -> Optional[float]:
        """Seconds this adapter may still spend, keeping a reserve to report the outcome."""
        if deadline is None:
            return None
        remaining = deadline - asyncio.get_running_loop().time()
        return max(0.0, remaining - min(self.deadline_reserve, remaining / 2))

    async def _within_deadline(self, call, deadline: Optional[float], step: str):
        time_left = self._time_left(deadline)
        if time_left is None:
            return await call
        try:
            return await asyncio.wait_for(call, timeout=time_left)
        except asyncio.TimeoutError:
            raise AdapterError(f"Publish deadline reached while {step}", ErrorKind.RETRYABLE)

    async def _wait_until_ready(self, creation_id: str, headers: Dict[str, str],
                                deadline: Optional[float] = None) -> None:
        status: Optional[str] = None
        for _ in range(self.container_poll_attempts):
            response = await self._within_deadline(
                self._send(
                    "GET",
                    f"{self.graph_url}/{creation_id}",
                    expected=(200,),
                    headers=headers,
                    params={"fields": "status_code"},
                ),
                deadline,
                "waiting for the media",
            )
            status = self._json(response).get("status_code")
            if status in READY_STATUSES:
                return
            if status == "ERROR":
                break
            time_left = self._time_left(deadline)
            if time_left is not None and time_left <= self.container_poll_interval:
                raise AdapterError(
                    f"Publish deadline reached while media was processing (status {status})",
                    ErrorKind.RETRYABLE,
                )
            await asyncio.sleep(self.container_poll_interval)
        raise AdapterError(f"Media not ready to publish (status {status})", ErrorKind.NON_RETRYABLE)

    async def _fetch_profile(self, account: SocialAccount) -> Dict[str, Any]:
        response = await self._send(
            "GET",
            f"{self.graph_url}/{self.instagram_user_id(account)}",
            expected=(200,),
            headers=self._auth_headers(account),
            params={"fields": "id,username"},
        )
        return self._json(response)
