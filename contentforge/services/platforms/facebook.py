import logging
from typing import Any, Dict

from contentforge.models.social_account import SocialAccount
from contentforge.schemas.publishing import PlatformCapabilities, PublishRequest, PublishResult
from contentforge.services.platforms.graph import GraphApiAdapter

logger = logging.getLogger(__name__)


class FacebookAdapter(GraphApiAdapter):
    """Page posts: feed for text, photos/videos endpoints when media is attached."""

    capabilities = PlatformCapabilities(
        platform="facebook",
        label="Facebook",
        char_limit=63206,
        prompt_hint="Create a Facebook post that encourages engagement and community interaction.",
    )

    def page_id(self, account: SocialAccount) -> str:
        return account.metadata_value("page_id") or account.platform_user_id

    async def _publish(self, account: SocialAccount, request: PublishRequest) -> PublishResult:
        page_id = self.page_id(account)
        headers = self._auth_headers(account)

        if not request.has_media:
            url = f"{self.graph_url}/{page_id}/feed"
            data = {"message": request.text}
        elif request.media_type == "video":
            url = f"{self.graph_url}/{page_id}/videos"
            data = {"file_url": request.media_url, "description": request.text}
        else:
            url = f"{self.graph_url}/{page_id}/photos"
            data = {"url": request.media_url, "caption": request.text}

        response = await self._send("POST", url, headers=headers, data=data)
        result = self._json(response)
        # Photo uploads return the photo id plus the id of the page post wrapping it
        post_id = result.get("post_id") or result.get("id")
        logger.info(f"Facebook post {post_id} published to page {page_id}")
        return PublishResult.ok(post_id)

    async def _fetch_profile(self, account: SocialAccount) -> Dict[str, Any]:
        response = await self._send(
            "GET",
            f"{self.graph_url}/{self.page_id(account)}",
            expected=(200,),
            headers=self._auth_headers(account),
            params={"fields": "id,name"},
        )
        return self._json(response)
