import logging
from typing import Any, Dict

from contentforge.errors import AdapterError, CredentialRefreshError
from contentforge.models.social_account import SocialAccount
from contentforge.schemas.publishing import PlatformCapabilities, PublishRequest, PublishResult, TokenGrant
from contentforge.services.platforms.base import PlatformAdapter

logger = logging.getLogger(__name__)


class LinkedInAdapter(PlatformAdapter):
    """Member posts through the LinkedIn UGC Posts API."""

    capabilities = PlatformCapabilities(
        platform="linkedin",
        label="LinkedIn",
        char_limit=3000,
        prompt_hint=(
            "Create a LinkedIn post that is professional and thought-provoking, "
            "suitable for a B2B audience."
        ),
    )

    api_base_url = "https://api.linkedin.com/v2"
    auth_base_url = "https://www.linkedin.com/oauth/v2"

    def author_urn(self, account: SocialAccount) -> str:
        """The post author; stored as `person_urn` metadata when linked."""
        urn = account.metadata_value("person_urn")
        if urn:
            return urn
        return f"urn:li:person:{account.platform_user_id}"

    def _build_post(self, account: SocialAccount, request: PublishRequest) -> Dict[str, Any]:
        share_content: Dict[str, Any] = {
            "shareCommentary": {
                "text": request.text
            },
            "shareMediaCategory": "NONE"
        }

        if request.has_media:
            share_content["shareMediaCategory"] = request.media_type.upper()
            share_content["media"] = [{
                "status": "READY",
                "description": {
                    "text": request.text[:200]
                },
                "media": request.media_url,
                "title": {
                    "text": "LinkedIn Post"
                }
            }]

        return {
            "author": self.author_urn(account),
            "lifecycleState": "PUBLISHED",
            "specificContent": {
                "com.linkedin.ugc.ShareContent": share_content
            },
            "visibility": {
                "com.linkedin.ugc.MemberNetworkVisibility": "PUBLIC"
            }
        }

    async def _publish(self, account: SocialAccount, request: PublishRequest) -> PublishResult:
        response = await self._send(
            "POST",
            f"{self.api_base_url}/ugcPosts",
            headers=self._auth_headers(account, {
                "Content-Type": "application/json",
                "X-Restli-Protocol-Version": "2.0.0",
            }),
            json=self._build_post(account, request),
        )
        post_id = self._json(response).get("id") or response.headers.get("x-restli-id")
        logger.info(f"LinkedIn post {post_id} published for account {account.id}")
        return PublishResult.ok(post_id)

    async def _fetch_profile(self, account: SocialAccount) -> Dict[str, Any]:
        response = await self._send(
            "GET",
            f"{self.api_base_url}/me",
            expected=(200,),
            headers=self._auth_headers(account),
        )
        return self._json(response)

    async def refresh_access_token(self, account: SocialAccount) -> TokenGrant:
        if not account.refresh_token:
            raise CredentialRefreshError("LinkedIn account has no refresh token")
        if not (self.settings.linkedin_client_id and self.settings.linkedin_client_secret):
            raise CredentialRefreshError("LinkedIn client credentials are not configured")

        try:
            response = await self._send(
                "POST",
                f"{self.auth_base_url}/accessToken",
                expected=(200,),
                data={
                    "grant_type": "refresh_token",
                    "refresh_token": account.refresh_token,
                    "client_id": self.settings.linkedin_client_id,
                    "client_secret": self.settings.linkedin_client_secret,
                },
            )
        except AdapterError as e:
            raise CredentialRefreshError(f"Token refresh failed: {e}") from e

        token_data = self._json(response)
        if not token_data.get("access_token"):
            raise CredentialRefreshError("Token refresh returned no access token")
        return TokenGrant(
            access_token=token_data["access_token"],
            refresh_token=token_data.get("refresh_token") or account.refresh_token,
            expires_in=token_data.get("expires_in"),
        )
