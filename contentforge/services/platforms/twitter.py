import logging
from typing import Any, Dict

from contentforge.errors import AdapterError, CredentialRefreshError
from contentforge.models.social_account import SocialAccount
from contentforge.schemas.publishing import PlatformCapabilities, PublishRequest, PublishResult, TokenGrant
from contentforge.services.platforms.base import PlatformAdapter

logger = logging.getLogger(__name__)


class TwitterAdapter(PlatformAdapter):
    """Short-form posts through the X API v2 with an OAuth 2.0 user token."""

    capabilities = PlatformCapabilities(
        platform="twitter",
        label="Twitter",
        char_limit=250,
        supports_media=False,
        prompt_hint=(
            "Create a Twitter post (max 250 characters) that is engaging "
            "and includes relevant hashtags."
        ),
    )

    api_base_url = "https://api.twitter.com/2"

    async def _publish(self, account: SocialAccount, request: PublishRequest) -> PublishResult:
        response = await self._send(
            "POST",
            f"{self.api_base_url}/tweets",
            headers=self._auth_headers(account, {"Content-Type": "application/json"}),
            json={"text": request.text},
        )
        data = self._json(response).get("data") or {}
        tweet_id = data.get("id")
        logger.info(f"Tweet {tweet_id} published for account {account.id}")
        return PublishResult.ok(tweet_id)

    async def _fetch_profile(self, account: SocialAccount) -> Dict[str, Any]:
        response = await self._send(
            "GET",
            f"{self.api_base_url}/users/me",
            expected=(200,),
            headers=self._auth_headers(account),
        )
        return self._json(response).get("data") or {}

    async def refresh_access_token(self, account: SocialAccount) -> TokenGrant:
        if not account.refresh_token:
            raise CredentialRefreshError("Twitter account has no refresh token")
        client_id = self.settings.twitter_client_id
        if not client_id:
            raise CredentialRefreshError("Twitter client id is not configured")

        data = {
            "grant_type": "refresh_token",
            "refresh_token": account.refresh_token,
            "client_id": client_id,
        }
        # Confidential clients authenticate with basic auth, public ones only send client_id
        auth = (client_id, self.settings.twitter_client_secret) if self.settings.twitter_client_secret else None
        try:
            response = await self._send(
                "POST",
                f"{self.api_base_url}/oauth2/token",
                expected=(200,),
                data=data,
                auth=auth,
            )
        except AdapterError as e:
            raise CredentialRefreshError(f"Token refresh failed: {e}") from e

        token_data = self._json(response)
        if not token_data.get("access_token"):
            raise CredentialRefreshError("Token refresh returned no access token")
        return TokenGrant(
            access_token=token_data["access_token"],
            refresh_token=token_data.get("refresh_token"),
            expires_in=token_data.get("expires_in"),
        )
