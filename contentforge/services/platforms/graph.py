import logging

import httpx

from contentforge.errors import AdapterError, CredentialRefreshError, ErrorKind
from contentforge.models.social_account import SocialAccount
from contentforge.schemas.publishing import TokenGrant
from contentforge.services.platforms.base import PlatformAdapter, classify_status

logger = logging.getLogger(__name__)

# Graph API OAuthException codes meaning the token itself is no longer usable
EXPIRED_TOKEN_CODES = {190, 102}


class GraphApiAdapter(PlatformAdapter):
    """Shared plumbing for platforms served by the Facebook Graph API."""

    @property
    def graph_url(self) -> str:
        return f"https://graph.facebook.com/{self.settings.graph_api_version}"

    def _classify(self, response: httpx.Response) -> ErrorKind:
        # Graph reports expired tokens as 400 with an OAuthException code
        try:
            error = (response.json() or {}).get("error") or {}
        except ValueError:
            error = {}
        if isinstance(error, dict) and error.get("code") in EXPIRED_TOKEN_CODES:
            return ErrorKind.AUTH_EXPIRED
        if isinstance(error, dict) and error.get("is_transient"):
            return ErrorKind.RETRYABLE
        return classify_status(response.status_code)

    async def refresh_access_token(self, account: SocialAccount) -> TokenGrant:
        """
        Exchange the stored long-lived user token for a fresh one.

        Graph tokens have no refresh_token grant; the long-lived user token
        kept in `refresh_token` when the account was linked plays that role.
        """
        if not account.refresh_token:
            raise CredentialRefreshError(f"{self.label} account has no long-lived token to exchange")
        if not (self.settings.facebook_app_id and self.settings.facebook_app_secret):
            raise CredentialRefreshError("Facebook app credentials are not configured")

        try:
            response = await self._send(
                "GET",
                f"{self.graph_url}/oauth/access_token",
                expected=(200,),
                params={
                    "grant_type": "fb_exchange_token",
                    "client_id": self.settings.facebook_app_id,
                    "client_secret": self.settings.facebook_app_secret,
                    "fb_exchange_token": account.refresh_token,
                },
            )
        except AdapterError as e:
            raise CredentialRefreshError(f"Token exchange failed: {e}") from e

        token_data = self._json(response)
        if not token_data.get("access_token"):
            raise CredentialRefreshError("Token exchange returned no access token")
        logger.info(f"Exchanged {self.label} token for account {account.id}")
        return TokenGrant(
            access_token=token_data["access_token"],
            refresh_token=account.refresh_token,
            expires_in=token_data.get("expires_in", 5184000),
        )
