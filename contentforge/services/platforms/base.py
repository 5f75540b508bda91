import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, Optional

import httpx

from contentforge.config import Settings
from contentforge.errors import AdapterError, ErrorKind
from contentforge.models.social_account import SocialAccount
from contentforge.schemas.publishing import PlatformCapabilities, PublishRequest, PublishResult, TokenGrant

logger = logging.getLogger(__name__)


def classify_status(status_code: int) -> ErrorKind:
    """Map an HTTP error status to the orchestrator's reaction."""
    if status_code == 401:
        return ErrorKind.AUTH_EXPIRED
    if status_code == 429 or status_code >= 500:
        return ErrorKind.RETRYABLE
    return ErrorKind.NON_RETRYABLE


def extract_error_message(response: httpx.Response) -> str:
    """Pull the most specific human-readable message out of an error body."""
    try:
        payload = response.json()
    except ValueError:
        payload = None

    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return payload.get("error_description") or error
        for key in ("message", "detail", "title"):
            if payload.get(key):
                return str(payload[key])
        errors = payload.get("errors")
        if isinstance(errors, list) and errors and isinstance(errors[0], dict):
            first = errors[0]
            if first.get("message"):
                return str(first["message"])

    text = (response.text or "").strip()
    if text:
        return text[:300]
    return response.reason_phrase or f"HTTP {response.status_code}"


class PlatformAdapter(ABC):
    """
    Translates an abstract publish request into one platform's API calls.

    Adapters receive credentials that are already validated and requests that
    already passed the capability checks. They never refresh tokens or retry;
    failures come back as a PublishResult carrying an ErrorKind.
    """

    capabilities: PlatformCapabilities

    def __init__(self, client: httpx.AsyncClient, settings: Settings):
        self.client = client
        self.settings = settings

    @property
    def platform(self) -> str:
        return self.capabilities.platform

    @property
    def label(self) -> str:
        return self.capabilities.label

    async def publish(self, account: SocialAccount, request: PublishRequest) -> PublishResult:
        """Publish one post. Never raises for remote failures."""
        try:
            return await self._publish(account, request)
        except AdapterError as e:
            logger.error(f"{self.label} publish failed for account {account.id}: {e} ({e.kind.value})")
            return PublishResult.failed(str(e), e.kind)

    async def validate_token(self, account: SocialAccount) -> bool:
        """
        Check the access token against the platform.

        Returns False when the platform rejects the token. Transient failures
        are raised as AdapterError: an unreachable platform says nothing about
        the token.
        """
        try:
            await self._fetch_profile(account)
            return True
        except AdapterError as e:
            if e.kind == ErrorKind.RETRYABLE:
                raise
            logger.info(f"{self.label} token for account {account.id} rejected: {e}")
            return False

    @abstractmethod
    async def _publish(self, account: SocialAccount, request: PublishRequest) -> PublishResult:
        ...

    @abstractmethod
    async def _fetch_profile(self, account: SocialAccount) -> Dict[str, Any]:
        ...

    @abstractmethod
    async def refresh_access_token(self, account: SocialAccount) -> TokenGrant:
        """Exchange the stored refresh token for a new grant (CredentialRefreshError on refusal)."""

    def _auth_headers(self, account: SocialAccount, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {"Authorization": f"Bearer {account.access_token}"}
        if extra:
            headers.update(extra)
        return headers

    def _classify(self, response: httpx.Response) -> ErrorKind:
        return classify_status(response.status_code)

    async def _send(
        self,
        method: str,
        url: str,
        expected: Iterable[int] = (200, 201),
        **kwargs,
    ) -> httpx.Response:
        """Issue one HTTP call; any non-expected outcome becomes an AdapterError."""
        try:
            response = await self.client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise AdapterError(f"{self.label} request timed out: {e}", ErrorKind.RETRYABLE) from e
        except httpx.TransportError as e:
            raise AdapterError(f"{self.label} network error: {e}", ErrorKind.RETRYABLE) from e

        if response.status_code not in tuple(expected):
            message = extract_error_message(response)
            kind = self._classify(response)
            logger.warning(f"{self.label} API error: {response.status_code} - {message}")
            raise AdapterError(
                f"{self.label} API error ({response.status_code}): {message}",
                kind,
                status_code=response.status_code,
            )
        return response

    @staticmethod
    def _json(response: httpx.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}
