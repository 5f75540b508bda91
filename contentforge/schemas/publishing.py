from pydantic import BaseModel, Field
from typing import Optional, Literal
from datetime import datetime

from contentforge.errors import ErrorKind, FailureReason


class PlatformCapabilities(BaseModel):
    """What a platform accepts, checked before any remote call is made."""
    platform: str
    label: str
    char_limit: Optional[int] = None
    requires_media: bool = False
    supports_media: bool = True
    two_step_publish: bool = False
    prompt_hint: str = ""

    model_config = {"frozen": True}


class PublishRequest(BaseModel):
    text: str
    media_url: Optional[str] = None
    media_type: Literal["image", "video"] = "image"
    # Event-loop time by which the whole publish must be finished
    deadline: Optional[float] = None

    @property
    def has_media(self) -> bool:
        return bool(self.media_url and self.media_url.strip())


class PublishResult(BaseModel):
    success: bool
    remote_post_id: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    # Set when a media container was created but its publish step failed
    container_id: Optional[str] = None

    @classmethod
    def ok(cls, remote_post_id: Optional[str]) -> "PublishResult":
        return cls(success=True, remote_post_id=remote_post_id)

    @classmethod
    def failed(cls, error: str, kind: ErrorKind, container_id: Optional[str] = None) -> "PublishResult":
        return cls(success=False, error=error, error_kind=kind, container_id=container_id)


class TokenGrant(BaseModel):
    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None


class PublishAttempt(BaseModel):
    """Outcome of one publish procedure for a scheduled post."""
    post_id: int
    platform: str
    account_id: Optional[int] = None
    success: bool
    remote_post_id: Optional[str] = None
    failure_reason: Optional[FailureReason] = None
    error: Optional[str] = None
    attempt_count: int = 0
    attempted_at: datetime
