from pydantic import BaseModel, Field, model_validator
from typing import Optional, List, Dict, Any
from datetime import datetime


class SocialAccountBase(BaseModel):
    platform: str
    username: Optional[str] = None
    display_name: Optional[str] = None


class SocialAccountCreate(SocialAccountBase):
    platform_user_id: str
    access_token: str
    refresh_token: Optional[str] = None
    token_expires_at: Optional[datetime] = None
    platform_data: Optional[Dict[str, Any]] = None


class SocialAccountResponse(SocialAccountBase):
    id: int
    team_id: str
    platform_user_id: str
    token_expires_at: Optional[datetime] = None
    platform_data: Optional[Dict[str, Any]] = None
    is_active: bool = True
    connected_at: Optional[datetime] = None
    last_refreshed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AccountValidationResponse(BaseModel):
    account_id: int
    valid: bool
    is_active: bool


class VariantBatchRequest(BaseModel):
    """Request model for multi-variant generation."""
    topic: str = Field(..., min_length=1, max_length=500, description="Topic to write about")
    platforms: List[str] = Field(..., min_length=1, description="Target platforms, in display order")
    redundancy: Optional[int] = Field(None, ge=1, le=10, description="Generation attempts per platform")
    tone: str = Field(default="professional", description="Voice for the generated copy")
    reference_body: Optional[str] = Field(None, description="Long-form text the variants should draw on")


class ContentPieceCreate(VariantBatchRequest):
    title: Optional[str] = None


class VariantResponse(BaseModel):
    id: int
    platform: str
    text: str
    image_url: Optional[str] = None
    over_limit: bool = False
    scheduled_post_id: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class VariantUpdate(BaseModel):
    text: Optional[str] = None
    image_url: Optional[str] = None

    @model_validator(mode='after')
    def validate_has_change(self):
        if self.text is None and self.image_url is None:
            raise ValueError("At least one of text or image_url must be provided")
        if self.text is not None and not self.text.strip():
            raise ValueError("Variant text cannot be empty")
        return self


class ContentPieceResponse(BaseModel):
    id: int
    team_id: str
    topic: str
    title: Optional[str] = None
    body: Optional[str] = None
    tone: Optional[str] = None
    variants: List[VariantResponse] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class GeneratedContentResponse(BaseModel):
    content: ContentPieceResponse
    degraded: Dict[str, Any] = Field(default_factory=dict)


class SchedulePostRequest(BaseModel):
    variant_id: int
    social_account_id: int
    scheduled_at: Optional[datetime] = Field(None, description="Omit to create a draft")


class RescheduleRequest(BaseModel):
    scheduled_at: datetime


class ScheduleDraftRequest(BaseModel):
    scheduled_at: Optional[datetime] = None


class PublishDueRequest(BaseModel):
    now: Optional[datetime] = None


class ScheduledPostResponse(BaseModel):
    id: int
    team_id: str
    variant_id: Optional[int] = None
    social_account_id: Optional[int] = None
    platform: str
    content: str
    media_url: Optional[str] = None
    scheduled_at: Optional[datetime] = None
    status: str
    remote_post_id: Optional[str] = None
    failure_reason: Optional[str] = None
    error_message: Optional[str] = None
    attempt_count: int = 0
    last_attempt_at: Optional[datetime] = None
    published_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SuccessResponse(BaseModel):
    success: bool = True
    message: str
    data: Optional[Dict[str, Any]] = None
