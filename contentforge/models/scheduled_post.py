from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey
from sqlalchemy.orm import relationship
from contentforge.datetime_utils import utcnow
from contentforge.database import Base
import enum


class PostStatus(str, enum.Enum):
    DRAFT = "draft"
    SCHEDULED = "scheduled"
    PUBLISHED = "published"
    FAILED = "failed"
    CANCELLED = "cancelled"


# Allowed status changes; anything else is an InvalidStateError
ALLOWED_TRANSITIONS = {
    PostStatus.DRAFT: {PostStatus.SCHEDULED, PostStatus.CANCELLED},
    PostStatus.SCHEDULED: {PostStatus.PUBLISHED, PostStatus.FAILED, PostStatus.CANCELLED},
    PostStatus.FAILED: {PostStatus.SCHEDULED},
    PostStatus.PUBLISHED: set(),
    PostStatus.CANCELLED: set(),
}

RESCHEDULABLE = {PostStatus.DRAFT, PostStatus.SCHEDULED}


class ScheduledPost(Base):
    __tablename__ = "scheduled_posts"

    id = Column(Integer, primary_key=True, index=True)
    team_id = Column(String, nullable=False, index=True)
    variant_id = Column(Integer, ForeignKey("social_post_variants.id"), nullable=True)
    social_account_id = Column(Integer, ForeignKey("social_accounts.id"), nullable=True)
    platform = Column(String(20), nullable=False)

    # Content snapshot taken at schedule time
    content = Column(Text, nullable=False)
    media_url = Column(String, nullable=True)

    # Schedule
    scheduled_at = Column(DateTime(timezone=True), nullable=True, index=True)
    status = Column(String(20), nullable=False, default=PostStatus.DRAFT.value, index=True)

    # Latest publish attempt
    remote_post_id = Column(String, nullable=True)
    failure_reason = Column(String(40), nullable=True)
    error_message = Column(Text, nullable=True)
    attempt_count = Column(Integer, nullable=False, default=0)
    last_attempt_at = Column(DateTime(timezone=True), nullable=True)
    published_at = Column(DateTime(timezone=True), nullable=True)

    # Metadata
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    variant = relationship("SocialPostVariant", back_populates="scheduled_post")
    social_account = relationship("SocialAccount", back_populates="scheduled_posts")

    @property
    def post_status(self) -> PostStatus:
        return PostStatus(self.status)

    def __repr__(self):
        return f"<ScheduledPost(id={self.id}, platform='{self.platform}', status='{self.status}', scheduled_at={self.scheduled_at})>"
