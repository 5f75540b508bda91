from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, JSON
from contentforge.datetime_utils import utcnow
from sqlalchemy.orm import relationship
from contentforge.database import Base


class SocialAccount(Base):
    __tablename__ = "social_accounts"

    id = Column(Integer, primary_key=True, index=True)
    team_id = Column(String, nullable=False, index=True)
    platform = Column(String(20), nullable=False)  # 'twitter', 'linkedin', 'instagram', 'facebook'
    platform_user_id = Column(String, nullable=False)  # The account ID on the platform
    username = Column(String, nullable=True)
    display_name = Column(String, nullable=True)
    access_token = Column(Text, nullable=False)
    refresh_token = Column(Text, nullable=True)
    token_expires_at = Column(DateTime(timezone=True), nullable=True)
    platform_data = Column(JSON, nullable=True)  # Platform-specific ids, e.g. LinkedIn person URN
    is_active = Column(Boolean, nullable=False, default=True)
    connected_at = Column(DateTime(timezone=True), default=utcnow, nullable=True)
    last_refreshed_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    scheduled_posts = relationship("ScheduledPost", back_populates="social_account")

    def metadata_value(self, key: str, default=None):
        return (self.platform_data or {}).get(key, default)

    def __repr__(self):
        return f"<SocialAccount(id={self.id}, platform='{self.platform}', team_id='{self.team_id}', active={self.is_active})>"
