from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, ForeignKey
from contentforge.datetime_utils import utcnow
from sqlalchemy.orm import relationship
from contentforge.database import Base


class ContentPiece(Base):
    __tablename__ = "content_pieces"

    id = Column(Integer, primary_key=True, index=True)
    team_id = Column(String, nullable=False, index=True)
    topic = Column(String, nullable=False)
    title = Column(String, nullable=True)
    body = Column(Text, nullable=True)  # Long-form article the variants were derived from
    tone = Column(String(50), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    variants = relationship(
        "SocialPostVariant",
        back_populates="content_piece",
        order_by="SocialPostVariant.id",
        lazy="selectin",
    )

    def __repr__(self):
        return f"<ContentPiece(id={self.id}, topic='{self.topic[:50]}')>"


class SocialPostVariant(Base):
    __tablename__ = "social_post_variants"

    id = Column(Integer, primary_key=True, index=True)
    content_piece_id = Column(Integer, ForeignKey("content_pieces.id"), nullable=True, index=True)
    platform = Column(String(20), nullable=False)
    text = Column(Text, nullable=False)
    image_url = Column(String, nullable=True)
    # Kept when longer than the platform allows; flagged, never truncated
    over_limit = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), default=utcnow)

    content_piece = relationship("ContentPiece", back_populates="variants")
    scheduled_post = relationship("ScheduledPost", back_populates="variant", uselist=False, lazy="selectin")

    @property
    def scheduled_post_id(self):
        return self.scheduled_post.id if self.scheduled_post is not None else None

    def __repr__(self):
        return f"<SocialPostVariant(id={self.id}, platform='{self.platform}', over_limit={self.over_limit})>"
