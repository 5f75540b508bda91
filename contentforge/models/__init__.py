# Database Models Package
from .social_account import SocialAccount
from .content_piece import ContentPiece, SocialPostVariant
from .scheduled_post import ScheduledPost, PostStatus, ALLOWED_TRANSITIONS, RESCHEDULABLE
from contentforge.database import Base
