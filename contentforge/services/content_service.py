import logging
from typing import List, Optional, Sequence, Tuple

from sqlalchemy.orm import sessionmaker

from contentforge.database import session_scope
from contentforge.errors import GenerationFailure, InvalidBatchRequest, NotFoundError
from contentforge.models.content_piece import ContentPiece, SocialPostVariant
from contentforge.schemas.generation import BatchResult
from contentforge.services.generation_service import GenerationService
from contentforge.services.platforms.registry import AdapterRegistry
from contentforge.services.variant_aggregator import VariantAggregator

logger = logging.getLogger(__name__)


class ContentService:
    """Content pieces: a long-form body plus the social variants derived from it."""

    def __init__(
        self,
        session_factory: sessionmaker,
        generator: GenerationService,
        aggregator: VariantAggregator,
        registry: AdapterRegistry,
    ):
        self.session_factory = session_factory
        self.generator = generator
        self.aggregator = aggregator
        self.registry = registry

    async def generate_content_piece(
        self,
        team_id: str,
        topic: str,
        platforms: Sequence[str],
        redundancy: Optional[int] = None,
        tone: str = "professional",
        title: Optional[str] = None,
    ) -> Tuple[ContentPiece, BatchResult]:
        """
        Generate the long-form body, fan it out into variants and store all of it.

        A failed long-form call does not stop the batch; the variants are then
        generated from the topic alone.
        """
        if not topic or not topic.strip():
            raise InvalidBatchRequest("Topic is required")

        body: Optional[str] = None
        try:
            body = await self.generator.generate_long_form(topic, tone)
        except GenerationFailure as e:
            logger.warning(f"Long-form generation failed for '{topic[:50]}', continuing with topic only: {e}")

        batch = await self.aggregator.generate_variants(
            topic,
            platforms,
            redundancy=redundancy,
            tone=tone,
            reference_body=body,
        )

        with session_scope(self.session_factory) as db:
            piece = ContentPiece(team_id=team_id, topic=topic.strip(), title=title, body=body, tone=tone)
            db.add(piece)
            db.flush()

            for platform, variants in batch.variants.items():
                for variant in variants:
                    db.add(SocialPostVariant(
                        content_piece_id=piece.id,
                        platform=platform,
                        text=variant.text,
                        over_limit=variant.over_limit,
                    ))
            piece_id = piece.id

        logger.info(
            f"✅ Content piece {piece_id} stored with "
            f"{sum(len(v) for v in batch.variants.values())} variants"
        )
        return self.get_content_piece(piece_id, team_id), batch

    def get_content_piece(self, piece_id: int, team_id: Optional[str] = None) -> ContentPiece:
        with session_scope(self.session_factory) as db:
            query = db.query(ContentPiece).filter(ContentPiece.id == piece_id)
            if team_id is not None:
                query = query.filter(ContentPiece.team_id == team_id)
            piece = query.first()
            if piece is None:
                raise NotFoundError("Content piece", piece_id)
            return piece

    def list_content_pieces(self, team_id: str, limit: int = 50, offset: int = 0) -> List[ContentPiece]:
        with session_scope(self.session_factory) as db:
            return db.query(ContentPiece).filter(
                ContentPiece.team_id == team_id
            ).order_by(ContentPiece.created_at.desc(), ContentPiece.id.desc()).offset(offset).limit(limit).all()

    def get_variant(self, variant_id: int, team_id: Optional[str] = None) -> SocialPostVariant:
        with session_scope(self.session_factory) as db:
            query = db.query(SocialPostVariant).filter(SocialPostVariant.id == variant_id)
            if team_id is not None:
                query = query.join(ContentPiece).filter(ContentPiece.team_id == team_id)
            variant = query.first()
            if variant is None:
                raise NotFoundError("Variant", variant_id)
            return variant

    def update_variant(
        self,
        variant_id: int,
        text: Optional[str] = None,
        image_url: Optional[str] = None,
        team_id: Optional[str] = None,
    ) -> SocialPostVariant:
        """Edit a variant's text or image. The over-limit flag follows the new text."""
        with session_scope(self.session_factory) as db:
            query = db.query(SocialPostVariant).filter(SocialPostVariant.id == variant_id)
            if team_id is not None:
                query = query.join(ContentPiece).filter(ContentPiece.team_id == team_id)
            variant = query.first()
            if variant is None:
                raise NotFoundError("Variant", variant_id)

            if text is not None:
                variant.text = text.strip()
            if image_url is not None:
                variant.image_url = image_url.strip() or None

            limit = self.registry.char_limit(variant.platform) if self.registry.supports(variant.platform) else None
            variant.over_limit = limit is not None and len(variant.text) > limit
            db.flush()
            logger.info(f"Variant {variant_id} updated ({len(variant.text)} chars, over_limit={variant.over_limit})")
            return variant
