from fastapi import APIRouter, Depends, Query
from typing import List
import logging

from contentforge.dependencies import ServiceContainer, get_services, get_team_id
from contentforge.schemas.generation import BatchResult
from contentforge.schemas.social_media import (
    ContentPieceCreate,
    ContentPieceResponse,
    GeneratedContentResponse,
    VariantBatchRequest,
    VariantResponse,
    VariantUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/content", tags=["Content Generation"])


@router.post("/variants", response_model=BatchResult)
async def generate_variants(
    request: VariantBatchRequest,
    team_id: str = Depends(get_team_id),
    services: ServiceContainer = Depends(get_services),
):
    """
    Generate candidate posts for several platforms at once.

    - **topic**: What the posts are about
    - **platforms**: Target platforms, e.g. twitter, linkedin, instagram
    - **redundancy**: Independent attempts per platform (defaults to the configured value)

    Platforms where most attempts failed are listed under `degraded` with the
    per-attempt errors; the variants that did succeed are still returned.
    """
    logger.info(f"Variant batch requested by team {team_id}: {request.platforms}")
    return await services.aggregator.generate_variants(
        request.topic,
        request.platforms,
        redundancy=request.redundancy,
        tone=request.tone,
        reference_body=request.reference_body,
    )


@router.post("", response_model=GeneratedContentResponse)
async def create_content_piece(
    request: ContentPieceCreate,
    team_id: str = Depends(get_team_id),
    services: ServiceContainer = Depends(get_services),
):
    """Generate a long-form piece plus its social variants and store them."""
    piece, batch = await services.content.generate_content_piece(
        team_id,
        request.topic,
        request.platforms,
        redundancy=request.redundancy,
        tone=request.tone,
        title=request.title,
    )
    return GeneratedContentResponse(
        content=ContentPieceResponse.model_validate(piece),
        degraded={platform: info.model_dump() for platform, info in batch.degraded.items()},
    )


@router.get("", response_model=List[ContentPieceResponse])
async def list_content_pieces(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    team_id: str = Depends(get_team_id),
    services: ServiceContainer = Depends(get_services),
):
    return services.content.list_content_pieces(team_id, limit=limit, offset=offset)


@router.get("/{piece_id}", response_model=ContentPieceResponse)
async def get_content_piece(
    piece_id: int,
    team_id: str = Depends(get_team_id),
    services: ServiceContainer = Depends(get_services),
):
    return services.content.get_content_piece(piece_id, team_id)


@router.patch("/variants/{variant_id}", response_model=VariantResponse)
async def update_variant(
    variant_id: int,
    update: VariantUpdate,
    team_id: str = Depends(get_team_id),
    services: ServiceContainer = Depends(get_services),
):
    """Edit a variant's text or image; `over_limit` is recomputed from the new text."""
    return services.content.update_variant(variant_id, text=update.text, image_url=update.image_url, team_id=team_id)
