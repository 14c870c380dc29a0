"""API routes for child review statistics and dashboard data."""

import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends

from backend.api.review_router import get_review_service, review_errors
from backend.api.schemas import ReviewStatsResponse
from backend.srs.service import ReviewService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/stats", tags=["stats"])


@router.get("/{child_id}", response_model=ReviewStatsResponse)
async def get_child_stats(
    child_id: int,
    service: ReviewService = Depends(get_review_service),
) -> ReviewStatsResponse:
    """Get overall review statistics for a child."""
    with review_errors():
        stats = await service.get_stats(child_id)

    logger.debug("Stats for child %d: %d cards, %d due", child_id, stats.total_cards, stats.due_today)
    return ReviewStatsResponse.model_validate(asdict(stats))
