"""Ratings router — ranks every stored counter by its Bayesian score."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from statcounter.core.config import settings
from statcounter.core.database import get_db
from statcounter.stats.counter_store import list_counters
from statcounter.stats.rating import RatingScore, check_bounds

logger = logging.getLogger(__name__)

router = APIRouter(tags=["ratings"])


class RankedRating(BaseModel):
    key: str
    count: int
    mean_rating: float
    bayesian_score: float


@router.get("/ratings", response_model=list[RankedRating])
async def list_ratings(
    lower_bound: float = Query(default=settings.RATING_LOWER_BOUND),
    upper_bound: float = Query(default=settings.RATING_UPPER_BOUND),
    db: AsyncSession = Depends(get_db),
) -> list[RankedRating]:
    """Rank all counters, highest Bayesian score first.

    Each counter is shrunk toward the midpoint of ``[lower_bound, upper_bound]``.
    Counters with equal scores keep their key order.
    """
    try:
        check_bounds(lower_bound, upper_bound)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    rated: list[tuple[str, RatingScore]] = []
    for key, acc in (await list_counters(db)).items():
        rating = RatingScore(lower_bound, upper_bound)
        rating.merge(acc)
        rated.append((key, rating))

    rated.sort(key=lambda item: item[1])
    logger.debug("Ranked %d counters", len(rated))
    return [
        RankedRating(
            key=key,
            count=rating.count(),
            mean_rating=rating.mean_rating(),
            bayesian_score=rating.bayesian_score(),
        )
        for key, rating in rated
    ]
