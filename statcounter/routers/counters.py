"""Counters router — feed, merge and read stored accumulators.

Producers either send raw values for a key or ship a whole shard as the
base64 of its 40-byte accumulator encoding.  Both are merged into the stored
state for the key.
"""

import base64
import binascii
import logging
import math

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from statcounter.core.database import get_db
from statcounter.stats.accumulator import Accumulator, CountOverflow, MalformedEncoding
from statcounter.stats.counter_store import load_counter, merge_into
from statcounter.stats.reduce import from_values

logger = logging.getLogger(__name__)

router = APIRouter(tags=["counters"])


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------


class ValuesIn(BaseModel):
    values: list[float]


class EncodedCounter(BaseModel):
    payload: str


class EncodedCounterOut(EncodedCounter):
    key: str


class CounterStats(BaseModel):
    key: str
    count: int
    sum: float | None = None
    mean: float | None = None
    variance: float | None = None
    stddev: float | None = None
    min: float | None = None
    max: float | None = None


def _defined(value: float) -> float | None:
    return None if math.isnan(value) else value


def counter_stats(key: str, acc: Accumulator) -> CounterStats:
    return CounterStats(
        key=key,
        count=acc.count(),
        sum=_defined(acc.sum()),
        mean=_defined(acc.mean()),
        variance=_defined(acc.variance()),
        stddev=_defined(acc.stddev()),
        min=_defined(acc.min()),
        max=_defined(acc.max()),
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


async def _merge(db: AsyncSession, key: str, acc: Accumulator) -> CounterStats:
    try:
        merged = await merge_into(db, key, acc)
    except CountOverflow as exc:
        logger.warning("Rejected merge into counter %s: %s", key, exc)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return counter_stats(key, merged)


@router.post("/counters/{key}/values", response_model=CounterStats)
async def add_values(
    key: str,
    body: ValuesIn,
    db: AsyncSession = Depends(get_db),
) -> CounterStats:
    """Increment the counter for ``key`` by each of the given values."""
    return await _merge(db, key, from_values(body.values))


@router.post("/counters/{key}/merge", response_model=CounterStats)
async def merge_counter(
    key: str,
    body: EncodedCounter,
    db: AsyncSession = Depends(get_db),
) -> CounterStats:
    """Merge a shard's encoded accumulator into the counter for ``key``."""
    try:
        raw = base64.b64decode(body.payload, validate=True)
        shard = Accumulator(raw)
    except (binascii.Error, MalformedEncoding) as exc:
        logger.warning("Rejected payload for counter %s: %s", key, exc)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid accumulator payload: {exc}",
        )

    return await _merge(db, key, shard)


async def _get_or_404(db: AsyncSession, key: str) -> Accumulator:
    try:
        acc = await load_counter(db, key)
    except MalformedEncoding:
        logger.exception("Stored payload for counter %s is corrupt", key)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Stored counter is corrupt",
        )
    if acc is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Counter not found")
    return acc


@router.get("/counters/{key}", response_model=CounterStats)
async def get_counter(
    key: str,
    db: AsyncSession = Depends(get_db),
) -> CounterStats:
    """Summary statistics for ``key``; undefined values are null."""
    return counter_stats(key, await _get_or_404(db, key))


@router.get("/counters/{key}/encoded", response_model=EncodedCounterOut)
async def get_encoded_counter(
    key: str,
    db: AsyncSession = Depends(get_db),
) -> EncodedCounterOut:
    """The stored accumulator for ``key`` as base64 of its 40-byte encoding."""
    acc = await _get_or_404(db, key)
    return EncodedCounterOut(key=key, payload=base64.b64encode(acc.to_bytes()).decode("ascii"))
