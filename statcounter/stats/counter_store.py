"""Persist merged accumulators keyed by name.

Each key holds a single 40-byte payload.  Incoming partial results (from
local increments or from shards shipped as encoded bytes) are merged into
the stored state, so the stored accumulator is always the reduction of
everything received for that key.

Concurrent merges into one key are serialized by the database: the row is
first created if missing with ``INSERT ... ON CONFLICT DO NOTHING`` and then
re-read under ``SELECT ... FOR UPDATE`` before the merged payload is written.
On PostgreSQL the row lock holds other writers until commit; SQLite takes its
database write lock at the insert, which has the same effect.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from statcounter.models.counter_state import CounterState
from statcounter.stats.accumulator import Accumulator

logger = logging.getLogger(__name__)

_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}

_EMPTY_PAYLOAD = Accumulator().to_bytes()


async def load_counter(db: AsyncSession, key: str) -> Optional[Accumulator]:
    """Return the stored accumulator for ``key``, or None if never written."""
    result = await db.execute(select(CounterState).where(CounterState.key == key))
    row = result.scalar_one_or_none()
    if row is None:
        return None
    return Accumulator(row.payload)


async def _ensure_row(db: AsyncSession, key: str) -> None:
    dialect = db.get_bind().dialect.name
    insert = _INSERTS.get(dialect)
    if insert is None:
        raise NotImplementedError(f"Counter store does not support the {dialect} dialect")
    stmt = (
        insert(CounterState)
        .values(key=key, payload=_EMPTY_PAYLOAD)
        .on_conflict_do_nothing(index_elements=[CounterState.key])
    )
    await db.execute(stmt)


async def merge_into(db: AsyncSession, key: str, accumulator: Accumulator) -> Accumulator:
    """Merge ``accumulator`` into the stored state for ``key``.

    Creates the row when the key is new.  ``accumulator`` is not modified.
    Safe to call from concurrent sessions: every merge lands in the stored
    state once the sessions commit.

    Parameters
    ----------
    db : AsyncSession
        Database session.
    key : str
        Counter name.
    accumulator : Accumulator
        Partial statistics to fold in.

    Returns
    -------
    Accumulator
        The merged state as persisted.

    Raises
    ------
    CountOverflow
        If the merged count would not fit in 64 bits.  Nothing is written.
    """
    await _ensure_row(db, key)

    result = await db.execute(
        select(CounterState)
        .where(CounterState.key == key)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    row = result.scalar_one()

    merged = Accumulator(row.payload)
    merged.merge(accumulator)
    row.payload = merged.to_bytes()

    logger.debug("Merged %d values into counter %s (now n=%d)", accumulator.count(), key, merged.count())
    await db.flush()
    return merged


async def list_counters(db: AsyncSession) -> dict[str, Accumulator]:
    """Return every stored accumulator, keyed by name."""
    result = await db.execute(select(CounterState).order_by(CounterState.key))
    return {row.key: Accumulator(row.payload) for row in result.scalars().all()}
