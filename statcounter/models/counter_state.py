from sqlalchemy import LargeBinary, String
from sqlalchemy.orm import Mapped, mapped_column

from statcounter.models.base import Base, TimestampMixin
from statcounter.stats.accumulator import COUNTER_BYTES_SIZE


class CounterState(TimestampMixin, Base):
    """Latest merged accumulator for a key, stored in its 40-byte encoding."""

    __tablename__ = "counter_states"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    payload: Mapped[bytes] = mapped_column(LargeBinary(COUNTER_BYTES_SIZE), nullable=False)
