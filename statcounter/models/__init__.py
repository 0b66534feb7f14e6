from statcounter.models.base import Base, TimestampMixin
from statcounter.models.counter_state import CounterState

__all__ = [
    "Base",
    "TimestampMixin",
    "CounterState",
]
