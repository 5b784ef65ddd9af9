"""Cancellation window rule for client-initiated cancellations."""

from dataclasses import dataclass
from datetime import datetime, timedelta

from marketplace.core import config
from marketplace.models.common import as_utc


def is_cancellable(slot_start: datetime, now: datetime, window_minutes: int) -> bool:
    """True while ``now`` is strictly before ``slot_start - window_minutes``."""
    cutoff = as_utc(slot_start) - timedelta(minutes=window_minutes)
    return as_utc(now) < cutoff


@dataclass(frozen=True)
class CancellationPolicy:
    window_minutes: int = config.CANCELLATION_WINDOW_MINUTES

    def __post_init__(self) -> None:
        if self.window_minutes < 0:
            raise ValueError("Cancellation window must not be negative.")

    def allows(self, slot_start: datetime, now: datetime) -> bool:
        return is_cancellable(slot_start, now, self.window_minutes)
