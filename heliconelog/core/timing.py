"""
Wall-clock timing envelopes for instrumented calls.

Helicone expects start/end as separate whole seconds and remainder
milliseconds, so timestamps are kept split instead of as one epoch value.
"""
from __future__ import annotations
import time
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


def _now_ms() -> int:
    return int(time.time() * 1000)


class Timestamp(BaseModel):
    model_config = ConfigDict(frozen=True)

    seconds: int = 0
    milliseconds: int = Field(0, ge=0, le=999)

    @classmethod
    def from_epoch_ms(cls, ms: int) -> "Timestamp":
        ms = int(ms)
        return cls(seconds=ms // 1000, milliseconds=ms % 1000)

    def to_epoch_ms(self) -> int:
        return self.seconds * 1000 + self.milliseconds

    @property
    def is_zero(self) -> bool:
        return self.seconds == 0 and self.milliseconds == 0


ZERO = Timestamp()


class TimingEnvelope(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    start: Timestamp = Field(alias="startTime")
    end: Timestamp = Field(default=ZERO, alias="endTime")

    @property
    def is_finalized(self) -> bool:
        return not self.end.is_zero

    @property
    def elapsed_ms(self) -> Optional[int]:
        if not self.is_finalized:
            return None
        return self.end.to_epoch_ms() - self.start.to_epoch_ms()


def start_timing(now_ms: Optional[int] = None) -> TimingEnvelope:
    """Open an envelope at the current wall-clock time; end stays zeroed."""
    ms = _now_ms() if now_ms is None else now_ms
    return TimingEnvelope(start=Timestamp.from_epoch_ms(ms), end=ZERO)


def finalize_timing(envelope: TimingEnvelope, now_ms: Optional[int] = None) -> TimingEnvelope:
    """Return a copy of `envelope` with end set to now; start is preserved."""
    ms = _now_ms() if now_ms is None else now_ms
    return envelope.model_copy(update={"end": Timestamp.from_epoch_ms(ms)})


__all__ = ["Timestamp", "TimingEnvelope", "ZERO", "start_timing", "finalize_timing"]
