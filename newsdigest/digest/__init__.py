"""Digest generation and timing."""

from .assembler import DigestAssembler
from .schedule import (
    TickResult,
    is_due,
    is_suppressed,
    local_clock,
    run_scheduler_tick,
    should_run_now,
)

__all__ = [
    "DigestAssembler",
    "TickResult",
    "is_due",
    "is_suppressed",
    "local_clock",
    "run_scheduler_tick",
    "should_run_now",
]
