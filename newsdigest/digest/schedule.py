"""
Digest timing: decides, per user and per tick, whether a digest fires now.

The predicates are pure; `run_scheduler_tick` is the driver that applies
them to every user with preferences once per minute.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo

from newsdigest.logging_config import get_logger
from newsdigest.models import DigestConfiguration, DigestFrequency
from newsdigest.scheduler import parse_time_24h

if TYPE_CHECKING:
    from newsdigest.storage.db import Database

    from .assembler import DigestAssembler

logger = get_logger("schedule")

SECOND_SLOT_OFFSET_HOURS = 10
DEFAULT_WEEKLY_DAY = 1  # Monday
WEEKEND = frozenset({0, 6})  # Sunday, Saturday


def local_clock(timezone: str, now: datetime) -> tuple[str, int]:
    """Local wall-clock "HH:MM" and weekday index (Sunday=0) in a timezone."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    local = now.astimezone(ZoneInfo(timezone))
    # isoweekday: Monday=1 .. Sunday=7
    return local.strftime("%H:%M"), local.isoweekday() % 7


def second_slot(delivery_time: str) -> str:
    """The later of the two TWICE_DAILY delivery times."""
    hour, minute = parse_time_24h(delivery_time)
    return f"{(hour + SECOND_SLOT_OFFSET_HOURS) % 24:02d}:{minute:02d}"


def should_run_now(
    frequency: DigestFrequency,
    delivery_time: str,
    timezone: str,
    weekly_day: int | None,
    now: datetime,
) -> bool:
    """
    True when `now` falls on a delivery minute for this schedule.

    Matching is exact to the minute: a tick that skips the minute misses
    the delivery.
    """
    hour, minute = parse_time_24h(delivery_time)
    target = f"{hour:02d}:{minute:02d}"
    clock, weekday = local_clock(timezone, now)

    match frequency:
        case DigestFrequency.DAILY:
            return clock == target
        case DigestFrequency.TWICE_DAILY:
            return clock in (target, second_slot(target))
        case DigestFrequency.WEEKDAY_ONLY:
            return clock == target and weekday not in WEEKEND
        case DigestFrequency.WEEKLY:
            day = DEFAULT_WEEKLY_DAY if weekly_day is None else weekly_day
            return clock == target and weekday == day
    return False


def is_suppressed(config: DigestConfiguration, now: datetime) -> bool:
    """Paused users and users with a future resume date get no digest."""
    if config.is_paused:
        return True
    if config.resume_date is None:
        return False
    resume_date = config.resume_date
    if resume_date.tzinfo is None:
        resume_date = resume_date.replace(tzinfo=UTC)
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    return resume_date > now


def is_due(config: DigestConfiguration, now: datetime) -> bool:
    if is_suppressed(config, now):
        return False
    return should_run_now(
        frequency=config.frequency,
        delivery_time=config.delivery_time,
        timezone=config.timezone,
        weekly_day=config.weekly_day,
        now=now,
    )


@dataclass
class TickResult:
    """Summary of one scheduler tick."""

    at: datetime
    checked: int = 0
    due: int = 0
    generated: int = 0
    failed: int = 0
    digest_ids: list[str] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)


def run_scheduler_tick(
    db: Database,
    assembler: DigestAssembler,
    app_base_url: str,
    now: datetime | None = None,
) -> TickResult:
    """
    Generate digests for every user due at `now`.

    A failure for one user is logged and recorded; the remaining users
    are still processed.
    """
    now = now or datetime.now(UTC)
    result = TickResult(at=now)

    for user_id, config in db.list_users_with_preferences():
        result.checked += 1
        if not is_due(config, now):
            continue

        result.due += 1
        try:
            digest = assembler.generate_for_user(user_id, app_base_url, now=now)
        except Exception as exc:
            result.failed += 1
            result.errors[user_id] = str(exc)
            logger.error(f"Digest generation failed for user {user_id}: {exc}")
            continue

        result.generated += 1
        result.digest_ids.append(digest.id)
        logger.info(f"Generated digest {digest.id} for user {user_id} ({digest.status.value})")

    logger.info(
        f"Scheduler tick at {now.isoformat()} complete: "
        f"{result.due}/{result.checked} due, {result.generated} generated, {result.failed} failed"
    )
    return result
