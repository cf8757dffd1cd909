"""
AI Stocks Bot — Daily Broadcast Scheduler
Emits one WakeSignal per day at a fixed wall-clock time in a fixed time zone.

Every iteration recomputes the target from the current instant, so there is no
drift from accumulating 24h increments. If the zone database does not know the
configured zone, a fixed UTC offset is used instead (no DST on that path).
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Awaitable, Callable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from core.models import ScheduleSpec, WakeSignal

logger = logging.getLogger(__name__)

DAY = timedelta(hours=24)


def resolve_timezone(name: str, fallback_offset_hours: float = 3.0) -> tzinfo:
    """Return the IANA zone `name`, or a fixed UTC offset if it can't be loaded."""
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, OSError) as e:
        label = f"UTC{fallback_offset_hours:+g}"
        logger.warning(f"Time zone {name!r} unavailable ({e}), falling back to fixed {label}")
        return timezone(timedelta(hours=fallback_offset_hours), label)


def next_fire_time(spec: ScheduleSpec, now: datetime, tz: Optional[tzinfo] = None) -> datetime:
    """
    Next instant strictly after `now` at spec.hour:spec.minute:00 in the zone.

    When today's slot has already passed (or is exactly now) the result is the
    slot plus 24 elapsed hours, so it is never more than a day away.
    """
    if now.tzinfo is None:
        raise ValueError("now must be timezone-aware")
    if tz is None:
        tz = resolve_timezone(spec.timezone)

    local_now = now.astimezone(tz)
    target = local_now.replace(hour=spec.hour, minute=spec.minute, second=0, microsecond=0)

    # Compare and add in UTC; same-tzinfo comparisons ignore the offset.
    target_utc = target.astimezone(timezone.utc)
    if now.astimezone(timezone.utc) >= target_utc:
        target_utc += DAY
    return target_utc.astimezone(tz)


class DailyScheduler:
    """Sleeps until the next daily slot, emits one WakeSignal, repeats."""

    def __init__(
        self,
        spec: ScheduleSpec,
        emit: Callable[[WakeSignal], Awaitable[None]],
        tz: Optional[tzinfo] = None,
        fallback_offset_hours: float = 3.0,
        clock: Optional[Callable[[], datetime]] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self.spec = spec
        self.tz = tz or resolve_timezone(spec.timezone, fallback_offset_hours)
        self._emit = emit
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._sleep = sleep or self._wait
        self._stopped = asyncio.Event()
        self.next_fire_at: Optional[datetime] = None
        self.fired = 0

    @property
    def running(self) -> bool:
        return self.next_fire_at is not None

    async def run(self):
        """Emit WakeSignals until stop() is called or the task is cancelled."""
        self._stopped.clear()
        logger.info(
            f"Daily scheduler started: {self.spec.hour:02d}:{self.spec.minute:02d} ({self.tz})"
        )
        try:
            while not self._stopped.is_set():
                now = self._clock()
                target = next_fire_time(self.spec, now, self.tz)
                self.next_fire_at = target
                logger.info(
                    f"Next analytics broadcast in {target - now} "
                    f"({target:%Y-%m-%d %H:%M %Z})"
                )

                await self._sleep_until(target)
                if self._stopped.is_set():
                    break

                self.fired += 1
                await self._emit(WakeSignal(scheduled_for=target))
        finally:
            self.next_fire_at = None
            logger.info("Daily scheduler stopped")

    def stop(self):
        """Ask run() to return at its next wake-up."""
        self._stopped.set()

    async def _sleep_until(self, target: datetime):
        # Sleep may return early against the wall clock; never fire before target.
        while not self._stopped.is_set():
            remaining = (target - self._clock()).total_seconds()
            if remaining <= 0:
                return
            await self._sleep(remaining)

    async def _wait(self, seconds: float):
        try:
            await asyncio.wait_for(self._stopped.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass
