"""
Scheduling primitives: cadences, timer-driven jobs and the monitoring config.

Jobs run on the asyncio event loop. Each armed job holds exactly one timer
handle; stopping a job cancels that handle, so a stopped job never fires or
re-arms itself.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Tuple

from ...utils.clock import Clock, utc_now

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60


class SchedulerError(Exception):
    """Raised on scheduler lifecycle misuse."""
    pass


class JobError(SchedulerError):
    """Raised on job lifecycle misuse or invalid job definitions."""
    pass


class JobStatus(Enum):
    STOPPED = "stopped"
    RUNNING = "running"


@dataclass(frozen=True)
class Cadence:
    """
    When a job fires, in UTC.

    interval_minutes ticks are aligned to UTC midnight (60 fires at the top
    of every hour, 30 at :00 and :30). hours restricts firing to those hours
    of the day; with hours alone the job fires at minute 0 of each of them.
    fire_immediately makes the job run once as soon as it is started.
    """

    interval_minutes: Optional[int] = None
    hours: Tuple[int, ...] = ()
    fire_immediately: bool = True

    def __post_init__(self):
        if self.interval_minutes is None and not self.hours:
            raise JobError("Cadence needs an interval, fixed hours, or both")
        if self.interval_minutes is not None and not 0 < self.interval_minutes <= MINUTES_PER_DAY:
            raise JobError(f"Invalid cadence interval: {self.interval_minutes} minutes")
        for hour in self.hours:
            if not 0 <= hour <= 23:
                raise JobError(f"Invalid hour of day: {hour}")

    @classmethod
    def every(cls, minutes: int, fire_immediately: bool = True) -> "Cadence":
        return cls(interval_minutes=minutes, fire_immediately=fire_immediately)

    @classmethod
    def daily_at(cls, *hours: int, fire_immediately: bool = True) -> "Cadence":
        return cls(hours=tuple(sorted(hours)), fire_immediately=fire_immediately)

    @property
    def tick_minutes(self) -> int:
        return self.interval_minutes if self.interval_minutes is not None else 60

    def next_fire(self, now: datetime) -> datetime:
        """First tick strictly after now that passes the hour gate."""
        midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
        elapsed = (now - midnight).total_seconds() / 60
        step = self.tick_minutes

        tick = int(elapsed // step) + 1
        # Two days of ticks always contain an allowed hour
        for _ in range(2 * MINUTES_PER_DAY // step + 2):
            if tick * step >= MINUTES_PER_DAY:
                midnight += timedelta(days=1)
                tick = 0
            candidate = midnight + timedelta(minutes=tick * step)
            if not self.hours or candidate.hour in self.hours:
                return candidate
            tick += 1

        raise JobError(f"Cadence {self} never fires")

    def describe(self) -> str:
        parts = []
        if self.interval_minutes is not None:
            parts.append(f"every {self.interval_minutes}m")
        if self.hours:
            parts.append("at " + ",".join(f"{h:02d}:00" for h in self.hours) + " UTC")
        return " ".join(parts)


class ScheduledJob:
    """
    A named async action fired on a cadence.

    Failures of the action are logged and recorded in last_error; they never
    stop the job.
    """

    def __init__(self, name: str, cadence: Cadence, action: Callable[[], Awaitable[Any]],
                 clock: Clock = utc_now):
        self.name = name
        self.cadence = cadence
        self.action = action
        self.clock = clock

        self.status = JobStatus.STOPPED
        self.run_count = 0
        self.last_run_at: Optional[datetime] = None
        self.last_error: Optional[str] = None
        self.next_run_at: Optional[datetime] = None

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._timer: Optional[asyncio.Handle] = None
        self._immediate: Optional[asyncio.Handle] = None
        self._tasks: Set[asyncio.Task] = set()

    @property
    def is_running(self) -> bool:
        return self.status is JobStatus.RUNNING

    def start(self) -> None:
        """
        Arm the job on the running event loop.

        Raises:
            JobError: If the job is already running
        """
        if self.is_running:
            raise JobError(f"Job {self.name} is already running")

        self._loop = asyncio.get_running_loop()
        self.status = JobStatus.RUNNING

        if self.cadence.fire_immediately:
            self._immediate = self._loop.call_soon(self._launch)
        self._arm()

        logger.info(f"Started job {self.name} ({self.cadence.describe()}), next run {self.next_run_at}")

    def stop(self) -> None:
        """Cancel pending timers. In-flight runs are left to finish."""
        for handle in (self._timer, self._immediate):
            if handle is not None:
                handle.cancel()
        self._timer = None
        self._immediate = None
        self.next_run_at = None

        if self.is_running:
            logger.info(f"Stopped job {self.name}")
        self.status = JobStatus.STOPPED

    def _arm(self, after: Optional[datetime] = None) -> None:
        now = self.clock()
        self.next_run_at = self.cadence.next_fire(max(now, after) if after else now)
        delay = max(0.0, (self.next_run_at - now).total_seconds())
        self._timer = self._loop.call_later(delay, self._on_timer)

    def _on_timer(self) -> None:
        if not self.is_running:
            return
        fired = self.next_run_at
        self._launch()
        # The loop timer can fire before the wall clock reaches the tick
        self._arm(after=fired)

    def _launch(self) -> None:
        self._immediate = None
        if not self.is_running:
            return
        task = self._loop.create_task(self.run_once())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def run_once(self) -> None:
        """Run the action now, outside of the cadence if need be."""
        started = self.clock()
        logger.info(f"Running job {self.name}")

        try:
            await self.action()
            self.last_error = None
        except Exception as e:
            self.last_error = str(e)
            logger.error(f"Job {self.name} failed: {e}", exc_info=True)
        finally:
            self.run_count += 1
            self.last_run_at = started

        logger.info(f"Finished job {self.name} in {(self.clock() - started).total_seconds():.1f}s")

    def status_dict(self) -> Dict[str, Any]:
        return {
            'status': self.status.value,
            'cadence': self.cadence.describe(),
            'run_count': self.run_count,
            'last_run_at': self.last_run_at.isoformat() if self.last_run_at else None,
            'next_run_at': self.next_run_at.isoformat() if self.next_run_at else None,
            'last_error': self.last_error,
        }


@dataclass
class MonitoringConfig:
    """
    What to monitor and which tiers are enabled.

    Attributes:
        owner: Wallet whose positions are evaluated; without it position tiers skip their cycle
        active_pools: Pools snapshotted by the hourly tier
        position_ids: Restrict evaluation to these positions (empty means all of the owner's)
        enable_*: Toggle each tier
        fire_immediately: Run each enabled tier once as soon as monitoring starts
    """

    owner: Optional[str] = None
    active_pools: List[str] = field(default_factory=list)
    position_ids: List[str] = field(default_factory=list)
    enable_hourly_snapshots: bool = True
    enable_quick_checks: bool = True
    enable_twelve_hour_analysis: bool = True
    enable_daily_review: bool = True
    fire_immediately: bool = True

    @classmethod
    def from_settings(cls, settings, owner: Optional[str] = None,
                      active_pools: Optional[List[str]] = None,
                      position_ids: Optional[List[str]] = None) -> "MonitoringConfig":
        return cls(
            owner=owner,
            active_pools=list(active_pools or []),
            position_ids=list(position_ids or []),
            fire_immediately=settings.FIRE_ON_START,
        )

    @property
    def enabled_tiers(self) -> List[str]:
        flags = {
            'hourly_snapshots': self.enable_hourly_snapshots,
            'quick_check': self.enable_quick_checks,
            'twelve_hour_analysis': self.enable_twelve_hour_analysis,
            'daily_review': self.enable_daily_review,
        }
        return [name for name, enabled in flags.items() if enabled]
