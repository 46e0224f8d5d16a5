"""
Multi-cadence monitoring scheduler.

Owns one ScheduledJob per enabled tier. The caller holds the returned
scheduler handle; starting a new one through start_monitoring() stops the
previous handle first.
"""

import logging
from typing import Any, Dict, Optional

from .base import Cadence, MonitoringConfig, ScheduledJob, SchedulerError
from .jobs import MonitoringJobs, MonitoringServices

logger = logging.getLogger(__name__)


class MonitoringScheduler:
    """
    Runs the monitoring tiers on their UTC cadences.

    Example:
        scheduler = start_monitoring(config, services)
        ...
        stop_monitoring(scheduler)
    """

    def __init__(self, config: MonitoringConfig, services: MonitoringServices):
        self.config = config
        self.services = services
        self.jobs = MonitoringJobs(config, services)
        self._scheduled: Dict[str, ScheduledJob] = {}

    @property
    def is_active(self) -> bool:
        return bool(self._scheduled)

    def cadences(self) -> Dict[str, Cadence]:
        settings = self.services.settings
        fire = self.config.fire_immediately

        return {
            'hourly_snapshots': Cadence.every(settings.HOURLY_SNAPSHOT_MINUTES, fire_immediately=fire),
            'quick_check': Cadence.every(settings.QUICK_CHECK_MINUTES, fire_immediately=fire),
            'twelve_hour_analysis': Cadence.daily_at(*settings.TWELVE_HOUR_ANALYSIS_HOURS,
                                                     fire_immediately=fire),
            'daily_review': Cadence.daily_at(settings.DAILY_REVIEW_HOUR, fire_immediately=fire),
        }

    def _actions(self):
        return {
            'hourly_snapshots': self.jobs.hourly_snapshots,
            'quick_check': self.jobs.quick_check,
            'twelve_hour_analysis': self.jobs.twelve_hour_analysis,
            'daily_review': self.jobs.daily_review,
        }

    def start(self) -> None:
        """
        Arm every enabled tier on the running event loop.

        Raises:
            SchedulerError: If this scheduler is already active
        """
        if self.is_active:
            raise SchedulerError("Monitoring scheduler is already running")

        cadences = self.cadences()
        actions = self._actions()

        for name in self.config.enabled_tiers:
            job = ScheduledJob(name, cadences[name], actions[name], clock=self.services.clock)
            self._scheduled[name] = job
            job.start()

        logger.info(
            f"Monitoring started: {len(self._scheduled)} jobs, "
            f"{len(self.config.active_pools)} pools, owner={self.config.owner}"
        )

    def stop(self) -> None:
        """Cancel every pending timer. Safe to call more than once."""
        if not self.is_active:
            return

        for job in self._scheduled.values():
            job.stop()
        self._scheduled.clear()

        logger.info("Monitoring stopped")

    async def run_job(self, name: str) -> None:
        """Run one tier immediately, outside of its cadence."""
        actions = self._actions()
        if name not in actions:
            raise SchedulerError(f"Unknown job: {name}. Available: {list(actions)}")

        job = self._scheduled.get(name)
        if job is not None:
            await job.run_once()
        else:
            await actions[name]()

    def get_status(self) -> Dict[str, Any]:
        return {
            'job_count': len(self._scheduled),
            'running': self.is_active,
            'active_positions': len(self.config.position_ids) or len(self.config.active_pools),
            'jobs': {name: job.status_dict() for name, job in self._scheduled.items()},
        }


def start_monitoring(config: MonitoringConfig, services: MonitoringServices,
                     previous: Optional[MonitoringScheduler] = None) -> MonitoringScheduler:
    """
    Start a scheduler, stopping the previous one first.

    Must be called from within a running event loop.
    """
    if previous is not None and previous.is_active:
        logger.info("Stopping previous monitoring scheduler")
        previous.stop()

    scheduler = MonitoringScheduler(config, services)
    scheduler.start()
    return scheduler


def stop_monitoring(scheduler: Optional[MonitoringScheduler]) -> None:
    if scheduler is not None:
        scheduler.stop()
