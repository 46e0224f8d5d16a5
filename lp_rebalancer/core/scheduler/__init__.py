"""
Monitoring scheduler: hourly pool snapshots, 30-minute urgency checks,
twelve-hour analysis and the daily review.
"""

from .base import Cadence, JobError, JobStatus, MonitoringConfig, ScheduledJob, SchedulerError
from .jobs import MonitoringJobs, MonitoringServices, UrgencyCheck
from .scheduler import MonitoringScheduler, start_monitoring, stop_monitoring
from .services import build_services, open_json_storage

__all__ = [
    "Cadence",
    "JobError",
    "JobStatus",
    "MonitoringConfig",
    "ScheduledJob",
    "SchedulerError",
    "MonitoringJobs",
    "MonitoringServices",
    "UrgencyCheck",
    "MonitoringScheduler",
    "start_monitoring",
    "stop_monitoring",
    "build_services",
    "open_json_storage",
]
