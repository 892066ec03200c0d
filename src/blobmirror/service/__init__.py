"""
Long-running service: cron schedule for recurring sync runs.
"""

from blobmirror.service.cron_parser import CronParseError, next_fire_time_cron, validate_cron
from blobmirror.service.scheduler import DEFAULT_CRON, SyncScheduler

__all__ = [
    "CronParseError",
    "next_fire_time_cron",
    "validate_cron",
    "SyncScheduler",
    "DEFAULT_CRON",
]
