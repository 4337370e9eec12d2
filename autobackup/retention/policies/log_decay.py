"""
Logarithmic decay retention.

Each configured period keeps the oldest backup that is still no older than the
period. With periods given largest first (3d, 1d, 12h, ... 5m) every period
anchors one backup in its own window, so the density of surviving backups
falls off roughly exponentially with age. The newest backup always survives.

The periods are applied in the order they are configured. Sorting them would
change which backups get claimed, so they are never reordered here.
"""

from datetime import datetime
from typing import Iterable, Sequence

from pydantic import Field

from autobackup import logging
from autobackup.interfaces import BackupRecord, RetentionPeriod, Timestamp, DEFAULT_RETENTION_PERIODS
from autobackup.retention.interfaces import RetentionPolicy, Keep, Delete, chronological

logger = logging.get_logger(__name__)


def _fits(record: BackupRecord, period: RetentionPeriod, now: Timestamp) -> bool:
    if isinstance(now, datetime):
        return record.timestamp + period.delta >= now
    return record.timestamp + int(period) >= now


def decide(backups: Iterable[BackupRecord], now: Timestamp,
           periods: Sequence[RetentionPeriod]) -> tuple[Keep, Delete]:
    """
    Split backups into the ones to keep and the ones to delete.

    Args:
        backups (Iterable[BackupRecord]): Every backup of one save file.
        now (Timestamp): The current time, of the same kind as the backup timestamps.
        periods (Sequence[RetentionPeriod]): Retention windows, applied in the given order.

    Returns:
        tuple[set[BackupRecord], set[BackupRecord]]: Records to keep and records to delete.

    Raises:
        ValueError: If wallclock and domain timestamps are mixed.
    """
    pool = chronological(backups)
    keep: Keep = set()
    if not pool:
        return (keep, set())

    # ties on the newest timestamp resolve to the greatest path
    newest = pool.pop()
    keep.add(newest)

    for period in periods:
        claimed = next((r for r in pool if _fits(r, period, now)), None)
        if claimed is not None:
            pool.remove(claimed)
            keep.add(claimed)
            logger.debug("Period claimed backup", period=str(period), backup=str(claimed))

    return (keep, set(pool))


class LogarithmicDecayPolicy(RetentionPolicy):

    periods: tuple[RetentionPeriod, ...] = Field(default=DEFAULT_RETENTION_PERIODS, min_length=1)

    def decide(self, backups: Iterable[BackupRecord], now: Timestamp):
        return decide(backups, now, self.periods)

    def is_descending(self) -> bool:
        return all(a > b for a, b in zip(self.periods, self.periods[1:]))
