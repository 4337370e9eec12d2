from abc import ABC, abstractmethod
from typing import TypeAlias, Iterable

from pydantic import BaseModel, ConfigDict

from autobackup.interfaces import BackupRecord, Timestamp

Keep: TypeAlias = set[BackupRecord]
Delete: TypeAlias = set[BackupRecord]


class RetentionPolicy(ABC, BaseModel):

    model_config = ConfigDict(frozen=True)

    @abstractmethod
    def decide(self, backups: Iterable[BackupRecord], now: Timestamp) -> tuple[Keep, Delete]:
        pass


def chronological(backups: Iterable[BackupRecord]) -> list[BackupRecord]:
    """
    Order records oldest first. Records sharing a timestamp are ordered by
    path so the result never depends on the iteration order of the input.

    Raises:
        ValueError: If wallclock and domain timestamps are mixed.
    """
    backups = list(backups)
    kinds = {isinstance(b.timestamp, int) for b in backups}
    if len(kinds) > 1:
        raise ValueError('Cannot order backups that mix wallclock and domain timestamps')
    return sorted(backups, key=lambda b: (b.timestamp, str(b.file_path)))
