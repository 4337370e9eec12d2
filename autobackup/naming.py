"""
Naming of backup files.

A backup file name embeds a marker and a fixed width timestamp into the name of
the save file it was taken from, ahead of the extension:

    wallclock:  <stem>-autobackup-2025-05-13_18-42-38<ext>
    domain:     <stem>-autobackup-000000086400-2025-05-13_18-42-38<ext>

In domain mode the zero padded counter is the timestamp used for retention and
the trailing datetime is only for people browsing the backup folder. Changing
this format orphans every backup that already exists.
"""

import re
import glob
from pathlib import Path, PurePath
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from autobackup.errors import MalformedBackupName
from autobackup.interfaces import (ClockMode, Datetime, Timestamp, BackupRecord, DATETIME_REGEX)

DEFAULT_MARKER = 'autobackup'


class BackupNamer(BaseModel):
    """
    Formats backup file names from a base save name and a timestamp, and
    parses timestamps back out of them.
    """

    model_config = ConfigDict(frozen=True)

    clock_mode: ClockMode = 'wallclock'
    marker: str = Field(default=DEFAULT_MARKER, pattern=r"^[\w]+$")
    counter_width: int = Field(default=12, ge=1, le=20)

    @property
    def delimiter(self) -> str:
        return f"-{self.marker}-"

    def format(self,
               base_name: Union[str, PurePath],
               timestamp: Timestamp,
               created: Optional[Datetime] = None) -> str:
        """
        Build the backup file name for a save file at the given timestamp.

        Args:
            base_name (str | PurePath): The save file name, a path is reduced to its name.
            timestamp (Timestamp): A Datetime in wallclock mode, an elapsed seconds counter in domain mode.
            created (Optional[Datetime]): Wallclock time shown next to a domain counter, defaults to now.

        Returns:
            str: The backup file name.

        Raises:
            TypeError: If the timestamp kind does not match the clock mode.
            ValueError: If a domain counter is negative.
        """
        base = PurePath(base_name)
        stem, suffix = base.stem, base.suffix
        if self.clock_mode == 'wallclock':
            if not isinstance(timestamp, Datetime):
                if not hasattr(timestamp, 'strftime'):
                    raise TypeError(f"wallclock backups need a datetime, received {timestamp!r}")
                timestamp = Datetime(timestamp)
            segment = str(timestamp)
        else:
            if isinstance(timestamp, bool) or not isinstance(timestamp, int):
                raise TypeError(f"domain backups need an integer counter, received {timestamp!r}")
            if timestamp < 0:
                raise ValueError(f"domain counter = {timestamp} must not be negative")
            created = Datetime.now() if created is None else Datetime(created)
            segment = f"{timestamp:0{self.counter_width}d}-{created}"
        return f"{stem}{self.delimiter}{segment}{suffix}"

    def parse(self, backup_file_name: Union[str, PurePath]) -> Timestamp:
        """
        Recover the timestamp embedded by `format`.

        Raises:
            MalformedBackupName: If the marker is missing or the timestamp does not decode.
        """
        name = PurePath(backup_file_name).name
        _, found, tail = name.rpartition(self.delimiter)
        if not found:
            raise MalformedBackupName(name, f"marker '{self.delimiter}' not found")
        if self.clock_mode == 'wallclock':
            pattern = rf"(?P<dt>{DATETIME_REGEX})(\.[^.]+)?"
        else:
            pattern = rf"(?P<counter>\d{{{self.counter_width},}})-(?P<dt>{DATETIME_REGEX})(\.[^.]+)?"
        match = re.fullmatch(pattern, tail)
        if match is None:
            raise MalformedBackupName(name, f"'{tail}' is not a {self.clock_mode} timestamp")
        try:
            dt = Datetime(match['dt'])
        except ValueError as e:
            raise MalformedBackupName(name, str(e)) from e
        if self.clock_mode == 'wallclock':
            return dt
        return int(match['counter'])

    def glob_pattern(self, base_name: Union[str, PurePath]) -> str:
        """
        Return the glob pattern matching every backup of the given save file.
        """
        base = PurePath(base_name)
        return f"{glob.escape(base.stem)}{self.delimiter}*{glob.escape(base.suffix)}"

    def is_candidate(self, file_name: Union[str, PurePath], base_name: Union[str, PurePath]) -> bool:
        """
        Whether a file name looks like a backup of the given save file,
        regardless of whether its timestamp parses.
        """
        name = PurePath(file_name).name
        base = PurePath(base_name)
        return name.startswith(f"{base.stem}{self.delimiter}") and name.endswith(base.suffix)

    def record(self, path: Union[str, Path]) -> BackupRecord:
        """
        Build a BackupRecord for an existing backup file.

        Raises:
            MalformedBackupName: If the name does not parse.
        """
        path = Path(path)
        return BackupRecord(file_path=path, timestamp=self.parse(path.name))
