from pathlib import Path
from typing import Optional, Literal

from pydantic import BaseModel, ConfigDict, Field

from autobackup import logging
from autobackup.errors import ConfigurationMissing
from autobackup.interfaces import ClockMode, RetentionPeriod, DEFAULT_RETENTION_PERIODS
from autobackup.naming import BackupNamer, DEFAULT_MARKER
from autobackup.retention.policies.log_decay import LogarithmicDecayPolicy
from autobackup.snapshot.interfaces import SnapshotWriter
from autobackup.snapshot.writers.file import FileCopySnapshotWriter
from autobackup.snapshot.writers.sqlite import SqliteSnapshotWriter

logger = logging.get_logger(__name__)

CONFIG_FILE_NAME = 'autobackup.json'
DEFAULT_BACKUP_FOLDER = 'Backups'

SnapshotWriterKind = Literal['copy', 'sqlite']


class AutoBackupConfig(BaseModel):
    """
    Operator settings, persisted as json.
    """

    model_config = ConfigDict(frozen=True, extra='forbid')

    retention_periods: tuple[RetentionPeriod, ...] = Field(default=DEFAULT_RETENTION_PERIODS,
                                                           min_length=1)
    quiet_period: float = Field(default=5.0, ge=0)
    clock_mode: ClockMode = 'wallclock'
    backup_directory: Optional[Path] = None
    snapshot_writer: SnapshotWriterKind = 'copy'
    marker: str = Field(default=DEFAULT_MARKER, pattern=r"^[\w]+$")

    def policy(self) -> LogarithmicDecayPolicy:
        return LogarithmicDecayPolicy(periods=self.retention_periods)

    def namer(self) -> BackupNamer:
        return BackupNamer(clock_mode=self.clock_mode, marker=self.marker)

    def writer(self) -> SnapshotWriter:
        if self.snapshot_writer == 'sqlite':
            return SqliteSnapshotWriter()
        return FileCopySnapshotWriter()

    def resolve_backup_directory(self, save_path: Path) -> Path:
        if self.backup_directory is None:
            return Path(save_path).absolute().parent / DEFAULT_BACKUP_FOLDER
        return Path(self.backup_directory)


def save_config(config: AutoBackupConfig, path: Path) -> Path:
    path = Path(path)
    if not path.parent.exists():
        path.parent.mkdir(parents=True)
    path.write_text(config.model_dump_json(indent=2, exclude_none=True) + '\n', encoding='utf-8')
    return path


def load_config(path: Path, create: bool = True) -> AutoBackupConfig:
    """
    Load the configuration at `path`.

    Args:
        path (Path): Location of the json configuration file.
        create (bool, optional): Write and return the defaults if the file is missing. Defaults to True.

    Returns:
        AutoBackupConfig: The loaded configuration.

    Raises:
        ConfigurationMissing: If the file is missing and create is False.
        pydantic.ValidationError: If the file contents are invalid.
    """
    path = Path(path)
    lgr = logger.bind(path=str(path))
    if not path.exists():
        if not create:
            raise ConfigurationMissing(path)
        config = AutoBackupConfig()
        save_config(config, path)
        lgr.info("No configuration found, wrote defaults")
        return config
    config = AutoBackupConfig.model_validate_json(path.read_text(encoding='utf-8'))
    if not config.policy().is_descending():
        lgr.warning("Retention periods are not in descending order, they will be applied as given",
                    retention_periods=[str(p) for p in config.retention_periods])
    lgr.debug("Loaded configuration")
    return config
