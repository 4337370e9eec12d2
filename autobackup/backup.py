"""
Wires change signals from the save file to backups.

A burst of change signals is debounced into a single cycle. A cycle writes a new
backup of the save file, then lists every backup of that save, decides which
ones the retention policy keeps, and deletes the rest. Pruning never runs
unless the new backup was written, so a failing save can not prune the backup
folder down to nothing.
"""

import os
import threading
from pathlib import Path
from typing import Optional

import humanize
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from autobackup import logging
from autobackup.otel import trace, with_tracer
from autobackup.clock import Clock, WallClock
from autobackup.config import AutoBackupConfig
from autobackup.debounce import Debouncer
from autobackup.errors import MalformedBackupName, SnapshotFailure, DeletionFailure
from autobackup.interfaces import BackupRecord, ChangeSignal, Timestamp
from autobackup.naming import BackupNamer
from autobackup.retention.interfaces import RetentionPolicy
from autobackup.snapshot.interfaces import SnapshotWriter
from autobackup.storage.interfaces import BackupStorageAdapter
from autobackup.storage.adapters.file import LocalFileStorageAdapter
from autobackup.watch import ChangeSignalSource

logger = logging.get_logger(__name__)
tracer = trace.get_tracer(__name__)


class PruneResult(BaseModel):

    model_config = ConfigDict(frozen=True)

    now: Timestamp
    keep: set[BackupRecord] = set()
    delete: set[BackupRecord] = set()
    deleted: list[Path] = []
    failed: list[Path] = []
    malformed: list[str] = []
    dryrun: bool = False


class BackupCycleResult(BaseModel):

    model_config = ConfigDict(frozen=True)

    snapshot: Path
    prune: PruneResult


class BackupOrchestrator(BaseModel):

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    save_path: Path
    backup_directory: Path
    namer: BackupNamer = BackupNamer()
    policy: RetentionPolicy
    writer: SnapshotWriter
    storage: BackupStorageAdapter = Field(default_factory=LocalFileStorageAdapter)
    clock: Clock = Field(default_factory=WallClock)
    source: Optional[ChangeSignalSource] = None
    quiet_period: float = Field(default=5.0, ge=0)

    _debouncer: Debouncer = PrivateAttr()
    _cycle_lock = PrivateAttr(default_factory=threading.RLock)

    def model_post_init(self, __context):
        if self.namer.clock_mode != self.clock.mode:
            raise ValueError(f'namer clock_mode = {self.namer.clock_mode} does not match '
                             f'clock mode = {self.clock.mode}')
        self._debouncer = Debouncer(self.quiet_period, on_error=self._report_error)
        if self.source is not None:
            self.source.subscribe(self.on_change_signal)

    def __str__(self):
        return f"BackupOrchestrator(save_path={self.save_path}, backup_directory={self.backup_directory})"

    @classmethod
    def from_config(cls,
                    save_path: Path,
                    config: AutoBackupConfig,
                    clock: Optional[Clock] = None,
                    source: Optional[ChangeSignalSource] = None,
                    storage: Optional[BackupStorageAdapter] = None):
        """
        Build an orchestrator for one save file from the operator configuration.

        Raises:
            ValueError: If a domain clock is configured but no clock was supplied.
        """
        if clock is None:
            if config.clock_mode == 'domain':
                raise ValueError('clock_mode = domain requires a DomainClock from the host application')
            clock = WallClock()
        kwargs = {} if storage is None else {'storage': storage}
        return cls(save_path=save_path,
                   backup_directory=config.resolve_backup_directory(save_path),
                   namer=config.namer(),
                   policy=config.policy(),
                   writer=config.writer(),
                   clock=clock,
                   source=source,
                   quiet_period=config.quiet_period,
                   **kwargs)

    def start(self):
        if self.source is not None:
            self.source.start()
        logger.info("Automatic backups started",
                    save_path=str(self.save_path),
                    quiet_period=humanize.naturaldelta(self.quiet_period))

    def stop(self, flush: bool = False):
        """
        Stop watching and cancel a pending backup. A cycle that is already
        running is allowed to finish.

        Args:
            flush (bool, optional): Run a pending backup before returning instead of dropping it.
        """
        if self.source is not None:
            self.source.stop()
        if flush:
            self._debouncer.flush()
        self._debouncer.stop()
        logger.info("Automatic backups stopped", save_path=str(self.save_path))

    @property
    def pending(self) -> bool:
        return self._debouncer.pending

    def on_change_signal(self, signal: ChangeSignal):
        if os.path.normcase(Path(signal.source_path).absolute()) != os.path.normcase(
                self.save_path.absolute()):
            logger.debug("Ignoring change to unrelated file", source_path=str(signal.source_path))
            return
        self._debouncer.schedule(self._run_cycle)

    def _run_cycle(self):
        self.backup_now()

    def _report_error(self, error: BaseException):
        if isinstance(error, SnapshotFailure):
            logger.error("Backup failed, skipping retention", error=str(error))
        else:
            logger.error("Backup cycle failed", exc_info=error)

    @with_tracer(tracer)
    def backup_now(self) -> BackupCycleResult:
        """
        Write a new backup of the save file, then apply the retention policy.

        Returns:
            BackupCycleResult: The new backup and the outcome of the retention pass.

        Raises:
            SnapshotFailure: If the backup could not be written. Nothing is pruned in that case.
        """
        with self._cycle_lock:
            now = self.clock.now()
            name = self.namer.format(self.save_path.name, now)
            destination = self.backup_directory / name
            lgr = logger.bind(save_path=str(self.save_path), destination=str(destination))
            lgr.info("Backing up save file", now=str(now))
            snapshot = self.writer.create_snapshot(self.save_path, destination)
            result = self.prune(now, protect=snapshot)
            return BackupCycleResult(snapshot=snapshot, prune=result)

    @with_tracer(tracer)
    def list_backups(self) -> tuple[list[BackupRecord], list[MalformedBackupName]]:
        """
        List the backups of the save file.

        Returns:
            tuple[list[BackupRecord], list[MalformedBackupName]]: Parsed records, and an error for
                each file that looks like a backup but whose timestamp could not be recovered.
        """
        pattern = self.namer.glob_pattern(self.save_path.name)
        files = self.storage.list_files(self.backup_directory, pattern)
        records: list[BackupRecord] = []
        malformed: list[MalformedBackupName] = []
        for path in files:
            if not self.namer.is_candidate(path, self.save_path.name):
                continue
            try:
                records.append(self.namer.record(path))
            except MalformedBackupName as e:
                logger.error("Unrecognised backup will not be pruned", path=str(path), error=str(e))
                malformed.append(e)
        return records, malformed

    @with_tracer(tracer)
    def prune(self,
              now: Optional[Timestamp] = None,
              dryrun: bool = False,
              protect: Optional[Path] = None) -> PruneResult:
        """
        Apply the retention policy to the existing backups. The full decision is
        made before anything is deleted.

        Args:
            now (Optional[Timestamp]): Time to evaluate retention at, defaults to the clock.
            dryrun (bool, optional): Decide without deleting anything. Defaults to False.
            protect (Optional[Path]): A backup that must survive this pass, whatever its timestamp.

        Returns:
            PruneResult: What was kept, deleted, failed to delete, or could not be parsed.
        """
        with self._cycle_lock:
            now = self.clock.now() if now is None else now
            records, malformed = self.list_backups()
            keep, delete = self.policy.decide(records, now)
            lgr = logger.bind(save_path=str(self.save_path), dryrun=dryrun)
            protected = {r for r in delete if r.file_path == protect}
            if protected:
                # the wall clock stepped back, older backups carry later timestamps
                lgr.warning("Newest backup is not the latest timestamp, keeping it", path=str(protect))
                keep, delete = keep | protected, delete - protected
            lgr.info("Applying retention policy", keep=len(keep), delete=len(delete),
                     malformed=len(malformed))
            deleted: list[Path] = []
            failed: list[Path] = []
            for record in sorted(delete, key=lambda r: (r.timestamp, str(r.file_path))):
                if dryrun:
                    continue
                try:
                    self.storage.delete_file(record.file_path)
                    deleted.append(record.file_path)
                except DeletionFailure as e:
                    lgr.error("Failed to delete backup, continuing", path=str(record.file_path),
                              error=str(e))
                    failed.append(record.file_path)
            return PruneResult(now=now,
                               keep=keep,
                               delete=delete,
                               deleted=deleted,
                               failed=failed,
                               malformed=[e.file_name for e in malformed],
                               dryrun=dryrun)

