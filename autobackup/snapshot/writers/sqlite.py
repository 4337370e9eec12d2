import sqlite3
from pathlib import Path
from contextlib import closing

import humanize
from pydantic import BaseModel, ConfigDict, Field

from autobackup import logging
from autobackup.errors import SnapshotFailure
from autobackup.otel import with_tracer, trace
from autobackup.snapshot.interfaces import SnapshotWriter, partial_path, check_paths, commit

logger = logging.get_logger(__name__)
tracer = trace.get_tracer(__name__)


class SqliteSnapshotWriter(SnapshotWriter, BaseModel):
    """
    Takes a transactionally consistent copy of a sqlite database using the
    online backup api, so a save that is being written while the backup runs
    still yields a valid file.
    """

    model_config = ConfigDict(frozen=True)

    pages: int = Field(default=1024, gt=0)
    timeout: float = Field(default=30.0, ge=0)

    def __str__(self):
        return f"SqliteSnapshotWriter(pages={self.pages}, timeout={self.timeout})"

    @with_tracer(tracer)
    def create_snapshot(self, source_path: Path, destination_path: Path):
        source_path, destination_path = Path(source_path), Path(destination_path)
        lgr = logger.bind(source=str(source_path), destination=str(destination_path))
        lgr.debug("Backing up database")
        try:
            check_paths(source_path, destination_path)
        except OSError as e:
            raise SnapshotFailure(source_path, destination_path, str(e)) from e
        partial = partial_path(destination_path)
        try:
            uri = f"{source_path.resolve().as_uri()}?mode=ro"
            with closing(sqlite3.connect(uri, uri=True, timeout=self.timeout)) as src:
                with closing(sqlite3.connect(partial)) as dst:
                    src.backup(dst, pages=self.pages)
            commit(partial, destination_path)
        except (sqlite3.Error, OSError) as e:
            lgr.error("Error backing up database", error=str(e))
            partial.unlink(missing_ok=True)
            raise SnapshotFailure(source_path, destination_path, str(e)) from e
        lgr.info("Backed up database", size=humanize.naturalsize(destination_path.stat().st_size))
        return destination_path
