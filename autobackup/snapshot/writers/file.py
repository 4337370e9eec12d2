import shutil
from pathlib import Path

import humanize
from pydantic import BaseModel, ConfigDict, Field

from autobackup import logging
from autobackup.errors import SnapshotFailure
from autobackup.otel import with_tracer, trace
from autobackup.snapshot.interfaces import SnapshotWriter, partial_path, check_paths, commit

logger = logging.get_logger(__name__)
tracer = trace.get_tracer(__name__)


class FileCopySnapshotWriter(SnapshotWriter, BaseModel):
    """
    Copies the save file byte for byte. Suitable for files that are written
    in one go and closed, use the sqlite writer for live databases.
    """

    model_config = ConfigDict(frozen=True)

    bufsize: int = Field(default=2**20, gt=0)  # 1 MB

    def __str__(self):
        return f"FileCopySnapshotWriter(bufsize={humanize.naturalsize(self.bufsize)})"

    @with_tracer(tracer)
    def create_snapshot(self, source_path: Path, destination_path: Path):
        source_path, destination_path = Path(source_path), Path(destination_path)
        lgr = logger.bind(source=str(source_path), destination=str(destination_path))
        lgr.debug("Copying save file")
        try:
            check_paths(source_path, destination_path)
        except OSError as e:
            raise SnapshotFailure(source_path, destination_path, str(e)) from e
        partial = partial_path(destination_path)
        try:
            with open(source_path, 'rb') as src, open(partial, 'wb') as dst:
                shutil.copyfileobj(src, dst, self.bufsize)
            commit(partial, destination_path)
        except OSError as e:
            lgr.error("Error copying save file", error=str(e))
            partial.unlink(missing_ok=True)
            raise SnapshotFailure(source_path, destination_path, str(e)) from e
        lgr.info("Copied save file", size=humanize.naturalsize(destination_path.stat().st_size))
        return destination_path
