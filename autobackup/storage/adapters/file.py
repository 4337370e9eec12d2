from pathlib import Path

from pydantic import BaseModel, ConfigDict

from autobackup import logging
from autobackup.errors import DeletionFailure
from autobackup.otel import with_tracer, trace
from autobackup.storage.interfaces import BackupStorageAdapter

logger = logging.get_logger(__name__)
tracer = trace.get_tracer(__name__)


class LocalFileStorageAdapter(BackupStorageAdapter, BaseModel):

    model_config = ConfigDict(frozen=True)

    def __str__(self):
        return "LocalFileStorageAdapter()"

    @with_tracer(tracer)
    def list_files(self, directory: Path, pattern: str):
        directory = Path(directory)
        lgr = logger.bind(directory=str(directory), pattern=pattern)
        lgr.debug("Listing backups")
        if not directory.is_dir():
            return []
        return sorted(fp for fp in directory.glob(pattern) if fp.is_file())

    @with_tracer(tracer)
    def delete_file(self, path: Path):
        path = Path(path)
        logger.bind(path=str(path)).info("Deleting backup")
        try:
            path.unlink()
        except OSError as e:
            raise DeletionFailure(path, str(e)) from e
