import os
from pathlib import Path
from abc import ABC, abstractmethod

from autobackup.errors import SnapshotFailure


class SnapshotWriter(ABC):

    @abstractmethod
    def create_snapshot(self, source_path: Path, destination_path: Path) -> Path:
        """
        Write a consistent copy of `source_path` to `destination_path`.

        Raises:
            SnapshotFailure: If the copy could not be made. Nothing is left at
                `destination_path` in that case.
        """
        pass


def partial_path(destination_path: Path) -> Path:
    """
    Hidden sibling a snapshot is written to before it is moved into place.
    """
    return destination_path.with_name(f".{destination_path.name}.partial")


def check_paths(source_path: Path, destination_path: Path):
    if not source_path.is_file():
        raise SnapshotFailure(source_path, destination_path, "source file does not exist")
    if destination_path.exists():
        raise SnapshotFailure(source_path, destination_path, "destination already exists")
    if not destination_path.parent.exists():
        destination_path.parent.mkdir(parents=True)


def commit(partial: Path, destination_path: Path):
    # atomic on the same filesystem, readers never see a half written backup
    os.replace(partial, destination_path)
