from pathlib import Path
from abc import ABC, abstractmethod
from typing import Sequence


class BackupStorageAdapter(ABC):

    @abstractmethod
    def list_files(self, directory: Path, pattern: str) -> Sequence[Path]:
        pass

    @abstractmethod
    def delete_file(self, path: Path) -> None:
        pass
