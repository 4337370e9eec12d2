import os
import threading
from pathlib import Path
from abc import ABC, abstractmethod
from typing import Callable, Optional

from watchdog.observers import Observer
from watchdog.events import FileSystemEvent, FileSystemEventHandler

from autobackup import logging
from autobackup.interfaces import ChangeSignal

logger = logging.get_logger(__name__)

Subscriber = Callable[[ChangeSignal], None]


class ChangeSignalSource(ABC):
    """
    Something that emits a ChangeSignal whenever the watched file is written.
    Signals may be duplicated, arrive in bursts, and arrive on any thread.
    """

    def __init__(self):
        self._subscribers: list[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> None:
        self._subscribers.append(callback)

    def emit(self, signal: ChangeSignal) -> None:
        for callback in list(self._subscribers):
            try:
                callback(signal)
            except Exception:
                logger.exception("Change subscriber failed", source_path=str(signal.source_path))

    @abstractmethod
    def start(self) -> None:
        pass

    @abstractmethod
    def stop(self) -> None:
        pass


class SaveFileEventHandler(FileSystemEventHandler):
    """
    Watchdog handler that turns writes to one file into change signals.
    """

    def __init__(self, path: Path, emit: Subscriber):
        super().__init__()
        self.path = os.path.normcase(os.path.abspath(path))
        self._emit = emit

    def _matches(self, path) -> bool:
        if not path:
            return False
        path = os.fsdecode(path)
        return os.path.normcase(os.path.abspath(path)) == self.path

    def _signal(self, event: FileSystemEvent, path):
        if event.is_directory or not self._matches(path):
            return
        self._emit(ChangeSignal(source_path=Path(os.fsdecode(path))))

    def on_created(self, event):
        self._signal(event, event.src_path)

    def on_modified(self, event):
        self._signal(event, event.src_path)

    def on_moved(self, event):
        # saves written to a temporary file then renamed over the original
        self._signal(event, event.dest_path)


class WatchdogChangeSource(ChangeSignalSource):
    """
    Watches the directory containing the save file with a watchdog observer.
    The observer delivers events on its own thread.
    """

    def __init__(self, path: Path):
        super().__init__()
        self.path = Path(path).absolute()
        self._observer: Optional[Observer] = None
        self._lock = threading.Lock()

    def __str__(self):
        return f"WatchdogChangeSource(path={self.path})"

    def start(self):
        with self._lock:
            if self._observer is not None:
                return
            logger.info("Watching save file", path=str(self.path))
            handler = SaveFileEventHandler(self.path, self.emit)
            observer = Observer()
            observer.schedule(handler, str(self.path.parent), recursive=False)
            observer.daemon = True
            observer.start()
            self._observer = observer

    def stop(self):
        with self._lock:
            observer, self._observer = self._observer, None
        if observer is None:
            return
        logger.info("Stopped watching save file", path=str(self.path))
        observer.stop()
        observer.join()
