import time
import unittest
import tempfile
import threading
from pathlib import Path

from watchdog.events import (FileModifiedEvent, FileCreatedEvent, FileMovedEvent,
                             DirModifiedEvent)

from autobackup.interfaces import ChangeSignal
from autobackup.watch import ChangeSignalSource, SaveFileEventHandler, WatchdogChangeSource


class FakeChangeSource(ChangeSignalSource):

    def start(self):
        pass

    def stop(self):
        pass


class TestSaveFileEventHandler(unittest.TestCase):

    def setUp(self):
        self.signals = []
        self.save = Path('/saves/world.vcdbs')
        self.handler = SaveFileEventHandler(self.save, self.signals.append)

    def test_emits_for_writes_to_save_file(self):
        self.handler.dispatch(FileModifiedEvent(str(self.save)))
        self.handler.dispatch(FileCreatedEvent(str(self.save)))
        self.handler.dispatch(FileMovedEvent('/saves/world.vcdbs.tmp', str(self.save)))
        self.assertEqual(self.signals, [ChangeSignal(source_path=self.save)] * 3)

    def test_ignores_other_files(self):
        self.handler.dispatch(FileModifiedEvent('/saves/other.vcdbs'))
        self.handler.dispatch(FileModifiedEvent('/saves/world.vcdbs-journal'))
        self.handler.dispatch(FileMovedEvent(str(self.save), '/saves/world.old'))
        self.handler.dispatch(DirModifiedEvent('/saves'))
        self.assertEqual(self.signals, [])


class TestChangeSignalSource(unittest.TestCase):

    def test_subscriber_errors_do_not_stop_delivery(self):
        source = FakeChangeSource()
        received = []

        def _broken(signal):
            raise RuntimeError('subscriber bug')

        source.subscribe(_broken)
        source.subscribe(received.append)
        signal = ChangeSignal(source_path='world.vcdbs')
        source.emit(signal)
        self.assertEqual(received, [signal])


class TestWatchdogChangeSource(unittest.TestCase):

    def test_can_watch_save_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            save = Path(tmp) / 'world.vcdbs'
            save.write_bytes(b'v1')
            source = WatchdogChangeSource(save)
            received = threading.Event()
            source.subscribe(lambda signal: received.set())
            source.start()
            source.start()
            try:
                # give the observer a moment to register the watch
                time.sleep(0.2)
                save.write_bytes(b'v2')
                self.assertTrue(received.wait(5))
            finally:
                source.stop()
                source.stop()


if __name__ == '__main__':
    unittest.main(verbosity=2)
