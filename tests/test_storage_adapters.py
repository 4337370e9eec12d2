import unittest
import tempfile
from pathlib import Path

from autobackup.errors import DeletionFailure
from autobackup.naming import BackupNamer
from autobackup.storage.adapters.file import LocalFileStorageAdapter


class TestLocalFileStorageAdapter(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.adapter = LocalFileStorageAdapter()

    def tearDown(self):
        self._tmp.cleanup()

    def test_can_list_matching_files(self):
        names = [
            'world-autobackup-2025-05-13_18-42-38.vcdbs',
            'world-autobackup-2025-05-13_18-47-38.vcdbs',
            'world-autobackup-garbage.vcdbs',
            'other-autobackup-2025-05-13_18-42-38.vcdbs',
            'world.vcdbs',
            '.world-autobackup-2025-05-13_18-52-38.vcdbs.partial',
        ]
        for name in names:
            (self.root / name).write_bytes(b'')
        (self.root / 'world-autobackup-dir.vcdbs').mkdir()
        pattern = BackupNamer().glob_pattern('world.vcdbs')
        files = self.adapter.list_files(self.root, pattern)
        self.assertEqual([f.name for f in files], sorted(names[:3]))

    def test_missing_directory_lists_nothing(self):
        self.assertEqual(self.adapter.list_files(self.root / 'Backups', '*'), [])

    def test_can_delete(self):
        path = self.root / 'world-autobackup-2025-05-13_18-42-38.vcdbs'
        path.write_bytes(b'')
        self.adapter.delete_file(path)
        self.assertFalse(path.exists())

    def test_fails_to_delete_missing_file(self):
        with self.assertRaises(DeletionFailure) as ct:
            self.adapter.delete_file(self.root / 'gone.vcdbs')
        self.assertEqual(ct.exception.path, self.root / 'gone.vcdbs')


if __name__ == '__main__':
    unittest.main(verbosity=2)
