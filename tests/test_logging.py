import logging
import unittest

from autobackup.logging import root_log_level


class TestRootLogLevel(unittest.TestCase):

    def test_console_level_alone_without_otel_logs(self):
        self.assertEqual(root_log_level('WARNING', 'DEBUG', False), logging.WARNING)

    def test_otel_level_lowers_root_when_exported(self):
        self.assertEqual(root_log_level('WARNING', 'DEBUG', True), logging.DEBUG)
        self.assertEqual(root_log_level('debug', 'ERROR', True), logging.DEBUG)

    def test_unknown_level_falls_back_to_info(self):
        self.assertEqual(root_log_level('LOUD', 'INFO', False), logging.INFO)


if __name__ == '__main__':
    unittest.main(verbosity=2)
