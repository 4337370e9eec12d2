import random
import unittest
from datetime import timedelta

from pydantic import ValidationError

from autobackup.interfaces import BackupRecord, Datetime, RetentionPeriod
from autobackup.retention.policies.log_decay import LogarithmicDecayPolicy, decide

NOW = Datetime('2025-06-01_12-00-00')


def aged(*ages: timedelta, now=NOW):
    """Builds wallclock records keyed by age for readable assertions."""
    return {
        age: BackupRecord(file_path=f'world-autobackup-{now - age}.vcdbs', timestamp=now - age)
        for age in ages
    }


def periods(*values):
    return [RetentionPeriod(v) for v in values]


class TestLogarithmicDecay(unittest.TestCase):

    def test_empty(self):
        keep, delete = decide([], NOW, periods('1d'))
        self.assertEqual(keep, set())
        self.assertEqual(delete, set())

    def test_single_backup_older_than_every_period_is_kept(self):
        records = aged(timedelta(days=30))
        keep, delete = decide(records.values(), NOW, periods('1d', '1h'))
        self.assertEqual(keep, set(records.values()))
        self.assertEqual(delete, set())

    def test_canonical_scenario(self):
        s, m, h, d = (timedelta(seconds=1), timedelta(minutes=1), timedelta(hours=1),
                      timedelta(days=1))
        records = aged(2 * s, 4 * m, 14 * m, 55 * m, 2 * h, 13 * h, 2 * d)
        keep, delete = decide(records.values(), NOW, periods('3d', '1d', '3h', '1h', '15m', '5m'))
        # 3d claims 2d, 1d claims 13h, 3h claims 2h, 1h claims 55m, 15m claims 14m, 5m claims 4m
        self.assertEqual(keep, set(records.values()))
        self.assertEqual(delete, set())

    def test_prunes_unclaimed_backups(self):
        m, h, d = timedelta(minutes=1), timedelta(hours=1), timedelta(days=1)
        records = aged(1 * m, 3 * m, 8 * m, 20 * m, 40 * m, 5 * h, 4 * d)
        keep, delete = decide(records.values(), NOW, periods('1d', '1h', '10m'))
        self.assertEqual(keep, {records[k] for k in (1 * m, 8 * m, 40 * m, 5 * h)})
        self.assertEqual(delete, {records[k] for k in (3 * m, 20 * m, 4 * d)})

    def test_each_period_claims_the_oldest_fitting_backup(self):
        m = timedelta(minutes=1)
        records = aged(1 * m, 2 * m, 3 * m, 4 * m)
        keep, delete = decide(records.values(), NOW, periods('5m'))
        self.assertEqual(keep, {records[1 * m], records[4 * m]})
        self.assertEqual(delete, {records[2 * m], records[3 * m]})

    def test_boundary_is_inclusive(self):
        m = timedelta(minutes=1)
        records = aged(0 * m, 5 * m, 5 * m + timedelta(seconds=1))
        keep, delete = decide(records.values(), NOW, periods('5m'))
        self.assertEqual(keep, {records[0 * m], records[5 * m]})
        self.assertEqual(delete, {records[5 * m + timedelta(seconds=1)]})

    def test_ascending_periods_are_applied_as_given(self):
        m, h, d = timedelta(minutes=1), timedelta(hours=1), timedelta(days=1)
        records = aged(1 * m, 3 * m, 8 * m, 20 * m, 40 * m, 5 * h, 4 * d)
        policy = LogarithmicDecayPolicy(periods=periods('10m', '1h', '1d'))
        self.assertEqual([str(p) for p in policy.periods], ['10m', '1h', '1d'])
        self.assertFalse(policy.is_descending())
        # 10m claims 8m, 1h claims 40m, 1d claims 5h
        keep, delete = policy.decide(records.values(), NOW)
        self.assertEqual(keep, {records[k] for k in (1 * m, 8 * m, 40 * m, 5 * h)})
        self.assertEqual(delete, {records[k] for k in (3 * m, 20 * m, 4 * d)})

    def test_tied_newest_resolves_to_greatest_path(self):
        a = BackupRecord(file_path='backups/a.vcdbs', timestamp=NOW)
        b = BackupRecord(file_path='backups/b.vcdbs', timestamp=NOW)
        for order in ([a, b], [b, a]):
            with self.subTest(order=order):
                keep, delete = decide(order, NOW, [])
                self.assertEqual(keep, {b})
                self.assertEqual(delete, {a})

    def test_domain_time(self):
        records = {
            age: BackupRecord(file_path=f'world-autobackup-{100000 - age:012d}.vcdbs',
                              timestamp=100000 - age) for age in (10, 200, 7200, 90000)
        }
        keep, delete = decide(records.values(), 100000, periods('1d', '5m'))
        self.assertEqual(keep, {records[10], records[7200], records[200]})
        self.assertEqual(delete, {records[90000]})

    def test_fails_with_mixed_timestamps(self):
        records = [
            BackupRecord(file_path='a', timestamp=NOW),
            BackupRecord(file_path='b', timestamp=100),
        ]
        with self.assertRaisesRegex(ValueError, 'mix'):
            decide(records, NOW, periods('1d'))

    def test_decision_properties(self):
        rng = random.Random(20250601)
        schedule = periods('3d', '1d', '12h', '6h', '3h', '1h', '30m', '15m', '10m', '5m')
        for trial in range(200):
            n = rng.randint(1, 40)
            ages = {timedelta(seconds=rng.randint(0, 5 * 86400)) for _ in range(n)}
            records = set(aged(*ages).values())
            keep, delete = decide(records, NOW, schedule)
            with self.subTest(trial=trial):
                self.assertEqual(keep | delete, records)
                self.assertEqual(keep & delete, set())
                newest = max(records, key=lambda r: r.timestamp)
                self.assertIn(newest, keep)
                self.assertLessEqual(len(keep), len(schedule) + 1)
                # pruning a pruned set deletes nothing further
                again, nothing = decide(keep, NOW, schedule)
                self.assertEqual(again, keep)
                self.assertEqual(nothing, set())

    def test_fails_without_periods(self):
        with self.assertRaises(ValidationError):
            LogarithmicDecayPolicy(periods=[])

    def test_policy_defaults(self):
        policy = LogarithmicDecayPolicy()
        self.assertTrue(policy.is_descending())
        self.assertEqual(len(policy.periods), 10)


if __name__ == '__main__':
    unittest.main(verbosity=2)
