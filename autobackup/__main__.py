import sys
import signal
import argparse
import threading
from pathlib import Path

import dotenv
import humanize
from tabulate import tabulate

from autobackup import logging
from autobackup.backup import BackupOrchestrator, PruneResult
from autobackup.clock import Clock, DomainClock
from autobackup.config import CONFIG_FILE_NAME, AutoBackupConfig, load_config, save_config
from autobackup.errors import SnapshotFailure
from autobackup.interfaces import Datetime
from autobackup.watch import WatchdogChangeSource

logger = logging.get_logger('autobackup')


def build_parser():
    parser = argparse.ArgumentParser(
        prog='autobackup',
        description='Backs up a save file whenever it changes and thins out old backups.',
        epilog='The code is always right, if the docs are wrong, consult the code.')
    parser.add_argument('--config',
                        type=Path,
                        default=None,
                        help=f'Path to the json config, defaults to {CONFIG_FILE_NAME} next to the save file')
    commands = parser.add_subparsers(dest='command', required=True)

    watch = commands.add_parser('watch', help='Back up the save file every time it is written')
    watch.add_argument('save', type=Path, help='Path to the save file')

    backup = commands.add_parser('backup', help='Back up the save file once and prune')
    backup.add_argument('save', type=Path, help='Path to the save file')
    backup.add_argument('--now', default=None, help='Domain counter to stamp the backup with')

    prune = commands.add_parser('prune', help='Apply the retention policy without a new backup')
    prune.add_argument('save', type=Path, help='Path to the save file')
    prune.add_argument('--dryrun', action='store_true', help='Report what would be deleted')
    prune.add_argument('--now', default=None, help='Evaluate retention at this time or domain counter')

    list_ = commands.add_parser('list', help='List backups and what the retention policy would do')
    list_.add_argument('save', type=Path, help='Path to the save file')
    list_.add_argument('--now', default=None, help='Evaluate retention at this time or domain counter')

    init = commands.add_parser('init-config', help='Write the default configuration')
    init.add_argument('path', type=Path, help='Where to write the configuration')
    return parser


def resolve_now(config: AutoBackupConfig, now):
    if now is None:
        return None
    if config.clock_mode == 'domain':
        return int(now)
    return Datetime(now)


def resolve_clock(config: AutoBackupConfig, now) -> Clock | None:
    if config.clock_mode != 'domain':
        return None
    if now is None:
        raise SystemExit('clock_mode = domain needs --now with the current domain counter')
    return DomainClock(lambda: int(now))


def report(result: PruneResult):
    rows = []
    decided = [(r, 'keep') for r in result.keep] + [(r, 'delete') for r in result.delete]
    for record, decision in sorted(decided, key=lambda d: (d[0].timestamp, str(d[0].file_path))):
        age = humanize.naturaldelta(result.now - record.timestamp)
        if decision == 'delete' and (record.file_path in result.failed):
            decision = 'delete failed'
        rows.append([record.file_path.name, str(record.timestamp), age, decision])
    for name in result.malformed:
        rows.append([name, '?', '?', 'unrecognised'])
    print(tabulate(rows, headers=['backup', 'timestamp', 'age', 'decision'], tablefmt='simple'))


def watch(orchestrator: BackupOrchestrator):
    stopped = threading.Event()

    def _stop(signum, frame):
        stopped.set()

    signal.signal(signal.SIGINT, _stop)
    signal.signal(signal.SIGTERM, _stop)
    orchestrator.start()
    try:
        while not stopped.wait(1.0):
            pass
    finally:
        orchestrator.stop(flush=True)


def main(argv=None):
    # loads environment variables from a .env file, e.g. CONSOLE_LOG_LEVEL
    dotenv.load_dotenv()
    args = build_parser().parse_args(argv)

    if args.command == 'init-config':
        save_config(AutoBackupConfig(), args.path)
        logger.info("Wrote default configuration", path=str(args.path))
        return 0

    save_path = args.save.absolute()
    config_path = args.config or save_path.parent / CONFIG_FILE_NAME
    config = load_config(config_path)
    now = getattr(args, 'now', None)

    if args.command == 'watch':
        if config.clock_mode == 'domain':
            raise SystemExit('clock_mode = domain can only be watched from inside the host application')
        source = WatchdogChangeSource(save_path)
        orchestrator = BackupOrchestrator.from_config(save_path, config, source=source)
        watch(orchestrator)
        return 0

    orchestrator = BackupOrchestrator.from_config(save_path, config, clock=resolve_clock(config, now))
    if args.command == 'backup':
        try:
            result = orchestrator.backup_now()
        except SnapshotFailure as e:
            logger.error("Backup failed", error=str(e))
            return 1
        report(result.prune)
    elif args.command == 'prune':
        report(orchestrator.prune(resolve_now(config, now), dryrun=args.dryrun))
    elif args.command == 'list':
        report(orchestrator.prune(resolve_now(config, now), dryrun=True))
    return 0


if __name__ == '__main__':
    sys.exit(main())
