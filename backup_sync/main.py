import argparse
import logging
import os
import shlex
import sys
from pathlib import Path
from typing import List, Optional

from . import config
from .core import BackupSyncApp
from .decision.engine import DecisionEngine
from .decision.filters import Filter, parse_kind
from .disposal.executor import DisposalExecutor
from .exceptions import BackupSyncError, ConfigError
from .interactive import InteractiveReviewer
from .models import Action, IdentityMode
from .remote.adapters import CommandAdapter, LibraryDirectoryAdapter, ListFileAdapter, RemoteInventory
from .reporting import ReportGenerator, log_summary

ACTION_CHOICES = {
    "trash": Action.TRASH,
    "keep": Action.KEEP,
    "skip": Action.SKIP,
}


def setup_logging(verbose: bool, log_file: Optional[Path] = None):
    """Sets up logging to the console and, optionally, a file."""
    log_level = logging.DEBUG if verbose else logging.INFO

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding='utf-8'))

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=handlers,
        force=True,
    )

    # Silence chatty libraries
    logging.getLogger("exifread").setLevel(logging.ERROR)
    logging.getLogger("PIL").setLevel(logging.WARNING)


def _add_common_args(p: argparse.ArgumentParser):
    p.add_argument("backup_dir", type=Path, nargs="?",
                   default=os.environ.get(config.ENV_BACKUP_DIR),
                   help=f"Backup directory to check (default: ${config.ENV_BACKUP_DIR})")

    remote = p.add_argument_group("remote library")
    remote.add_argument("--library", type=Path, default=None,
                        help=f"Immich library directory (default: ${config.ENV_IMMICH_LIB})")
    remote.add_argument("--remote-cmd", default=None,
                        help="Command printing one remote filename per line")
    remote.add_argument("--remote-list", type=Path, default=None,
                        help="Text file with one remote filename per line")
    remote.add_argument("--remote-timeout", type=float, default=config.DEFAULT_REMOTE_TIMEOUT,
                        help="Seconds before --remote-cmd is abandoned")
    remote.add_argument("--match", choices=[m.value for m in IdentityMode], default=IdentityMode.NAME.value,
                        help="Match files by normalized name or by content hash")
    remote.add_argument("--include-other", action="store_true",
                        help="Also review files that are neither photos nor videos")

    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    p.add_argument("--log-file", type=Path, default=None, help="Also write the log to this file")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="backup-sync",
        description="Find backup files missing from Immich and decide what to do with them",
    )
    sub = p.add_subparsers(dest="command", required=True)

    compare = sub.add_parser("compare", help="List media files in the backup that are not in Immich")
    _add_common_args(compare)

    sync = sub.add_parser("sync", help="Review files missing from Immich: trash, keep or skip them")
    _add_common_args(sync)
    sync.add_argument("--trash-dir", type=Path,
                      default=os.environ.get(config.ENV_TRASH_DIR, str(config.DEFAULT_TRASH_DIR)),
                      help="Where trashed files are copied before deletion (default: ~/.Trash)")
    sync.add_argument("--kind", choices=["photo", "video", "any"], default="any",
                      help="Only process this kind of media")
    sync.add_argument("--pattern", default=None,
                      help="Only process files whose path contains this text or matches this glob")
    sync.add_argument("--action", choices=sorted(ACTION_CHOICES), default=None,
                      help="Apply this action to every file without prompting")
    sync.add_argument("--dry-run", action="store_true", help="Simulate trashing without modifying disk")
    sync.add_argument("--report-csv", type=Path, default=None, help="Write a per-file CSV report")

    return p.parse_args(argv)


def build_remote(args: argparse.Namespace) -> RemoteInventory:
    mode = IdentityMode(args.match)
    given = [opt for opt in (args.library, args.remote_cmd, args.remote_list) if opt]
    if len(given) > 1:
        raise ConfigError("Use only one of --library, --remote-cmd and --remote-list")

    if args.remote_cmd:
        if mode is IdentityMode.CONTENT:
            raise ConfigError("--match content needs --library")
        return CommandAdapter(shlex.split(args.remote_cmd), timeout=args.remote_timeout)

    if args.remote_list:
        if mode is IdentityMode.CONTENT:
            raise ConfigError("--match content needs --library")
        return ListFileAdapter(args.remote_list)

    library = args.library or os.environ.get(config.ENV_IMMICH_LIB)
    if not library:
        raise ConfigError(f"No remote library given (--library, --remote-cmd, --remote-list or ${config.ENV_IMMICH_LIB})")
    return LibraryDirectoryAdapter(Path(library), mode=mode)


def run_compare(args: argparse.Namespace) -> int:
    app = BackupSyncApp(build_remote(args), mode=IdentityMode(args.match), include_other=args.include_other)
    app.find_missing(args.backup_dir)
    logging.info("Comparison completed successfully")
    return 0


def run_sync(args: argparse.Namespace) -> int:
    app = BackupSyncApp(build_remote(args), mode=IdentityMode(args.match), include_other=args.include_other)
    session = app.start_session(args.backup_dir)

    trash_dir = Path(args.trash_dir).expanduser()
    if not trash_dir.exists():
        logging.warning(f"Trash directory not found at {trash_dir}; it will be created if needed")

    engine = DecisionEngine(DisposalExecutor(trash_dir, dry_run=args.dry_run))

    if args.kind != "any" or args.pattern:
        engine.set_filter(session, Filter(kind=parse_kind(args.kind), pattern=args.pattern))

    if args.action:
        engine.apply_to_remaining(session, ACTION_CHOICES[args.action])
        summary = engine.summary(session)
    else:
        summary = InteractiveReviewer(engine, session).run()

    log_summary(summary)
    if args.report_csv:
        ReportGenerator().write_session_report(session, args.report_csv)

    return 1 if summary.has_failures else 0


def run(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(args.verbose, args.log_file)

    logging.info(f"=== Backup Sync: {args.command} ===")

    try:
        if args.backup_dir is None:
            raise ConfigError(f"No backup directory given (argument or ${config.ENV_BACKUP_DIR})")
        args.backup_dir = Path(args.backup_dir).expanduser()
        logging.info(f"Backup: {args.backup_dir}")

        if args.command == "compare":
            return run_compare(args)
        return run_sync(args)
    except BackupSyncError as e:
        logging.error(f"{args.command.capitalize()} failed: {e}")
        return 1
    except KeyboardInterrupt:
        logging.warning("Operation cancelled by user.")
        return 1


def main():
    sys.exit(run())


if __name__ == "__main__":
    main()
