#!/usr/bin/env python3
"""
IMAP Mailbox Copy

- Lists the mailboxes of the source account, or takes an explicit include list.
- Renames mailboxes through the mapping and drops excluded ones.
- Moves each mailbox in batches: fetch, append to destination, flag deleted
  on the source, expunge. Source messages are only deleted after the
  destination accepted them.
- Preserves FLAGS and INTERNALDATE.

Usage:
    mailcopy [--list] [--config config.json] [--schedule "0 * * * *"]

The config file defaults to $CONFIG_FILE, then ./config.json.
"""

import argparse
import logging
import sys
from typing import Dict, Optional

from mailcopy.config import MigrationConfig, ServerConfig, config_path, load_config
from mailcopy.errors import MigrationError
from mailcopy.logs import RunLogs, configure_logging
from mailcopy.progress import ProgressTracker, TqdmProgress
from mailcopy.resolver import resolve
from mailcopy.scheduler import schedule_migration
from mailcopy.session import MailSession
from mailcopy.transfer import transfer_mailbox

log = logging.getLogger("mailcopy.run")


def connect(server: ServerConfig, name: str) -> MailSession:
    return MailSession.connect(server, name)


def list_mailboxes(cfg: MigrationConfig, out=None) -> None:
    """Print every mailbox on the source account."""
    out = out or sys.stdout
    with connect(cfg.source, "source") as src:
        for name in src.list_mailboxes():
            print(name, file=out)


def migrate(cfg: MigrationConfig, progress: Optional[ProgressTracker] = None) -> Dict[str, int]:
    """Copy every planned mailbox; returns messages moved per source mailbox."""
    if progress is None:
        progress = ProgressTracker()

    with connect(cfg.source, "source") as src, connect(cfg.destination, "destination") as dst:
        plan = resolve(cfg, lambda: src.list_mailboxes(selectable_only=True))

        log.info("Copying mailboxes:")
        for pair in plan:
            log.info(f"{pair.source} -> {pair.destination}")

        moved: Dict[str, int] = {}
        for pair in plan:
            moved[pair.source] = transfer_mailbox(
                src, dst, pair.source, pair.destination, progress, batch_size=cfg.batch_size
            )

    log.info(f"Done. Moved {sum(moved.values())} messages from {len(moved)} mailboxes.")
    return moved


def run_once(cfg: MigrationConfig) -> Dict[str, int]:
    if cfg.log_directory:
        with RunLogs(cfg.log_directory).attach():
            return migrate(cfg, TqdmProgress())
    return migrate(cfg, TqdmProgress())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mailcopy", description="Move mailboxes between IMAP accounts.")
    parser.add_argument("--list", action="store_true", dest="list_only",
                        help="List available mailboxes and then exit")
    parser.add_argument("--config", help="Config file (default: $CONFIG_FILE or ./config.json)")
    parser.add_argument("--schedule", help="Crontab expression; repeat the migration on this schedule")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log every batch")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(logging.DEBUG if args.verbose else logging.INFO)

    try:
        cfg = load_config(args.config or config_path())
        if args.list_only:
            list_mailboxes(cfg)
            return 0

        schedule = args.schedule or cfg.schedule
        if schedule:
            schedule_migration(cfg, schedule, migrate)
        else:
            run_once(cfg)
    except MigrationError as e:
        log.error(f"Migration failed: {e}")
        sys.exit(1)
    return 0


if __name__ == "__main__":
    sys.exit(main())
