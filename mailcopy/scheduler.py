"""
Recurring migrations.

Runs the migration on a crontab schedule, which keeps draining a source
account that still receives mail while users move over. Each run gets its
own log file when a log directory is configured, and a failed run is
logged without stopping the schedule.
"""

import logging
import traceback
from typing import Callable, Optional

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger

from mailcopy.config import MigrationConfig
from mailcopy.errors import ConfigError
from mailcopy.logs import RunLogs

log = logging.getLogger(__name__)

JOB_ID = 'mailcopy'


def execute_run(cfg: MigrationConfig, run: Callable[[MigrationConfig], object],
                run_logs: Optional[RunLogs] = None) -> bool:
    """Execute one scheduled migration; returns False if it failed."""
    if run_logs is None:
        return _execute(cfg, run)
    with run_logs.attach() as log_file_path:
        log.info(f"Logging this run to {log_file_path}")
        return _execute(cfg, run)


def _execute(cfg, run) -> bool:
    log.info("Starting scheduled migration")
    try:
        run(cfg)
    except Exception as e:
        log.error(f"Scheduled migration failed: {e}")
        for line in traceback.format_exc().split('\n'):
            if line.strip():
                log.error(f"  {line}")
        return False
    log.info("Scheduled migration completed successfully")
    return True


def schedule_migration(cfg: MigrationConfig, cron_expression: str,
                       run: Callable[[MigrationConfig], object],
                       scheduler=None):
    """Run ``run(cfg)`` on ``cron_expression`` until interrupted."""
    try:
        trigger = CronTrigger.from_crontab(cron_expression)
    except ValueError as e:
        raise ConfigError(f"invalid schedule {cron_expression!r}: {e}") from e

    if scheduler is None:
        scheduler = BlockingScheduler()
    run_logs = RunLogs(cfg.log_directory) if cfg.log_directory else None

    scheduler.add_job(
        func=execute_run,
        trigger=trigger,
        id=JOB_ID,
        args=[cfg, run, run_logs],
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    log.info(f"Scheduled migration with cron expression '{cron_expression}'")

    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        log.info("Scheduler stopped")
        scheduler.shutdown(wait=False)
    return scheduler
