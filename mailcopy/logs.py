import logging
import os
import sys
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, List, Optional

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'

# Log rotation configuration from environment variables
LOG_ROTATION_DAYS = int(os.getenv('LOG_ROTATION_DAYS', '7'))  # Keep logs for 7 days by default
LOG_ROTATION_COUNT = int(os.getenv('LOG_ROTATION_COUNT', '10'))  # Keep max 10 files per job by default
LOG_ROTATION_ENABLED = os.getenv('LOG_ROTATION_ENABLED', 'true').lower() == 'true'

PACKAGE_LOGGER = 'mailcopy'


def configure_logging(level: int = logging.INFO) -> logging.Logger:
    """Send the package's log records to stdout."""
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    return logger


class RunLogs:
    """One log file per migration run, kept under ``directory``."""

    def __init__(self, directory: str, job_id: str = 'mailcopy',
                 rotation_days: int = LOG_ROTATION_DAYS,
                 rotation_count: int = LOG_ROTATION_COUNT,
                 rotation_enabled: bool = LOG_ROTATION_ENABLED):
        self.directory = directory
        self.job_id = job_id
        self.rotation_days = rotation_days
        self.rotation_count = rotation_count
        self.rotation_enabled = rotation_enabled

    def ensure_log_directory(self):
        os.makedirs(self.directory, exist_ok=True)

    def get_log_file_path(self, timestamp: str = None) -> str:
        """Get the path for a run's log file."""
        self.ensure_log_directory()
        if timestamp is None:
            timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        return os.path.join(self.directory, f"{self.job_id}_{timestamp}.log")

    def log_files(self) -> List[str]:
        """Log files of this job, most recent first."""
        self.ensure_log_directory()
        files = [f for f in os.listdir(self.directory)
                 if f.startswith(f"{self.job_id}_") and f.endswith('.log')]
        files.sort(reverse=True)
        return files

    def rotate_logs_by_age(self, max_days: Optional[int] = None) -> int:
        """Remove log files older than ``max_days``."""
        if max_days is None:
            max_days = self.rotation_days
        if max_days <= 0:
            return 0

        self.ensure_log_directory()
        cutoff_time = datetime.now().timestamp() - (max_days * 24 * 60 * 60)
        removed_count = 0
        for filename in self.log_files():
            file_path = os.path.join(self.directory, filename)
            try:
                if os.path.getmtime(file_path) < cutoff_time:
                    os.remove(file_path)
                    removed_count += 1
            except OSError:
                # Removed concurrently
                continue
        return removed_count

    def rotate_logs_by_count(self, max_count: Optional[int] = None) -> int:
        """Keep only the most recent ``max_count`` log files."""
        if max_count is None:
            max_count = self.rotation_count
        if max_count <= 0:
            return 0

        job_logs = []
        for filename in self.log_files():
            file_path = os.path.join(self.directory, filename)
            try:
                job_logs.append((file_path, os.path.getmtime(file_path)))
            except OSError:
                continue

        # Sort by modification time (newest first)
        job_logs.sort(key=lambda x: x[1], reverse=True)

        removed_count = 0
        for file_path, _ in job_logs[max_count:]:
            try:
                os.remove(file_path)
                removed_count += 1
            except OSError:
                continue
        return removed_count

    def perform_log_rotation(self) -> Dict[str, int]:
        if not self.rotation_enabled:
            return {'age_removed': 0, 'count_removed': 0}
        return {
            'age_removed': self.rotate_logs_by_age(),
            'count_removed': self.rotate_logs_by_count(),
        }

    @contextmanager
    def attach(self, timestamp: str = None):
        """Copy the package's log records into a fresh run log file."""
        log_file_path = self.get_log_file_path(timestamp)
        file_handler = logging.FileHandler(log_file_path, encoding='utf-8')
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))

        logger = logging.getLogger(PACKAGE_LOGGER)
        logger.addHandler(file_handler)
        try:
            yield log_file_path
        finally:
            logger.removeHandler(file_handler)
            file_handler.close()
            self.perform_log_rotation()
