"""Tests for run log files and rotation."""

import logging
import os
import time

from mailcopy.logs import RunLogs, configure_logging


def touch(directory, name, age_days=0):
    path = os.path.join(directory, name)
    with open(path, "w") as f:
        f.write("x")
    mtime = time.time() - age_days * 24 * 60 * 60
    os.utime(path, (mtime, mtime))
    return path


def test_log_file_path(tmp_path):
    logs = RunLogs(str(tmp_path / "log"))
    path = logs.get_log_file_path("20240101_120000")
    assert path == os.path.join(str(tmp_path / "log"), "mailcopy_20240101_120000.log")
    assert os.path.isdir(str(tmp_path / "log"))


def test_rotate_by_count_keeps_newest(tmp_path):
    logs = RunLogs(str(tmp_path), rotation_count=2)
    for i in range(4):
        touch(str(tmp_path), f"mailcopy_2024010{i}_000000.log", age_days=4 - i)
    touch(str(tmp_path), "other_20240101_000000.log", age_days=9)

    assert logs.rotate_logs_by_count() == 2
    assert logs.log_files() == ["mailcopy_20240103_000000.log", "mailcopy_20240102_000000.log"]
    assert os.path.exists(str(tmp_path / "other_20240101_000000.log"))


def test_rotate_by_age(tmp_path):
    logs = RunLogs(str(tmp_path), rotation_days=7)
    touch(str(tmp_path), "mailcopy_20200101_000000.log", age_days=30)
    touch(str(tmp_path), "mailcopy_20240101_000000.log", age_days=1)

    assert logs.rotate_logs_by_age() == 1
    assert logs.log_files() == ["mailcopy_20240101_000000.log"]


def test_rotation_disabled(tmp_path):
    logs = RunLogs(str(tmp_path), rotation_count=1, rotation_enabled=False)
    touch(str(tmp_path), "mailcopy_20240101_000000.log")
    touch(str(tmp_path), "mailcopy_20240102_000000.log")

    assert logs.perform_log_rotation() == {"age_removed": 0, "count_removed": 0}
    assert len(logs.log_files()) == 2


def test_attach_writes_package_records(tmp_path):
    configure_logging(logging.INFO)
    logs = RunLogs(str(tmp_path))

    with logs.attach("20240101_120000") as path:
        logging.getLogger("mailcopy.transfer").info("Copying INBOX -> INBOX (3 messages)")
    logging.getLogger("mailcopy.transfer").info("after the run")

    with open(path, encoding="utf-8") as f:
        content = f.read()
    assert "INFO - Copying INBOX -> INBOX (3 messages)" in content
    assert "after the run" not in content
