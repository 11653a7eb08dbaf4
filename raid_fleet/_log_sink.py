# Copyright 2018-present Network Optix, Inc. Licensed under MPL 2.0: www.mozilla.org/MPL/2.0/
import logging
import re
from datetime import datetime
from datetime import timezone
from pathlib import Path

_logger = logging.getLogger(__name__)


class TargetLog:
    """Append-only plain text log of a single target.

    Only the job of this target writes here. Lines written by the
    orchestrator are prefixed with a level; output of the remote
    procedure is copied as is, chunk by chunk, as it arrives.
    The file is never removed by the orchestrator.
    """

    def __init__(self, path: Path):
        self._path = path
        self._file = None

    def __repr__(self):
        return f'<{self.__class__.__name__} {self._path}>'

    def __enter__(self):
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._file = self._path.open('ab')
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self._file.close()
        self._file = None

    @property
    def path(self) -> Path:
        return self._path

    def start(self, title: str):
        self._write_line(f"===== RAID INSTALL START: {_now()} =====")
        self._write_line(f"Target: {title}")

    def finish(self, status: str):
        self._write_line(f"===== RAID INSTALL END: {_now()} status={status} =====")

    def info(self, message: str):
        self._write_line('[INFO]  ' + message)

    def warning(self, message: str):
        self._write_line('[WARN]  ' + message)

    def error(self, message: str):
        self._write_line('[ERROR] ' + message)

    def write_output(self, chunk: bytes):
        self._file.write(chunk)
        self._file.flush()

    def _write_line(self, line: str):
        self.write_output(line.encode('utf8', errors='backslashreplace') + b'\n')


def target_log_path(log_dir: Path, address: str) -> Path:
    """Derive log file name from target identity.

    >>> target_log_path(Path('logs'), 'pi1.lan').as_posix()
    'logs/install_pi1.lan.log'
    >>> target_log_path(Path('logs'), 'fe80::1%eth0').as_posix()
    'logs/install_fe80__1_eth0.log'
    """
    safe_name = re.sub(r'[^0-9A-Za-z._-]', '_', address)
    return log_dir / f'install_{safe_name}.log'


def _now():
    return datetime.now(timezone.utc).isoformat(timespec='seconds')
