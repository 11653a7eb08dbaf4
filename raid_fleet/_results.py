# Copyright 2018-present Network Optix, Inc. Licensed under MPL 2.0: www.mozilla.org/MPL/2.0/
import csv
import logging
import threading
from pathlib import Path
from typing import Iterable
from typing import NamedTuple
from typing import Sequence

_logger = logging.getLogger(__name__)

SUCCESS = 'SUCCESS'
FAILED = 'FAILED'


class ResultRecord(NamedTuple):
    target: str
    display_name: str
    address: str
    status: str
    log_path: Path

    def succeeded(self) -> bool:
        return self.status == SUCCESS


class DuplicateResult(Exception):
    pass


class ResultRecorder:
    """Collect one record per target from concurrent jobs.

    Records are kept in the order they were added. A second record
    for the same target means a job completed twice, which is a bug.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._records = {}

    def __len__(self):
        with self._lock:
            return len(self._records)

    def add(self, record: ResultRecord):
        with self._lock:
            if record.target in self._records:
                raise DuplicateResult(
                    f"{record.target}: already recorded {self._records[record.target]}, got {record}")
            self._records[record.target] = record
        _logger.info("%s: recorded %s", record.target, record.status)

    def records(self) -> Sequence[ResultRecord]:
        with self._lock:
            return list(self._records.values())

    def in_order_of(self, targets: Iterable[str]) -> Sequence[ResultRecord]:
        with self._lock:
            return [self._records[target] for target in targets if target in self._records]


def write_summary_csv(path: Path, records: Iterable[ResultRecord]):
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open('w', newline='') as f:
        writer = csv.writer(f)
        writer.writerow(['HOSTNAME/IP', 'ADDRESS', 'STATUS', 'LOG_FILE'])
        for record in records:
            writer.writerow([record.display_name, record.address, record.status, str(record.log_path)])
    _logger.info("Summary written to %s", path)
