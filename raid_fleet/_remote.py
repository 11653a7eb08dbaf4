# Copyright 2018-present Network Optix, Inc. Licensed under MPL 2.0: www.mozilla.org/MPL/2.0/
import logging
from abc import ABCMeta
from abc import abstractmethod
from pathlib import Path
from typing import Callable
from typing import Tuple

_logger = logging.getLogger(__name__)

_DEFAULT_RUN_TIMEOUT_SEC = 60

OutputCallback = Callable[[bytes], None]


class CannotConnect(Exception):
    pass


class Remote(metaclass=ABCMeta):
    """Capability to run commands on a single target and to put files there.

    Only network calls block. Implementations raise CannotConnect
    if the target cannot be reached or the connection drops,
    and subprocess.TimeoutExpired if the command runs for too long.
    """

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    @abstractmethod
    def execute(self, command: str, on_output: OutputCallback, timeout_sec: float) -> int:
        """Run a shell command; pass stdout and stderr, merged, as they come."""
        pass

    @abstractmethod
    def upload(self, local_path: Path, remote_path: str):
        pass

    @abstractmethod
    def close(self):
        pass

    def run(self, command: str, timeout_sec: float = _DEFAULT_RUN_TIMEOUT_SEC) -> Tuple[int, bytes]:
        chunks = []
        exit_status = self.execute(command, chunks.append, timeout_sec)
        return exit_status, b''.join(chunks)
