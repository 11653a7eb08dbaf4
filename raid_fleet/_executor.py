# Copyright 2018-present Network Optix, Inc. Licensed under MPL 2.0: www.mozilla.org/MPL/2.0/
import logging
import shlex
from pathlib import Path
from subprocess import TimeoutExpired
from typing import Sequence

from raid_fleet._errors import ConfigurationError
from raid_fleet._errors import InstallFailed
from raid_fleet._errors import InstallTimedOut
from raid_fleet._errors import TargetUnreachable
from raid_fleet._errors import TransferFailed
from raid_fleet._log_sink import TargetLog
from raid_fleet._remote import CannotConnect
from raid_fleet._remote import Remote

_logger = logging.getLogger(__name__)

# The remote procedure exits with this code if fewer than two disks are eligible.
INSUFFICIENT_RESOURCES_EXIT_STATUS = 3


class RemoteExecutor:
    """Stage the procedure on a target and run its entry point as root.

    All artifacts are copied to the staging directory first;
    the entry point finds its helpers next to itself.
    """

    def __init__(
            self,
            artifacts: Sequence[Path],
            entry_point: str,
            staging_dir: str,
            timeout_sec: float,
            ):
        if not artifacts:
            raise ConfigurationError("No artifacts to stage")
        missing = [str(path) for path in artifacts if not path.is_file()]
        if missing:
            raise ConfigurationError(f"Missing required files: {', '.join(missing)}")
        if entry_point not in [path.name for path in artifacts]:
            raise ConfigurationError(f"Entry point {entry_point} is not among artifacts")
        self._artifacts = artifacts
        self._staging_dir = staging_dir.rstrip('/')
        self._entry_point = self._remote_path(entry_point)
        self._timeout_sec = timeout_sec

    def __repr__(self):
        return f'<{self.__class__.__name__} {self._entry_point} with {len(self._artifacts)} artifacts>'

    def artifact_names(self) -> Sequence[str]:
        return [path.name for path in self._artifacts]

    def transfer(self, remote: Remote, log: TargetLog):
        remote_paths = []
        for artifact in self._artifacts:
            remote_path = self._remote_path(artifact.name)
            log.info(f"Copy {artifact.name} to {remote_path}")
            try:
                remote.upload(artifact, remote_path)
            except CannotConnect as e:
                raise TransferFailed(f"Failed to copy {artifact.name}: {e}")
            except OSError as e:
                raise TransferFailed(f"Failed to copy {artifact.name}: {e!r}")
            remote_paths.append(remote_path)
        chmod = shlex.join(['chmod', '+x', *remote_paths])
        try:
            exit_status, output = remote.run(chmod)
        except (CannotConnect, TimeoutExpired) as e:
            raise TransferFailed(f"chmod failed on remote host: {e}")
        if exit_status != 0:
            raise TransferFailed(
                f"chmod failed on remote host with exit status {exit_status}: "
                f"{output.decode(errors='backslashreplace').strip()}")

    def invoke(self, remote: Remote, log: TargetLog) -> int:
        """Run the entry point, copying its output to the log as it comes.

        Return the exit status, which is 0, because any other status
        means the install failed and is raised as such.
        """
        command = shlex.join(['sudo', '-n', self._entry_point])
        log.info(f"Run {command}")
        try:
            exit_status = remote.execute(command, log.write_output, self._timeout_sec)
        except CannotConnect as e:
            raise TargetUnreachable(f"Connection lost while running {self._entry_point}: {e}")
        except TimeoutExpired:
            raise InstallTimedOut(f"{self._entry_point} did not finish in {self._timeout_sec:.0f} sec")
        if exit_status == INSUFFICIENT_RESOURCES_EXIT_STATUS:
            raise InstallFailed(exit_status, "Fewer than two eligible disks on the target")
        if exit_status != 0:
            raise InstallFailed(exit_status, f"{self._entry_point} exited with status {exit_status}")
        return exit_status

    def _remote_path(self, name: str) -> str:
        return self._staging_dir + '/' + name
