# Copyright 2018-present Network Optix, Inc. Licensed under MPL 2.0: www.mozilla.org/MPL/2.0/
import logging
import shlex
from typing import Collection
from typing import NamedTuple
from typing import Sequence

from raid_fleet._log_sink import TargetLog
from raid_fleet._remote import Remote

_logger = logging.getLogger(__name__)

PROCESS = 'process'
FILE = 'file'


class Resource(NamedTuple):
    kind: str
    identifier: str


def leftover_resources(staging_dir: str, artifact_names: Collection[str]) -> Sequence[Resource]:
    """List what an interrupted or finished install may leave on a target.

    >>> leftover_resources('/tmp', ['install_raid_target.sh'])  # doctest: +NORMALIZE_WHITESPACE
    [Resource(kind='process', identifier='/tmp/install_raid_target.sh'),
    Resource(kind='file', identifier='/tmp/install_raid_target.sh'),
    Resource(kind='file', identifier='/tmp/mdadm_creation.log')]
    """
    paths = [staging_dir.rstrip('/') + '/' + name for name in artifact_names]
    return [
        *[Resource(PROCESS, path) for path in paths],
        *[Resource(FILE, path) for path in paths],
        Resource(FILE, staging_dir.rstrip('/') + '/mdadm_creation.log'),
        ]


def reconcile(remote: Remote, resources: Sequence[Resource], log: TargetLog, timeout_sec: float = 60):
    """Bring the target to the state where none of the resources exist.

    Absent resources are fine, so it can be run any number of times.
    Connection problems are not handled here.
    """
    log.info(f"Cleanup: {len(resources)} resources to check")
    for resource in resources:
        if resource.kind == PROCESS:
            _stop_process(remote, resource.identifier, log, timeout_sec)
        elif resource.kind == FILE:
            _remove_file(remote, resource.identifier, log, timeout_sec)
        else:
            raise ValueError(f"Unknown resource kind {resource.kind!r}")


def _stop_process(remote: Remote, command_line: str, log: TargetLog, timeout_sec: float):
    pattern = shlex.quote(_self_excluding_pattern(command_line))
    exit_status, _ = remote.run(f'pgrep -f {pattern}', timeout_sec=timeout_sec)
    if exit_status != 0:
        _logger.debug("%r: no process %s", remote, command_line)
        return
    log.info(f"Cleanup: kill process {command_line}")
    exit_status, output = remote.run(f'sudo -n pkill -f {pattern}', timeout_sec=timeout_sec)
    if exit_status not in (0, 1):
        log.warning(f"Cleanup: cannot kill {command_line}: {output.decode(errors='backslashreplace').strip()}")


def _remove_file(remote: Remote, path: str, log: TargetLog, timeout_sec: float):
    quoted = shlex.quote(path)
    exit_status, _ = remote.run(f'test -e {quoted}', timeout_sec=timeout_sec)
    if exit_status != 0:
        _logger.debug("%r: no file %s", remote, path)
        return
    log.info(f"Cleanup: remove {path}")
    exit_status, output = remote.run(f'sudo -n rm -f {quoted}', timeout_sec=timeout_sec)
    if exit_status != 0:
        log.warning(f"Cleanup: cannot remove {path}: {output.decode(errors='backslashreplace').strip()}")


def _self_excluding_pattern(command_line: str) -> str:
    """Make a pgrep pattern that does not match the shell running pgrep.

    >>> _self_excluding_pattern('/tmp/raid_checks.sh')
    '[/]tmp/raid_checks.sh'
    """
    return '[' + command_line[0] + ']' + command_line[1:]
