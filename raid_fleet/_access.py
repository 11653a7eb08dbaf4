# Copyright 2018-present Network Optix, Inc. Licensed under MPL 2.0: www.mozilla.org/MPL/2.0/
import logging
from subprocess import TimeoutExpired

from raid_fleet._remote import CannotConnect
from raid_fleet._remote import Remote

_logger = logging.getLogger(__name__)


def verify_access(remote: Remote, timeout_sec: float) -> bool:
    """Check that a command can be run without typing anything.

    Failure is not fatal: the install is attempted anyway.
    """
    try:
        # An ubiquitous harmless command.
        exit_status, output = remote.run('whoami', timeout_sec=timeout_sec)
    except CannotConnect as e:
        _logger.warning("%r: access not verified: %s", remote, e)
        return False
    except TimeoutExpired:
        _logger.warning("%r: access not verified: no answer in %.0f sec", remote, timeout_sec)
        return False
    if exit_status != 0:
        _logger.warning("%r: access not verified: whoami exited with %d", remote, exit_status)
        return False
    _logger.info("%r: access verified as %s", remote, output.decode(errors='backslashreplace').strip())
    return True


def resolve_display_name(remote: Remote, address: str, timeout_sec: float) -> str:
    """Ask the target for its host name; fall back to the address."""
    try:
        exit_status, output = remote.run('hostname', timeout_sec=timeout_sec)
    except (CannotConnect, TimeoutExpired) as e:
        _logger.info("%r: host name unknown: %r", remote, e)
        return address
    name = output.decode(errors='backslashreplace').strip()
    if exit_status != 0 or not name or len(name.split()) != 1:
        return address
    return name
