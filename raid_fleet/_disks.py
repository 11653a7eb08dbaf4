# Copyright 2018-present Network Optix, Inc. Licensed under MPL 2.0: www.mozilla.org/MPL/2.0/
"""Which block devices may be used for the mirror.

The disk backing the root filesystem is never eligible, regardless of
the order in which lsblk lists devices. Loop, RAM and compressed RAM
devices are never eligible either.
"""
import logging
import shlex
from typing import NamedTuple
from typing import Optional
from typing import Sequence

from raid_fleet._remote import Remote

_logger = logging.getLogger(__name__)

_VIRTUAL_PREFIXES = ('loop', 'ram', 'zram')


class BlockDevice(NamedTuple):
    name: str
    type: str
    transport: Optional[str]

    def path(self) -> str:
        return '/dev/' + self.name


class DiskQueryFailed(Exception):
    pass


def parse_lsblk(output: str) -> Sequence[BlockDevice]:
    """Parse output of `lsblk -ndo NAME,TYPE,TRAN`.

    >>> parse_lsblk('sda disk usb\\nmmcblk0 disk\\nloop0 loop\\n')  # doctest: +NORMALIZE_WHITESPACE
    [BlockDevice(name='sda', type='disk', transport='usb'),
    BlockDevice(name='mmcblk0', type='disk', transport=None),
    BlockDevice(name='loop0', type='loop', transport=None)]
    """
    result = []
    for line in output.splitlines():
        fields = line.split()
        if not fields:
            continue
        if len(fields) == 2:
            [name, type_] = fields
            transport = None
        elif len(fields) == 3:
            [name, type_, transport] = fields
        else:
            raise ValueError(f"Unexpected lsblk line {line!r}")
        result.append(BlockDevice(name, type_, transport))
    return result


def root_disk_name(root_source: str, root_parent: str) -> Optional[str]:
    """Name of the disk the root filesystem lives on, if known.

    >>> root_disk_name('/dev/mmcblk0p2', 'mmcblk0')
    'mmcblk0'
    >>> root_disk_name('/dev/sda', '')
    'sda'
    >>> root_disk_name('overlay', '') is None
    True
    """
    if root_parent.strip():
        return root_parent.strip()
    root_source = root_source.strip()
    if root_source.startswith('/dev/'):
        return root_source[len('/dev/'):]
    return None


def eligible_disks(devices: Sequence[BlockDevice], root_disk: Optional[str]) -> Sequence[str]:
    result = []
    for device in devices:
        if device.type != 'disk':
            continue
        if device.name.startswith(_VIRTUAL_PREFIXES):
            continue
        if root_disk is not None and device.name == root_disk:
            _logger.debug("Skip %s: root filesystem is there", device.path())
            continue
        result.append(device.path())
    return result


def usb_disks(devices: Sequence[BlockDevice], root_disk: Optional[str]) -> Sequence[str]:
    usb_names = {device.path() for device in devices if device.transport == 'usb'}
    return [path for path in eligible_disks(devices, root_disk) if path in usb_names]


def query_usb_disks(remote: Remote, timeout_sec: float = 30) -> Sequence[str]:
    """Enumerate USB disks on a target. Run only read-only commands."""
    root_source = _query(remote, 'findmnt -n -o SOURCE /', timeout_sec)
    root_parent = ''
    if root_source.strip().startswith('/dev/'):
        # PKNAME is empty for a whole disk and for an unknown device.
        root_parent = _query(remote, f'lsblk -no PKNAME {shlex.quote(root_source.strip())} || true', timeout_sec)
    devices = parse_lsblk(_query(remote, 'lsblk -ndo NAME,TYPE,TRAN', timeout_sec))
    root_disk = root_disk_name(root_source, root_parent.splitlines()[0] if root_parent.strip() else '')
    _logger.info("%r: root disk %s, %d block devices", remote, root_disk, len(devices))
    return usb_disks(devices, root_disk)


def _query(remote: Remote, command: str, timeout_sec: float) -> str:
    exit_status, output = remote.run(command, timeout_sec=timeout_sec)
    output = output.decode(errors='backslashreplace')
    if exit_status != 0:
        raise DiskQueryFailed(f"{command!r} exited with {exit_status}: {output.strip()}")
    return output
