# Copyright 2018-present Network Optix, Inc. Licensed under MPL 2.0: www.mozilla.org/MPL/2.0/
import unittest

from raid_fleet._disks import DiskQueryFailed
from raid_fleet._disks import eligible_disks
from raid_fleet._disks import parse_lsblk
from raid_fleet._disks import query_usb_disks
from raid_fleet._disks import root_disk_name
from raid_fleet._target import Target
from raid_fleet.tests._fake_remote import FakeFleet
from raid_fleet.tests._fake_remote import FakeHost


class TestEligibleDisks(unittest.TestCase):

    def test_root_disk_excluded_regardless_of_order(self):
        # Boot from USB: the root disk is listed first.
        devices = parse_lsblk('sda disk usb\nsdb disk usb\nsdc disk usb\n')
        self.assertEqual(eligible_disks(devices, 'sda'), ['/dev/sdb', '/dev/sdc'])
        devices = parse_lsblk('sdb disk usb\nsdc disk usb\nsda disk usb\n')
        self.assertEqual(eligible_disks(devices, 'sda'), ['/dev/sdb', '/dev/sdc'])

    def test_virtual_devices_excluded(self):
        devices = parse_lsblk('loop0 loop\nram0 disk\nzram0 disk\nmmcblk0 disk\nsda disk usb\nsr0 rom usb\n')
        self.assertEqual(eligible_disks(devices, 'mmcblk0'), ['/dev/sda'])

    def test_unknown_root_disk(self):
        devices = parse_lsblk('sda disk sata\nsdb disk sata\n')
        self.assertEqual(eligible_disks(devices, root_disk_name('overlay', '')), ['/dev/sda', '/dev/sdb'])

    def test_malformed_line(self):
        with self.assertRaises(ValueError):
            parse_lsblk('sda disk usb extra\n')


class TestQueryUsbDisks(unittest.TestCase):

    def _query(self, host):
        remote = FakeFleet({'pi1': host}).remote(Target('pi1', 'pi', 22))
        return query_usb_disks(remote)

    def test_lists_usb_disks_only(self):
        host = FakeHost(lsblk_output='mmcblk0 disk\nsda disk usb\nnvme0n1 disk nvme\nsdb disk usb\n')
        self.assertEqual(self._query(host), ['/dev/sda', '/dev/sdb'])
        self.assertEqual(host.uploads, [])
        self.assertEqual(host.commands, [
            'findmnt -n -o SOURCE /',
            "lsblk -no PKNAME /dev/mmcblk0p2 || true",
            'lsblk -ndo NAME,TYPE,TRAN',
            ])

    def test_usb_root_disk_is_not_listed(self):
        host = FakeHost(
            lsblk_output='sda disk usb\nsdb disk usb\n',
            root_source='/dev/sda2',
            root_parent='sda')
        self.assertEqual(self._query(host), ['/dev/sdb'])

    def test_failed_command(self):
        host = FakeHost()
        remote = FakeFleet({'pi1': host}).remote(Target('pi1', 'pi', 22))
        execute = remote.execute

        def lsblk_missing(command, on_output, timeout_sec):
            if command.startswith('lsblk -ndo'):
                on_output(b'lsblk: command not found\n')
                return 127
            return execute(command, on_output, timeout_sec)

        remote.execute = lsblk_missing
        with self.assertRaisesRegex(DiskQueryFailed, 'command not found'):
            query_usb_disks(remote)
