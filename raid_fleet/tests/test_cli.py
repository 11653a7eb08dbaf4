# Copyright 2018-present Network Optix, Inc. Licensed under MPL 2.0: www.mozilla.org/MPL/2.0/
import io
import unittest
from pathlib import Path
from tempfile import TemporaryDirectory

from raid_fleet._cli import EXIT_BAD_CONFIGURATION
from raid_fleet._cli import EXIT_TARGETS_FAILED
from raid_fleet._cli import _collect_targets
from raid_fleet._cli import install
from raid_fleet._cli import query_usb
from raid_fleet._config import OrchestratorConfig
from raid_fleet._errors import ConfigurationError
from raid_fleet.tests._fake_remote import FakeFleet
from raid_fleet.tests._fake_remote import FakeHost


class TestInstall(unittest.TestCase):

    def setUp(self):
        self._temp_dir = TemporaryDirectory()
        self._config = OrchestratorConfig(Path(self._temp_dir.name), max_parallel=2)
        self._output = io.StringIO()

    def tearDown(self):
        self._temp_dir.cleanup()

    def test_one_target_fails(self):
        fleet = FakeFleet({
            '10.1.0.1': FakeHost(hostname='raid-a'),
            '10.1.0.2': FakeHost(hostname='raid-b', install_exit_status=1),
            '10.1.0.3': FakeHost(hostname='raid-c'),
            })
        exit_code = install(self._config, list(fleet.hosts), fleet.remote, self._output)
        self.assertEqual(exit_code, EXIT_TARGETS_FAILED)
        table = self._output.getvalue()
        self.assertIn('RAID INSTALL SUMMARY', table)
        self.assertRegex(table, r'raid-b +\| 10.1.0.2 +\| FAILED')
        self.assertRegex(table, r'raid-a +\| 10.1.0.1 +\| SUCCESS')
        self.assertLessEqual(fleet.peak_running, 2)

    def test_unexpected_error_is_reported_in_summary(self):
        fleet = FakeFleet({
            '10.1.2.1': FakeHost(hostname='raid-a'),
            '10.1.2.2': FakeHost(hostname='raid-b', broken_command='whoami'),
            })
        exit_code = install(self._config, list(fleet.hosts), fleet.remote, self._output)
        self.assertEqual(exit_code, EXIT_TARGETS_FAILED)
        table = self._output.getvalue()
        self.assertRegex(table, r'10.1.2.2 +\| 10.1.2.2 +\| FAILED')
        self.assertIn('2 targets: 1 succeeded, 1 failed', table)

    def test_all_succeed(self):
        fleet = FakeFleet({'10.1.1.1': FakeHost(), '10.1.1.2': FakeHost()})
        exit_code = install(self._config, list(fleet.hosts), fleet.remote, self._output)
        self.assertEqual(exit_code, 0)
        self.assertIn('2 targets: 2 succeeded, 0 failed', self._output.getvalue())

    def test_empty_target_list(self):
        fleet = FakeFleet({})
        exit_code = install(self._config, [], fleet.remote, self._output)
        self.assertEqual(exit_code, EXIT_BAD_CONFIGURATION)
        self.assertEqual(self._output.getvalue(), '')
        self.assertFalse(self._config.summary_path.exists())


class TestQueryUsb(unittest.TestCase):

    def setUp(self):
        self._config = OrchestratorConfig(Path('logs'))
        self._output = io.StringIO()

    def test_device_paths_one_per_line(self):
        host = FakeHost(lsblk_output='mmcblk0 disk\nsda disk usb\nsdb disk usb\n')
        fleet = FakeFleet({'pi1': host})
        exit_code = query_usb(self._config, ['pi1'], fleet.remote, self._output)
        self.assertEqual(exit_code, 0)
        self.assertEqual(self._output.getvalue(), '/dev/sda\n/dev/sdb\n')
        self.assertEqual(host.uploads, [])
        self.assertFalse([c for c in host.commands if 'sudo' in c or 'install' in c])

    def test_single_target_only(self):
        fleet = FakeFleet({'pi1': FakeHost(), 'pi2': FakeHost()})
        exit_code = query_usb(self._config, ['pi1', 'pi2'], fleet.remote, self._output)
        self.assertEqual(exit_code, EXIT_BAD_CONFIGURATION)
        self.assertEqual(fleet.hosts['pi1'].commands, [])

    def test_unreachable(self):
        fleet = FakeFleet({'pi1': FakeHost(reachable=False)})
        exit_code = query_usb(self._config, ['pi1'], fleet.remote, self._output)
        self.assertEqual(exit_code, EXIT_TARGETS_FAILED)
        self.assertEqual(self._output.getvalue(), '')


class TestCollectTargets(unittest.TestCase):

    def test_command_line_and_file(self):
        with TemporaryDirectory() as temp_dir:
            targets_file = Path(temp_dir, 'targets.txt')
            targets_file.write_text('# rack 1\npi3\n\npi4  # spare disks\n')
            self.assertEqual(_collect_targets(['pi1', 'pi2'], targets_file), ['pi1', 'pi2', 'pi3', 'pi4'])

    def test_missing_file(self):
        with self.assertRaisesRegex(ConfigurationError, 'Cannot read targets file'):
            _collect_targets([], Path('/nonexistent/targets.txt'))
