# Copyright 2018-present Network Optix, Inc. Licensed under MPL 2.0: www.mozilla.org/MPL/2.0/
import unittest
from pathlib import Path
from tempfile import TemporaryDirectory
from textwrap import dedent

from raid_fleet._config import OrchestratorConfig
from raid_fleet._config import read_config
from raid_fleet._errors import ConfigurationError


class TestReadConfig(unittest.TestCase):

    def setUp(self):
        self._temp_dir = TemporaryDirectory()
        self._root = Path(self._temp_dir.name)

    def tearDown(self):
        self._temp_dir.cleanup()

    def _write(self, name, text):
        path = self._root / name
        path.write_text(dedent(text))
        return path

    def test_defaults_and_per_target_sections(self):
        path = self._write('raid_fleet.ini', '''
            [defaults]
            user = admin
            max_parallel = 5
            [pi-*]
            port = 2222
            [pi-7]
            user = root
            ''')
        file_config = read_config(path, self._root / 'absent.ini')
        self.assertEqual(file_config.defaults(), {'user': 'admin', 'max_parallel': '5'})
        config = OrchestratorConfig(self._root, user='admin', file_config=file_config)
        [other, pi1, pi7] = config.make_targets(['nas', 'pi-1', 'pi-7'])
        self.assertEqual((other.user, other.port), ('admin', 22))
        self.assertEqual((pi1.user, pi1.port), ('admin', 2222))
        self.assertEqual((pi7.user, pi7.port), ('root', 2222))

    def test_versions_and_file_order(self):
        old = self._write('old.ini', '''
            [pi-*;v2]
            port = 2200
            [pi-*]
            port = 2100
            ''')
        new = self._write('new.ini', '''
            [pi-*]
            port = 2300
            ''')
        config = OrchestratorConfig(self._root, file_config=read_config(old, new))
        [target] = config.make_targets(['pi-1'])
        self.assertEqual(target.port, 2200)

    def test_pinned_options_win(self):
        path = self._write('raid_fleet.ini', '''
            [pi-*]
            user = root
            port = 2222
            ''')
        config = OrchestratorConfig(
            self._root, user='pi', file_config=read_config(path), pinned_options=['user'])
        [target] = config.make_targets(['pi-1'])
        self.assertEqual((target.user, target.port), ('pi', 2222))

    def test_only_user_and_port_per_target(self):
        path = self._write('raid_fleet.ini', '''
            [pi-*]
            max_parallel = 10
            ''')
        with self.assertRaisesRegex(ConfigurationError, 'may be set per target'):
            read_config(path)

    def test_bad_section_version(self):
        path = self._write('raid_fleet.ini', '''
            [pi-*;vX]
            port = 2222
            ''')
        with self.assertRaisesRegex(ConfigurationError, 'Cannot parse vX'):
            read_config(path)


class TestOrchestratorConfig(unittest.TestCase):

    def test_defaults(self):
        config = OrchestratorConfig(Path('logs'))
        self.assertEqual((config.user, config.port, config.max_parallel), ('pi', 22, 3))
        self.assertEqual(config.summary_path, Path('logs/raid_install_summary.csv'))
        self.assertEqual(config.target_log_path('pi1'), Path('logs/install_pi1.log'))
        self.assertEqual(config.probe_timeout_sec, 32)
        self.assertTrue(all(path.is_file() for path in config.artifact_paths()))

    def test_invalid_values(self):
        with self.assertRaises(ConfigurationError):
            OrchestratorConfig(Path('logs'), max_parallel=0)
        with self.assertRaises(ConfigurationError):
            OrchestratorConfig(Path('logs'), port=70000)
        with self.assertRaises(ConfigurationError):
            OrchestratorConfig(Path('logs'), install_timeout_sec=0)

    def test_target_list(self):
        config = OrchestratorConfig(Path('logs'))
        with self.assertRaisesRegex(ConfigurationError, 'Empty target list'):
            config.make_targets([])
        with self.assertRaisesRegex(ConfigurationError, 'Duplicate'):
            config.make_targets(['pi1', 'pi1'])
        self.assertEqual([t.address for t in config.make_targets(['pi2', 'pi1'])], ['pi2', 'pi1'])

    def test_targets_sharing_log_file(self):
        config = OrchestratorConfig(Path('logs'))
        with self.assertRaisesRegex(ConfigurationError, 'pi:1 and pi_1 would share log'):
            config.make_targets(['pi:1', 'pi_1'])
