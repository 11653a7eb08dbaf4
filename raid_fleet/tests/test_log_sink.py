# Copyright 2018-present Network Optix, Inc. Licensed under MPL 2.0: www.mozilla.org/MPL/2.0/
import unittest
from pathlib import Path
from tempfile import TemporaryDirectory

from raid_fleet._log_sink import TargetLog


class TestTargetLog(unittest.TestCase):

    def test_leveled_lines_between_banners(self):
        with TemporaryDirectory() as temp_dir:
            path = Path(temp_dir, 'nested', 'install_pi1.log')
            with TargetLog(path) as log:
                log.start('pi1 as pi, port 22')
                log.info('Copy install_raid_target.sh to /tmp/install_raid_target.sh')
                log.write_output(b'[RAID] partial li')
                log.write_output(b'ne\n')
                log.warning('Cleanup: cannot remove /tmp/x')
                log.error('install failed: exit status 1')
                log.finish('FAILED')
            lines = path.read_text().splitlines()
        self.assertRegex(lines[0], r'^===== RAID INSTALL START: \d{4}-\d\d-\d\dT.+ =====$')
        self.assertEqual(lines[1:6], [
            'Target: pi1 as pi, port 22',
            '[INFO]  Copy install_raid_target.sh to /tmp/install_raid_target.sh',
            '[RAID] partial line',
            '[WARN]  Cleanup: cannot remove /tmp/x',
            '[ERROR] install failed: exit status 1',
            ])
        self.assertRegex(lines[6], r'^===== RAID INSTALL END: .+ status=FAILED =====$')

    def test_appends(self):
        with TemporaryDirectory() as temp_dir:
            path = Path(temp_dir, 'install_pi1.log')
            path.write_text('previous run\n')
            with TargetLog(path) as log:
                log.info('next run')
            self.assertEqual(path.read_text(), 'previous run\n[INFO]  next run\n')
