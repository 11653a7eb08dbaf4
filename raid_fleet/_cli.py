# Copyright 2018-present Network Optix, Inc. Licensed under MPL 2.0: www.mozilla.org/MPL/2.0/
import argparse
import logging
import os
import sys
from pathlib import Path
from subprocess import TimeoutExpired
from typing import Optional
from typing import Sequence
from typing import TextIO

import paramiko

from raid_fleet._config import FileConfig
from raid_fleet._config import OrchestratorConfig
from raid_fleet._config import read_config
from raid_fleet._disks import DiskQueryFailed
from raid_fleet._disks import query_usb_disks
from raid_fleet._errors import ConfigurationError
from raid_fleet._logging import init_logging
from raid_fleet._orchestrator import Orchestrator
from raid_fleet._orchestrator import RemoteFactory
from raid_fleet._remote import CannotConnect
from raid_fleet._ssh import SshRemote
from raid_fleet._ssh import load_private_key
from raid_fleet._summary import render_summary
from raid_fleet._target import Target
from raid_fleet._target import fleet_name
from raid_fleet._target import parse_targets

_logger = logging.getLogger(__name__)

_CONFIG_PATHS = (
    Path(__file__).with_name('raid_fleet.ini'),
    Path('~/.config/raid_fleet.ini').expanduser(),
    )
EXIT_TARGETS_FAILED = 10
EXIT_BAD_CONFIGURATION = 2


def main(args: Sequence[str]) -> int:
    parser = argparse.ArgumentParser(
        prog='raid-fleet',
        description="Set up mirrored disks (RAID 1) on remote Linux hosts over SSH")
    parser.add_argument(
        'targets', nargs='*', metavar='TARGET',
        help="host name or IP address; installs run in the given order")
    parser.add_argument(
        '--targets-file', type=Path,
        help="file with one target per line, # starts a comment")
    parser.add_argument('--user', help="remote account; default: pi")
    parser.add_argument('--port', type=int, help="SSH port; default: 22")
    parser.add_argument(
        '--max-parallel', type=int,
        help="installs running at once; default: 3")
    parser.add_argument(
        '--log-dir', type=Path,
        help="per-target logs and summary; default: ./logs")
    parser.add_argument('--key', help="private key file; default: agent and ~/.ssh")
    parser.add_argument(
        '--install-timeout', type=float,
        help="seconds the remote procedure may run; default: 3600")
    parser.add_argument(
        '--config', type=Path, action='append',
        help=f"INI file to read instead of {', '.join(map(str, _CONFIG_PATHS))}")
    parser.add_argument(
        '--usb-query', action='store_true',
        help="only list USB disks of a single target, change nothing")
    parser.add_argument('--quiet', action='store_true', help="show only warnings and errors")
    parsed_args = parser.parse_args(args)
    try:
        file_config = read_config(*(parsed_args.config or _CONFIG_PATHS))
        defaults = file_config.defaults()
        log_dir = parsed_args.log_dir or Path(defaults.get('log_dir', 'logs'))
    except ConfigurationError as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return EXIT_BAD_CONFIGURATION
    init_logging(log_dir / 'orchestration.log', quiet=parsed_args.quiet)
    try:
        addresses = _collect_targets(parsed_args.targets, parsed_args.targets_file)
        config = _make_config(parsed_args, file_config, log_dir)
        key = parsed_args.key or defaults.get('key')
        remote_factory = ssh_factory(
            load_private_key(key) if key else None,
            config.connect_timeout_sec)
    except ConfigurationError as e:
        _logger.error("%s", e)
        return EXIT_BAD_CONFIGURATION
    if parsed_args.usb_query:
        return query_usb(config, addresses, remote_factory, sys.stdout)
    if os.getenv('DRY_RUN'):
        _logger.info("Dry run: would install on %s with %r", fleet_name(addresses), config)
        return 0
    return install(config, addresses, remote_factory, sys.stdout)


def install(
        config: OrchestratorConfig,
        addresses: Sequence[str],
        remote_factory: RemoteFactory,
        output: TextIO,
        ) -> int:
    orchestrator = Orchestrator(config, remote_factory)
    try:
        records = orchestrator.run(addresses)
    except ConfigurationError as e:
        _logger.error("%s", e)
        return EXIT_BAD_CONFIGURATION
    print(render_summary(records), file=output, flush=True)
    failed = [record.target for record in records if not record.succeeded()]
    if failed:
        _logger.error("Installation failed on %d of %d targets: %s", len(failed), len(records), ', '.join(failed))
        return EXIT_TARGETS_FAILED
    _logger.info("Installation succeeded on all %d targets", len(records))
    return 0


def query_usb(
        config: OrchestratorConfig,
        addresses: Sequence[str],
        remote_factory: RemoteFactory,
        output: TextIO,
        ) -> int:
    if len(addresses) != 1:
        _logger.error("USB query needs exactly one target, got %d", len(addresses))
        return EXIT_BAD_CONFIGURATION
    try:
        [target] = config.make_targets(addresses)
    except ConfigurationError as e:
        _logger.error("%s", e)
        return EXIT_BAD_CONFIGURATION
    with remote_factory(target) as remote:
        try:
            devices = query_usb_disks(remote, timeout_sec=config.probe_timeout_sec)
        except (CannotConnect, TimeoutExpired, DiskQueryFailed) as e:
            _logger.error("%s: USB query failed: %s", target.address, e)
            return EXIT_TARGETS_FAILED
    for device in devices:
        print(device, file=output)
    output.flush()
    return 0


def ssh_factory(key: Optional[paramiko.PKey], connect_timeout_sec: float) -> RemoteFactory:

    def make_remote(target: Target):
        return SshRemote(target.address, target.port, target.user, key, connect_timeout_sec)

    return make_remote


def _collect_targets(targets: Sequence[str], targets_file: Optional[Path]) -> Sequence[str]:
    lines = list(targets)
    if targets_file is not None:
        try:
            lines.extend(targets_file.read_text().splitlines())
        except OSError as e:
            raise ConfigurationError(f"Cannot read targets file: {e}")
    return parse_targets(lines)


def _make_config(parsed_args, file_config: FileConfig, log_dir: Path) -> OrchestratorConfig:
    defaults = file_config.defaults()
    pinned = [name for name in ('user', 'port') if getattr(parsed_args, name) is not None]
    try:
        return OrchestratorConfig(
            log_dir=log_dir,
            user=parsed_args.user or defaults.get('user', 'pi'),
            port=_pick(parsed_args.port, defaults, 'port', int, 22),
            max_parallel=_pick(parsed_args.max_parallel, defaults, 'max_parallel', int, 3),
            connect_timeout_sec=_pick(None, defaults, 'connect_timeout', float, 8),
            install_timeout_sec=_pick(parsed_args.install_timeout, defaults, 'install_timeout', float, 3600),
            staging_dir=defaults.get('staging_dir', '/tmp'),
            file_config=file_config,
            pinned_options=pinned,
            )
    except ValueError as e:
        raise ConfigurationError(f"Bad option value: {e}")


def _pick(value, defaults, name, type_, default):
    if value is not None:
        return value
    if name in defaults:
        return type_(defaults[name])
    return default
