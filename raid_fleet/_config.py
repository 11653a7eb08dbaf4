# Copyright 2018-present Network Optix, Inc. Licensed under MPL 2.0: www.mozilla.org/MPL/2.0/
import fnmatch
import logging
from configparser import ConfigParser
from pathlib import Path
from typing import Collection
from typing import Mapping
from typing import Optional
from typing import Sequence

from raid_fleet._cleanup import Resource
from raid_fleet._cleanup import leftover_resources
from raid_fleet._errors import ConfigurationError
from raid_fleet._log_sink import target_log_path
from raid_fleet._target import Target

_logger = logging.getLogger(__name__)

BUNDLED_ARTIFACTS_DIR = Path(__file__).with_name('remote')
ENTRY_POINT = 'install_raid_target.sh'
DEFAULT_ARTIFACTS = (
    ENTRY_POINT,
    'device_updater.sh',
    'firewall_setup.sh',
    'raid_checks.sh',
    'install_raid_server.sh',
    )
_PER_TARGET_OPTIONS = ('user', 'port')


class FileConfig:
    """Options read from INI files.

    Section [defaults] applies to every target. Other sections are
    named by a mask of target addresses, like "[pi-*]", and may only
    set per-target options. Optionally add ";v123" to a section name;
    higher versions override lower versions, then later files override
    earlier ones, then later sections override earlier ones.
    """

    def __init__(self, parts):
        self._parts = sorted(parts)

    def defaults(self) -> Mapping[str, str]:
        result = {}
        for _version, _path_i, _section_i, mask, items in self._parts:
            if mask is None:
                result.update(items)
        return result

    def for_target(self, address: str, exclude: Collection[str] = ()) -> Mapping[str, str]:
        result = {}
        for _version, _path_i, _section_i, mask, items in self._parts:
            if mask is None or not fnmatch.fnmatch(address, mask):
                continue
            result.update({k: v for k, v in items if k not in exclude})
        return result


def read_config(*paths: Path) -> FileConfig:
    parts = []
    for path_i, path in enumerate(paths):
        config_parser = ConfigParser()
        if not config_parser.read(path):
            _logger.debug("Config %s: not found", path)
            continue
        for section_i, section in enumerate(config_parser.sections()):
            mask, version = _parse_section_header(section)
            items = config_parser.items(section)
            if mask is not None:
                unknown = [k for k, _v in items if k not in _PER_TARGET_OPTIONS]
                if unknown:
                    raise ConfigurationError(
                        f"Config {path}: section {section}: only {_PER_TARGET_OPTIONS} "
                        f"may be set per target, got {unknown}")
            _logger.info("Config %s: section %s: read", path, section)
            parts.append((version, path_i, section_i, mask, items))
    return FileConfig(parts)


def _parse_section_header(section):
    """Split section name into target mask and version.

    >>> _parse_section_header('defaults')
    (None, 0)
    >>> _parse_section_header('pi-*;v2')
    ('pi-*', 2)
    """
    mask, _semicolon, extra = section.partition(';')
    if mask == 'defaults':
        mask = None
    if not extra:
        return mask, 0
    elif extra.startswith('v'):
        try:
            return mask, int(extra[1:])
        except ValueError:
            raise ConfigurationError(f"Cannot parse {extra} in {section}")
    else:
        raise ConfigurationError(f"Unknown {extra} in {section}")


class OrchestratorConfig:
    """Everything a run needs, passed explicitly instead of globals."""

    def __init__(
            self,
            log_dir: Path,
            user: str = 'pi',
            port: int = 22,
            max_parallel: int = 3,
            artifacts_dir: Path = BUNDLED_ARTIFACTS_DIR,
            artifact_names: Sequence[str] = DEFAULT_ARTIFACTS,
            entry_point: str = ENTRY_POINT,
            staging_dir: str = '/tmp',
            connect_timeout_sec: float = 8,
            install_timeout_sec: float = 3600,
            file_config: Optional[FileConfig] = None,
            pinned_options: Collection[str] = (),
            ):
        if max_parallel < 1:
            raise ConfigurationError(f"max-parallel must be at least 1, got {max_parallel}")
        _check_port(port)
        if install_timeout_sec <= 0 or connect_timeout_sec <= 0:
            raise ConfigurationError("Timeouts must be positive")
        self.log_dir = log_dir
        self.user = user
        self.port = port
        self.max_parallel = max_parallel
        self.artifacts_dir = artifacts_dir
        self.artifact_names = artifact_names
        self.entry_point = entry_point
        self.staging_dir = staging_dir
        self.connect_timeout_sec = connect_timeout_sec
        self.install_timeout_sec = install_timeout_sec
        self._file_config = file_config if file_config is not None else FileConfig([])
        self._pinned_options = pinned_options

    def __repr__(self):
        return (
            f'<{self.__class__.__name__} {self.user}@*:{self.port} '
            f'max_parallel={self.max_parallel} log_dir={self.log_dir}>')

    @property
    def probe_timeout_sec(self) -> float:
        """Bound for short read-only commands: whoami, hostname, lsblk."""
        return self.connect_timeout_sec * 4

    @property
    def summary_path(self) -> Path:
        return self.log_dir / 'raid_install_summary.csv'

    @property
    def orchestration_log_path(self) -> Path:
        return self.log_dir / 'orchestration.log'

    def artifact_paths(self) -> Sequence[Path]:
        return [self.artifacts_dir / name for name in self.artifact_names]

    def cleanup_resources(self) -> Sequence[Resource]:
        return leftover_resources(self.staging_dir, self.artifact_names)

    def target_log_path(self, address: str) -> Path:
        return target_log_path(self.log_dir, address)

    def make_targets(self, addresses: Sequence[str]) -> Sequence[Target]:
        if not addresses:
            raise ConfigurationError("Empty target list")
        if len(set(addresses)) != len(addresses):
            raise ConfigurationError(f"Duplicate targets in {addresses}")
        targets = []
        log_owners = {}
        for address in addresses:
            log_path = self.target_log_path(address)
            if log_path in log_owners:
                raise ConfigurationError(
                    f"Targets {log_owners[log_path]} and {address} would share log {log_path}")
            log_owners[log_path] = address
            options = self._file_config.for_target(address, exclude=self._pinned_options)
            user = options.get('user', self.user)
            try:
                port = int(options.get('port', self.port))
            except ValueError:
                raise ConfigurationError(f"{address}: port must be a number, got {options['port']!r}")
            _check_port(port)
            targets.append(Target(address, user, port))
        return targets


def _check_port(port: int):
    if not 0 < port < 65536:
        raise ConfigurationError(f"Port must be within 1..65535, got {port}")
