# Copyright 2018-present Network Optix, Inc. Licensed under MPL 2.0: www.mozilla.org/MPL/2.0/
import logging
import re
import socket
from typing import Collection
from typing import Iterable
from typing import List
from typing import NamedTuple
from typing import Optional
from typing import Sequence

from raid_fleet._errors import ConfigurationError

_logger = logging.getLogger(__name__)


class Target:

    def __init__(self, address: str, user: str, port: int):
        self._address = address
        self._user = user
        self._port = port

    def __repr__(self):
        return f'<{self.__class__.__name__} {self._user}@{self._address}:{self._port}>'

    def __eq__(self, other):
        if not isinstance(other, Target):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self):
        return hash(self._key())

    def _key(self):
        return self._address, self._user, self._port

    @property
    def address(self) -> str:
        return self._address

    @property
    def user(self) -> str:
        return self._user

    @property
    def port(self) -> int:
        return self._port


def parse_targets(lines: Iterable[str]) -> Sequence[str]:
    """Take addresses from command line or a file. Keep the order.

    >>> parse_targets(['pi1', ' pi2 ', '', '# spare', 'pi3  # rack 2'])
    ['pi1', 'pi2', 'pi3']
    >>> parse_targets(['pi1', 'pi1'])  # doctest: +IGNORE_EXCEPTION_DETAIL
    Traceback (most recent call last):
    ...
    raid_fleet._errors.ConfigurationError: Duplicate target 'pi1'
    """
    result = []
    for line in lines:
        address, _, _comment = line.partition('#')
        address = address.strip()
        if not address:
            continue
        if address in result:
            raise ConfigurationError(f"Duplicate target {address!r}")
        result.append(address)
    return result


def resolve_address(address: str) -> str:
    try:
        [(_family, _type, _proto, _canonname, sockaddr), *_] = socket.getaddrinfo(
            address, None, proto=socket.IPPROTO_TCP)
    except (socket.gaierror, UnicodeError) as e:
        # UnicodeError comes from IDNA encoding of malformed names like a..b.
        _logger.warning("Cannot resolve %s locally: %s", address, e)
        return address
    return sockaddr[0]


def fleet_name(addresses: Collection[str]) -> str:
    """Collapse numbered host names into brace ranges for log lines.

    >>> fleet_name(['pi3', 'pi1', 'pi2'])
    'pi{1..3}'
    >>> fleet_name(['raid-node01.lan', 'raid-node02.lan', 'nas.lan'])
    'nas.lan, raid-node{01..02}.lan'
    >>> fleet_name(['10.0.0.5', '10.0.0.6'])
    '10.0.0.5, 10.0.0.6'
    >>> fleet_name([])
    ''
    """
    runs: List[List[str]] = []
    for address in sorted(addresses):
        if runs and _follows(runs[-1][-1], address):
            runs[-1].append(address)
        else:
            runs.append([address])
    return ', '.join(_run_name(run) for run in runs)


class _NumberedName(NamedTuple):
    stem: str
    number: str
    tail: str


_numbered_name_re = re.compile(r'([a-zA-Z._-]+?)(\d+)([0-9a-zA-Z._-]*)')


def _split_number(address: str) -> Optional[_NumberedName]:
    match = _numbered_name_re.fullmatch(address)
    if match is None:
        return None
    return _NumberedName(*match.groups())


def _follows(previous: str, address: str) -> bool:
    before = _split_number(previous)
    after = _split_number(address)
    if before is None or after is None:
        return False
    if (before.stem, before.tail) != (after.stem, after.tail):
        return False
    # Zero padding must match: pi09 and pi10 collapse, pi9 and pi010 do not.
    if len(before.number) != len(after.number):
        return False
    return int(after.number) == int(before.number) + 1


def _run_name(run: Sequence[str]) -> str:
    if len(run) == 1:
        return run[0]
    first = _split_number(run[0])
    last = _split_number(run[-1])
    return f'{first.stem}{{{first.number}..{last.number}}}{first.tail}'
