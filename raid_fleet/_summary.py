# Copyright 2018-present Network Optix, Inc. Licensed under MPL 2.0: www.mozilla.org/MPL/2.0/
from typing import Sequence

from raid_fleet._results import ResultRecord

_COLUMNS = [
    ('HOSTNAME/IP', 15),
    ('ADDRESS', 15),
    ('STATUS', 10),
    ('LOG FILE', 40),
    ]
_RULE = '=' * 40


def render_summary(records: Sequence[ResultRecord]) -> str:
    """Render records as a fixed-column table, in the given order.

    >>> from pathlib import Path
    >>> print(render_summary([
    ...     ResultRecord('pi1', 'raid-one', '10.0.0.11', 'SUCCESS', Path('logs/install_pi1.log')),
    ...     ResultRecord('pi2', 'pi2', '10.0.0.12', 'FAILED', Path('logs/install_pi2.log')),
    ...     ]))  # doctest: +NORMALIZE_WHITESPACE
    ========= RAID INSTALL SUMMARY =========
    HOSTNAME/IP     | ADDRESS         | STATUS     | LOG FILE
    ----------------------------------------
    raid-one        | 10.0.0.11       | SUCCESS    | logs/install_pi1.log
    pi2             | 10.0.0.12       | FAILED     | logs/install_pi2.log
    ========================================
    2 targets: 1 succeeded, 1 failed
    """
    lines = [
        '========= RAID INSTALL SUMMARY =========',
        _row([name for name, _width in _COLUMNS]),
        '-' * 40,
        ]
    for record in records:
        lines.append(_row([
            record.display_name,
            record.address,
            record.status,
            record.log_path.as_posix(),
            ]))
    lines.append(_RULE)
    succeeded = sum(1 for record in records if record.succeeded())
    failed = len(records) - succeeded
    lines.append(f"{len(records)} targets: {succeeded} succeeded, {failed} failed")
    return '\n'.join(lines)


def _row(values: Sequence[str]) -> str:
    cells = [value.ljust(width) for value, (_name, width) in zip(values, _COLUMNS)]
    return ' | '.join(cells).rstrip()
