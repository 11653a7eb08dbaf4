# Copyright 2018-present Network Optix, Inc. Licensed under MPL 2.0: www.mozilla.org/MPL/2.0/
"""Set up mirrored disks (RAID 1) on a fleet of Linux hosts from one machine.

The remote procedure is a set of shell scripts in the remote/ directory.
They are copied to every target and run there as root. They must be
idempotent: if the array is already assembled and mounted, the second
run must exit successfully without touching the disks.

Targets are independent. A failure on one of them is written to its log
and to the summary, and does not stop the others. At most max_parallel
installs run at once. Nothing is retried automatically: if a target
fails, the human who runs the install must investigate its log.

Commands are run on targets only via a Remote. This allows running
the whole orchestration against fakes, without a network.
"""
from raid_fleet._access import resolve_display_name
from raid_fleet._access import verify_access
from raid_fleet._cleanup import Resource
from raid_fleet._cleanup import leftover_resources
from raid_fleet._cleanup import reconcile
from raid_fleet._config import OrchestratorConfig
from raid_fleet._config import read_config
from raid_fleet._disks import eligible_disks
from raid_fleet._disks import query_usb_disks
from raid_fleet._errors import ConfigurationError
from raid_fleet._errors import InstallFailed
from raid_fleet._errors import InstallJobError
from raid_fleet._errors import InstallTimedOut
from raid_fleet._errors import TargetUnreachable
from raid_fleet._errors import TransferFailed
from raid_fleet._executor import RemoteExecutor
from raid_fleet._limiter import ConcurrencyLimiter
from raid_fleet._log_sink import TargetLog
from raid_fleet._orchestrator import InstallJob
from raid_fleet._orchestrator import JobState
from raid_fleet._orchestrator import Orchestrator
from raid_fleet._remote import CannotConnect
from raid_fleet._remote import Remote
from raid_fleet._results import ResultRecord
from raid_fleet._results import ResultRecorder
from raid_fleet._ssh import SshCannotConnect
from raid_fleet._ssh import SshRemote
from raid_fleet._summary import render_summary
from raid_fleet._target import Target

__all__ = [
    'CannotConnect',
    'ConcurrencyLimiter',
    'ConfigurationError',
    'InstallFailed',
    'InstallJob',
    'InstallJobError',
    'InstallTimedOut',
    'JobState',
    'Orchestrator',
    'OrchestratorConfig',
    'Remote',
    'RemoteExecutor',
    'Resource',
    'ResultRecord',
    'ResultRecorder',
    'SshCannotConnect',
    'SshRemote',
    'Target',
    'TargetLog',
    'TargetUnreachable',
    'TransferFailed',
    'eligible_disks',
    'leftover_resources',
    'query_usb_disks',
    'read_config',
    'reconcile',
    'render_summary',
    'resolve_display_name',
    'verify_access',
    ]
