# Copyright 2018-present Network Optix, Inc. Licensed under MPL 2.0: www.mozilla.org/MPL/2.0/


class ConfigurationError(Exception):
    """Problem found before any target is dispatched."""


class InstallJobError(Exception):
    """Failure contained to a single target.

    The reason is a short tag written to the target log;
    the summary only shows that the job failed.
    """

    reason = 'failed'


class TargetUnreachable(InstallJobError):
    reason = 'unreachable'


class TransferFailed(InstallJobError):
    reason = 'transfer failed'


class InstallFailed(InstallJobError):
    reason = 'install failed'

    def __init__(self, exit_status: int, message: str):
        super().__init__(message)
        self.exit_status = exit_status


class InstallTimedOut(InstallJobError):
    reason = 'timed out'
