# Copyright 2018-present Network Optix, Inc. Licensed under MPL 2.0: www.mozilla.org/MPL/2.0/
import logging
from concurrent.futures import Future
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from datetime import timezone
from enum import Enum
from subprocess import TimeoutExpired
from typing import Callable
from typing import List
from typing import Optional
from typing import Sequence

from raid_fleet._access import resolve_display_name
from raid_fleet._access import verify_access
from raid_fleet._cleanup import reconcile
from raid_fleet._config import OrchestratorConfig
from raid_fleet._errors import InstallJobError
from raid_fleet._errors import TargetUnreachable
from raid_fleet._executor import RemoteExecutor
from raid_fleet._limiter import ConcurrencyLimiter
from raid_fleet._log_sink import TargetLog
from raid_fleet._remote import CannotConnect
from raid_fleet._remote import Remote
from raid_fleet._results import FAILED
from raid_fleet._results import SUCCESS
from raid_fleet._results import ResultRecord
from raid_fleet._results import ResultRecorder
from raid_fleet._results import write_summary_csv
from raid_fleet._target import Target
from raid_fleet._target import fleet_name
from raid_fleet._target import resolve_address

_logger = logging.getLogger(__name__)

RemoteFactory = Callable[[Target], Remote]


class JobState(Enum):
    PENDING = 'pending'
    VERIFYING = 'verifying'
    DISPATCHED = 'dispatched'
    RUNNING = 'running'
    SUCCEEDED = 'succeeded'
    FAILED = 'failed'


_TRANSITIONS = {
    JobState.PENDING: {JobState.VERIFYING, JobState.FAILED},
    JobState.VERIFYING: {JobState.DISPATCHED, JobState.FAILED},
    JobState.DISPATCHED: {JobState.RUNNING, JobState.FAILED},
    JobState.RUNNING: {JobState.SUCCEEDED, JobState.FAILED},
    JobState.SUCCEEDED: set(),
    JobState.FAILED: set(),
    }


class InstallJob:

    def __init__(self, target: Target, log: TargetLog):
        self.target = target
        self.log = log
        self.state = JobState.PENDING
        self.started_at: Optional[datetime] = None
        self.display_name = target.address
        self.address = target.address
        self.error: Optional[InstallJobError] = None
        self.history = [JobState.PENDING]

    def __repr__(self):
        return f'<{self.__class__.__name__} {self.target.address} {self.state.value}>'

    def move_to(self, state: JobState):
        if state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"{self!r}: cannot move to {state.value}")
        _logger.debug("%s: %s -> %s", self.target.address, self.state.value, state.value)
        self.state = state
        self.history.append(state)

    def is_finished(self) -> bool:
        return not _TRANSITIONS[self.state]

    def record(self) -> ResultRecord:
        if not self.is_finished():
            raise RuntimeError(f"{self!r}: not finished yet")
        return ResultRecord(
            target=self.target.address,
            display_name=self.display_name,
            address=self.address,
            status=SUCCESS if self.state == JobState.SUCCEEDED else FAILED,
            log_path=self.log.path,
            )


class Orchestrator:
    """Install on every target, a limited number at a time.

    Targets are admitted in the given order, each as soon as a slot is
    free; they finish in any order. A failure stays within its target.
    Every target gets exactly one record.
    """

    def __init__(
            self,
            config: OrchestratorConfig,
            remote_factory: RemoteFactory,
            limiter: Optional[ConcurrencyLimiter] = None,
            recorder: Optional[ResultRecorder] = None,
            ):
        self._config = config
        self._remote_factory = remote_factory
        self._limiter = limiter if limiter is not None else ConcurrencyLimiter(config.max_parallel)
        self._recorder = recorder if recorder is not None else ResultRecorder()
        self._jobs: List[InstallJob] = []

    def __repr__(self):
        return f'<{self.__class__.__name__} {self._config!r}>'

    def jobs(self) -> Sequence[InstallJob]:
        return list(self._jobs)

    def run(self, addresses: Sequence[str]) -> Sequence[ResultRecord]:
        targets = self._config.make_targets(addresses)
        executor = RemoteExecutor(
            self._config.artifact_paths(),
            self._config.entry_point,
            self._config.staging_dir,
            self._config.install_timeout_sec,
            )
        self._jobs = [
            InstallJob(target, TargetLog(self._config.target_log_path(target.address)))
            for target in targets
            ]
        _logger.info(
            "Starting RAID installations on %d devices %s (max %d parallel)",
            len(self._jobs), fleet_name(addresses), self._limiter.max_parallel)
        futures: List[Future] = []
        with ThreadPoolExecutor(max_workers=len(self._jobs), thread_name_prefix='install') as pool:
            for job in self._jobs:
                self._limiter.acquire()
                try:
                    futures.append(pool.submit(self._run_admitted, job, executor))
                except BaseException:
                    self._limiter.release()
                    raise
        records = self._recorder.in_order_of([job.target.address for job in self._jobs])
        write_summary_csv(self._config.summary_path, records)
        for future in futures:
            # Per-target errors are recorded as FAILED; only a broken recorder gets here.
            future.result()
        return records

    def _run_admitted(self, job: InstallJob, executor: RemoteExecutor):
        try:
            self._run_job(job, executor)
        finally:
            self._limiter.release()

    def _run_job(self, job: InstallJob, executor: RemoteExecutor):
        try:
            with job.log, self._remote_factory(job.target) as remote:
                job.started_at = datetime.now(timezone.utc)
                job.log.start(f"{job.target.address} as {job.target.user}, port {job.target.port}")
                try:
                    self._install(job, executor, remote)
                except InstallJobError as e:
                    _logger.error("[%s] Installation failed (%s): %s", job.target.address, e.reason, e)
                    job.log.error(f"{e.reason}: {e}")
                    job.error = e
                    job.move_to(JobState.FAILED)
                except Exception as e:
                    _logger.exception("[%s] Installation broke in state %s", job.target.address, job.state.value)
                    job.log.error(f"unexpected error: {e!r}")
                    job.move_to(JobState.FAILED)
                else:
                    _logger.info("[%s] Installation completed successfully", job.target.address)
                    job.log.info("Installation completed successfully")
                    job.move_to(JobState.SUCCEEDED)
                try:
                    self._clean_up_after(job, remote)
                finally:
                    job.log.finish(job.record().status)
        except Exception:
            _logger.exception("[%s] Job broke in state %s", job.target.address, job.state.value)
        finally:
            if not job.is_finished():
                job.move_to(JobState.FAILED)
            self._recorder.add(job.record())

    def _install(self, job: InstallJob, executor: RemoteExecutor, remote: Remote):
        job.move_to(JobState.VERIFYING)
        job.address = resolve_address(job.target.address)
        if verify_access(remote, self._config.probe_timeout_sec):
            job.display_name = resolve_display_name(
                remote, job.target.address, self._config.probe_timeout_sec)
        else:
            # Asking for the host name would be one more connection attempt.
            _logger.warning("[%s] Passwordless SSH not confirmed; trying anyway", job.target.address)
            job.log.warning("Non-interactive access not verified; trying to install anyway")
        job.move_to(JobState.DISPATCHED)
        try:
            reconcile(remote, self._config.cleanup_resources(), job.log)
        except (CannotConnect, TimeoutExpired) as e:
            raise TargetUnreachable(f"Cleanup before install failed: {e!r}")
        _logger.info("[%s] Copying scripts", job.target.address)
        executor.transfer(remote, job.log)
        job.move_to(JobState.RUNNING)
        _logger.info("[%s] Running RAID setup", job.target.address)
        executor.invoke(remote, job.log)

    def _clean_up_after(self, job: InstallJob, remote: Remote):
        try:
            reconcile(remote, self._config.cleanup_resources(), job.log)
        except (CannotConnect, TimeoutExpired) as e:
            # Outcome of the install does not depend on the cleanup.
            _logger.warning("[%s] Cleanup after install failed: %r", job.target.address, e)
            job.log.warning(f"Cleanup after install failed: {e!r}")
