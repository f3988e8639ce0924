import logging
import os
import subprocess
import threading
import time
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from tfdash.config import settings
from tfdash.core.exceptions import LaunchError, StageCancelled, StageFailure, StageTimeout

logger = logging.getLogger(__name__)

LogSink = Callable[[List[str]], None]


def _terminate(proc: subprocess.Popen, wait_seconds: float = 3.0) -> None:
    if proc.poll() is not None:
        return
    try:
        proc.terminate()
        try:
            proc.wait(timeout=wait_seconds)
        except subprocess.TimeoutExpired:
            proc.kill()
            proc.wait()
    except OSError as e:
        logger.warning(f"Error terminating process {proc.pid}: {e}")


class RunContext:
    """
    Cancellation and deadline shared by every stage of one lifecycle sequence.
    ``cancel()`` may be called from any thread; it also terminates the stage
    process currently attached.
    """

    def __init__(self, timeout: Optional[float] = None, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self.deadline = clock() + timeout if timeout is not None else None
        self._cancelled = threading.Event()
        self._lock = threading.Lock()
        self._process: Optional[subprocess.Popen] = None

    def now(self) -> float:
        return self._clock()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def stage_deadline(self, timeout: Optional[float] = None) -> Optional[float]:
        """Earliest of the sequence deadline and ``now + timeout``."""
        candidates = [d for d in (self.deadline, self.now() + timeout if timeout is not None else None) if d is not None]
        return min(candidates) if candidates else None

    def attach(self, proc: subprocess.Popen) -> None:
        with self._lock:
            self._process = proc
        if self.cancelled:
            _terminate(proc)

    def detach(self) -> None:
        with self._lock:
            self._process = None

    def cancel(self, wait_seconds: float = 3.0) -> None:
        self._cancelled.set()
        with self._lock:
            proc = self._process
        if proc is not None:
            _terminate(proc, wait_seconds)


class TerraformRunner:
    """Runs one terraform subcommand per call, streaming merged stdout/stderr lines into a sink."""

    POLL_INTERVAL_SEC = 0.2

    def __init__(self, terraform_path: Optional[str] = None, env_overrides: Optional[Dict[str, str]] = None):
        self.terraform_path = terraform_path or settings.terraform_path
        self.env_overrides = self._default_env_overrides()
        if env_overrides:
            self.env_overrides.update(env_overrides)

    @staticmethod
    def _default_env_overrides() -> Dict[str, str]:
        overrides = {
            "AWS_REGION": settings.aws_region,
            "AWS_DEFAULT_REGION": settings.aws_region,
            "TF_IN_AUTOMATION": "1",
            "TF_INPUT": "0",
        }
        if settings.aws_access_key_id and settings.aws_secret_access_key:
            overrides["AWS_ACCESS_KEY_ID"] = settings.aws_access_key_id
            overrides["AWS_SECRET_ACCESS_KEY"] = settings.aws_secret_access_key
        return overrides

    def _get_terraform_env(self) -> dict:
        """
        Ambient environment plus explicit region/credential overrides, so a stage
        behaves the same regardless of the shell the service was started from.
        """
        env = os.environ.copy()
        env.update(self.env_overrides)
        if "AWS_ACCESS_KEY_ID" in self.env_overrides:
            # A session token from the ambient shell would not match the configured keys
            env.pop("AWS_SESSION_TOKEN", None)
        return env

    def run(
        self,
        workspace_path: Union[str, Path],
        command: str,
        args: Optional[List[str]] = None,
        log_sink: Optional[LogSink] = None,
        context: Optional[RunContext] = None,
        timeout: Optional[float] = None,
    ) -> None:
        """
        Run ``terraform <command> <args>`` in ``workspace_path``.

        Every non-empty output line reaches ``log_sink`` in arrival order before
        this returns. Raises LaunchError if the binary cannot be started,
        StageTimeout/StageCancelled when stopped early and StageFailure on a
        non-zero exit.
        """
        context = context or RunContext()
        if context.cancelled:
            raise StageCancelled(command)
        deadline = context.stage_deadline(timeout)
        cmd = [self.terraform_path, command, *(args or [])]

        try:
            proc = subprocess.Popen(
                cmd,
                cwd=str(workspace_path),
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                encoding="utf-8",
                errors="replace",
                env=self._get_terraform_env(),
                bufsize=1,
            )
        except OSError as e:
            raise LaunchError(command, str(e))

        logger.info(f"Started terraform {command} (pid {proc.pid}) in {workspace_path}")
        context.attach(proc)

        def stream_output():
            try:
                for line in iter(proc.stdout.readline, ''):
                    if log_sink and line.strip():
                        log_sink([line.rstrip()])
            except ValueError:
                # Pipe closed after an abandoned join
                return
            except Exception as e:
                logger.error(f"Error streaming terraform {command} output: {str(e)}")
            finally:
                # The child blocks on a full pipe unless something keeps reading
                try:
                    for _ in iter(proc.stdout.readline, ''):
                        pass
                except (ValueError, OSError):
                    pass

        stream_thread = threading.Thread(target=stream_output, daemon=True)
        stream_thread.start()

        timed_out = False
        try:
            while True:
                try:
                    proc.wait(timeout=self.POLL_INTERVAL_SEC)
                    break
                except subprocess.TimeoutExpired:
                    pass
                if context.cancelled:
                    _terminate(proc)
                    break
                if deadline is not None and context.now() >= deadline:
                    timed_out = True
                    _terminate(proc)
                    break
        finally:
            context.detach()

        # A killed process may leave descendants holding the pipe open
        stream_thread.join(timeout=5 if (timed_out or context.cancelled) else None)
        if not stream_thread.is_alive():
            proc.stdout.close()

        if timed_out:
            raise StageTimeout(command, proc.returncode)
        if context.cancelled:
            raise StageCancelled(command, proc.returncode)
        if proc.returncode != 0:
            raise StageFailure(command, proc.returncode)
        logger.info(f"terraform {command} completed successfully")
