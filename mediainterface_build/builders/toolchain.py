"""
Subprocess runner for external toolchains (cmake, git)
"""

import os
import subprocess
import sys
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

# Exit codes reported for failures that never produced a real exit status
EXIT_SPAWN_FAILED = 127
EXIT_TIMED_OUT = 124
EXIT_CANCELLED = 130

POLL_INTERVAL = 0.2
TERMINATE_GRACE = 5.0


@dataclass(frozen=True)
class InvocationResult:
    """Outcome of a toolchain invocation.

    Attributes:
        exit_code: Process exit code, or one of the EXIT_* codes
        output: Combined stdout/stderr
        timed_out: True if the bounded wait elapsed
        cancelled: True if the invoker was cancelled while running
    """

    exit_code: int
    output: str
    timed_out: bool = False
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


def get_subprocess_creation_flags() -> int:
    """CREATE_NO_WINDOW on Windows, 0 elsewhere"""
    if sys.platform == "win32":
        return subprocess.CREATE_NO_WINDOW
    return 0


class ToolchainInvoker:
    """Runs external build tools and reports failure through the exit code.

    run() never raises for subprocess problems: a missing executable, a
    timeout or a cancellation are all turned into an InvocationResult.
    cancel() terminates every in-flight process; further run() calls return
    immediately with EXIT_CANCELLED.
    """

    def __init__(self, logger=None, dry_run: bool = False):
        """
        Initialize invoker

        Args:
            logger: Logger instance
            dry_run: If True, log commands instead of running them
        """
        self.logger = logger
        self.dry_run = dry_run
        self._cancelled = threading.Event()
        self._lock = threading.Lock()
        self._processes: List[subprocess.Popen] = []
        self.history: List[List[str]] = []

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def _debug(self, msg: str):
        if self.logger:
            self.logger.debug(msg)

    def run(self,
            working_dir: Union[str, Path],
            command: str,
            args: Sequence[str] = (),
            env_overrides: Optional[Dict[str, str]] = None,
            timeout: Optional[float] = None) -> InvocationResult:
        """
        Run a command

        Args:
            working_dir: Working directory for the process
            command: Executable name or path
            args: Command arguments
            env_overrides: Variables set on top of the current environment
            timeout: Seconds to wait before killing the process (None waits forever)

        Returns:
            InvocationResult with the exit code and combined output
        """
        cmd = [str(command)] + [str(a) for a in args]
        cmd_str = " ".join(cmd)
        with self._lock:
            self.history.append(cmd)

        self._debug(f"Running: {cmd_str}")
        self._debug(f"  in: {working_dir}")

        if self.cancelled:
            return InvocationResult(EXIT_CANCELLED, "cancelled before start", cancelled=True)

        if self.dry_run:
            if self.logger:
                self.logger.info(f"[DRY RUN] Would run: {cmd_str}")
            return InvocationResult(0, "")

        env = os.environ.copy()
        if env_overrides:
            env.update({k: str(v) for k, v in env_overrides.items()})

        kwargs = {}
        flags = get_subprocess_creation_flags()
        if flags:
            kwargs["creationflags"] = flags

        try:
            proc = subprocess.Popen(
                cmd,
                cwd=str(working_dir),
                env=env,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
                **kwargs
            )
        except (OSError, ValueError) as e:
            self._debug(f"Failed to start {command}: {e}")
            return InvocationResult(EXIT_SPAWN_FAILED, str(e))

        with self._lock:
            self._processes.append(proc)
        try:
            return self._wait(proc, timeout)
        finally:
            with self._lock:
                if proc in self._processes:
                    self._processes.remove(proc)

    def _wait(self, proc: subprocess.Popen, timeout: Optional[float]) -> InvocationResult:
        chunks: List[str] = []
        waited = 0.0
        while True:
            try:
                out, _ = proc.communicate(timeout=POLL_INTERVAL)
                if out:
                    chunks.append(out)
                if proc.returncode != 0 and self.cancelled:
                    # Terminated by cancel() from another thread
                    return InvocationResult(EXIT_CANCELLED, "".join(chunks).strip(), cancelled=True)
                return InvocationResult(proc.returncode, "".join(chunks).strip())
            except subprocess.TimeoutExpired:
                waited += POLL_INTERVAL
                if self.cancelled:
                    chunks.append(self._stop(proc))
                    return InvocationResult(EXIT_CANCELLED, "".join(chunks).strip(), cancelled=True)
                if timeout is not None and waited >= timeout:
                    proc.kill()
                    out, _ = proc.communicate()
                    if out:
                        chunks.append(out)
                    return InvocationResult(EXIT_TIMED_OUT, "".join(chunks).strip(), timed_out=True)

    @staticmethod
    def _stop(proc: subprocess.Popen) -> str:
        proc.terminate()
        try:
            out, _ = proc.communicate(timeout=TERMINATE_GRACE)
        except subprocess.TimeoutExpired:
            proc.kill()
            out, _ = proc.communicate()
        return out or ""

    def cancel(self):
        """Terminate every running process and refuse new ones"""
        self._cancelled.set()
        with self._lock:
            running = list(self._processes)
        for proc in running:
            if proc.poll() is None:
                self._debug(f"Terminating pid {proc.pid}")
                try:
                    proc.terminate()
                except OSError:
                    pass

    def reset(self):
        """Allow new invocations after a cancel"""
        self._cancelled.clear()


__all__ = [
    "ToolchainInvoker",
    "InvocationResult",
    "EXIT_SPAWN_FAILED",
    "EXIT_TIMED_OUT",
    "EXIT_CANCELLED",
]
