from __future__ import annotations

import logging
import os
import signal
import subprocess
import threading
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

_POSIX = os.name == "posix"

logger = logging.getLogger("snippet_harness.process")


class ToolchainUnavailableError(RuntimeError):
    pass


@dataclass(frozen=True, slots=True)
class ProcessOutcome:
    argv: tuple[str, ...]
    exit_code: int | None
    stdout: str
    stderr: str
    duration_ms: int
    timed_out: bool = False
    cancelled: bool = False

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0 and not self.timed_out and not self.cancelled


def run_process(
    argv: Sequence[str],
    *,
    cwd: Path,
    env: Mapping[str, str],
    timeout: float,
    cancel: threading.Event | None = None,
    poll_interval: float = 0.1,
    kill_grace_s: float = 2.0,
) -> ProcessOutcome:
    """
    Run `argv` in its own process group and wait for it.

    The whole group is terminated when `timeout` expires or `cancel` is set,
    and killed after a normal exit so no background descendant outlives the
    call.
    """
    command = tuple(argv)
    started = time.monotonic()
    if timeout <= 0:
        return ProcessOutcome(command, None, "", "", 0, timed_out=True)

    try:
        proc = subprocess.Popen(
            list(command),
            cwd=str(cwd),
            env=dict(env),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="replace",
            start_new_session=_POSIX,
        )
    except FileNotFoundError as exc:
        raise ToolchainUnavailableError(f"Executable not found: {command[0]}") from exc
    except PermissionError as exc:
        raise ToolchainUnavailableError(f"Executable not runnable: {command[0]}: {exc}") from exc

    deadline = started + timeout
    timed_out = False
    cancelled = False
    output: tuple[str, str] | None = None

    try:
        while True:
            if cancel is not None and cancel.is_set():
                cancelled = True
                break
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                timed_out = True
                break
            try:
                output = proc.communicate(timeout=min(poll_interval, remaining))
                break
            except subprocess.TimeoutExpired:
                if proc.poll() is not None:
                    # leader exited while descendants still hold the pipes
                    break
    finally:
        if output is None:
            _terminate_group(proc, grace_s=kill_grace_s)
            output = _drain(proc, timeout=kill_grace_s)
        else:
            _kill_group(proc)

    stdout, stderr = output
    duration_ms = int((time.monotonic() - started) * 1000)
    exit_code = None if (timed_out or cancelled) else proc.returncode
    if timed_out or cancelled:
        logger.debug(
            "Terminated %s after %sms (timed_out=%s cancelled=%s)",
            command[0],
            duration_ms,
            timed_out,
            cancelled,
        )
    return ProcessOutcome(
        argv=command,
        exit_code=exit_code,
        stdout=stdout or "",
        stderr=stderr or "",
        duration_ms=duration_ms,
        timed_out=timed_out,
        cancelled=cancelled,
    )


def _terminate_group(proc: subprocess.Popen[str], *, grace_s: float) -> None:
    _signal_group(proc, signal.SIGTERM if _POSIX else None)
    try:
        proc.wait(timeout=grace_s)
    except subprocess.TimeoutExpired:
        pass
    _kill_group(proc)


def _kill_group(proc: subprocess.Popen[str]) -> None:
    _signal_group(proc, signal.SIGKILL if _POSIX else None)
    if proc.poll() is None:
        proc.wait()


def _signal_group(proc: subprocess.Popen[str], sig: signal.Signals | None) -> None:
    if _POSIX and sig is not None:
        try:
            os.killpg(proc.pid, sig)
        except (ProcessLookupError, PermissionError):
            pass
        return
    if proc.poll() is None:
        proc.kill()


def _drain(proc: subprocess.Popen[str], *, timeout: float) -> tuple[str, str]:
    try:
        stdout, stderr = proc.communicate(timeout=timeout)
    except subprocess.TimeoutExpired:
        logger.warning("Output pipes of pid %s still open after kill; discarding", proc.pid)
        for stream in (proc.stdout, proc.stderr):
            if stream is not None:
                stream.close()
        return "", ""
    return stdout or "", stderr or ""
