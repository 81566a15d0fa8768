"""
Subprocess helpers for the capture and speech components.

Capture tools and speech renderers may fork helpers of their own (PowerShell,
ffmpeg filter threads), so stopping one means terminating the whole tree.
"""
from __future__ import annotations

import subprocess
from typing import IO, Optional

import psutil

from .logging_utils import setup_logger

logger = setup_logger("focusbot.processes", "logs/focusbot.log")

STDERR_TAIL_BYTES = 2048


def kill_process_tree(proc: subprocess.Popen, timeout: float = 2.0) -> None:
    """Terminate `proc` and all of its descendants, escalating to kill."""
    if proc is None or proc.poll() is not None:
        return

    try:
        parent = psutil.Process(proc.pid)
        children = parent.children(recursive=True)
    except psutil.NoSuchProcess:
        children = []

    for child in children:
        try:
            child.terminate()
        except psutil.NoSuchProcess:
            pass
    try:
        proc.terminate()
    except OSError:
        pass

    try:
        proc.wait(timeout=timeout)
    except subprocess.TimeoutExpired:
        logger.debug(f"Process {proc.pid} ignored terminate; killing")
        try:
            proc.kill()
            proc.wait(timeout=timeout)
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.warning(f"Failed to kill process {proc.pid}: {e}")

    _, alive = psutil.wait_procs(children, timeout=timeout)
    for child in alive:
        try:
            child.kill()
        except psutil.NoSuchProcess:
            pass


def read_stderr_tail(stream: Optional[IO[bytes]], limit: int = STDERR_TAIL_BYTES) -> str:
    """Read whatever is left on a finished process's stderr, keeping the tail."""
    if stream is None:
        return ""
    try:
        data = stream.read()
    except (OSError, ValueError):
        return ""
    if not data:
        return ""
    if isinstance(data, bytes):
        data = data.decode("utf-8", errors="replace")
    return data[-limit:].strip()
