#!/usr/bin/env python3
"""
FocusBot audio source

Streams 16 kHz mono 16-bit little-endian PCM from a platform capture tool
running as a subprocess:

- Linux: arecord (alsa-utils)
- macOS: ffmpeg with the avfoundation input
- Windows: ffmpeg with the dshow input; DirectShow has no default device, so the
  first audio device is probed once and cached

Each AudioSource owns exactly one capture process. Sources are single-use:
once closed, frames() cannot be restarted; open a new source instead.
"""
from __future__ import annotations

import re
import shutil
import subprocess
import sys
import threading
from typing import Callable, Iterator, List, Optional

import numpy as np

from .error_handler import CaptureError
from .logging_utils import setup_logger
from .processes import kill_process_tree, read_stderr_tail

logger = setup_logger("focusbot.audio_source", "logs/focusbot.log")

SAMPLE_RATE = 16000
DEFAULT_FRAME_BYTES = 4000  # 125 ms of 16-bit mono audio


class AudioFrame:
    """One chunk of raw PCM as read from the capture process."""

    __slots__ = ("data",)

    def __init__(self, data: bytes):
        self.data = data

    def __len__(self) -> int:
        return len(self.data)

    def samples(self) -> np.ndarray:
        usable = len(self.data) - (len(self.data) % 2)
        return np.frombuffer(self.data[:usable], dtype="<i2")

    def level(self) -> float:
        """RMS level normalized to 0..1."""
        samples = self.samples()
        if samples.size == 0:
            return 0.0
        rms = float(np.sqrt(np.mean(samples.astype(np.float64) ** 2)))
        return min(1.0, rms / 32768.0)


# ---- platform backends ----

class CaptureBackend:
    name = "base"
    tool = ""
    install_hint = ""

    def resolve_device(self, device: Optional[str]) -> Optional[str]:
        return device

    def build_command(self, sample_rate: int, device: Optional[str]) -> List[str]:
        raise NotImplementedError


class AlsaBackend(CaptureBackend):
    name = "alsa"
    tool = "arecord"
    install_hint = "Install ALSA utilities: sudo apt-get install alsa-utils"

    def build_command(self, sample_rate: int, device: Optional[str]) -> List[str]:
        cmd = ["arecord", "-q", "-r", str(sample_rate), "-c", "1", "-f", "S16_LE", "-t", "raw"]
        if device:
            cmd += ["-D", device]
        return cmd


class AVFoundationBackend(CaptureBackend):
    name = "avfoundation"
    tool = "ffmpeg"
    install_hint = "Install ffmpeg: brew install ffmpeg"

    def resolve_device(self, device: Optional[str]) -> Optional[str]:
        return device or ":0"

    def build_command(self, sample_rate: int, device: Optional[str]) -> List[str]:
        return [
            "ffmpeg", "-f", "avfoundation", "-i", device or ":0",
            "-ar", str(sample_rate), "-ac", "1", "-f", "s16le", "-acodec", "pcm_s16le",
            "-loglevel", "error", "pipe:1",
        ]


class DirectShowBackend(CaptureBackend):
    name = "dshow"
    tool = "ffmpeg"
    install_hint = "Install ffmpeg: winget install ffmpeg"

    def __init__(self, runner: Callable[..., subprocess.CompletedProcess] = subprocess.run):
        self._runner = runner

    def resolve_device(self, device: Optional[str]) -> Optional[str]:
        if device:
            return device
        return probe_dshow_device(self._runner)

    def build_command(self, sample_rate: int, device: Optional[str]) -> List[str]:
        return [
            "ffmpeg", "-f", "dshow", "-i", f"audio={device}",
            "-ar", str(sample_rate), "-ac", "1", "-f", "s16le", "-acodec", "pcm_s16le",
            "-loglevel", "error", "pipe:1",
        ]


def select_backend(platform: Optional[str] = None) -> CaptureBackend:
    platform = platform or sys.platform
    if platform.startswith("win"):
        return DirectShowBackend()
    if platform == "darwin":
        return AVFoundationBackend()
    return AlsaBackend()


# ---- DirectShow device probing ----

_QUOTED = re.compile(r'"([^"]+)"')
_device_cache: Optional[str] = None
_device_lock = threading.Lock()


def parse_dshow_audio_device(listing: str) -> Optional[str]:
    """Pick the first audio device out of ffmpeg's -list_devices output.

    Newer ffmpeg tags each entry with "(audio)"; older builds group devices
    under a "DirectShow audio devices" header. "Alternative name" lines carry
    opaque moniker strings and are never returned.
    """
    in_audio_section = False
    for line in listing.splitlines():
        if "Alternative name" in line:
            continue
        if "DirectShow audio devices" in line:
            in_audio_section = True
            continue
        if "DirectShow video devices" in line:
            in_audio_section = False
            continue
        match = _QUOTED.search(line)
        if not match:
            continue
        if "(audio)" in line or in_audio_section:
            return match.group(1)
    return None


def probe_dshow_device(runner: Callable[..., subprocess.CompletedProcess] = subprocess.run) -> Optional[str]:
    global _device_cache
    with _device_lock:
        if _device_cache:
            return _device_cache
        try:
            result = runner(
                ["ffmpeg", "-hide_banner", "-list_devices", "true", "-f", "dshow", "-i", "dummy"],
                capture_output=True, text=True, timeout=10,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.warning(f"DirectShow device probe failed: {e}")
            return None
        # ffmpeg prints the listing on stderr and exits non-zero for the dummy input
        device = parse_dshow_audio_device(result.stderr or "")
        if device:
            logger.info(f"Using DirectShow audio device: {device}")
            _device_cache = device
        return device


def clear_device_cache() -> None:
    """Forget the probed DirectShow device so the next open re-probes."""
    global _device_cache
    with _device_lock:
        _device_cache = None


# ---- audio source ----

class AudioSource:
    """A live PCM stream backed by one capture subprocess."""

    def __init__(
        self,
        frame_bytes: int = DEFAULT_FRAME_BYTES,
        sample_rate: int = SAMPLE_RATE,
        device: Optional[str] = None,
        backend: Optional[CaptureBackend] = None,
        popen: Callable[..., subprocess.Popen] = subprocess.Popen,
        which: Callable[[str], Optional[str]] = shutil.which,
    ):
        self.frame_bytes = frame_bytes
        self.sample_rate = sample_rate
        self.device = device
        self.backend = backend or select_backend()
        self._popen = popen
        self._which = which
        self._proc: Optional[subprocess.Popen] = None
        self._closed = False
        self._lock = threading.Lock()

    @property
    def is_open(self) -> bool:
        return self._proc is not None and not self._closed

    def open(self) -> "AudioSource":
        if self._closed:
            raise CaptureError("Audio source already closed", operation="open")
        if self._proc is not None:
            return self

        backend = self.backend
        if not self._which(backend.tool):
            raise CaptureError(
                f"Audio capture tool '{backend.tool}' not found on PATH. {backend.install_hint}",
                operation="open",
            )

        device = backend.resolve_device(self.device)
        if backend.name == "dshow" and not device:
            raise CaptureError(
                "No DirectShow audio input device found. Connect a microphone or set audio.device in config.",
                operation="open",
            )

        cmd = backend.build_command(self.sample_rate, device)
        logger.debug(f"Starting capture: {' '.join(cmd)}")
        try:
            proc = self._popen(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE, stdin=subprocess.DEVNULL, bufsize=0)
        except OSError as e:
            raise CaptureError(f"Failed to start {backend.tool}: {e}. {backend.install_hint}", operation="open") from e

        if proc.poll() is not None:
            stderr = read_stderr_tail(proc.stderr)
            raise CaptureError(
                f"{backend.tool} exited immediately with code {proc.returncode}",
                stderr=stderr,
                operation="open",
            )

        self._proc = proc
        return self

    def frames(self) -> Iterator[AudioFrame]:
        """Yield frames until close(); raise CaptureError if the stream dies first."""
        if self._proc is None:
            self.open()
        proc = self._proc
        assert proc is not None
        stdout = proc.stdout

        while not self._closed:
            try:
                data = stdout.read(self.frame_bytes) if stdout is not None else b""
            except (OSError, ValueError) as e:
                if self._closed:
                    return
                raise CaptureError(
                    f"Audio capture read failed: {e}",
                    stderr=read_stderr_tail(proc.stderr),
                    operation="read",
                ) from e
            if self._closed:
                return
            if not data:
                try:
                    proc.wait(timeout=1)
                except subprocess.TimeoutExpired:
                    pass
                stderr = read_stderr_tail(proc.stderr)
                logger.warning(f"Capture stream ended unexpectedly: {stderr or 'no stderr output'}")
                raise CaptureError(
                    "Audio capture produced no data",
                    stderr=stderr,
                    operation="read",
                )
            yield AudioFrame(data)

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            proc = self._proc
        if proc is not None:
            kill_process_tree(proc)
            for stream in (proc.stdout, proc.stderr):
                if stream is not None:
                    try:
                        stream.close()
                    except OSError:
                        pass

    def __enter__(self) -> "AudioSource":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
