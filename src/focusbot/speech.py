#!/usr/bin/env python3
"""
FocusBot speech synthesis

Speaks text through the platform's command-line synthesizer and supports
barge-in: stop() kills the running renderer immediately. At most one playback
is active; starting a new one always terminates the previous one first.
If no renderer can be started the text is printed instead.
"""
from __future__ import annotations

import subprocess
import sys
import threading
from typing import Callable, List, Optional

from .logging_utils import setup_logger
from .processes import kill_process_tree

logger = setup_logger("focusbot.speech", "logs/focusbot.log")

DEFAULT_RATE = 160
DEFAULT_VOICE = "en"


class Renderer:
    name = "base"

    def build_command(self, text: str, voice: str, rate: int) -> List[str]:
        raise NotImplementedError


class EspeakRenderer(Renderer):
    name = "espeak-ng"

    def build_command(self, text: str, voice: str, rate: int) -> List[str]:
        return ["espeak-ng", "-v", voice, "-s", str(rate), "--", _flatten(text)]


class SayRenderer(Renderer):
    name = "say"

    def build_command(self, text: str, voice: str, rate: int) -> List[str]:
        return ["say", "-r", str(rate), "--", _flatten(text)]


class PowerShellRenderer(Renderer):
    """System.Speech via PowerShell; voice is the system default."""

    name = "PowerShell/SAPI"

    @staticmethod
    def map_rate(rate: int) -> int:
        # SAPI rates run -10..10 with 0 at roughly 160 wpm
        return max(-10, min(10, int((rate - DEFAULT_RATE) / 20)))

    @staticmethod
    def escape(text: str) -> str:
        return _flatten(text).replace("'", "''")

    def build_command(self, text: str, voice: str, rate: int) -> List[str]:
        script = (
            "Add-Type -AssemblyName System.Speech; "
            "$s = New-Object System.Speech.Synthesis.SpeechSynthesizer; "
            f"$s.Rate = {self.map_rate(rate)}; "
            f"$s.Speak('{self.escape(text)}')"
        )
        return ["powershell", "-NoProfile", "-Command", script]


def select_renderer(platform: Optional[str] = None) -> Renderer:
    platform = platform or sys.platform
    if platform.startswith("win"):
        return PowerShellRenderer()
    if platform == "darwin":
        return SayRenderer()
    return EspeakRenderer()


def _flatten(text: str) -> str:
    return text.replace("\r", "").replace("\n", " ").strip()


class SpeechSynthesizer:
    """Cancellable text-to-speech playback with textual fallback."""

    _POLL = 0.05

    def __init__(
        self,
        voice: str = DEFAULT_VOICE,
        rate: int = DEFAULT_RATE,
        text_mode: bool = False,
        renderer: Optional[Renderer] = None,
        popen: Callable[..., subprocess.Popen] = subprocess.Popen,
        output: Callable[[str], None] = print,
    ):
        self.voice = voice
        self.rate = rate
        self.text_mode = text_mode
        self.renderer = renderer or select_renderer()
        self._popen = popen
        self._output = output
        self._lock = threading.Lock()
        self._proc: Optional[subprocess.Popen] = None
        self._interrupted: Optional[subprocess.Popen] = None

    @property
    def is_speaking(self) -> bool:
        proc = self._proc
        return proc is not None and proc.poll() is None

    def speak(self, text: str, cancel=None) -> bool:
        """Play `text`; True if it finished (or fell back to print), False if interrupted."""
        if not text or not text.strip():
            return True

        if self.text_mode:
            self._output(text)
            return True

        with self._lock:
            self._stop_locked()
            if cancel is not None and cancel.is_set():
                return False
            cmd = self.renderer.build_command(text, self.voice, self.rate)
            try:
                proc = self._popen(
                    cmd,
                    stdin=subprocess.DEVNULL,
                    stdout=subprocess.DEVNULL,
                    stderr=subprocess.DEVNULL,
                )
            except OSError as e:
                logger.warning(f"Failed to start {self.renderer.name} ({e}); falling back to text output")
                self._output(text)
                return True
            self._proc = proc
            logger.debug(f"Speaking via {self.renderer.name}: {text[:60]}")

        # Waiting happens outside the lock so stop() can interrupt
        while True:
            try:
                proc.wait(timeout=self._POLL)
                break
            except subprocess.TimeoutExpired:
                if cancel is not None and cancel.is_set():
                    with self._lock:
                        if self._proc is proc:
                            self._stop_locked()
                        else:
                            kill_process_tree(proc)
                    return False

        with self._lock:
            if self._proc is proc:
                self._proc = None
            interrupted = self._interrupted is proc
            if interrupted:
                self._interrupted = None
        return not interrupted

    def stop(self) -> None:
        """Cut off any active playback. Safe to call at any time."""
        with self._lock:
            self._stop_locked()

    def _stop_locked(self) -> None:
        proc = self._proc
        self._proc = None
        if proc is None:
            return
        if proc.poll() is None:
            logger.debug("Stopping speech playback (barge-in)")
            self._interrupted = proc
            try:
                kill_process_tree(proc)
            except Exception as e:
                logger.warning(f"Error stopping speech process: {e}")
