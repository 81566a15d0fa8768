#!/usr/bin/env python3
"""
FocusBot utterance capture

Records one spoken command after the wake word, using two clocks to find its
end: time since the last new speech (endpointing) and total elapsed time (a
hard cap). ConsoleCapture is the keyboard stand-in used in text mode.
"""
from __future__ import annotations

import queue
import sys
import threading
import time
from typing import Callable, List, Optional, TextIO

from .audio_source import AudioSource
from .error_handler import CaptureError
from .logging_utils import setup_logger
from .recognition import Final

logger = setup_logger("focusbot.utterance", "logs/focusbot.log")


class UtteranceCapture:
    def __init__(
        self,
        source_factory: Callable[[], AudioSource],
        recognizer_factory: Callable[[], object],
        silence_timeout: float = 2.0,
        max_duration: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.source_factory = source_factory
        self.recognizer_factory = recognizer_factory
        self.silence_timeout = silence_timeout
        self.max_duration = max_duration
        self._clock = clock

    def capture(self, cancel=None) -> Optional[str]:
        """Return the recognized utterance, or None for silence, failure or cancellation."""
        finals: List[str] = []
        last_partial = ""
        heard = False

        source = self.source_factory()
        try:
            recognizer = self.recognizer_factory()
            source.open()
            start = self._clock()
            last_speech = start

            for frame in source.frames():
                if _cancelled(cancel):
                    logger.debug("Utterance capture cancelled")
                    return None

                result = recognizer.accept(frame)
                now = self._clock()

                if isinstance(result, Final):
                    if result.text:
                        finals.append(result.text)
                        heard = True
                        last_speech = now
                    last_partial = ""
                elif result.text and result.text != last_partial:
                    # Vosk repeats the same partial through silence; only a change counts as speech
                    last_partial = result.text
                    heard = True
                    last_speech = now

                if heard and now - last_speech > self.silence_timeout:
                    logger.debug(f"End of utterance after {now - last_speech:.2f}s of silence")
                    break
                if now - start >= self.max_duration:
                    logger.info(f"Utterance hit the {self.max_duration:.0f}s limit")
                    break

            if _cancelled(cancel):
                return None

            tail = recognizer.finish()
        except CaptureError as e:
            detail = f" ({e.stderr})" if e.stderr else ""
            logger.warning(f"Utterance capture failed: {e}{detail}")
            return None
        finally:
            source.close()

        if tail:
            finals.append(tail)
        elif last_partial and not finals:
            finals.append(last_partial)

        transcript = " ".join(t for t in finals if t).strip()
        if not transcript:
            logger.debug("No speech recognized")
            return None
        logger.info(f"Heard: {transcript}")
        return transcript


class ConsoleCapture:
    """Reads commands from a text stream instead of the microphone."""

    _POLL = 0.1

    def __init__(self, stream: Optional[TextIO] = None, prompt: str = "You: "):
        self.stream = stream or sys.stdin
        self.prompt = prompt
        self._lines: "queue.Queue[Optional[str]]" = queue.Queue()
        self._reader: Optional[threading.Thread] = None
        self._eof = False

    @property
    def at_eof(self) -> bool:
        return self._eof

    def _read_loop(self) -> None:
        for line in self.stream:
            self._lines.put(line.rstrip("\r\n"))
        self._lines.put(None)

    def capture(self, cancel=None) -> Optional[str]:
        if self._eof:
            return None
        if self._reader is None:
            self._reader = threading.Thread(target=self._read_loop, daemon=True)
            self._reader.start()

        if self.prompt:
            print(self.prompt, end="", flush=True)
        while not _cancelled(cancel):
            try:
                line = self._lines.get(timeout=self._POLL)
            except queue.Empty:
                continue
            if line is None:
                self._eof = True
                return None
            return line.strip() or None
        return None


def _cancelled(cancel) -> bool:
    return cancel is not None and cancel.is_set()
