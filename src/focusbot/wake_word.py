#!/usr/bin/env python3
"""
FocusBot wake word spotter

Listens on a fresh AudioSource per attempt and returns as soon as the
recognizer's partial or final hypothesis contains the wake phrase. Capture
failures are retried with linear backoff; the backoff wait is interruptible.
"""
from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from .audio_source import AudioSource
from .error_handler import CaptureError
from .logging_utils import setup_logger
from .recognition import Partial, RecognitionResult
from .retry import CaptureAttempt, RetryPolicy, wait_interruptibly

logger = setup_logger("focusbot.wake_word", "logs/focusbot.log")


class SpotterState(Enum):
    IDLE = "idle"
    LISTENING = "listening"
    DETECTED = "detected"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class WakeWordConfig:
    phrase: str = "hey focus"
    case_insensitive: bool = True
    # Partial hypotheses fire faster but may later be revised away
    accept_partial: bool = True

    def matches(self, text: str, phrase: Optional[str] = None) -> bool:
        phrase = self.phrase if phrase is None else phrase
        if not text or not phrase:
            return False
        if self.case_insensitive:
            return phrase.lower() in text.lower()
        return phrase in text


class WakeWordSpotter:
    """Blocks until the wake phrase is heard, the retry budget runs out, or cancel fires."""

    def __init__(
        self,
        config: WakeWordConfig,
        source_factory: Callable[[], AudioSource],
        recognizer_factory: Callable[[], object],
        policy: Optional[RetryPolicy] = None,
    ):
        self.config = config
        self.source_factory = source_factory
        self.recognizer_factory = recognizer_factory
        self.policy = policy or RetryPolicy.capture_default()
        self._state = SpotterState.IDLE
        self._state_lock = threading.Lock()

    @property
    def state(self) -> SpotterState:
        return self._state

    @property
    def is_listening(self) -> bool:
        return self._state == SpotterState.LISTENING

    @property
    def wake_word(self) -> str:
        return self.config.phrase

    @wake_word.setter
    def wake_word(self, phrase: str) -> None:
        if not phrase or not phrase.strip():
            raise ValueError("Wake word cannot be empty")
        self.config.phrase = phrase.strip()
        logger.info(f"Wake word set to '{self.config.phrase}'")

    def _set_state(self, state: SpotterState) -> None:
        with self._state_lock:
            self._state = state

    def wait_for_wake_word(self, cancel=None) -> bool:
        for number in range(1, self.policy.max_attempts + 1):
            attempt = CaptureAttempt(number)
            if _cancelled(cancel):
                self._set_state(SpotterState.CANCELLED)
                return False

            # Read fresh so runtime changes apply from the next attempt
            phrase = self.config.phrase
            self._set_state(SpotterState.LISTENING)
            logger.debug(f"Listening for '{phrase}' (attempt {number}/{self.policy.max_attempts})")

            source = self.source_factory()
            try:
                recognizer = self.recognizer_factory()
                source.open()
                for frame in source.frames():
                    if _cancelled(cancel):
                        self._set_state(SpotterState.CANCELLED)
                        return False
                    result = recognizer.accept(frame)
                    if self._is_detection(result, phrase):
                        logger.info(f"Wake word detected: '{result.text}'")
                        self._set_state(SpotterState.DETECTED)
                        return True
            except CaptureError as e:
                detail = f" ({e.stderr})" if e.stderr else ""
                logger.warning(f"Wake word capture failed on attempt {number}: {e}{detail}")
            finally:
                source.close()

            if number >= self.policy.max_attempts:
                break
            attempt.backoff = self.policy.delay_for(number)
            logger.info(f"Retrying wake word capture in {attempt.backoff:.1f}s")
            if not wait_interruptibly(cancel, attempt.backoff):
                self._set_state(SpotterState.CANCELLED)
                return False

        logger.error(f"Wake word capture failed {self.policy.max_attempts} times; giving up")
        self._set_state(SpotterState.FAILED)
        return False

    def _is_detection(self, result: RecognitionResult, phrase: str) -> bool:
        if isinstance(result, Partial) and not self.config.accept_partial:
            return False
        return self.config.matches(result.text, phrase)


def _cancelled(cancel) -> bool:
    return cancel is not None and cancel.is_set()
