#!/usr/bin/env python3
"""
FocusBot voice orchestrator

Drives the interaction loop: wake word -> utterance -> agent -> speech.
Phases run one at a time on the caller's thread; the only concurrency is
reply playback, which runs in the background when barge-in is enabled so the
next wake word can cut it off.

Failure policy:
- startup: initialize the agent session with bounded retries, else stop
- session not initialized: re-initialize once inline and resend
- session busy with a reminder turn: wait for it, then send
- anything else: apologize; after too many failures in a row, announce
  trouble and cool down before listening again
"""
from __future__ import annotations

import threading
import time
from enum import Enum
from typing import Iterable, Optional

from .config import DEFAULT_EXIT_PHRASES
from .error_handler import (
    AgentAuthorizationError,
    AgentBusyError,
    ConfigurationError,
    ErrorSeverity,
    OperationCancelled,
    SessionNotInitializedError,
    get_error_handler,
    handle_error,
)
from .logging_utils import setup_logger
from .retry import RetryPolicy, retry_call, wait_interruptibly
from .validation import ValidationError, normalize_phrase, validate_transcript

logger = setup_logger("focusbot.orchestrator", "logs/focusbot.log")

READY_MESSAGE = "FocusBot ready. How can I help?"
FAREWELL_MESSAGE = "Goodbye! Great work today."
APOLOGY_MESSAGE = "Sorry, something went wrong. Please try again."
TROUBLE_MESSAGE = "I'm having trouble right now. Give me a moment and try again."
STARTUP_FAILURE_MESSAGE = "I couldn't connect to the assistant service. Please check the logs and try again."

BUSY_POLL_INTERVAL = 0.1


class OrchestratorState(Enum):
    STARTING = "starting"
    READY = "ready"
    LISTENING = "listening"
    DISPATCHING = "dispatching"
    SPEAKING = "speaking"
    STOPPED = "stopped"


class VoiceOrchestrator:
    def __init__(
        self,
        session,
        speaker,
        capture,
        spotter=None,
        text_mode: bool = False,
        exit_phrases: Optional[Iterable[str]] = None,
        error_threshold: int = 5,
        cooldown: float = 30.0,
        barge_in: bool = True,
        init_policy: Optional[RetryPolicy] = None,
        reminders=None,
        busy_wait: float = 60.0,
    ):
        if spotter is None and not text_mode:
            raise ValueError("A wake word spotter is required outside text mode")
        self.session = session
        self.speaker = speaker
        self.capture = capture
        self.spotter = spotter
        self.text_mode = text_mode
        self.exit_phrases = {normalize_phrase(p) for p in (exit_phrases or DEFAULT_EXIT_PHRASES)}
        self.error_threshold = error_threshold
        self.cooldown = cooldown
        self.barge_in = barge_in and not text_mode
        self.init_policy = init_policy or RetryPolicy.init_default()
        self.reminders = reminders
        self.busy_wait = busy_wait

        self.state = OrchestratorState.STARTING
        self.consecutive_errors = 0
        self.last_interaction = time.time()
        self._shutdown = threading.Event()
        self._playback: Optional[threading.Thread] = None

    # ---- public API ----
    def run(self, shutdown: Optional[threading.Event] = None) -> int:
        """Run until shutdown or an exit phrase. Returns a process exit code."""
        if shutdown is not None:
            self._shutdown = shutdown
        shutdown = self._shutdown
        self.state = OrchestratorState.STARTING
        logger.info("Voice orchestrator starting...")

        started = self._start_session(shutdown)
        if not started:
            self.state = OrchestratorState.STOPPED
            if shutdown.is_set():
                return 0
            self._announce(STARTUP_FAILURE_MESSAGE)
            return 1

        self.state = OrchestratorState.READY
        self._announce(READY_MESSAGE)
        if self.reminders is not None:
            self.reminders.start()

        exit_code = 0
        try:
            while not shutdown.is_set():
                try:
                    if not self.step(shutdown):
                        break
                except ConfigurationError as e:
                    handle_error(e, "orchestrator", "listen", ErrorSeverity.CRITICAL)
                    exit_code = 1
                    break
                except Exception as e:
                    # Unexpected phase failures count toward the error threshold
                    handle_error(e, "orchestrator", "step", ErrorSeverity.HIGH)
                    self._record_failure(shutdown)
        finally:
            if self.reminders is not None:
                self.reminders.stop()
            self._join_playback()
            self.session.close()
            self.state = OrchestratorState.STOPPED
            stats = get_error_handler().get_error_stats()
            logger.info(f"Voice orchestrator stopped ({stats['total_errors']} errors recorded: {stats['error_types']})")
        return exit_code

    def step(self, shutdown: threading.Event) -> bool:
        """One listen/dispatch/speak cycle. False means the loop should end."""
        if not self.text_mode:
            self.state = OrchestratorState.LISTENING
            if not self.spotter.wait_for_wake_word(shutdown):
                if not shutdown.is_set():
                    logger.warning("Wake word listening gave up; starting over")
                return True
            # Barge-in: the user spoke over the assistant
            self.speaker.stop()

        self.state = OrchestratorState.LISTENING
        text = self.capture.capture(shutdown)
        if shutdown.is_set():
            return False
        if not text or not text.strip():
            if getattr(self.capture, "at_eof", False):
                logger.info("Input closed; stopping")
                return False
            return True

        self.record_interaction()
        if self.is_exit_phrase(text):
            logger.info("User requested exit")
            self.speaker.stop()
            self.speaker.speak(FAREWELL_MESSAGE)
            return False

        try:
            text = validate_transcript(text)
        except ValidationError as e:
            logger.warning(f"Discarding transcript: {e}")
            return True

        logger.debug(f"User said: {text}")
        self._dispatch(text, shutdown)
        return True

    def stop(self) -> None:
        self._shutdown.set()
        self.speaker.stop()

    def is_exit_phrase(self, text: str) -> bool:
        return normalize_phrase(text) in self.exit_phrases

    def record_interaction(self) -> None:
        """Stamp the last user interaction and let reminder sources see it."""
        self.last_interaction = time.time()
        if self.reminders is not None:
            self.reminders.record_interaction(self.last_interaction)

    # ---- internals ----
    def _start_session(self, shutdown: threading.Event) -> bool:
        try:
            retry_call(
                lambda: self.session.initialize(shutdown),
                self.init_policy,
                cancel=shutdown,
                give_up_on=(AgentAuthorizationError, ConfigurationError, OperationCancelled),
                description="Agent session initialization",
            )
        except OperationCancelled:
            logger.info("Startup cancelled")
            return False
        except Exception as e:
            handle_error(e, "orchestrator", "initialize", ErrorSeverity.CRITICAL)
            return False
        logger.info("Agent session initialized. Ready for input.")
        return True

    def _dispatch(self, text: str, shutdown: threading.Event) -> None:
        self.state = OrchestratorState.DISPATCHING
        try:
            reply = self._send(text, shutdown)
        except OperationCancelled:
            return
        except Exception as e:
            handle_error(e, "orchestrator", "dispatch", ErrorSeverity.HIGH)
            self._record_failure(shutdown)
            return

        self.consecutive_errors = 0
        if reply and reply.strip():
            self._speak_reply(reply, shutdown)

    def _send(self, text: str, shutdown: threading.Event) -> str:
        try:
            return self._send_when_free(text, shutdown)
        except SessionNotInitializedError:
            logger.warning("Agent session not ready; re-initializing")
            self.session.close()
            self.session.initialize(shutdown)
            return self._send_when_free(text, shutdown)

    def _send_when_free(self, text: str, shutdown: threading.Event) -> str:
        """Send, waiting out a reminder turn that holds the session."""
        deadline = time.monotonic() + self.busy_wait
        waiting = False
        while True:
            try:
                return self.session.send(text, shutdown)
            except AgentBusyError:
                if time.monotonic() >= deadline:
                    raise
                if not waiting:
                    logger.info("Agent is busy with a reminder; waiting to send")
                    waiting = True
            if not wait_interruptibly(shutdown, BUSY_POLL_INTERVAL):
                raise OperationCancelled("Send cancelled while waiting for the agent")

    def _record_failure(self, shutdown: threading.Event) -> None:
        self.consecutive_errors += 1
        if self.consecutive_errors >= self.error_threshold:
            logger.error(f"{self.consecutive_errors} consecutive failures; cooling down for {self.cooldown:.0f}s")
            self._announce(TROUBLE_MESSAGE)
            wait_interruptibly(shutdown, self.cooldown)
            self.consecutive_errors = 0
        else:
            self._announce(APOLOGY_MESSAGE)

    def _speak_reply(self, reply: str, shutdown: threading.Event) -> None:
        self.state = OrchestratorState.SPEAKING
        if not self.barge_in:
            self.speaker.speak(reply, shutdown)
            return
        self._join_playback()
        self._playback = threading.Thread(target=self.speaker.speak, args=(reply, shutdown), name="playback", daemon=True)
        self._playback.start()

    def _join_playback(self) -> None:
        playback, self._playback = self._playback, None
        if playback is not None and playback.is_alive():
            playback.join()

    def _announce(self, message: str) -> None:
        self.speaker.speak(message, self._shutdown)
