#!/usr/bin/env python3
"""
FocusBot reminder loop

Background thread that asks the domain's reminder sources what is due and
turns each due reminder into a spoken prompt via the agent session. Sends use
a soft timeout so a hung turn never stalls the loop. Sources may also define
record_interaction(when) to learn when the user last spoke.
"""
from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from .cancellation import linked
from .error_handler import AgentError, OperationCancelled
from .logging_utils import setup_logger

logger = setup_logger("focusbot.reminders", "logs/focusbot.log")


@dataclass
class Reminder:
    """A prompt a reminder source wants delivered. `key` is echoed back on acknowledge."""
    key: Any
    prompt: str


class ReminderLoop:
    def __init__(
        self,
        session,
        speaker,
        sources: List[Any],
        interval: float = 30.0,
        timeout: float = 30.0,
        initial_delay: float = 5.0,
        on_delivered: Optional[Callable[[], None]] = None,
    ):
        self.session = session
        self.speaker = speaker
        self.sources = list(sources)
        self.interval = interval
        self.timeout = timeout
        self.initial_delay = initial_delay
        self.on_delivered = on_delivered
        self.last_interaction = time.time()
        self._shutdown = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._thread is not None or not self.sources:
            return
        self._shutdown.clear()
        self._thread = threading.Thread(target=self._run, name="reminders", daemon=True)
        self._thread.start()
        logger.info(f"Reminder loop started with {len(self.sources)} sources")

    def stop(self) -> None:
        self._shutdown.set()
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None

    def record_interaction(self, when: Optional[float] = None) -> None:
        """Pass the last interaction time to sources that pace idle check-ins."""
        self.last_interaction = when if when is not None else time.time()
        for source in self.sources:
            hook = getattr(source, "record_interaction", None)
            if hook is not None:
                hook(self.last_interaction)

    def _run(self) -> None:
        # Let the voice loop finish initializing first
        if self._shutdown.wait(self.initial_delay):
            return
        while not self._shutdown.is_set():
            try:
                self.check_once()
            except Exception as e:
                logger.warning(f"Error checking reminders: {e}")
            if self._shutdown.wait(self.interval):
                break
        logger.info("Reminder loop stopped")

    def check_once(self) -> int:
        """Deliver everything currently due; returns how many reminders were spoken."""
        delivered = 0
        for source in self.sources:
            if self._shutdown.is_set():
                break
            for reminder in source.due() or []:
                if self._shutdown.is_set():
                    break
                reply = self._send_with_timeout(reminder.prompt)
                if not reply.strip():
                    continue
                self.speaker.speak(reply, self._shutdown)
                source.acknowledge(reminder.key)
                delivered += 1
                self.record_interaction()
                if self.on_delivered is not None:
                    self.on_delivered()
        return delivered

    def _send_with_timeout(self, prompt: str) -> str:
        token = linked(self._shutdown, self.timeout)
        try:
            return self.session.send(prompt, token)
        except OperationCancelled:
            if not self._shutdown.is_set():
                logger.warning(f"Reminder send timed out after {self.timeout:.0f}s")
            return ""
        except AgentError as e:
            logger.warning(f"Reminder send failed: {e}")
            return ""
