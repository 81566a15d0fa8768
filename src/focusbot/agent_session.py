#!/usr/bin/env python3
"""
FocusBot agent session

Turns the event stream of the reasoning engine into a blocking send() call.
Each prompt gets a PendingCommand: the transport's receive thread resolves it
exactly once (reply, turn error or connection loss) and the caller waits on it.
Only one command may be outstanding per session.

The session never reconnects on its own; callers decide when to call
reconnect().
"""
from __future__ import annotations

import threading
import time
import uuid
from enum import Enum
from typing import Optional

from .agent_events import (
    AgentEvent,
    OperationInvoked,
    ReplyContent,
    SessionCreated,
    TurnComplete,
    TurnError,
    operation_result,
    prompt_message,
    session_abort,
    session_create,
)
from .error_handler import (
    AgentAuthorizationError,
    AgentBusyError,
    AgentConnectionError,
    AgentError,
    AgentTurnError,
    OperationCancelled,
    SessionNotInitializedError,
)
from .logging_utils import setup_logger
from .operations import OperationRegistry
from .prompts import build_instructions
from .retry import RetryPolicy, retry_call

logger = setup_logger("focusbot.agent_session", "logs/focusbot.log")


class SessionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    READY = "ready"
    BUSY = "busy"


class PendingCommand:
    """One prompt awaiting its terminal event. Resolved at most once."""

    _POLL = 0.05

    def __init__(self, prompt: str):
        self.prompt = prompt
        self.id = uuid.uuid4().hex[:12]
        self.created_at = time.time()
        self.latest_text = ""
        self.abandoned = False
        self.reply: Optional[str] = None
        self.error: Optional[Exception] = None
        self._done = threading.Event()
        self._lock = threading.Lock()

    def record(self, text: str) -> None:
        with self._lock:
            if not self._done.is_set():
                self.latest_text = text

    def set_result(self, reply: Optional[str] = None, error: Optional[Exception] = None) -> bool:
        """Resolve the command; returns False if it was already resolved."""
        with self._lock:
            if self._done.is_set():
                return False
            self.reply = reply
            self.error = error
            self._done.set()
            return True

    def done(self) -> bool:
        return self._done.is_set()

    def wait(self, cancel=None, timeout: Optional[float] = None) -> bool:
        """Block until resolved. False if cancel fired or timeout passed first."""
        if cancel is None:
            return self._done.wait(timeout)
        deadline = time.monotonic() + timeout if timeout is not None else None
        while not self._done.is_set():
            if cancel.is_set():
                return False
            if deadline is not None and time.monotonic() >= deadline:
                return False
            self._done.wait(self._POLL)
        return True

    def result(self) -> str:
        if self.error is not None:
            raise self.error
        return self.reply or ""


class AgentSession:
    """Command/response correlation on top of an event-driven transport."""

    def __init__(
        self,
        transport,
        registry: Optional[OperationRegistry] = None,
        instructions: Optional[str] = None,
        model: str = "gpt-4o",
        policy: Optional[RetryPolicy] = None,
        create_timeout: float = 30.0,
    ):
        self.transport = transport
        self.registry = registry or OperationRegistry()
        self.instructions = instructions if instructions is not None else build_instructions()
        self.model = model
        self.policy = policy or RetryPolicy.init_default()
        self.create_timeout = create_timeout

        self._lock = threading.Lock()
        self._state = SessionState.DISCONNECTED
        self._pending: Optional[PendingCommand] = None
        self._caller_active = False
        self._session_id: Optional[str] = None
        self._created = threading.Event()
        self._create_error: Optional[Exception] = None

    # ---- state ----
    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def session_id(self) -> Optional[str]:
        return self._session_id

    @property
    def is_ready(self) -> bool:
        return self._state in (SessionState.READY, SessionState.BUSY)

    def _set_state(self, state: SessionState) -> None:
        with self._lock:
            self._state = state

    # ---- lifecycle ----
    def initialize(self, cancel=None) -> None:
        """Authorize, connect and create the remote session. Raises on any failure."""
        self._set_state(SessionState.CONNECTING)
        self._created.clear()
        self._create_error = None
        self._session_id = None
        logger.info("Initializing agent session...")

        try:
            self.transport.check_authorization()
            self.transport.connect(self._handle_event, self._handle_close)
            self.transport.send(session_create(self.instructions, self.registry.describe(), self.model))

            created = self._wait_created(cancel)
            if created is None:
                raise OperationCancelled("Session initialization cancelled", component="agent_session", operation="initialize")
            if not created:
                raise AgentConnectionError(
                    f"Reasoning engine did not confirm the session within {self.create_timeout:.0f}s",
                    operation="initialize",
                )
            if self._create_error is not None:
                raise self._create_error
        except Exception:
            self._set_state(SessionState.DISCONNECTED)
            self._session_id = None
            try:
                self.transport.close()
            except Exception as close_error:
                logger.debug(f"Transport close after failed init: {close_error}")
            raise

        self._set_state(SessionState.READY)
        logger.info(f"Agent session {self._session_id} ready with {len(self.registry)} operations")

    def _wait_created(self, cancel) -> Optional[bool]:
        deadline = time.monotonic() + self.create_timeout
        while not self._created.is_set():
            if cancel is not None and cancel.is_set():
                return None
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return False
            self._created.wait(min(0.05, remaining))
        return True

    def reconnect(self, cancel=None) -> None:
        """Drop the current connection and initialize again under the retry policy."""
        logger.info("Reconnecting agent session")
        self._teardown("Session reconnecting")
        retry_call(
            lambda: self.initialize(cancel),
            self.policy,
            cancel=cancel,
            retry_on=(AgentError,),
            give_up_on=(AgentAuthorizationError, OperationCancelled),
            description="Agent session initialization",
        )

    def close(self) -> None:
        if self._state == SessionState.DISCONNECTED and self._pending is None and not self.transport.is_connected:
            return
        if self._session_id is not None and self.transport.is_connected:
            try:
                self.transport.send(session_abort())
            except AgentConnectionError as e:
                logger.warning(f"Error aborting session: {e}")
        self._teardown("Session closed")
        logger.info("Agent session closed")

    def _teardown(self, reason: str) -> None:
        with self._lock:
            pending, self._pending = self._pending, None
            self._state = SessionState.DISCONNECTED
            self._session_id = None
        try:
            self.transport.close()
        except Exception as e:
            logger.warning(f"Error closing transport: {e}")
        if pending is not None:
            pending.set_result(error=AgentConnectionError(reason, operation="send"))

    # ---- commands ----
    def send(self, prompt: str, cancel=None) -> str:
        """Submit a prompt and block until its turn completes.

        Returns the last reply text observed before the terminal event, or ""
        if the engine sent none. Cancelling releases only this caller; the
        turn keeps running and the next send() waits for it to finish.
        """
        with self._lock:
            if self._state not in (SessionState.READY, SessionState.BUSY) or self._session_id is None:
                raise SessionNotInitializedError("Session not initialized. Call initialize() first.", operation="send")
            if self._caller_active:
                raise AgentBusyError("Another command is already waiting for a reply", operation="send")
            self._caller_active = True
            orphan = self._pending

        try:
            if orphan is not None and not orphan.done():
                if orphan.abandoned:
                    logger.info(f"Waiting for abandoned turn {orphan.id} to finish")
                else:
                    logger.info(f"Waiting for turn {orphan.id} to finish")
                if not orphan.wait(cancel):
                    raise OperationCancelled("Send cancelled while waiting for previous turn", component="agent_session", operation="send")

            command = PendingCommand(prompt)
            with self._lock:
                if self._state == SessionState.DISCONNECTED:
                    raise SessionNotInitializedError("Connection lost before the prompt was sent", operation="send")
                self._pending = command
                self._state = SessionState.BUSY

            logger.debug(f"Sending command {command.id}: {prompt}")
            try:
                self.transport.send(prompt_message(command.id, prompt))
            except AgentConnectionError as e:
                self._resolve(command, error=e)
                raise

            if not command.wait(cancel):
                command.abandoned = True
                logger.info(f"Caller stopped waiting for {command.id}; turn continues in background")
                raise OperationCancelled("Send cancelled", component="agent_session", operation="send")

            return command.result()
        finally:
            with self._lock:
                self._caller_active = False

    def _resolve(self, command: PendingCommand, reply: Optional[str] = None, error: Optional[Exception] = None) -> None:
        with self._lock:
            if self._pending is command:
                self._pending = None
                if self._state == SessionState.BUSY:
                    self._state = SessionState.READY
        if command.set_result(reply=reply, error=error):
            elapsed = time.time() - command.created_at
            outcome = f"error: {error}" if error is not None else f"{len(reply or '')} chars"
            if command.abandoned:
                logger.info(f"Abandoned turn {command.id} finished after {elapsed:.1f}s ({outcome}); nobody is waiting for it")
            else:
                logger.debug(f"Command {command.id} resolved after {elapsed:.1f}s ({outcome})")

    # ---- transport callbacks ----
    def _handle_event(self, event: AgentEvent) -> None:
        pending = self._pending

        if isinstance(event, SessionCreated):
            self._session_id = event.session_id or uuid.uuid4().hex
            self._created.set()
        elif isinstance(event, ReplyContent):
            if pending is not None:
                pending.record(event.text)
            else:
                logger.debug("Reply content with no pending command; ignored")
        elif isinstance(event, TurnComplete):
            if pending is not None:
                self._resolve(pending, reply=pending.latest_text)
        elif isinstance(event, TurnError):
            logger.error(f"Session error: {event.code or 'error'} - {event.message}")
            error = AgentTurnError(event.message, code=event.code, operation="send")
            if pending is not None:
                self._resolve(pending, error=error)
            elif not self._created.is_set():
                self._create_error = error
                self._created.set()
        elif isinstance(event, OperationInvoked):
            logger.debug(f"Operation requested: {event.name}")
            output = self.registry.invoke(event.name, event.arguments)
            try:
                self.transport.send(operation_result(event.call_id, output))
            except AgentConnectionError as e:
                logger.warning(f"Could not return result for {event.name}: {e}")

    def _handle_close(self, reason: str) -> None:
        with self._lock:
            pending, self._pending = self._pending, None
            self._state = SessionState.DISCONNECTED
            self._session_id = None
        if not self._created.is_set():
            self._create_error = AgentConnectionError(reason, operation="initialize")
            self._created.set()
        if pending is not None:
            pending.set_result(error=AgentConnectionError(f"Lost connection to reasoning engine: {reason}", operation="send"))
