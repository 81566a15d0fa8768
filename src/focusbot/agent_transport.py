#!/usr/bin/env python3
"""
FocusBot reasoning-engine transport

JSON text frames over a WebSocket, using the synchronous websockets client.
A daemon thread receives frames and hands parsed events to a single callback
in delivery order. Credentials are checked with a plain HTTP request first so
an invalid token produces an actionable message instead of a handshake error.
"""
from __future__ import annotations

import json
import threading
from typing import Any, Callable, Dict, Optional

import requests
from websockets.exceptions import ConnectionClosed, WebSocketException
from websockets.sync.client import connect as ws_connect

from .agent_events import AgentEvent, parse_event
from .error_handler import AgentAuthorizationError, AgentConnectionError
from .logging_utils import setup_logger

logger = setup_logger("focusbot.agent_transport", "logs/focusbot.log")

EventCallback = Callable[[AgentEvent], None]
CloseCallback = Callable[[str], None]


class WebSocketTransport:
    def __init__(
        self,
        url: str,
        token: Optional[str] = None,
        auth_url: Optional[str] = None,
        open_timeout: float = 10.0,
        http_get: Callable[..., requests.Response] = requests.get,
    ) -> None:
        self.url = url
        self.token = token
        self.auth_url = auth_url
        self.open_timeout = open_timeout
        self._http_get = http_get

        self._ws = None
        self._thread: Optional[threading.Thread] = None
        self._send_lock = threading.Lock()
        self._closing = False
        self._on_event: Optional[EventCallback] = None
        self._on_close: Optional[CloseCallback] = None

    @property
    def is_connected(self) -> bool:
        return self._ws is not None and not self._closing

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}

    def check_authorization(self) -> None:
        """Raise AgentAuthorizationError if the engine rejects our token."""
        if not self.auth_url:
            return
        try:
            resp = self._http_get(self.auth_url, headers=self._headers(), timeout=self.open_timeout)
        except requests.RequestException as e:
            raise AgentConnectionError(f"Cannot reach reasoning engine at {self.auth_url}: {e}", operation="check_authorization") from e

        if resp.status_code in (401, 403):
            raise AgentAuthorizationError(
                "The reasoning engine rejected the API token. "
                "Set FOCUSBOT_AGENT_TOKEN to a valid token and restart.",
                operation="check_authorization",
            )
        if resp.status_code == 404:
            logger.debug(f"No auth status endpoint at {self.auth_url}; skipping check")
            return
        if resp.status_code >= 400:
            raise AgentConnectionError(
                f"Auth status check failed with HTTP {resp.status_code}",
                operation="check_authorization",
            )

    def connect(self, on_event: EventCallback, on_close: Optional[CloseCallback] = None) -> None:
        if self._ws is not None:
            return
        self._on_event = on_event
        self._on_close = on_close
        self._closing = False
        logger.info(f"Connecting to reasoning engine {self.url}")
        try:
            self._ws = ws_connect(self.url, additional_headers=self._headers(), open_timeout=self.open_timeout)
        except (OSError, TimeoutError, WebSocketException) as e:
            status = getattr(getattr(e, "response", None), "status_code", None)
            if status in (401, 403):
                raise AgentAuthorizationError(
                    "The reasoning engine refused the connection (HTTP %s). Check FOCUSBOT_AGENT_TOKEN." % status,
                    operation="connect",
                ) from e
            raise AgentConnectionError(f"Failed to connect to {self.url}: {e}", operation="connect") from e

        self._thread = threading.Thread(target=self._receive_loop, args=(self._ws,), daemon=True)
        self._thread.start()

    def send(self, message: Dict[str, Any]) -> None:
        ws = self._ws
        if ws is None:
            raise AgentConnectionError("Transport is not connected", operation="send")
        payload = json.dumps(message)
        try:
            with self._send_lock:
                ws.send(payload)
        except ConnectionClosed as e:
            raise AgentConnectionError(f"Connection closed while sending: {e}", operation="send") from e

    def close(self) -> None:
        self._closing = True
        ws, self._ws = self._ws, None
        if ws is not None:
            try:
                ws.close()
            except (OSError, WebSocketException) as e:
                logger.debug(f"Error closing WebSocket: {e}")
        thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=5)

    # ---- Internals ----
    def _receive_loop(self, ws) -> None:
        reason = "connection closed"
        try:
            while True:
                raw = ws.recv()
                event = parse_event(raw)
                if event is None:
                    logger.debug(f"Ignoring unrecognized message: {str(raw)[:120]}")
                    continue
                callback = self._on_event
                if callback is not None:
                    try:
                        callback(event)
                    except Exception as e:
                        logger.error(f"Event handler failed for {type(event).__name__}: {e}")
        except ConnectionClosed as e:
            reason = f"connection closed ({e.rcvd.code if e.rcvd else 'no close frame'})"
        except (OSError, WebSocketException) as e:
            reason = f"connection error: {e}"
        except Exception as e:
            # Any exit from this loop must still fail the pending turn
            logger.exception("Receive loop failed")
            reason = f"receive loop failed: {e}"

        if self._closing:
            return
        logger.warning(f"Reasoning engine {reason}")
        self._ws = None
        if self._on_close is not None:
            self._on_close(reason)
