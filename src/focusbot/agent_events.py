"""
Events delivered by the reasoning engine, and their JSON wire form.

Server messages are JSON objects with a "type" field. parse_event() maps the
ones the session cares about onto a closed set of event classes and returns
None for everything else.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union


@dataclass(frozen=True)
class SessionCreated:
    session_id: str


@dataclass(frozen=True)
class ReplyContent:
    text: str


@dataclass(frozen=True)
class TurnComplete:
    pass


@dataclass(frozen=True)
class TurnError:
    message: str
    code: Optional[str] = None


@dataclass(frozen=True)
class OperationInvoked:
    call_id: str
    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)


AgentEvent = Union[SessionCreated, ReplyContent, TurnComplete, TurnError, OperationInvoked]


def parse_event(raw: Union[str, bytes, Dict[str, Any]]) -> Optional[AgentEvent]:
    if isinstance(raw, (str, bytes)):
        try:
            data = json.loads(raw)
        except ValueError:
            return None
    else:
        data = raw
    if not isinstance(data, dict):
        return None

    kind = data.get("type")
    if kind == "session.created":
        return SessionCreated(str(data.get("session_id", "")))
    if kind == "reply.content":
        return ReplyContent(str(data.get("text") or ""))
    if kind == "turn.complete":
        return TurnComplete()
    if kind == "error":
        code = data.get("code")
        return TurnError(str(data.get("message") or "Unknown error"), str(code) if code is not None else None)
    if kind == "operation.invoke":
        args = data.get("arguments") or {}
        if isinstance(args, str):
            try:
                args = json.loads(args)
            except ValueError:
                args = {}
        if not isinstance(args, dict):
            args = {}
        return OperationInvoked(str(data.get("call_id", "")), str(data.get("name", "")), args)
    return None


# ---- client -> server messages ----

def session_create(instructions: str, operations: list, model: str) -> Dict[str, Any]:
    return {"type": "session.create", "instructions": instructions, "operations": operations, "model": model}


def prompt_message(prompt_id: str, text: str) -> Dict[str, Any]:
    return {"type": "prompt", "id": prompt_id, "text": text}


def operation_result(call_id: str, output: str) -> Dict[str, Any]:
    return {"type": "operation.result", "call_id": call_id, "output": output}


def session_abort() -> Dict[str, Any]:
    return {"type": "session.abort"}
