"""
Connectivity diagnostic behind `focusbot --test`.

Walks through each stage the voice loop depends on so a broken setup points
at the failing piece instead of surfacing as a generic apology.
"""
from __future__ import annotations

import time

from . import config as cfg
from .agent_session import AgentSession
from .cancellation import linked
from .error_handler import AgentAuthorizationError, AgentError, OperationCancelled
from .logging_utils import setup_logger

logger = setup_logger("focusbot.diagnostics", "logs/focusbot.log")

ROUND_TRIP_PROMPT = "Say hello in one sentence."
ROUND_TRIP_TIMEOUT = 120.0

HINTS = {
    "auth": [
        "Set FOCUSBOT_AGENT_TOKEN to a valid API token.",
        "Check agent.auth_url in config/config.yaml points at the engine's status endpoint.",
    ],
    "connect": [
        "Is the reasoning engine running and reachable at agent.url?",
        "Check proxies or firewalls between this machine and the engine.",
    ],
    "round_trip": [
        "The engine accepted the session but did not finish a turn.",
        "Check that agent.model names a model your account can use.",
    ],
}


def _hint(stage: str) -> None:
    for line in HINTS[stage]:
        logger.info(f"  hint: {line}")


def run_agent_diagnostic(session: AgentSession, timeout: float = ROUND_TRIP_TIMEOUT) -> int:
    """Return 0 if every stage passed, 1 otherwise."""
    logger.info("=== FocusBot agent diagnostic ===")

    ok, problems = cfg.validate_config_silent()
    if not ok:
        for problem in problems:
            logger.error(problem)
        return 1
    logger.info(f"Engine: {cfg.get_agent_url()} (token {'set' if cfg.get_agent_token() else 'NOT set'})")

    logger.info("Step 1: Checking authorization...")
    try:
        session.transport.check_authorization()
    except AgentAuthorizationError as e:
        logger.error(f"Authorization FAILED: {e}")
        _hint("auth")
        return 1
    except AgentError as e:
        logger.error(f"Auth endpoint unreachable: {e}")
        _hint("connect")
        return 1
    logger.info("Authorization OK")

    logger.info("Step 2: Connecting and creating session...")
    try:
        session.initialize()
    except AgentAuthorizationError as e:
        logger.error(f"Session creation FAILED: {e}")
        _hint("auth")
        return 1
    except AgentError as e:
        logger.error(f"Session creation FAILED: {e}")
        _hint("connect")
        return 1
    logger.info(f"Session OK (id {session.session_id})")

    logger.info(f"Step 3: Sending '{ROUND_TRIP_PROMPT}' (timeout {timeout:.0f}s)...")
    start = time.monotonic()
    try:
        reply = session.send(ROUND_TRIP_PROMPT, linked(timeout=timeout))
    except OperationCancelled:
        logger.error(f"Round trip timed out after {timeout:.0f}s")
        _hint("round_trip")
        return 1
    except AgentError as e:
        logger.error(f"Round trip FAILED: {e}")
        _hint("round_trip")
        return 1
    finally:
        session.close()

    logger.info(f"Round trip OK in {time.monotonic() - start:.1f}s: {reply or '(empty reply)'}")
    logger.info("=== All checks passed ===")
    return 0
