#!/usr/bin/env python3
"""
FocusBot CLI - Command Line Interface for FocusBot
"""
import argparse
import logging
import os
import signal
import sys
from functools import partial

from . import config as cfg
from .agent_session import AgentSession
from .agent_transport import WebSocketTransport
from .audio_source import AudioSource
from .diagnostics import run_agent_diagnostic
from .error_handler import ConfigurationError
from .logging_utils import parse_level, set_console_level, setup_logger
from .operations import load_operations_module
from .orchestrator import VoiceOrchestrator
from .prompts import build_instructions
from .recognition import VoskModelLoader
from .reminders import ReminderLoop
from .retry import EXPONENTIAL, LINEAR, RetryPolicy
from .speech import SpeechSynthesizer
from .utterance import ConsoleCapture, UtteranceCapture
from .wake_word import WakeWordConfig, WakeWordSpotter

logger = setup_logger("focusbot.cli", "logs/focusbot.log")

_TRUE = {"1", "true", "yes", "on"}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="focusbot",
        description="FocusBot - always-on voice front end for a conversational agent",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  focusbot                 # Listen for the wake word and talk
  focusbot --text          # Type instead of speaking
  focusbot --test          # Check connectivity to the reasoning engine
  focusbot -v              # Debug logging on the console
        """
    )
    parser.add_argument('--config', default=None, help='Path to configuration file (default: config/config.yaml)')
    parser.add_argument('--text', action='store_true', help='Text mode: read commands from stdin and print replies')
    parser.add_argument('--test', action='store_true', help='Run the reasoning-engine diagnostic and exit')
    parser.add_argument('--wake-word', default=None, help='Override the wake phrase for this run')
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument('-v', '--verbose', action='store_true', help='Show debug output')
    verbosity.add_argument('-q', '--quiet', action='store_true', help='Only show warnings and errors')
    return parser


def resolve_log_level(args) -> int:
    if args.verbose:
        return logging.DEBUG
    if args.quiet:
        return logging.WARNING
    return parse_level(os.getenv("FOCUSBOT_LOG_LEVEL"), logging.INFO)


def resolve_text_mode(args) -> bool:
    return bool(args.text) or os.getenv("FOCUSBOT_TEXT_MODE", "").strip().lower() in _TRUE


def build_session(registry=None) -> AgentSession:
    transport = WebSocketTransport(
        cfg.get_agent_url(),
        token=cfg.get_agent_token(),
        auth_url=cfg.get_agent_auth_url(),
    )
    policy = RetryPolicy(
        max_attempts=cfg.get_init_attempts(),
        base_delay=cfg.get_init_base_delay(),
        growth=EXPONENTIAL,
        max_delay=cfg.get_init_max_delay(),
    )
    return AgentSession(
        transport,
        registry=registry,
        instructions=build_instructions(),
        model=cfg.get_agent_model(),
        policy=policy,
    )


def build_orchestrator(text_mode: bool, wake_phrase=None) -> VoiceOrchestrator:
    registry, reminder_sources = load_operations_module(cfg.get_operations_module())
    session = build_session(registry)
    speaker = SpeechSynthesizer(voice=cfg.get_tts_voice(), rate=cfg.get_tts_rate(), text_mode=text_mode)

    spotter = None
    if text_mode:
        capture = ConsoleCapture()
    else:
        source_factory = partial(
            AudioSource,
            frame_bytes=cfg.get_audio_frame_bytes(),
            sample_rate=cfg.get_audio_sample_rate(),
            device=cfg.get_audio_device(),
        )
        recognizers = VoskModelLoader(cfg.get_vosk_model_path(), cfg.get_audio_sample_rate())
        # Load up front so a missing model fails before the loop starts
        recognizers()
        capture_policy = RetryPolicy(
            max_attempts=cfg.get_capture_attempts(),
            base_delay=cfg.get_capture_base_delay(),
            growth=LINEAR,
        )
        spotter = WakeWordSpotter(
            WakeWordConfig(phrase=wake_phrase or cfg.get_wake_phrase(), accept_partial=cfg.wake_word_accept_partial()),
            source_factory,
            recognizers,
            capture_policy,
        )
        capture = UtteranceCapture(
            source_factory,
            recognizers,
            silence_timeout=cfg.get_silence_timeout(),
            max_duration=cfg.get_max_utterance_duration(),
        )

    reminders = None
    if cfg.reminders_enabled() and reminder_sources:
        reminders = ReminderLoop(
            session,
            speaker,
            reminder_sources,
            interval=cfg.get_reminder_interval(),
            timeout=cfg.get_reminder_timeout(),
            initial_delay=cfg.get_reminder_initial_delay(),
        )

    orchestrator = VoiceOrchestrator(
        session,
        speaker,
        capture,
        spotter=spotter,
        text_mode=text_mode,
        exit_phrases=cfg.get_exit_phrases(),
        error_threshold=cfg.get_error_threshold(),
        cooldown=cfg.get_cooldown_sec(),
        barge_in=cfg.barge_in_enabled(),
        init_policy=session.policy,
        reminders=reminders,
    )
    return orchestrator


def main(argv=None) -> int:
    """Main CLI entry point"""
    args = build_parser().parse_args(argv)
    set_console_level(resolve_log_level(args))

    config_path = args.config or os.getenv("FOCUSBOT_CONFIG")
    try:
        if config_path:
            cfg.set_config_path(config_path)
        else:
            cfg.reload_config()
    except ValueError as e:
        print(f"Error: {e}")
        return 1

    if args.test:
        return run_agent_diagnostic(build_session())

    text_mode = resolve_text_mode(args)
    try:
        orchestrator = build_orchestrator(text_mode, args.wake_word)
    except ConfigurationError as e:
        logger.error(str(e))
        return 1

    def signal_handler(signum, frame):
        logger.info(f"Received signal {signum}, shutting down...")
        orchestrator.stop()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    logger.info("Text mode" if text_mode else "Voice mode: say the wake word to start")
    try:
        return orchestrator.run()
    except KeyboardInterrupt:
        logger.info("Received interrupt, shutting down...")
        orchestrator.stop()
        return 0


if __name__ == '__main__':
    sys.exit(main())
