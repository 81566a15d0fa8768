"""
Centralized configuration loader and accessors for FocusBot.

Loads YAML from `config/config.yaml` (or the file named by FOCUSBOT_CONFIG /
set_config_path) and provides typed getters aligned with the documented schema
(wake_word.*, audio.*, capture.*, tts.*, agent.*, retry.*, orchestrator.*,
reminders.*).
"""
from __future__ import annotations

import os
from typing import Any, Dict, List, Optional

import yaml


_DEFAULT_PATH = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "..", "config", "config.yaml"))
_CONFIG_PATH = os.path.abspath(os.getenv("FOCUSBOT_CONFIG", _DEFAULT_PATH))
_CFG: Dict[str, Any] = {}
_LOADED = False

_BOOL_TRUE_VALUES = frozenset({"true", "1", "yes", "y", "on"})
_BOOL_FALSE_VALUES = frozenset({"false", "0", "no", "n", "off"})

DEFAULT_EXIT_PHRASES = ["exit", "quit", "bye", "goodbye"]


def _load() -> None:
    global _CFG, _LOADED
    if _LOADED:
        return
    if os.path.exists(_CONFIG_PATH):
        with open(_CONFIG_PATH, "r") as f:
            _CFG = yaml.safe_load(f) or {}
    else:
        _CFG = {}

    _validate_config(_CFG)
    _LOADED = True


def _validate_config(config: Dict[str, Any]) -> None:
    """Validate configuration values and provide helpful error messages"""
    errors = []
    warnings = []

    wake = config.get("wake_word") or {}
    if isinstance(wake, dict):
        if "phrase" in wake and (not isinstance(wake["phrase"], str) or not wake["phrase"].strip()):
            errors.append("wake_word.phrase must be a non-empty string")
        if "model_path" in wake:
            model_path = wake["model_path"]
            if not isinstance(model_path, str):
                errors.append("wake_word.model_path must be a string")
            elif not os.path.isdir(model_path):
                warnings.append(f"Vosk model directory not found: {model_path}")

    audio = config.get("audio") or {}
    if isinstance(audio, dict):
        if "sample_rate" in audio and audio["sample_rate"] != 16000:
            errors.append("audio.sample_rate must be 16000 (capture tools emit 16 kHz mono PCM)")
        if "frame_bytes" in audio:
            fb = audio["frame_bytes"]
            if not isinstance(fb, int) or fb <= 0 or fb % 2:
                errors.append("audio.frame_bytes must be a positive even integer")

    capture = config.get("capture") or {}
    if isinstance(capture, dict):
        for key in ("silence_timeout", "max_duration"):
            if key in capture:
                value = capture[key]
                if not isinstance(value, (int, float)) or value <= 0:
                    errors.append(f"capture.{key} must be a positive number")
        if (isinstance(capture.get("silence_timeout"), (int, float))
                and isinstance(capture.get("max_duration"), (int, float))
                and capture["silence_timeout"] >= capture["max_duration"]):
            warnings.append("capture.silence_timeout is not shorter than capture.max_duration")

    tts = config.get("tts") or {}
    if isinstance(tts, dict) and "rate" in tts:
        rate = tts["rate"]
        if not isinstance(rate, (int, float)) or rate < 80 or rate > 500:
            errors.append("tts.rate must be between 80 and 500 words per minute")

    agent = config.get("agent") or {}
    if isinstance(agent, dict) and "url" in agent:
        url = agent["url"]
        if not isinstance(url, str) or not url.startswith(("ws://", "wss://")):
            errors.append("agent.url must be a ws:// or wss:// URL")

    retry = config.get("retry") or {}
    if isinstance(retry, dict):
        for key in ("capture_attempts", "init_attempts"):
            if key in retry and (not isinstance(retry[key], int) or retry[key] < 1):
                errors.append(f"retry.{key} must be a positive integer")

    orch = config.get("orchestrator") or {}
    if isinstance(orch, dict):
        if "error_threshold" in orch and (not isinstance(orch["error_threshold"], int) or orch["error_threshold"] < 1):
            errors.append("orchestrator.error_threshold must be a positive integer")
        if "exit_phrases" in orch and not isinstance(orch["exit_phrases"], list):
            errors.append("orchestrator.exit_phrases must be a list")

    if errors:
        error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {error}" for error in errors)
        raise ValueError(error_msg)

    for warning in warnings:
        print(f"Config warning: {warning}")


def set_config_path(path: str) -> None:
    """Point the loader at another YAML file and force a reload on next access."""
    global _CONFIG_PATH
    _CONFIG_PATH = os.path.abspath(path)
    reload_config()


def get(path: str, default: Any = None) -> Any:
    """Dot-path getter from loaded config.

    Example: get("capture.silence_timeout", 2.0)
    """
    _load()
    cur: Any = _CFG
    for part in path.split("."):
        if isinstance(cur, dict) and part in cur:
            cur = cur[part]
        else:
            return default
    return cur


def get_typed(path: str, default: Any, cast_type: type) -> Any:
    """Get a configuration value with type casting and default fallback."""
    val = get(path, default)

    if cast_type is bool:
        if isinstance(val, bool):
            return val
        if isinstance(val, str):
            normalized = val.strip().lower()
            if normalized in _BOOL_TRUE_VALUES:
                return True
            if normalized in _BOOL_FALSE_VALUES:
                return False
            return default
        try:
            return bool(val)
        except (TypeError, ValueError):
            return default

    if isinstance(val, cast_type):
        return val

    try:
        return cast_type(val)
    except (TypeError, ValueError):
        return default


# ---- wake word / recognition ----
def get_wake_phrase() -> str:
    return str(get("wake_word.phrase", "hey focus"))

def get_vosk_model_path() -> str:
    return os.path.abspath(str(get("wake_word.model_path", "models/vosk-model-small-en-us-0.15")))

def wake_word_accept_partial() -> bool:
    return get_typed("wake_word.accept_partial", True, bool)


# ---- audio capture ----
def get_audio_device() -> Optional[str]:
    """Configured capture device name, or None for platform default / probing."""
    dev = get("audio.device", None)
    return str(dev) if dev else None

def get_audio_sample_rate() -> int:
    return get_typed("audio.sample_rate", 16000, int)

def get_audio_frame_bytes() -> int:
    return get_typed("audio.frame_bytes", 4000, int)

def get_silence_timeout() -> float:
    return get_typed("capture.silence_timeout", 2.0, float)

def get_max_utterance_duration() -> float:
    return get_typed("capture.max_duration", 30.0, float)


# ---- speech synthesis ----
def get_tts_voice() -> str:
    return str(get("tts.voice", "en"))

def get_tts_rate() -> int:
    return get_typed("tts.rate", 160, int)


# ---- reasoning engine ----
def get_agent_url() -> str:
    return str(get("agent.url", "ws://127.0.0.1:8765/v1/session"))

def get_agent_auth_url() -> str:
    """HTTP endpoint used to verify credentials before opening the session."""
    default = get_agent_url().replace("wss://", "https://").replace("ws://", "http://")
    default = default.split("/v1/")[0] + "/v1/auth/status"
    return str(get("agent.auth_url", default))

def get_agent_model() -> str:
    return str(get("agent.model", "gpt-4o"))

def get_agent_token() -> Optional[str]:
    """API token for the reasoning engine; environment wins over the config file."""
    token = os.getenv("FOCUSBOT_AGENT_TOKEN") or get("agent.token", None)
    token = str(token).strip() if token else ""
    return token or None

def get_operations_module() -> Optional[str]:
    mod = get("agent.operations_module", None)
    return str(mod) if mod else None


# ---- retry budgets ----
def get_capture_attempts() -> int:
    return get_typed("retry.capture_attempts", 3, int)

def get_capture_base_delay() -> float:
    return get_typed("retry.capture_base_delay", 2.0, float)

def get_init_attempts() -> int:
    return get_typed("retry.init_attempts", 3, int)

def get_init_base_delay() -> float:
    return get_typed("retry.init_base_delay", 1.0, float)

def get_init_max_delay() -> float:
    return get_typed("retry.init_max_delay", 120.0, float)


# ---- orchestrator ----
def get_error_threshold() -> int:
    return get_typed("orchestrator.error_threshold", 5, int)

def get_cooldown_sec() -> float:
    return get_typed("orchestrator.cooldown_sec", 30.0, float)

def get_exit_phrases() -> List[str]:
    phrases = get("orchestrator.exit_phrases", None)
    if not phrases:
        return list(DEFAULT_EXIT_PHRASES)
    return [str(p).strip().lower() for p in phrases if str(p).strip()]

def barge_in_enabled() -> bool:
    return get_typed("orchestrator.barge_in", True, bool)


# ---- reminders ----
def reminders_enabled() -> bool:
    return get_typed("reminders.enabled", True, bool)

def get_reminder_interval() -> float:
    return get_typed("reminders.interval_sec", 30.0, float)

def get_reminder_timeout() -> float:
    return get_typed("reminders.timeout_sec", 30.0, float)

def get_reminder_initial_delay() -> float:
    return get_typed("reminders.initial_delay_sec", 5.0, float)


def validate_config_silent() -> tuple[bool, List[str]]:
    """Validate configuration without raising exceptions

    Returns:
        tuple: (is_valid, list_of_errors)
    """
    try:
        _load()
        _validate_config(_CFG)
        return True, []
    except ValueError as e:
        return False, [str(e)]


def reload_config() -> None:
    """Reload configuration from file"""
    global _CFG, _LOADED
    _LOADED = False
    _CFG = {}
    _load()
