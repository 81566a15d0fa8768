import os
import sys

import pytest

sys.path.append(os.path.join(os.path.dirname(__file__), "..", "src"))

from focusbot import config as cfg


def _set_config(monkeypatch: pytest.MonkeyPatch, data: dict) -> None:
    monkeypatch.setattr(cfg, "_CFG", data, raising=False)
    monkeypatch.setattr(cfg, "_LOADED", True, raising=False)


def test_defaults_when_sections_missing(monkeypatch: pytest.MonkeyPatch) -> None:
    _set_config(monkeypatch, {})
    monkeypatch.delenv("FOCUSBOT_AGENT_TOKEN", raising=False)

    assert cfg.get_wake_phrase() == "hey focus"
    assert cfg.get_audio_frame_bytes() == 4000
    assert cfg.get_silence_timeout() == 2.0
    assert cfg.get_max_utterance_duration() == 30.0
    assert cfg.get_tts_rate() == 160
    assert cfg.get_capture_attempts() == 3
    assert cfg.get_init_max_delay() == 120.0
    assert cfg.get_error_threshold() == 5
    assert cfg.get_exit_phrases() == ["exit", "quit", "bye", "goodbye"]
    assert cfg.get_agent_token() is None
    assert cfg.get_audio_device() is None


def test_boolean_values_accept_strings(monkeypatch: pytest.MonkeyPatch) -> None:
    _set_config(monkeypatch, {
        "orchestrator": {"barge_in": " False "},
        "reminders": {"enabled": "yes"},
        "wake_word": {"accept_partial": "0"},
    })
    assert cfg.barge_in_enabled() is False
    assert cfg.reminders_enabled() is True
    assert cfg.wake_word_accept_partial() is False


def test_invalid_string_falls_back_to_default(monkeypatch: pytest.MonkeyPatch) -> None:
    _set_config(monkeypatch, {"orchestrator": {"barge_in": "maybe", "cooldown_sec": "soon"}})
    assert cfg.barge_in_enabled() is True
    assert cfg.get_cooldown_sec() == 30.0


def test_agent_token_prefers_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    _set_config(monkeypatch, {"agent": {"token": "from-file"}})
    monkeypatch.setenv("FOCUSBOT_AGENT_TOKEN", "  from-env  ")
    assert cfg.get_agent_token() == "from-env"
    monkeypatch.delenv("FOCUSBOT_AGENT_TOKEN")
    assert cfg.get_agent_token() == "from-file"


def test_auth_url_derived_from_agent_url(monkeypatch: pytest.MonkeyPatch) -> None:
    _set_config(monkeypatch, {"agent": {"url": "wss://engine.example/v1/session"}})
    assert cfg.get_agent_auth_url() == "https://engine.example/v1/auth/status"


def test_exit_phrases_normalized(monkeypatch: pytest.MonkeyPatch) -> None:
    _set_config(monkeypatch, {"orchestrator": {"exit_phrases": ["Stop", " that's all ", ""]}})
    assert cfg.get_exit_phrases() == ["stop", "that's all"]


def test_validation_collects_errors() -> None:
    with pytest.raises(ValueError) as excinfo:
        cfg._validate_config({
            "audio": {"sample_rate": 44100, "frame_bytes": 3},
            "capture": {"silence_timeout": -1},
            "agent": {"url": "http://not-a-websocket"},
            "retry": {"init_attempts": 0},
        })
    message = str(excinfo.value)
    assert "audio.sample_rate" in message
    assert "audio.frame_bytes" in message
    assert "capture.silence_timeout" in message
    assert "agent.url" in message
    assert "retry.init_attempts" in message


def test_set_config_path_loads_yaml(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("wake_word:\n  phrase: ok computer\ncapture:\n  silence_timeout: 1.5\n")
    for name in ("_CONFIG_PATH", "_CFG", "_LOADED"):
        monkeypatch.setattr(cfg, name, getattr(cfg, name))
    cfg.set_config_path(str(path))

    assert cfg.get_wake_phrase() == "ok computer"
    assert cfg.get_silence_timeout() == 1.5
    assert cfg.get("capture.max_duration", 9) == 9
