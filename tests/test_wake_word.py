"""Tests for WakeWordSpotter detection, retry budget and cancellation."""

import io
import os
import sys
import threading
import time

import pytest

sys.path.append(os.path.join(os.path.dirname(__file__), "..", "src"))

from focusbot import audio_source
from focusbot.audio_source import AlsaBackend, AudioFrame, AudioSource
from focusbot.error_handler import CaptureError, ModelNotFoundError
from focusbot.recognition import Final, Partial
from focusbot.retry import RetryPolicy
from focusbot.wake_word import SpotterState, WakeWordConfig, WakeWordSpotter


class ScriptedRecognizer:
    """Frames carry 'p:<text>' or 'f:<text>' and map to Partial/Final."""

    def __init__(self):
        self.accepted = 0

    def accept(self, frame):
        self.accepted += 1
        kind, _, text = frame.data.decode().partition(":")
        return Final(text) if kind == "f" else Partial(text)

    def finish(self):
        return ""


class ScriptedSource:
    def __init__(self, frames=(), open_error=None):
        self._frames = list(frames)
        self.open_error = open_error
        self.opened = False
        self.closed = False
        self.read = 0

    def open(self):
        if self.open_error:
            raise self.open_error
        self.opened = True
        return self

    def frames(self):
        for item in self._frames:
            self.read += 1
            yield AudioFrame(item.encode())
        raise CaptureError("Audio capture produced no data", stderr="device went away")

    def close(self):
        self.closed = True


def _factory(sources):
    created = []

    def make():
        source = sources[len(created)]
        created.append(source)
        return source

    return make, created


def _spotter(sources, recognizer=None, policy=None, config=None):
    make, created = _factory(sources)
    recognizer = recognizer or ScriptedRecognizer()
    spotter = WakeWordSpotter(
        config or WakeWordConfig(phrase="hey focus"),
        make,
        lambda: recognizer,
        policy or RetryPolicy(max_attempts=3, base_delay=0.01),
    )
    return spotter, created, recognizer


def test_partial_match_returns_before_next_frame():
    source = ScriptedSource(["p:", "p:hey fo", "p:HEY Focus what's", "p:never read"])
    spotter, created, recognizer = _spotter([source])

    assert spotter.wait_for_wake_word() is True
    assert recognizer.accepted == 3
    assert source.read == 3
    assert source.closed
    assert spotter.state == SpotterState.DETECTED


def test_final_match_detected():
    source = ScriptedSource(["p:ok", "f:okay hey focus"])
    spotter, _, _ = _spotter([source])
    assert spotter.wait_for_wake_word() is True


def test_partials_ignored_when_disabled():
    source = ScriptedSource(["p:hey focus", "f:hey focus"])
    config = WakeWordConfig(phrase="hey focus", accept_partial=False)
    spotter, _, recognizer = _spotter([source], config=config)

    assert spotter.wait_for_wake_word() is True
    assert recognizer.accepted == 2


def test_two_failures_then_success():
    sources = [
        ScriptedSource(open_error=CaptureError("device busy")),
        ScriptedSource(["p:nothing"]),
        ScriptedSource(["p:hey focus"]),
    ]
    spotter, created, _ = _spotter(sources)

    assert spotter.wait_for_wake_word() is True
    assert len(created) == 3
    assert all(s.closed for s in created)


def test_three_failures_returns_false_without_fourth_attempt():
    sources = [ScriptedSource(open_error=CaptureError("arecord exited")) for _ in range(4)]
    spotter, created, _ = _spotter(sources)

    assert spotter.wait_for_wake_word() is False
    assert len(created) == 3
    assert spotter.state == SpotterState.FAILED


def test_cancel_during_backoff_returns_promptly():
    sources = [ScriptedSource(open_error=CaptureError("busy")) for _ in range(3)]
    spotter, created, _ = _spotter(sources, policy=RetryPolicy(max_attempts=3, base_delay=30.0))
    cancel = threading.Event()
    threading.Timer(0.1, cancel.set).start()

    start = time.monotonic()
    assert spotter.wait_for_wake_word(cancel) is False
    assert time.monotonic() - start < 2.0
    assert len(created) == 1
    assert spotter.state == SpotterState.CANCELLED


def test_cancel_before_start_opens_nothing():
    spotter, created, _ = _spotter([ScriptedSource(["p:hey focus"])])
    cancel = threading.Event()
    cancel.set()

    assert spotter.wait_for_wake_word(cancel) is False
    assert created == []


def test_cancel_between_frames():
    cancel = threading.Event()

    class CancellingRecognizer(ScriptedRecognizer):
        def accept(self, frame):
            cancel.set()
            return super().accept(frame)

    source = ScriptedSource(["p:hello", "p:hey focus"])
    spotter, _, recognizer = _spotter([source], recognizer=CancellingRecognizer())

    assert spotter.wait_for_wake_word(cancel) is False
    assert recognizer.accepted == 1
    assert source.closed


def test_wake_word_change_applies_to_next_attempt():
    spotter, _, _ = _spotter([ScriptedSource(["p:computer please"])])
    spotter.wake_word = "Computer"
    assert spotter.wake_word == "Computer"
    assert spotter.wait_for_wake_word() is True

    with pytest.raises(ValueError):
        spotter.wake_word = "   "


def test_missing_model_is_not_retried():
    source = ScriptedSource(["p:hey focus"])
    make, created = _factory([source, ScriptedSource()])

    def no_model():
        raise ModelNotFoundError("Vosk model not found")

    spotter = WakeWordSpotter(WakeWordConfig(), make, no_model, RetryPolicy(max_attempts=3, base_delay=0.01))
    with pytest.raises(ModelNotFoundError):
        spotter.wait_for_wake_word()
    assert len(created) == 1
    assert source.closed


class DeadPipeProc:
    """Capture process whose pipe fails with EIO, as when a USB mic is unplugged."""

    class _Pipe(io.BytesIO):
        def read(self, size=-1):
            raise OSError(5, "Input/output error")

    def __init__(self):
        self.stdout = self._Pipe()
        self.stderr = io.BytesIO(b"arecord: device disconnected")
        self.pid = 0
        self.returncode = None

    def poll(self):
        return None

    def wait(self, timeout=None):
        return 0


def test_pipe_read_error_is_retried_then_gives_up(monkeypatch):
    monkeypatch.setattr(audio_source, "kill_process_tree", lambda proc, timeout=2.0: None)
    launched = []

    def popen(cmd, **kwargs):
        launched.append(cmd)
        return DeadPipeProc()

    def make_source():
        return AudioSource(frame_bytes=4, backend=AlsaBackend(), popen=popen, which=lambda tool: f"/usr/bin/{tool}")

    spotter = WakeWordSpotter(WakeWordConfig(phrase="hey focus"), make_source, ScriptedRecognizer,
                              RetryPolicy(max_attempts=3, base_delay=0.01))

    assert spotter.wait_for_wake_word() is False
    assert len(launched) == 3
    assert spotter.state == SpotterState.FAILED
