"""Tests for SpeechSynthesizer playback, barge-in and fallback."""

import os
import subprocess
import sys
import threading
import time

sys.path.append(os.path.join(os.path.dirname(__file__), "..", "src"))

from focusbot import speech
from focusbot.speech import EspeakRenderer, PowerShellRenderer, SayRenderer, SpeechSynthesizer, select_renderer


class FakeProc:
    def __init__(self, name, events, finish_immediately=False):
        self.name = name
        self.events = events
        self.pid = 0
        self.returncode = 0 if finish_immediately else None
        self._finished = threading.Event()
        if finish_immediately:
            self._finished.set()

    def poll(self):
        return self.returncode

    def wait(self, timeout=None):
        if not self._finished.wait(timeout):
            raise subprocess.TimeoutExpired(self.name, timeout)
        return self.returncode

    def terminate(self):
        self.returncode = -15
        self._finished.set()

    def finish(self):
        self.returncode = 0
        self._finished.set()


class FakePopen:
    def __init__(self, finish=()):
        self.events = []
        self.procs = []
        self.finish = set(finish)

    def __call__(self, cmd, **kwargs):
        text = cmd[-1]
        self.events.append(f"start {text}")
        proc = FakeProc(text, self.events, finish_immediately=text in self.finish)
        self.procs.append(proc)
        return proc


def _install_fake_kill(monkeypatch, events):
    def fake_kill(proc, timeout=2.0):
        events.append(f"kill {proc.name}")
        proc.terminate()

    monkeypatch.setattr(speech, "kill_process_tree", fake_kill)


def _wait_for(condition, timeout=2.0):
    deadline = time.time() + timeout
    while time.time() < deadline:
        if condition():
            return True
        time.sleep(0.01)
    return False


def test_new_playback_terminates_previous_first(monkeypatch):
    popen = FakePopen(finish={"B"})
    _install_fake_kill(monkeypatch, popen.events)
    tts = SpeechSynthesizer(renderer=EspeakRenderer(), popen=popen)

    results = {}
    t = threading.Thread(target=lambda: results.setdefault("A", tts.speak("A")))
    t.start()
    assert _wait_for(lambda: tts.is_speaking)

    assert tts.speak("B") is True
    t.join(timeout=2)

    assert popen.events == ["start A", "kill A", "start B"]
    assert results["A"] is False


def test_stop_interrupts_playback(monkeypatch):
    popen = FakePopen()
    _install_fake_kill(monkeypatch, popen.events)
    tts = SpeechSynthesizer(renderer=EspeakRenderer(), popen=popen)

    results = []
    t = threading.Thread(target=lambda: results.append(tts.speak("long answer")))
    t.start()
    assert _wait_for(lambda: tts.is_speaking)

    tts.stop()
    t.join(timeout=2)
    assert results == [False]
    assert not tts.is_speaking

    # stop is idempotent
    tts.stop()
    assert popen.events == ["start long answer", "kill long answer"]


def test_cancel_token_stops_playback(monkeypatch):
    popen = FakePopen()
    _install_fake_kill(monkeypatch, popen.events)
    tts = SpeechSynthesizer(renderer=EspeakRenderer(), popen=popen)
    cancel = threading.Event()
    threading.Timer(0.1, cancel.set).start()

    start = time.monotonic()
    assert tts.speak("hello there", cancel) is False
    assert time.monotonic() - start < 2.0
    assert "kill hello there" in popen.events


def test_completed_playback_returns_true(monkeypatch):
    popen = FakePopen(finish={"done"})
    _install_fake_kill(monkeypatch, popen.events)
    tts = SpeechSynthesizer(renderer=EspeakRenderer(), popen=popen)
    assert tts.speak("done") is True
    assert popen.events == ["start done"]


def test_falls_back_to_text_when_renderer_missing():
    printed = []

    def missing(cmd, **kwargs):
        raise FileNotFoundError(cmd[0])

    tts = SpeechSynthesizer(renderer=EspeakRenderer(), popen=missing, output=printed.append)
    assert tts.speak("fallback please") is True
    assert printed == ["fallback please"]


def test_text_mode_prints_without_launching():
    printed = []
    popen = FakePopen()
    tts = SpeechSynthesizer(text_mode=True, popen=popen, output=printed.append)

    assert tts.speak("just text") is True
    assert tts.speak("   ") is True
    assert printed == ["just text"]
    assert popen.events == []


def test_renderer_commands():
    assert EspeakRenderer().build_command("hi\nthere", "en-us", 180) == ["espeak-ng", "-v", "en-us", "-s", "180", "--", "hi there"]
    assert SayRenderer().build_command("hi", "en", 200) == ["say", "-r", "200", "--", "hi"]

    cmd = PowerShellRenderer().build_command("it's done", "en", 200)
    assert cmd[:3] == ["powershell", "-NoProfile", "-Command"]
    assert "$s.Rate = 2;" in cmd[3]
    assert "$s.Speak('it''s done')" in cmd[3]


def test_powershell_rate_mapping_is_clamped():
    assert PowerShellRenderer.map_rate(160) == 0
    assert PowerShellRenderer.map_rate(120) == -2
    assert PowerShellRenderer.map_rate(150) == 0
    assert PowerShellRenderer.map_rate(500) == 10
    assert PowerShellRenderer.map_rate(-300) == -10


def test_select_renderer_by_platform():
    assert isinstance(select_renderer("linux"), EspeakRenderer)
    assert isinstance(select_renderer("darwin"), SayRenderer)
    assert isinstance(select_renderer("win32"), PowerShellRenderer)
