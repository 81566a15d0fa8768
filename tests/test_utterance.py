import io
import os
import sys
import threading

sys.path.append(os.path.join(os.path.dirname(__file__), "..", "src"))

from focusbot.audio_source import AudioFrame
from focusbot.error_handler import CaptureError
from focusbot.recognition import Final, Partial
from focusbot.utterance import ConsoleCapture, UtteranceCapture


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TimedRecognizer:
    """Each accepted frame advances the clock by `step` seconds."""

    def __init__(self, clock, step=0.5, tail="", on_accept=None):
        self.clock = clock
        self.step = step
        self.tail = tail
        self.on_accept = on_accept
        self.accepted = 0

    def accept(self, frame):
        self.accepted += 1
        self.clock.now += self.step
        if self.on_accept:
            self.on_accept(self.accepted)
        kind, _, text = frame.data.decode().partition(":")
        return Final(text) if kind == "f" else Partial(text)

    def finish(self):
        return self.tail


class ListSource:
    def __init__(self, frames=(), open_error=None):
        self._frames = list(frames)
        self.open_error = open_error
        self.closed = False

    def open(self):
        if self.open_error:
            raise self.open_error
        return self

    def frames(self):
        for item in self._frames:
            yield AudioFrame(item.encode())
        raise CaptureError("stream ended")

    def close(self):
        self.closed = True


def _capture(frames, clock, recognizer, silence=2.0, max_duration=30.0):
    source = ListSource(frames)
    cap = UtteranceCapture(lambda: source, lambda: recognizer, silence_timeout=silence, max_duration=max_duration, clock=clock)
    return cap, source


def test_stops_after_silence_following_speech():
    clock = FakeClock()
    rec = TimedRecognizer(clock, step=0.5)
    frames = ["p:turn on", "p:turn on the lights", "f:turn on the lights"] + ["p:"] * 20
    cap, source = _capture(frames, clock, rec)

    assert cap.capture() == "turn on the lights"
    # last speech at 1.5s; must not stop until strictly more than 2s later
    assert clock.now - 1.5 > 2.0
    assert rec.accepted == 8
    assert source.closed


def test_repeated_partial_does_not_reset_silence_clock():
    clock = FakeClock()
    rec = TimedRecognizer(clock, step=0.5)
    cap, _ = _capture(["p:hello"] * 40, clock, rec)

    assert cap.capture() == "hello"
    assert clock.now == 3.0


def test_finals_joined_with_flushed_tail():
    clock = FakeClock()
    rec = TimedRecognizer(clock, step=0.5, tail="and tomorrow")
    frames = ["f:remind me", "f:about the report"] + ["p:"] * 10
    cap, _ = _capture(frames, clock, rec)

    assert cap.capture() == "remind me about the report and tomorrow"


def test_never_exceeds_max_duration():
    clock = FakeClock()
    rec = TimedRecognizer(clock, step=1.0)
    frames = [f"p:{' '.join(['word'] * n)}" for n in range(1, 50)]
    cap, _ = _capture(frames, clock, rec, max_duration=5.0)

    text = cap.capture()
    assert text == "word word word word word"
    assert clock.now <= 5.0


def test_silence_only_returns_none():
    clock = FakeClock()
    rec = TimedRecognizer(clock, step=1.0)
    cap, _ = _capture(["p:"] * 10, clock, rec, max_duration=3.0)
    assert cap.capture() is None


def test_capture_error_returns_none():
    clock = FakeClock()
    source = ListSource(open_error=CaptureError("arecord not found"))
    cap = UtteranceCapture(lambda: source, lambda: TimedRecognizer(clock), clock=clock)
    assert cap.capture() is None
    assert source.closed


def test_cancel_discards_partial_utterance():
    clock = FakeClock()
    cancel = threading.Event()
    rec = TimedRecognizer(clock, step=0.5, tail="half", on_accept=lambda n: n == 2 and cancel.set())
    cap, source = _capture(["f:add a task", "p:called", "p:called review"], clock, rec)

    assert cap.capture(cancel) is None
    assert source.closed


def test_console_capture_reads_lines_until_eof():
    cap = ConsoleCapture(io.StringIO("what's next\n\n  exit  \n"), prompt="")
    assert cap.capture() == "what's next"
    assert cap.capture() is None
    assert cap.capture() == "exit"
    assert cap.capture() is None
    assert cap.capture() is None


def test_console_capture_cancel():
    reader, writer = os.pipe()
    stream = os.fdopen(reader, "r")
    try:
        cap = ConsoleCapture(stream, prompt="")
        cancel = threading.Event()
        threading.Timer(0.1, cancel.set).start()
        assert cap.capture(cancel) is None
    finally:
        os.close(writer)
