import json
import os
import sys

import pytest

sys.path.append(os.path.join(os.path.dirname(__file__), "..", "src"))

from focusbot.audio_source import AudioFrame
from focusbot.error_handler import ConfigurationError, ModelNotFoundError
from focusbot.recognition import Final, Partial, VoskModelLoader, VoskRecognizer


class FakeKaldi:
    """Finalizes a segment on every third waveform chunk."""

    def __init__(self, model, sample_rate):
        self.model = model
        self.sample_rate = sample_rate
        self.chunks = 0

    def AcceptWaveform(self, data):
        self.chunks += 1
        return self.chunks % 3 == 0

    def Result(self):
        return json.dumps({"text": " hey focus "})

    def PartialResult(self):
        return json.dumps({"partial": "hey" if self.chunks == 1 else "hey fo"})

    def FinalResult(self):
        return json.dumps({"text": ""})


def test_missing_model_directory(tmp_path):
    loader = VoskModelLoader(str(tmp_path / "no-model"))
    with pytest.raises(ModelNotFoundError) as excinfo:
        loader()
    assert isinstance(excinfo.value, ConfigurationError)
    assert "wake_word.model_path" in str(excinfo.value)


def test_recognizer_maps_vosk_results(monkeypatch):
    vosk = pytest.importorskip("vosk")
    monkeypatch.setattr(vosk, "KaldiRecognizer", FakeKaldi)

    rec = VoskRecognizer(model="model", sample_rate=16000)
    frame = AudioFrame(b"\x00\x00" * 8)
    assert rec.accept(frame) == Partial("hey")
    assert rec.accept(frame) == Partial("hey fo")
    assert rec.accept(frame) == Final("hey focus")
    assert rec.finish() == ""


def test_loader_shares_model_between_recognizers(tmp_path, monkeypatch):
    vosk = pytest.importorskip("vosk")
    loaded = []
    monkeypatch.setattr(vosk, "Model", lambda path: loaded.append(path) or object())
    monkeypatch.setattr(vosk, "KaldiRecognizer", FakeKaldi)
    monkeypatch.setattr(vosk, "SetLogLevel", lambda level: None)

    loader = VoskModelLoader(str(tmp_path))
    first, second = loader(), loader()
    assert loaded == [str(tmp_path)]
    assert first is not second
    assert first._rec.model is second._rec.model
