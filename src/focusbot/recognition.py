"""
Streaming speech recognition for FocusBot.

Recognizers consume AudioFrames and emit Partial / Final results. The Vosk
adapter is the production implementation; anything with the same
accept()/finish() shape can be injected instead.
"""
from __future__ import annotations

import json
import os
import threading
from dataclasses import dataclass
from typing import Optional, Union

from .audio_source import SAMPLE_RATE, AudioFrame
from .error_handler import ModelNotFoundError
from .logging_utils import setup_logger

logger = setup_logger("focusbot.recognition", "logs/focusbot.log")


@dataclass(frozen=True)
class Partial:
    """Provisional hypothesis for the segment in progress."""
    text: str


@dataclass(frozen=True)
class Final:
    """Closed segment; the recognizer starts a new one afterwards."""
    text: str


RecognitionResult = Union[Partial, Final]


class VoskRecognizer:
    """Wraps one vosk.KaldiRecognizer stream."""

    def __init__(self, model, sample_rate: int = SAMPLE_RATE):
        from vosk import KaldiRecognizer

        self._rec = KaldiRecognizer(model, sample_rate)

    def accept(self, frame: AudioFrame) -> RecognitionResult:
        if self._rec.AcceptWaveform(frame.data):
            return Final(_text_of(self._rec.Result(), "text"))
        return Partial(_text_of(self._rec.PartialResult(), "partial"))

    def finish(self) -> str:
        """Flush the recognizer and return the trailing final text."""
        return _text_of(self._rec.FinalResult(), "text")


class VoskModelLoader:
    """Loads the Vosk model once and hands out fresh recognizers.

    Model loading takes seconds and hundreds of MB, so it is shared across
    spotting and capture attempts. Each call produces an independent stream.
    """

    def __init__(self, model_path: str, sample_rate: int = SAMPLE_RATE):
        self.model_path = model_path
        self.sample_rate = sample_rate
        self._model = None
        self._lock = threading.Lock()

    def _load(self):
        with self._lock:
            if self._model is not None:
                return self._model
            if not os.path.isdir(self.model_path):
                raise ModelNotFoundError(
                    f"Vosk model not found at {self.model_path}. "
                    "Download one from https://alphacephei.com/vosk/models and set wake_word.model_path.",
                    component="recognition",
                    operation="load_model",
                )
            import vosk

            vosk.SetLogLevel(-1)
            logger.info(f"Loading Vosk model from {self.model_path}")
            self._model = vosk.Model(self.model_path)
            return self._model

    def __call__(self) -> VoskRecognizer:
        return VoskRecognizer(self._load(), self.sample_rate)


def _text_of(payload: str, key: str) -> str:
    try:
        data = json.loads(payload or "{}")
    except json.JSONDecodeError:
        logger.debug(f"Unparseable recognizer payload: {payload!r}")
        return ""
    return str(data.get(key, "")).strip()
