import os
import sys

import pytest

sys.path.append(os.path.join(os.path.dirname(__file__), "..", "src"))

from focusbot.validation import ValidationError, normalize_phrase, validate_transcript


def test_transcript_control_characters_and_whitespace_removed():
    assert validate_transcript("  add\x00 a   task\tcalled\x07 docs \n") == "add a task called docs"


def test_empty_transcript_rejected():
    with pytest.raises(ValidationError):
        validate_transcript(" \x01 ")


def test_overlong_transcript_rejected():
    with pytest.raises(ValidationError):
        validate_transcript("word " * 10, max_length=20)


def test_non_string_rejected():
    with pytest.raises(ValidationError):
        validate_transcript(None)


def test_normalize_phrase_strips_trailing_punctuation():
    assert normalize_phrase("  Goodbye!! ") == "goodbye"
    assert normalize_phrase("Quit.") == "quit"
    assert normalize_phrase("what's up?") == "what's up"
