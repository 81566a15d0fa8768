"""
FocusBot transcript validation and sanitization
"""
import re
from typing import Optional

from .logging_utils import setup_logger

logger = setup_logger("focusbot.validation", "logs/focusbot.log")

MAX_TRANSCRIPT_LENGTH = 4000

_CONTROL_CHARS = re.compile(r'[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]')
_WHITESPACE = re.compile(r'\s+')
_TRAILING_PUNCT = re.compile(r'[\s.!?,;:]+$')


class ValidationError(Exception):
    """Raised when input validation fails"""
    pass


def validate_transcript(text: str, max_length: Optional[int] = None) -> str:
    """Normalize a recognized utterance before it is dispatched.

    Control characters are dropped and runs of whitespace collapsed. Over-long
    transcripts are rejected rather than truncated.
    """
    if not isinstance(text, str):
        raise ValidationError("Transcript must be a string")

    sanitized = _CONTROL_CHARS.sub('', text)
    sanitized = _WHITESPACE.sub(' ', sanitized).strip()
    if not sanitized:
        raise ValidationError("Transcript cannot be empty")

    limit = MAX_TRANSCRIPT_LENGTH if max_length is None else max_length
    if len(sanitized) > limit:
        raise ValidationError(f"Transcript exceeds maximum length of {limit} characters")

    return sanitized


def normalize_phrase(text: str) -> str:
    """Lower-case and strip trailing punctuation, for exit-phrase comparison."""
    return _TRAILING_PUNCT.sub('', text.strip().lower())
