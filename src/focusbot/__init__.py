"""
FocusBot - Always-on voice front end for a conversational agent

Listens for a wake word, captures one spoken command, hands it to a remote
reasoning engine and speaks the reply, with barge-in and retry handling for
the external processes involved.
"""

__version__ = "1.0.0"
__author__ = "FocusBot Team"

from .cli import main

__all__ = ["main"]
