"""Intent classification and command parsing."""

from .classifier import IntentClassifier, classify_input
from .parser import CommandParser, is_likely_command

__all__ = ["IntentClassifier", "classify_input", "CommandParser", "is_likely_command"]
