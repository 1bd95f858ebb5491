"""Consultation vs. editing classification for raw chat input."""

import re

from ..models import IntentClassification

# Ordered (name, pattern) tables. Names are reported back as matched patterns.
CONSULTATION_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("temporal", re.compile(r"^(now is|today|this week|lately|currently|these days)\b", re.I)),
    ("personal_state", re.compile(r"\b(I'?m (feeling|thinking|working|trying)|I'?ve been|I was|I feel)\b", re.I)),
    ("reflective", re.compile(r"\b(reminds me|makes me think|I wonder|I'?m wondering)\b", re.I)),
    ("opinion_observation", re.compile(r"\b(I think|I believe|I suspect|I notice|seems like|appears|looks like)\b", re.I)),
    ("speculation", re.compile(r"\b(might be|could be|may be|probably|perhaps|maybe)\b", re.I)),
)

EDITING_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("command_verb", re.compile(
        r"\b(write|mak(e|ing)|fix|improve|change|add|remove|rewrite|edit|create|compose|draft|generate)\b", re.I)),
    ("document_reference", re.compile(
        r"\b(this (section|paragraph|part|text|writing)|the writing here|here needs"
        r"|this is (unclear|wrong|confusing))\b", re.I)),
    ("quality_assessment", re.compile(r"\b(unclear|needs work|sounds wrong|too wordy|confusing)\b", re.I)),
    ("document_targeting", re.compile(
        r"\b(at the end|in the (introduction|conclusion)|before this (paragraph|section)|after that)\b", re.I)),
)

CONSULTATION = "consultation"
EDITING = "editing"
AMBIGUOUS = "ambiguous"


class IntentClassifier:
    """Routes input to a consultation reply or an edit, by pattern family.

    A family "wins" only when it is the sole family with matches. Mixed or
    absent signals are reported as ambiguous rather than resolved by count.
    """

    def __init__(self, consultation_patterns=CONSULTATION_PATTERNS, editing_patterns=EDITING_PATTERNS):
        self.consultation_patterns = consultation_patterns
        self.editing_patterns = editing_patterns

    def classify_input(self, text: str) -> IntentClassification:
        text = text or ""
        consultation = [name for name, pattern in self.consultation_patterns if pattern.search(text)]
        editing = [name for name, pattern in self.editing_patterns if pattern.search(text)]

        if consultation and not editing:
            return IntentClassification(type=CONSULTATION, confidence=0.9, matched_patterns=consultation)
        if editing and not consultation:
            return IntentClassification(type=EDITING, confidence=0.9, matched_patterns=editing)
        return IntentClassification(type=AMBIGUOUS, confidence=0.5, matched_patterns=[])


def classify_input(text: str) -> IntentClassification:
    """Classify with the default pattern tables."""
    return IntentClassifier().classify_input(text)
