"""Natural-language command parsing.

Turns free text such as ``"Add a summary under the 'Results' section"`` into an
:class:`~quill.models.EditCommand`. Every lookup table in this module is an
ordered tuple: position encodes precedence, and the first matching row wins.
"""

import logging
import re
from dataclasses import dataclass

from ..models import EditCommand, ValidationResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActionRule:
    action: str
    patterns: tuple[re.Pattern[str], ...]


def _rx(*patterns: str) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(p, re.I) for p in patterns)


ACTION_RULES: tuple[ActionRule, ...] = (
    # Tag/property requests read like "add ..." and must outrank the generic add row.
    ActionRule("metadata", _rx(
        r"\btags?\s*:",
        r"^\s*(?:add|remove|delete|set|update|change|suggest)\s+(?:some\s+|new\s+|suggested\s+|relevant\s+|more\s+)?tags?\b",
        r"\b(?:clean\s+up|tidy(?:\s+up)?|optimi[sz]e|review|organi[sz]e|suggest)\b.*\btags?\b",
        r"\b(?:frontmatter|metadata)\b",
        r"\b(?:set|update|change|modify|add|remove)\s+(?:the\s+|a\s+)?(?:\w+\s+)?propert(?:y|ies)\b",
    )),
    ActionRule("grammar", _rx(
        r"\b(?:grammar|spell|spelling|proofread|polish)\b",
        r"\bcheck\b.*\b(?:grammar|spelling|errors)\b",
        r"\bmake\s+.*\b(?:grammatical|correct|proper)\b",
        r"\bfix\s+.*\b(?:grammar|errors|mistakes|typos)\b",
        r"\bcorrect\b.*\b(?:grammar|spelling|errors)\b",
    )),
    ActionRule("rewrite", _rx(
        r"\b(?:rewrite|reword|rephrase|restructure|reorganize)\b",
        r"\bwrite\s+.*\b(?:new|different|alternative)\b",
        r"\bgenerate\s+.*\b(?:sections|parts|multiple)\b",
        r"\bmake\s+.*\b(?:sections|parts|multiple)\b",
    )),
    ActionRule("delete", _rx(
        r"\b(?:delete|remove|eliminate|cut|erase)\b",
        r"\bget\s+rid\s+of\b",
        r"\btake\s+out\b",
        r"\bdrop\b.*\b(?:section|paragraph|part)\b",
    )),
    ActionRule("add", _rx(
        r"\b(?:add|create|write|insert|include|append|prepend)\b.*\b(?:section|paragraph|heading|content|text|part)\b",
        r"\b(?:add|create|write|insert|append|prepend)\b(?!\s+.*\b(?:better|clearer|more|less)\b)",
        r"\bmake\s+.*\b(?:section|part)\b",
        r"\bgenerate\b.*\b(?:section|content|text)\b",
        r"\b(?:append|add)\b.*\b(?:after|following)\b",
        r"\b(?:prepend|add)\b.*\b(?:before|preceding)\b",
    )),
    ActionRule("edit", _rx(
        r"\b(?:edit|modify|change|update|revise|improve|enhance)\b",
        r"\bmake\s+.*\b(?:better|clearer|more|less|formal|professional|detailed|comprehensive)\b",
        r"\b(?:fix|correct|adjust)\b(?!.*\b(?:grammar|spelling|errors)\b)",
        r"\b(?:expand|shorten|condense)\b",
    )),
    ActionRule("metadata", _rx(
        r"\b(?:update|set|change|modify|add)\s+.*\b(?:property|properties|metadata|frontmatter|tag|tags)\b",
        r"\b(?:set|update|change|add)\s+.*\b(?:title|author|date|status)\b",
        r"\b(?:add|remove|update)\s+.*\btags?\b",
        r"\bset\s+.*\bproperty\b",
    )),
)

# Consulted only when no rule above matched.
FALLBACK_RULES: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("add", re.compile(r"\b(?:add|create|write|insert|include|generate.*section)\b", re.I)),
    ("grammar", re.compile(r"\b(?:fix|correct|grammar|spell|proofread|polish)\b", re.I)),
    ("delete", re.compile(r"\b(?:delete|remove|eliminate)\b", re.I)),
    ("rewrite", re.compile(r"\b(?:rewrite|rephrase|restructure|generate.*new)\b", re.I)),
    ("metadata", re.compile(
        r"\b(?:update|set|change|modify|add).*\b(?:property|properties|metadata|frontmatter|tag|tags|title|author|date|status)\b",
        re.I)),
)

DEFAULT_ACTION = "edit"

# Explicit target phrases, checked before any location or default.
EXPLICIT_TARGETS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("selection", re.compile(r"\b(?:selected|highlighted|chosen)\s+(?:text|content|part|lines?)\b", re.I)),
    ("document", re.compile(r"\b(?:entire|whole|full)\s+(?:document|file|note|text)\b", re.I)),
)
PARAGRAPH_TARGET = re.compile(r"\b(?:this|current|the\s+current)\s+paragraph\b", re.I)
END_TARGET = re.compile(r"\b(?:end|bottom|conclusion)\b", re.I)

ACTION_DEFAULT_TARGETS: dict[str, tuple[str, str]] = {
    # action: (without selection, with selection)
    "add": ("end", "end"),
    "edit": ("cursor", "selection"),
    "delete": ("cursor", "selection"),
    "grammar": ("document", "selection"),
    "rewrite": ("end", "end"),
    "metadata": ("document", "document"),
}
SELECTION_OVERRIDE_ACTIONS = frozenset({"edit", "grammar", "delete"})

_OPEN_QUOTE = "[\"“'‘]"
_CLOSE_QUOTE = "[\"”'’]"
_QUOTED = rf"{_OPEN_QUOTE}([^\"“”‘’']+){_CLOSE_QUOTE}"
_PREPOSITION = r"(?:after|before|under|below|above|in|into|within|to|from|inside)"
_PART = r"(?:section|heading|header|part|chapter)"
_NOT_A_NAME = r"(?!(?:end|this|that|current|next|previous|same|following|last|first|new|whole|entire)\b)"

LOCATION_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(rf"\b{_PREPOSITION}\s+the\s+{_QUOTED}\s+{_PART}\b", re.I),
    re.compile(rf"\bthe\s+{_QUOTED}\s+{_PART}\b", re.I),
    re.compile(rf"\b{_PART}\s+{_QUOTED}", re.I),
    re.compile(rf"\b(?:after|before|under|below|above|in|into|within|inside)\s+{_QUOTED}", re.I),
    re.compile(rf"\b{_PREPOSITION}\s+the\s+{_NOT_A_NAME}([\w][\w :/&-]*?)\s+{_PART}\b", re.I),
    re.compile(rf"\b{_PREPOSITION}\s+(?:the\s+)?([\w][\w &-]*?(?:\s*(?:/|::)\s*[\w][\w &-]*?)+)(?=\s*(?:$|[.,;!?]|{_PART}\b))", re.I),
)

STYLE_KEYWORDS: tuple[str, ...] = (
    "formal", "informal", "casual", "professional", "academic", "technical",
    "simple", "complex", "detailed", "brief", "concise", "verbose",
    "friendly", "serious", "humorous", "creative", "analytical",
)

CONTEXT_CUES: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\b(?:short|shorter|brief|concise)\b", re.I), "Keep it brief."),
    (re.compile(r"\b(?:long|longer|detailed|comprehensive)\b", re.I), "Provide detailed content."),
    (re.compile(r"\b(?:bullet|bullets|bulleted|list|lists)\b", re.I), "Use bullet points or lists."),
    (re.compile(r"\bexamples?\b", re.I), "Include examples."),
    (re.compile(r"\b(?:number|numbered)\b", re.I), "Use numbered lists."),
)

COMMAND_SEPARATORS = re.compile(r"\b(?:and then|after that|additionally|then|also|next)\b", re.I)

# Words that make a message look like an edit request rather than a chat turn.
COMMAND_WORDS: tuple[str, ...] = (
    "add", "create", "write", "insert", "include", "generate",
    "edit", "modify", "change", "update", "revise", "improve", "enhance",
    "delete", "remove", "eliminate", "cut", "erase",
    "fix", "correct", "grammar", "spell", "proofread", "polish",
    "rewrite", "reword", "rephrase", "restructure", "reorganize",
)

ACTION_DESCRIPTIONS = {
    "add": "Add new content",
    "edit": "Edit existing content",
    "delete": "Remove content",
    "grammar": "Fix grammar and spelling",
    "rewrite": "Generate new content",
    "metadata": "Update document metadata",
}

TARGET_DESCRIPTIONS = {
    "selection": " in selected text",
    "cursor": " at cursor position",
    "document": " in entire document",
    "end": " at end of document",
    "section": " in section",
    "paragraph": " in current paragraph",
}


def normalize_location(name: str) -> str:
    """Collapse ``A / B`` slash notation into the ``A::B`` path form."""
    name = name.strip().strip("\"'“”‘’").strip()
    if "/" in name and "://" not in name:
        name = "::".join(part.strip() for part in name.split("/") if part.strip())
    elif "::" in name:
        name = "::".join(part.strip() for part in name.split("::") if part.strip())
    return name


def is_likely_command(message: str) -> bool:
    lowered = message.lower()
    return any(re.search(rf"\b{word}\b", lowered) for word in COMMAND_WORDS)


class CommandParser:
    """Converts natural language input into structured EditCommand objects."""

    def parse_command(self, text: str, has_selection: bool = False) -> EditCommand:
        """Parse one instruction. Never raises; unknown input becomes an edit."""
        normalized = (text or "").strip().lower()

        action = self.detect_action(normalized)
        location = self.extract_location(text or "")
        target = self.detect_target(normalized, has_selection, action, location)
        context = self.extract_context(text or "")

        return EditCommand(
            action=action,
            target=target,
            instruction=text or "",
            location=location if target == "section" else None,
            context=context or None,
        )

    def detect_action(self, text: str) -> str:
        for rule in ACTION_RULES:
            for pattern in rule.patterns:
                if pattern.search(text):
                    return rule.action

        for action, pattern in FALLBACK_RULES:
            if pattern.search(text):
                return action

        return DEFAULT_ACTION

    def detect_target(self, text: str, has_selection: bool, action: str, location: str | None = None) -> str:
        # Frontmatter lives at document level whatever the phrasing.
        if action == "metadata":
            return "document"

        for target, pattern in EXPLICIT_TARGETS:
            if pattern.search(text):
                return target

        if location:
            return "section"
        if PARAGRAPH_TARGET.search(text):
            return "paragraph"
        if END_TARGET.search(text):
            return "end"

        if has_selection and action in SELECTION_OVERRIDE_ACTIONS:
            return "selection"

        without, with_selection = ACTION_DEFAULT_TARGETS.get(action, ("cursor", "cursor"))
        return with_selection if has_selection else without

    def extract_location(self, text: str) -> str | None:
        """Return the first section name mentioned in the text, if any."""
        for pattern in LOCATION_PATTERNS:
            match = pattern.search(text)
            if match:
                location = normalize_location(match.group(1))
                if location:
                    return location
        return None

    def extract_context(self, text: str) -> str:
        """Collect style, length and structure directives from the instruction."""
        lowered = text.lower()
        parts = []

        styles = [s for s in STYLE_KEYWORDS if re.search(rf"\b{s}\b", lowered)]
        if styles:
            parts.append(f"Style: {', '.join(styles)}.")

        for pattern, directive in CONTEXT_CUES:
            if pattern.search(lowered):
                parts.append(directive)

        return " ".join(parts)

    def validate_command(self, command: EditCommand, has_selection: bool) -> ValidationResult:
        if command.target == "selection" and not has_selection:
            return ValidationResult(
                valid=False,
                error="This command requires text to be selected first",
                code="selection-required",
            )

        if command.action == "add" and command.target == "selection":
            return ValidationResult(
                valid=False,
                error='Cannot add content to a selection. Use "edit" to modify selected text',
                code="invalid-combination",
            )

        return ValidationResult(valid=True)

    def parse_multiple_commands(self, text: str, has_selection: bool = False) -> list[EditCommand]:
        """Split on sequencing words ("then", "also", ...) and parse each part."""
        parts = COMMAND_SEPARATORS.split(text)
        if len(parts) == 1:
            return [self.parse_command(text, has_selection)]

        commands = [self.parse_command(part.strip(), has_selection) for part in parts if part.strip()]
        logger.debug(f"Split input into {len(commands)} command(s)")
        return commands

    def get_suggestions(self, has_selection: bool) -> list[str]:
        if has_selection:
            return [
                "Make this more concise",
                "Fix grammar in this text",
                "Make this more professional",
                "Expand on this point",
            ]
        return [
            "Add content at cursor",
            "Fix grammar in this document",
            "Add conclusion at end",
            "Create a summary",
        ]

    def describe_command(self, command: EditCommand) -> str:
        description = ACTION_DESCRIPTIONS.get(command.action, "")
        if command.target == "section" and command.location:
            return f'{description} in the "{command.location}" section'
        return description + TARGET_DESCRIPTIONS.get(command.target, "")
