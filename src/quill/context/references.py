"""Inline ``[[note]]`` references in chat messages.

A message such as ``compare with [[Roadmap#status]]`` attaches ``Roadmap.md``
(only its ``status`` property) to the conversation for the current note. Once
attached, a note stays in context for every later turn until it is removed or
deleted from the vault.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any

from ..conversation.store import ConversationStore
from ..models import ContextDocumentRef
from ..vault.index import Vault
from ..vault.parser import split_frontmatter
from ..vault.templates import format_property_value, render_properties
from .auto_context import strip_frontmatter_lines
from .tokens import estimate_tokens

logger = logging.getLogger(__name__)

REFERENCE_RE = re.compile(r"(\+)?\[\[([^\]]+?)(?:#([^\]]+?))?\]\]")
WHITESPACE_RE = re.compile(r"\s{2,}")

SEPARATOR = "\n\n---\n\n"
TRUNCATION_MARKER = "\n[... truncated for brevity ...]"


@dataclass
class DocumentReference:
    path: str
    raw: str
    property: str | None = None


@dataclass
class ParsedMessage:
    cleaned_message: str
    references: list[DocumentReference] = field(default_factory=list)


@dataclass
class MultiDocResult:
    """Context assembled for one chat turn."""
    cleaned_message: str
    documents: list[ContextDocumentRef]
    context: str
    token_count: int
    is_near_limit: bool
    reference_context: str = ""


class MultiDocContext:
    """Parses inline references and renders attached notes for prompts."""

    def __init__(
        self,
        vault: Vault,
        store: ConversationStore,
        token_limit: int = 8000,
        warning_threshold: float = 0.8,
        current_file_lines: int = 100,
        reference_lines: int = 50,
    ):
        self.vault = vault
        self.store = store
        self.token_limit = token_limit
        self.warning_threshold = warning_threshold
        self.current_file_lines = current_file_lines
        self.reference_lines = reference_lines

    @classmethod
    def from_config(cls, vault: Vault, store: ConversationStore, config: dict[str, Any]) -> "MultiDocContext":
        values = config.get("multi_doc", {})
        return cls(
            vault,
            store,
            token_limit=values.get("token_limit", 8000),
            warning_threshold=values.get("warning_threshold", 0.8),
            current_file_lines=values.get("current_file_max_lines", 100),
            reference_lines=values.get("reference_max_lines", 50),
        )

    def parse_message(self, message: str) -> ParsedMessage:
        """Strip every reference from ``message`` and return the resolvable ones.

        References that match no note are dropped.
        """
        references = []
        for match in REFERENCE_RE.finditer(message):
            path = self.vault.find_file(match.group(2))
            if path is None:
                logger.debug(f"Unresolved reference {match.group(0)}")
                continue
            prop = match.group(3).strip() if match.group(3) else None
            references.append(DocumentReference(path=path, raw=match.group(0), property=prop))

        cleaned = REFERENCE_RE.sub(" ", message)
        cleaned = WHITESPACE_RE.sub(" ", cleaned).strip()

        return ParsedMessage(cleaned_message=cleaned, references=references)

    def build_context(self, message: str, current_path: str, persist: bool = True) -> MultiDocResult:
        """Attach any new references, prune deleted notes and render everything.

        With ``persist=False`` new references are rendered but not stored.
        """
        parsed = self.parse_message(message)
        attached = self.store.get_context_documents(current_path)
        for ref in parsed.references:
            if persist:
                self.store.add_context_document(current_path, ref.path, ref.property)
            elif not any(d.path == ref.path and d.property == ref.property for d in attached):
                attached.append(ContextDocumentRef(path=ref.path, property=ref.property))
        if persist:
            attached = self.store.get_context_documents(current_path)

        live = [doc for doc in attached if self.vault.exists(doc.path)]
        if persist and len(live) != len(attached):
            logger.info(f"Dropped {len(attached) - len(live)} missing context note(s) from {current_path}")
            self.store.set_context_documents(current_path, live)

        references = []
        for doc in live:
            rendered = self.render_reference(doc)
            if rendered:
                references.append(rendered)

        current = self.render_document(current_path, self.current_file_lines)
        context = SEPARATOR.join([current, *references] if current else references)
        token_count = estimate_tokens(context)
        return MultiDocResult(
            cleaned_message=parsed.cleaned_message,
            documents=live,
            context=context,
            token_count=token_count,
            is_near_limit=token_count > self.token_limit * self.warning_threshold,
            reference_context=SEPARATOR.join(references),
        )

    def render_document(self, path: str, max_lines: int) -> str | None:
        """Header, properties and the first ``max_lines`` body lines of a note."""
        try:
            content = self.vault.read(path)
        except OSError as e:
            logger.warning(f"Could not read {path}: {e}")
            return None

        parts = [f"## Document: {self.vault.basename(path)}"]
        frontmatter, _ = split_frontmatter(content)
        if frontmatter:
            parts.append("\n### Properties/Metadata:")
            parts.extend(render_properties(frontmatter))

        if content:
            lines = strip_frontmatter_lines(content.split("\n"))
            parts.append("\n### Content:")
            parts.append("\n".join(lines[:max_lines]))
            if len(lines) > max_lines:
                parts.append(TRUNCATION_MARKER)

        return "\n".join(parts)

    def render_reference(self, doc: ContextDocumentRef) -> str | None:
        if not doc.property:
            return self.render_document(doc.path, self.reference_lines)

        try:
            frontmatter = self.vault.get_frontmatter(doc.path)
        except OSError as e:
            logger.warning(f"Could not read {doc.path}: {e}")
            return None
        value = frontmatter.get(doc.property)
        if value is None or value == "":
            return None
        return f"## {self.vault.basename(doc.path)} - {doc.property}\n{format_property_value(value)}"

    def context_indicator(self, result: MultiDocResult) -> str:
        """Short status line, e.g. ``2 docs 41%``."""
        percentage = round(result.token_count / self.token_limit * 100)
        text = f"{len(result.documents)} docs {percentage}%"
        if result.is_near_limit:
            text += " (approaching limit)"
        return text
