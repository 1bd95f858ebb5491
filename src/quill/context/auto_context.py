"""Automatic context from a note's outgoing links and backlinks.

Each referenced note is sized with :func:`estimate_tokens` and placed in one of
three tiers:

* below ``small_doc_threshold``: full content
* below ``medium_doc_threshold``: full content, flagged with ``size_warning``
* otherwise: a digest (requested section, or header, properties, outline and
  as much leading prose as fits ``large_doc_max_tokens``)

Notes shorter than ``min_content_length`` characters are skipped.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any

from ..models import AutoContextDocument
from ..vault.index import Vault
from ..vault.parser import extract_headings, split_frontmatter
from ..vault.sections import find_section
from ..vault.templates import render_properties
from .tokens import estimate_tokens

logger = logging.getLogger(__name__)

LINK_SECTION_RE = re.compile(r"^([^#]+)(?:#(.+))?$")
OUTLINE_HEADING_LIMIT = 20
MIN_INTRO_TOKENS = 100


@dataclass
class AutoContextOptions:
    include_outgoing: bool = True
    include_backlinks: bool = False
    small_doc_threshold: int = 2000
    medium_doc_threshold: int = 8000
    large_doc_max_tokens: int = 2000
    min_content_length: int = 10

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> "AutoContextOptions":
        values = config.get("auto_context", {})
        return cls(**{k: v for k, v in values.items() if k in cls.__dataclass_fields__})


@dataclass
class TruncationResult:
    content: str
    token_count: int
    full_token_count: int
    included_sections: list[str] = field(default_factory=list)


def strip_frontmatter_lines(lines: list[str]) -> list[str]:
    if lines and lines[0] == "---":
        for i in range(1, len(lines)):
            if lines[i] == "---":
                return lines[i + 1:]
    return lines


def truncate_document(
    name: str,
    content: str,
    max_tokens: int,
    section: str | None = None,
) -> TruncationResult:
    """Digest a large note down to roughly ``max_tokens``."""
    full_token_count = estimate_tokens(content)
    headings = extract_headings(content)

    if section and headings:
        match = find_section(content, headings, section)
        if match:
            return TruncationResult(
                content=match.text,
                token_count=estimate_tokens(match.text),
                full_token_count=full_token_count,
                included_sections=[section],
            )

    parts = [f"## Document: {name}"]
    included: list[str] = []
    current_tokens = estimate_tokens(parts[0])

    frontmatter, _ = split_frontmatter(content)
    if frontmatter:
        fm_content = "\n".join(["\n### Properties/Metadata:", *render_properties(frontmatter)])
        parts.append(fm_content)
        current_tokens += estimate_tokens(fm_content)

    if headings:
        outline = "\n### Document Structure:\n" + "\n".join(
            f"{'#' * h.level} {h.text}" for h in headings[:OUTLINE_HEADING_LIMIT]
        )
        parts.append(outline)
        current_tokens += estimate_tokens(outline)
        included.append("Document Structure")

    remaining = max_tokens - current_tokens
    if remaining > MIN_INTRO_TOKENS:
        intro_lines = []
        intro_tokens = 0
        # Running total; the accumulated text is never re-measured.
        for line in strip_frontmatter_lines(content.split("\n")):
            if intro_tokens >= remaining:
                break
            intro_lines.append(line)
            intro_tokens += estimate_tokens(line + "\n")

        intro = "\n".join(intro_lines).strip()
        if intro:
            parts.append("\n### Introduction:\n" + intro)
            included.append("Introduction")

    final = "\n".join(parts)
    return TruncationResult(
        content=final,
        token_count=estimate_tokens(final),
        full_token_count=full_token_count,
        included_sections=included,
    )


class AutoContextResolver:
    """Builds the list of linked notes to include alongside the active note."""

    def __init__(self, vault: Vault, options: AutoContextOptions | None = None):
        self.vault = vault
        self.options = options or AutoContextOptions()

    def resolve_outgoing_links(self, path: str) -> list[tuple[str, str | None]]:
        """(note path, section) for each distinct resolvable outgoing link."""
        results: list[tuple[str, str | None]] = []
        seen: set[str] = set()

        for link in self.vault.get_links(path):
            match = LINK_SECTION_RE.match(link)
            if not match:
                continue
            link_path, section = match.group(1), match.group(2)
            resolved = self.vault.resolve_link(link_path, path)
            if resolved and resolved != path and resolved not in seen:
                seen.add(resolved)
                results.append((resolved, section.strip() if section else None))

        return results

    def resolve_backlinks(self, path: str) -> list[str]:
        return self.vault.backlinks(path)

    def build_auto_context(self, path: str, existing_paths: list[str] | None = None) -> list[AutoContextDocument]:
        """Linked notes first, then backlinks; paths already present are never re-added."""
        results: list[AutoContextDocument] = []
        seen = set(existing_paths or [])

        if self.options.include_outgoing:
            for linked, section in self.resolve_outgoing_links(path):
                if linked in seen:
                    continue
                doc = self.create_document(linked, "linked", section)
                if doc:
                    results.append(doc)
                    seen.add(linked)

        if self.options.include_backlinks:
            for source in self.resolve_backlinks(path):
                if source in seen:
                    continue
                doc = self.create_document(source, "backlink")
                if doc:
                    results.append(doc)
                    seen.add(source)

        return results

    def create_document(self, path: str, source: str, section: str | None = None) -> AutoContextDocument | None:
        try:
            content = self.vault.read(path)
        except OSError as e:
            logger.debug(f"Skipping unreadable context note {path}: {e}")
            return None

        if len(content) < self.options.min_content_length:
            return None

        full_tokens = estimate_tokens(content)
        if full_tokens < self.options.medium_doc_threshold:
            return AutoContextDocument(
                path=path,
                source=source,
                section=section,
                token_count=full_tokens,
                full_token_count=full_tokens,
                is_truncated=False,
                content=content,
                size_warning=full_tokens >= self.options.small_doc_threshold,
            )

        truncated = truncate_document(
            self.vault.basename(path), content, self.options.large_doc_max_tokens, section
        )
        return AutoContextDocument(
            path=path,
            source=source,
            section=section,
            token_count=truncated.token_count,
            full_token_count=truncated.full_token_count,
            is_truncated=True,
            included_sections=truncated.included_sections,
            content=truncated.content,
        )

    def is_valid_link(self, link: str, source_path: str) -> bool:
        return self.vault.resolve_link(link, source_path) is not None


def render_auto_context(documents: list[AutoContextDocument], vault: Vault) -> str:
    """Join auto-context documents into one prompt block."""
    blocks = []
    for doc in documents:
        label = f"{vault.basename(doc.path)}#{doc.section}" if doc.section else vault.basename(doc.path)
        header = f"## {label} ({doc.source}"
        header += ", truncated)" if doc.is_truncated else ")"
        body = doc.content if doc.is_truncated else doc.content.strip()
        blocks.append(f"{header}\n{body}")
    return "\n\n---\n\n".join(blocks)
