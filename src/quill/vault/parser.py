"""Markdown note parsing: frontmatter, heading outline and wikilinks."""

import logging
import re
from dataclasses import dataclass, field
from typing import Any

import yaml

from ..models import HeadingInfo

logger = logging.getLogger(__name__)

FRONTMATTER_RE = re.compile(r"^---\s*\n(.*?)\n---\s*(?:\n|$)", re.DOTALL)
HEADING_RE = re.compile(r"^(#{1,6})\s+(.+?)(?:\s+#+)?\s*$")
WIKILINK_RE = re.compile(r"!?\[\[([^\]|]+)(?:\|[^\]]+)?\]\]")


@dataclass
class ParsedNote:
    """A markdown note split into its parts."""
    content: str
    body: str
    frontmatter: dict[str, Any] = field(default_factory=dict)
    headings: list[HeadingInfo] = field(default_factory=list)
    links: list[str] = field(default_factory=list)


def split_frontmatter(text: str) -> tuple[dict[str, Any], str]:
    """Return (frontmatter, body). Unparseable YAML yields an empty dict."""
    fm_match = FRONTMATTER_RE.match(text)
    if not fm_match:
        return {}, text

    try:
        fm = yaml.safe_load(fm_match.group(1)) or {}
    except yaml.YAMLError as e:
        logger.warning(f"Ignoring malformed frontmatter: {e}")
        fm = {}
    if not isinstance(fm, dict):
        fm = {}
    return fm, text[fm_match.end():]


def extract_headings(content: str) -> list[HeadingInfo]:
    """Build the heading outline with line numbers and character offsets."""
    headings: list[HeadingInfo] = []
    offset = 0
    in_fence = False

    for index, line in enumerate(content.split("\n")):
        if line.lstrip().startswith("```"):
            in_fence = not in_fence
        elif not in_fence:
            match = HEADING_RE.match(line)
            if match:
                headings.append(HeadingInfo(
                    text=match.group(2).strip(),
                    level=len(match.group(1)),
                    line=index,
                    start=offset,
                    end=offset + len(line),
                ))
        offset += len(line) + 1

    return headings


def extract_links(text: str) -> list[str]:
    """Raw wikilink targets in document order, including any ``#section`` suffix."""
    return [m.group(1).strip() for m in WIKILINK_RE.finditer(text)]


def parse_note(text: str) -> ParsedNote:
    frontmatter, body = split_frontmatter(text)
    return ParsedNote(
        content=text,
        body=body,
        frontmatter=frontmatter,
        headings=extract_headings(text),
        links=extract_links(text),
    )
