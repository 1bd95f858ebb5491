"""Section lookup by heading name or ``Parent::Child`` path.

Matching policy:

* A name containing ``::`` must equal a heading's full ancestor path or its
  ``Parent::Heading`` pair (case-insensitive), e.g. ``Methods::Data`` for a
  ``## Data`` under ``# Methods``.
* Any other name matches the first heading whose text contains it
  (case-insensitive substring). The first declared heading wins, not the closest.

A section runs from its heading line up to, not including, the next heading of
the same or a shallower level.
"""

from dataclasses import dataclass

from ..models import HeadingInfo

PATH_SEPARATOR = "::"


@dataclass
class SectionMatch:
    heading: HeadingInfo
    path: str
    text: str
    start_line: int
    end_line: int  # exclusive


def heading_paths(headings: list[HeadingInfo]) -> list[str]:
    """Full ``A::B::C`` path for every heading, parallel to ``headings``."""
    paths: list[str] = []
    stack: list[tuple[int, str]] = []
    for heading in headings:
        while stack and stack[-1][0] >= heading.level:
            stack.pop()
        stack.append((heading.level, heading.text))
        paths.append(PATH_SEPARATOR.join(text for _, text in stack))
    return paths


def parent_paths(headings: list[HeadingInfo]) -> list[str]:
    """``Parent::Heading`` for every heading (just the text at top level)."""
    pairs: list[str] = []
    for i, heading in enumerate(headings):
        parent = next(
            (h for h in reversed(headings[:i]) if h.level < heading.level),
            None,
        )
        pairs.append(f"{parent.text}{PATH_SEPARATOR}{heading.text}" if parent else heading.text)
    return pairs


def _section_end(headings: list[HeadingInfo], index: int, line_count: int) -> int:
    target = headings[index]
    for heading in headings[index + 1:]:
        if heading.level <= target.level:
            return heading.line
    return line_count


def find_section(content: str, headings: list[HeadingInfo], name: str) -> SectionMatch | None:
    """Locate a section; ``None`` when nothing matches."""
    wanted = (name or "").strip().lower()
    if not wanted or not headings:
        return None

    paths = heading_paths(headings)
    index = None
    if PATH_SEPARATOR in wanted:
        wanted = PATH_SEPARATOR.join(part.strip() for part in wanted.split(PATH_SEPARATOR))
        pairs = parent_paths(headings)
        for i, path in enumerate(paths):
            if wanted in (path.lower(), pairs[i].lower()):
                index = i
                break
    else:
        for i, heading in enumerate(headings):
            if wanted in heading.text.lower():
                index = i
                break

    if index is None:
        return None

    lines = content.split("\n")
    start = headings[index].line
    end = _section_end(headings, index, len(lines))
    return SectionMatch(
        heading=headings[index],
        path=paths[index],
        text="\n".join(lines[start:end]),
        start_line=start,
        end_line=end,
    )


def list_section_paths(headings: list[HeadingInfo]) -> list[str]:
    """Every addressable section path, for "did you mean" listings."""
    return heading_paths(headings)
