"""Per-request document snapshots built from the live note."""

from pathlib import PurePosixPath

from ..models import DocumentContext, SurroundingLines
from .index import Vault
from .parser import extract_headings

SURROUNDING_LINE_COUNT = 5


def get_surrounding_lines(content: str, line: int, size: int = SURROUNDING_LINE_COUNT) -> SurroundingLines:
    """Up to ``size`` lines before and after ``line`` (the line itself excluded)."""
    lines = content.split("\n")
    start = max(0, line - size)
    end = min(len(lines) - 1, line + size)
    return SurroundingLines(before=lines[start:line], after=lines[line + 1:end + 1])


def build_document_context(
    vault: Vault,
    path: str,
    selection: str | None = None,
    cursor_line: int | None = None,
    cursor_ch: int = 0,
    content: str | None = None,
) -> DocumentContext:
    """Snapshot a note for one request.

    ``selection`` is the selected text; its offsets are located in the content
    (first occurrence at or after the cursor line, else the first occurrence).
    ``content`` overrides the on-disk text when the editor buffer is unsaved.
    """
    text = vault.read(path) if content is None else content

    selection_start = selection_end = None
    if selection:
        search_from = _line_offset(text, cursor_line) if cursor_line is not None else 0
        index = text.find(selection, search_from)
        if index == -1:
            index = text.find(selection)
        if index != -1:
            selection_start, selection_end = index, index + len(selection)

    return DocumentContext(
        path=path,
        filename=PurePosixPath(path).stem,
        content=text,
        headings=extract_headings(text),
        selected_text=selection or None,
        selection_start=selection_start,
        selection_end=selection_end,
        cursor_line=cursor_line,
        cursor_ch=cursor_ch,
        surrounding_lines=get_surrounding_lines(text, cursor_line) if cursor_line is not None else None,
    )


def _line_offset(text: str, line: int) -> int:
    lines = text.split("\n")
    line = max(0, min(line, len(lines)))
    return sum(len(l) + 1 for l in lines[:line])
