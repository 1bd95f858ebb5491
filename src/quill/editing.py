"""Apply a completion to a note.

:func:`apply_edit` never touches the vault. It returns an :class:`EditResult`
whose ``content`` is the complete new text of the note, leaving the write to
the caller.
"""

import json
import logging
import re
from typing import Any

from .models import DocumentContext, EditCommand, EditResult
from .vault.parser import split_frontmatter
from .vault.sections import SectionMatch, find_section
from .vault.templates import render_frontmatter

logger = logging.getLogger(__name__)

CONFIRMED = "CONFIRMED"
FENCE_RE = re.compile(r"^```[\w-]*\s*\n(.*?)\n?\s*```$", re.DOTALL)


class EditError(Exception):
    """The completion could not be applied to the document."""


def clean_output(text: str) -> str:
    """Trim the completion and unwrap a single enclosing code fence."""
    text = text.strip()
    match = FENCE_RE.match(text)
    if match:
        text = match.group(1).strip()
    return text


def parse_json_object(text: str) -> dict[str, Any]:
    """Extract a JSON object from a completion, handling markdown code blocks."""
    text = text.strip()
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        data = None

    if data is None:
        match = re.search(r"```(?:json)?\s*\n?(.*?)\n?\s*```", text, re.DOTALL)
        if match:
            try:
                data = json.loads(match.group(1).strip())
            except json.JSONDecodeError:
                pass

    if data is None:
        match = re.search(r"\{.*\}", text, re.DOTALL)
        if match:
            try:
                data = json.loads(match.group(0))
            except json.JSONDecodeError:
                pass

    if not isinstance(data, dict):
        raise EditError("Response did not contain a JSON object of properties")
    return data


def apply_edit(command: EditCommand, document: DocumentContext, output: str) -> EditResult:
    """Merge ``output`` into ``document`` the way ``command`` asks."""
    try:
        if command.action == "metadata":
            return _apply_metadata(document, output)

        text = clean_output(output)
        if not text:
            raise EditError("Empty response")

        target = command.target
        if target == "section":
            section = find_section(document.content, document.headings, command.location or "")
            if section:
                return _apply_section(command, document, section, text)
            logger.info(f"Section {command.location!r} not found, editing at document level")
            target = "end" if command.action == "add" else "document"

        if target == "selection":
            return _apply_selection(command, document, text)
        if target == "cursor":
            return _apply_cursor(command, document, text)
        if target == "paragraph":
            return _apply_paragraph(command, document, text)
        if target == "end":
            return _append(document.content, text)
        return _apply_document(command, document, text)
    except EditError as e:
        return EditResult(success=False, edit_type=_edit_type(command), error=str(e))


def _edit_type(command: EditCommand) -> str:
    if command.action == "delete":
        return "delete"
    if command.action == "add":
        return "append" if command.target == "end" else "insert"
    return "replace"


def _is_confirmation(text: str) -> bool:
    return text.strip().strip(".!").upper() == CONFIRMED


def _line_at(content: str, offset: int) -> int:
    return content.count("\n", 0, offset)


def _append(content: str, text: str) -> EditResult:
    base = content.rstrip("\n")
    new_content = f"{base}\n\n{text}\n" if base else f"{text}\n"
    return EditResult(
        success=True,
        edit_type="append",
        content=new_content,
        applied_at=base.count("\n") + 2 if base else 0,
    )


def _remove_text(region: str, text: str) -> str:
    """``region`` with ``text`` removed, or the empty string when confirmed."""
    if _is_confirmation(text):
        return ""
    if text not in region:
        raise EditError("Could not locate the text to delete")
    return region.replace(text, "", 1)


def _apply_selection(command: EditCommand, document: DocumentContext, text: str) -> EditResult:
    start, end = document.selection_start, document.selection_end
    if start is None or end is None:
        raise EditError("No text selected")

    content = document.content
    if command.action == "delete":
        replacement = _remove_text(content[start:end], text)
        edit_type = "delete"
    else:
        replacement = text
        edit_type = "replace"

    return EditResult(
        success=True,
        edit_type=edit_type,
        content=content[:start] + replacement + content[end:],
        applied_at=_line_at(content, start),
    )


def _apply_cursor(command: EditCommand, document: DocumentContext, text: str) -> EditResult:
    if document.cursor_line is None:
        return _append(document.content, text)
    if command.action in ("edit", "grammar", "rewrite", "delete"):
        return _apply_paragraph(command, document, text)

    lines = document.content.split("\n")
    line = min(max(document.cursor_line, 0), len(lines) - 1)
    ch = min(max(document.cursor_ch, 0), len(lines[line]))
    lines[line] = lines[line][:ch] + text + lines[line][ch:]
    return EditResult(success=True, edit_type="insert", content="\n".join(lines), applied_at=line)


def _paragraph_bounds(lines: list[str], line: int) -> tuple[int, int]:
    """Inclusive start and exclusive end of the blank-line delimited block around ``line``."""
    start = line
    while start > 0 and lines[start - 1].strip():
        start -= 1
    end = line
    while end < len(lines) and lines[end].strip():
        end += 1
    return start, end


def _apply_paragraph(command: EditCommand, document: DocumentContext, text: str) -> EditResult:
    if document.cursor_line is None:
        raise EditError("No cursor position for paragraph edit")

    lines = document.content.split("\n")
    line = min(max(document.cursor_line, 0), len(lines) - 1)

    if not lines[line].strip():
        if command.action == "add":
            lines[line:line + 1] = text.split("\n")
            return EditResult(success=True, edit_type="insert", content="\n".join(lines), applied_at=line)
        raise EditError("Cursor is not inside a paragraph")

    start, end = _paragraph_bounds(lines, line)
    paragraph = "\n".join(lines[start:end])

    if command.action == "add":
        lines[end:end] = ["", *text.split("\n")]
        return EditResult(success=True, edit_type="insert", content="\n".join(lines), applied_at=end + 1)

    if command.action == "delete":
        remaining = _remove_text(paragraph, text)
        lines[start:end] = remaining.split("\n") if remaining.strip() else []
        return EditResult(success=True, edit_type="delete", content="\n".join(lines), applied_at=start)

    lines[start:end] = text.split("\n")
    return EditResult(success=True, edit_type="replace", content="\n".join(lines), applied_at=start)


def _strip_heading(text: str, heading_line: str) -> str:
    first, _, rest = text.partition("\n")
    if first.strip() == heading_line.strip():
        return rest.strip("\n")
    return text


def _apply_section(command: EditCommand, document: DocumentContext, section: SectionMatch, text: str) -> EditResult:
    lines = document.content.split("\n")
    heading_line = lines[section.start_line]
    body_start = section.start_line + 1
    body_end = section.end_line
    # Keep the blank lines that separate this section from the next heading.
    while body_end > body_start and not lines[body_end - 1].strip():
        body_end -= 1

    if command.action == "add":
        insert = ([""] if body_end > body_start else []) + text.split("\n")
        lines[body_end:body_end] = insert
        return EditResult(success=True, edit_type="insert", content="\n".join(lines), applied_at=body_end)

    body = "\n".join(lines[body_start:body_end])
    if command.action == "delete":
        remaining = _remove_text(body, text)
        if _is_confirmation(text):
            lines[section.start_line:body_end] = []
            return EditResult(success=True, edit_type="delete", content="\n".join(lines), applied_at=section.start_line)
        lines[body_start:body_end] = remaining.split("\n")
        return EditResult(success=True, edit_type="delete", content="\n".join(lines), applied_at=body_start)

    new_body = _strip_heading(text, heading_line)
    lines[body_start:body_end] = new_body.split("\n") if new_body else []
    return EditResult(success=True, edit_type="replace", content="\n".join(lines), applied_at=body_start)


def _apply_document(command: EditCommand, document: DocumentContext, text: str) -> EditResult:
    if command.action == "delete":
        if _is_confirmation(text):
            raise EditError("Refusing to delete the entire document")
        if text not in document.content:
            raise EditError("Could not locate the text to delete")
        index = document.content.index(text)
        return EditResult(
            success=True,
            edit_type="delete",
            content=document.content.replace(text, "", 1),
            applied_at=_line_at(document.content, index),
        )

    if command.action == "add":
        return _append(document.content, text)

    has_frontmatter = document.content.startswith("---")
    if has_frontmatter and not text.startswith("---"):
        # Keep properties when the model only returned the body.
        frontmatter, _ = split_frontmatter(document.content)
        if frontmatter:
            text = render_frontmatter(frontmatter) + "\n" + text
    if not text.endswith("\n"):
        text += "\n"
    return EditResult(success=True, edit_type="replace", content=text, applied_at=0)


def _apply_metadata(document: DocumentContext, output: str) -> EditResult:
    updates = parse_json_object(output)
    frontmatter, body = split_frontmatter(document.content)

    merged = dict(frontmatter)
    for key, value in updates.items():
        if value is None:
            merged.pop(key, None)
        else:
            merged[key] = value

    body = body.lstrip("\n")
    new_content = render_frontmatter(merged) + "\n" + body if merged else body
    return EditResult(success=True, edit_type="replace", content=new_content, applied_at=0)
