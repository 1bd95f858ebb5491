"""Tests for applying completions to notes."""

import yaml

from quill.editing import apply_edit, clean_output, parse_json_object
from quill.models import DocumentContext, EditCommand
from quill.vault import extract_headings

NOTE = "# Intro\nhello\n\n## Data\nd1\n\n# Methods\nm\n"


def _doc(content=NOTE, **kwargs):
    return DocumentContext(path="Plan.md", filename="Plan", content=content, headings=extract_headings(content), **kwargs)


def test_clean_output_unwraps_fence():
    assert clean_output("```markdown\nhello\n```") == "hello"
    assert clean_output("  plain  \n") == "plain"


def test_parse_json_object_variants():
    assert parse_json_object('{"a": 1}') == {"a": 1}
    assert parse_json_object('```json\n{"a": 1}\n```') == {"a": 1}
    assert parse_json_object('Sure: {"a": 1} done') == {"a": 1}


def test_append_at_end():
    result = apply_edit(EditCommand("add", "end", "add"), _doc(), "## Summary\nAll good.")
    assert result.success
    assert result.edit_type == "append"
    assert result.content == NOTE.rstrip("\n") + "\n\n## Summary\nAll good.\n"


def test_replace_selection():
    content = "one two three\n"
    doc = _doc(content, selected_text="two", selection_start=4, selection_end=7)
    result = apply_edit(EditCommand("edit", "selection", "x"), doc, "TWO")
    assert result.content == "one TWO three\n"
    assert result.edit_type == "replace"
    assert result.applied_at == 0


def test_selection_without_offsets_fails():
    result = apply_edit(EditCommand("edit", "selection", "x"), _doc(), "TWO")
    assert not result.success
    assert result.error == "No text selected"
    assert result.content is None


def test_insert_at_cursor():
    doc = _doc("abc\ndef\n", cursor_line=1, cursor_ch=1)
    result = apply_edit(EditCommand("add", "cursor", "x"), doc, "XYZ")
    assert result.content == "abc\ndXYZef\n"
    assert result.edit_type == "insert"
    assert result.applied_at == 1


def test_section_add_goes_before_next_heading():
    command = EditCommand("add", "section", "x", location="Data")
    result = apply_edit(command, _doc(), "new line")
    assert result.content == "# Intro\nhello\n\n## Data\nd1\n\nnew line\n\n# Methods\nm\n"
    assert result.edit_type == "insert"


def test_section_edit_replaces_body_only():
    command = EditCommand("edit", "section", "x", location="Data")
    result = apply_edit(command, _doc(), "## Data\nbetter d1")
    assert result.content == "# Intro\nhello\n\n## Data\nbetter d1\n\n# Methods\nm\n"


def test_section_delete_confirmed_removes_section():
    command = EditCommand("delete", "section", "x", location="Data")
    result = apply_edit(command, _doc(), "CONFIRMED")
    assert result.content == "# Intro\nhello\n\n\n# Methods\nm\n"
    assert result.edit_type == "delete"


def test_missing_section_falls_back_to_end_for_add():
    command = EditCommand("add", "section", "x", location="Appendix")
    result = apply_edit(command, _doc(), "extra")
    assert result.success
    assert result.content.endswith("m\n\nextra\n")


def test_paragraph_replace():
    content = "first para\nstill first\n\nsecond para\n"
    result = apply_edit(EditCommand("rewrite", "paragraph", "x"), _doc(content, cursor_line=1), "rewritten")
    assert result.content == "rewritten\n\nsecond para\n"
    assert result.applied_at == 0


def test_paragraph_without_cursor_fails():
    result = apply_edit(EditCommand("rewrite", "paragraph", "x"), _doc(), "rewritten")
    assert not result.success


def test_document_replace_keeps_frontmatter():
    content = "---\nstatus: draft\n---\nold body\n"
    result = apply_edit(EditCommand("grammar", "document", "x"), _doc(content), "new body")
    assert result.content.startswith("---\nstatus: draft\n---\n")
    assert result.content.endswith("new body\n")


def test_document_delete_exact_text():
    result = apply_edit(EditCommand("delete", "document", "x"), _doc(), "hello\n")
    assert result.success
    assert "hello" not in result.content


def test_document_delete_unknown_text_fails():
    result = apply_edit(EditCommand("delete", "document", "x"), _doc(), "not there")
    assert not result.success
    assert result.edit_type == "delete"


def test_metadata_merge():
    content = "---\ntitle: Plan\nstatus: draft\n---\n# Plan\n"
    output = '{"tags": ["a", "b"], "status": null}'
    result = apply_edit(EditCommand("metadata", "document", "x"), _doc(content), output)
    assert result.success
    front, body = result.content.split("---\n")[1], result.content.split("---\n", 2)[2]
    assert yaml.safe_load(front) == {"title": "Plan", "tags": ["a", "b"]}
    assert body == "\n# Plan\n"


def test_metadata_added_to_note_without_frontmatter():
    result = apply_edit(EditCommand("metadata", "document", "x"), _doc("# Plan\n"), '{"status": "new"}')
    assert result.content == "---\nstatus: new\n---\n\n# Plan\n"


def test_metadata_requires_json():
    result = apply_edit(EditCommand("metadata", "document", "x"), _doc(), "no json here")
    assert not result.success
    assert "JSON" in result.error


def test_empty_response_fails():
    result = apply_edit(EditCommand("add", "end", "x"), _doc(), "   ")
    assert not result.success
    assert result.error == "Empty response"
