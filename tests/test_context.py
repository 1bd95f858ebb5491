"""Tests for linked-note context and inline references."""

import tempfile
from pathlib import Path

from quill.context import AutoContextOptions, AutoContextResolver, MultiDocContext, render_auto_context
from quill.context.auto_context import truncate_document
from quill.conversation import ConversationStore, MemoryDataStore
from quill.vault import Vault


def _write(root, name, text):
    path = Path(root) / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return path


def _linked_vault(root):
    _write(root, "A.md", "# A\nSee [[B]] and [[C#Part]] and [[Missing]].\n")
    _write(root, "B.md", "Short note about B with enough text.")
    _write(root, "C.md", "# C\n## Part\npart text\n## Other\nother\n")
    _write(root, "D.md", "Links back to [[A]] here.\n")
    return Vault(root)


def _big_note():
    body = ("word " * 20 + "\n") * 400
    return "---\nstatus: draft\n---\n# Big\n## Part\nsection text\n" + body


def _store():
    return ConversationStore(MemoryDataStore(), cleanup_interval=None)


def test_outgoing_links():
    with tempfile.TemporaryDirectory() as tmpdir:
        resolver = AutoContextResolver(_linked_vault(tmpdir))
        docs = resolver.build_auto_context("A.md")
        assert [(d.path, d.source, d.section) for d in docs] == [
            ("B.md", "linked", None),
            ("C.md", "linked", "Part"),
        ]
        assert not docs[0].is_truncated
        assert not docs[0].size_warning
        assert docs[0].content == "Short note about B with enough text."


def test_backlinks_and_existing_paths():
    with tempfile.TemporaryDirectory() as tmpdir:
        options = AutoContextOptions(include_backlinks=True)
        resolver = AutoContextResolver(_linked_vault(tmpdir), options)
        docs = resolver.build_auto_context("A.md", existing_paths=["B.md"])
        assert [(d.path, d.source) for d in docs] == [("C.md", "linked"), ("D.md", "backlink")]


def test_short_notes_skipped():
    with tempfile.TemporaryDirectory() as tmpdir:
        _write(tmpdir, "F.md", "See [[E]]\n")
        _write(tmpdir, "E.md", "tiny")
        resolver = AutoContextResolver(Vault(tmpdir))
        assert resolver.build_auto_context("F.md") == []
        assert resolver.is_valid_link("E", "F.md")
        assert not resolver.is_valid_link("Nope", "F.md")


def test_large_note_is_truncated():
    with tempfile.TemporaryDirectory() as tmpdir:
        _write(tmpdir, "F.md", "See [[Big]]\n")
        _write(tmpdir, "Big.md", _big_note())
        doc = AutoContextResolver(Vault(tmpdir)).create_document("Big.md", "linked")
        assert doc.is_truncated
        assert doc.token_count < doc.full_token_count
        assert doc.included_sections == ["Document Structure", "Introduction"]
        assert doc.content.startswith("## Document: Big")
        assert "- status: draft" in doc.content
        assert "### Document Structure:\n# Big\n## Part" in doc.content


def test_truncate_to_requested_section():
    result = truncate_document("Big", _big_note(), 2000, section="Part")
    assert result.included_sections == ["Part"]
    assert result.content.startswith("## Part\nsection text")


def test_medium_note_gets_size_warning():
    with tempfile.TemporaryDirectory() as tmpdir:
        _write(tmpdir, "M.md", "x" * 10000)
        doc = AutoContextResolver(Vault(tmpdir)).create_document("M.md", "manual")
        assert not doc.is_truncated
        assert doc.size_warning
        assert doc.token_count == 2500


def test_render_auto_context():
    with tempfile.TemporaryDirectory() as tmpdir:
        vault = _linked_vault(tmpdir)
        docs = AutoContextResolver(vault).build_auto_context("A.md")
        rendered = render_auto_context(docs, vault)
        assert rendered.startswith("## B (linked)\nShort note")
        assert "\n\n---\n\n## C#Part (linked)\n" in rendered


def test_parse_message_strips_all_references():
    with tempfile.TemporaryDirectory() as tmpdir:
        handler = MultiDocContext(_linked_vault(tmpdir), _store())
        parsed = handler.parse_message("compare with [[B]] and [[C#status]]  and [[Nowhere]] please")
        assert [(r.path, r.property) for r in parsed.references] == [("B.md", None), ("C.md", "status")]
        assert parsed.cleaned_message == "compare with and and please"


def test_build_context_persists_references():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = _store()
        handler = MultiDocContext(_linked_vault(tmpdir), store)

        result = handler.build_context("use [[B]]", "A.md")
        assert result.cleaned_message == "use"
        assert [d.path for d in result.documents] == ["B.md"]
        assert result.context.startswith("## Document: A\n\n### Content:\n# A")
        assert "\n\n---\n\n## Document: B" in result.context
        assert result.reference_context.startswith("## Document: B")
        assert not result.is_near_limit

        # references stick for later turns
        again = handler.build_context("anything else?", "A.md")
        assert [d.path for d in again.documents] == ["B.md"]
        assert [d.path for d in store.get_context_documents("A.md")] == ["B.md"]


def test_build_context_drops_deleted_notes():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = _store()
        handler = MultiDocContext(_linked_vault(tmpdir), store)
        handler.build_context("use [[B]] and [[C]]", "A.md")
        (Path(tmpdir) / "B.md").unlink()

        result = handler.build_context("next", "A.md")
        assert [d.path for d in result.documents] == ["C.md"]
        assert [d.path for d in store.get_context_documents("A.md")] == ["C.md"]


def test_build_context_without_persisting():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = _store()
        handler = MultiDocContext(_linked_vault(tmpdir), store)
        result = handler.build_context("use [[B]]", "A.md", persist=False)
        assert [d.path for d in result.documents] == ["B.md"]
        assert store.get_context_documents("A.md") == []


def test_property_reference():
    with tempfile.TemporaryDirectory() as tmpdir:
        vault = _linked_vault(tmpdir)
        _write(tmpdir, "Spec.md", "---\nstatus: approved\n---\nbody\n")
        handler = MultiDocContext(vault, _store())
        result = handler.build_context("check [[Spec#status]]", "A.md")
        assert result.reference_context == "## Spec - status\napproved"


def test_near_limit_indicator():
    with tempfile.TemporaryDirectory() as tmpdir:
        vault = _linked_vault(tmpdir)
        handler = MultiDocContext(vault, _store(), token_limit=20)
        result = handler.build_context("hi", "A.md")
        assert result.is_near_limit
        assert handler.context_indicator(result).startswith("0 docs ")
        assert handler.context_indicator(result).endswith("(approaching limit)")
