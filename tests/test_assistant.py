"""Tests for the end-to-end assistant turn."""

import tempfile
import threading
from pathlib import Path

from quill.assistant import EditAssistant
from quill.completion import Completer, CompletionError
from quill.conversation import ConversationStore, MemoryDataStore
from quill.vault import Vault
from quill.watcher import RenameHandler


class FakeCompleter(Completer):
    def __init__(self, reply="", error=None, on_call=None):
        self.reply = reply
        self.error = error
        self.on_call = on_call
        self.calls = []

    def complete(self, system_prompt, user_prompt, temperature, max_tokens):
        self.calls.append((system_prompt, user_prompt, temperature, max_tokens))
        if self.on_call:
            self.on_call()
        if self.error:
            raise self.error
        return self.reply


def _setup(tmpdir, completer):
    root = Path(tmpdir)
    (root / "Plan.md").write_text("# Plan\nintro\n\n## Risks\nnone yet\n")
    (root / "Ref.md").write_text("---\nstatus: approved\n---\nReference body text.\n")
    vault = Vault(root)
    store = ConversationStore(MemoryDataStore(), cleanup_interval=None)
    return vault, store, EditAssistant(vault, store, completer, {})


def test_edit_turn_writes_note_and_logs():
    with tempfile.TemporaryDirectory() as tmpdir:
        completer = FakeCompleter("## Next steps\nShip it.")
        vault, store, assistant = _setup(tmpdir, completer)

        turn = assistant.handle_message("Plan.md", "Add next steps at the end")

        assert turn.kind == "edit"
        assert turn.command.action == "add"
        assert turn.command.target == "end"
        assert vault.read("Plan.md").endswith("none yet\n\n## Next steps\nShip it.\n")
        messages = store.get_conversation("Plan.md").messages
        assert [m.role for m in messages] == ["user", "assistant"]
        assert messages[1].result.success
        assert store.get_conversation("Plan.md").metadata.edit_count == 1


def test_section_edit_targets_named_section():
    with tempfile.TemporaryDirectory() as tmpdir:
        completer = FakeCompleter("- schedule slip")
        vault, store, assistant = _setup(tmpdir, completer)

        turn = assistant.handle_message("Plan.md", "Add a bullet under the 'Risks' section")

        assert turn.command.location == "Risks"
        assert 'CURRENT SECTION "Risks":' in completer.calls[0][1]
        assert vault.read("Plan.md") == "# Plan\nintro\n\n## Risks\nnone yet\n\n- schedule slip\n"


def test_consultation_turn_does_not_edit():
    with tempfile.TemporaryDirectory() as tmpdir:
        completer = FakeCompleter("Take a break first.")
        vault, store, assistant = _setup(tmpdir, completer)
        before = vault.read("Plan.md")

        turn = assistant.handle_message("Plan.md", "I'm feeling stuck on this plan")

        assert turn.kind == "consultation"
        assert turn.reply == "Take a break first."
        assert vault.read("Plan.md") == before
        assert [m.role for m in store.get_conversation("Plan.md").messages] == ["user", "assistant"]


def test_ambiguous_input_falls_back_to_command_words():
    with tempfile.TemporaryDirectory() as tmpdir:
        _, _, assistant = _setup(tmpdir, FakeCompleter("ok"))
        turn = assistant.handle_message("Plan.md", "I think we should add more examples", dry_run=True)
        assert turn.classification.type == "ambiguous"
        assert turn.kind == "edit"


def test_invalid_command_is_reported():
    with tempfile.TemporaryDirectory() as tmpdir:
        completer = FakeCompleter("x")
        _, store, assistant = _setup(tmpdir, completer)

        turn = assistant.handle_message("Plan.md", "Rewrite the selected text")

        assert turn.kind == "invalid"
        assert completer.calls == []
        messages = store.get_conversation("Plan.md").messages
        assert messages[-1].role == "system"
        assert messages[-1].metadata == {"code": "selection-required"}


def test_references_are_attached_and_sent():
    with tempfile.TemporaryDirectory() as tmpdir:
        completer = FakeCompleter("Fixed text.")
        _, store, assistant = _setup(tmpdir, completer)

        turn = assistant.handle_message("Plan.md", "Fix grammar using [[Ref#status]]")

        assert turn.message == "Fix grammar using"
        assert "## Ref - status\napproved" in completer.calls[0][1]
        assert [(d.path, d.property) for d in store.get_context_documents("Plan.md")] == [("Ref.md", "status")]


def test_reference_only_message_updates_context():
    with tempfile.TemporaryDirectory() as tmpdir:
        completer = FakeCompleter("x")
        _, store, assistant = _setup(tmpdir, completer)

        turn = assistant.handle_message("Plan.md", "[[Ref]]")

        assert turn.kind == "context"
        assert turn.reply == "Added 1 document to context."
        assert completer.calls == []
        assert store.get_conversation("Plan.md").messages[0].role == "system"


def test_dry_run_stores_nothing():
    with tempfile.TemporaryDirectory() as tmpdir:
        completer = FakeCompleter("x")
        _, store, assistant = _setup(tmpdir, completer)

        turn = assistant.handle_message("Plan.md", "Add a summary at the end [[Ref]]", dry_run=True)

        assert turn.prompt is not None
        assert "Reference body text." in turn.prompt.user_prompt
        assert completer.calls == []
        assert store.get_conversation("Plan.md").messages == []
        assert store.get_context_documents("Plan.md") == []


def test_completion_error_is_logged():
    with tempfile.TemporaryDirectory() as tmpdir:
        completer = FakeCompleter(error=CompletionError("rate limited"))
        vault, store, assistant = _setup(tmpdir, completer)
        before = vault.read("Plan.md")

        turn = assistant.handle_message("Plan.md", "Add a summary at the end")

        assert turn.kind == "error"
        assert vault.read("Plan.md") == before
        last = store.get_conversation("Plan.md").messages[-1]
        assert last.role == "assistant"
        assert not last.result.success
        assert last.result.error == "rate limited"


def test_cancel_prevents_commit():
    with tempfile.TemporaryDirectory() as tmpdir:
        cancel = threading.Event()
        completer = FakeCompleter("new text", on_call=cancel.set)
        vault, store, assistant = _setup(tmpdir, completer)
        before = vault.read("Plan.md")

        turn = assistant.handle_message("Plan.md", "Add a summary at the end", cancel_event=cancel)

        assert turn.kind == "cancelled"
        assert vault.read("Plan.md") == before
        assert [m.role for m in store.get_conversation("Plan.md").messages] == ["user"]


def test_rename_handler_moves_conversation_and_references():
    with tempfile.TemporaryDirectory() as tmpdir:
        vault, store, _ = _setup(tmpdir, None)
        store.add_user_message("Plan.md", "hi")
        store.add_context_document("Other.md", "Plan.md")

        handler = RenameHandler(vault, store)
        assert handler.handle_move("Plan.md", "Archive/Plan.md")

        assert store.has_conversation("Archive/Plan.md")
        assert not store.has_conversation("Plan.md")
        assert [d.path for d in store.get_context_documents("Other.md")] == ["Archive/Plan.md"]


def test_rename_handler_builds_new_refs_and_drops_duplicates():
    with tempfile.TemporaryDirectory() as tmpdir:
        vault, store, _ = _setup(tmpdir, None)
        store.add_context_document("Other.md", "Plan.md")
        store.add_context_document("Other.md", "Archive/Plan.md")
        store.add_context_document("Other.md", "Plan.md", "status")
        original = store.get_conversation("Other.md").context_documents[0]

        RenameHandler(vault, store).handle_move("Plan.md", "Archive/Plan.md")

        docs = store.get_context_documents("Other.md")
        assert [(d.path, d.property) for d in docs] == [("Archive/Plan.md", None), ("Archive/Plan.md", "status")]
        assert original.path == "Plan.md"
        assert docs[0].added_at == original.added_at
