"""Tests for conversation storage."""

import json
import re
import tempfile
from pathlib import Path

from quill.conversation import ConversationStore, JsonFileDataStore, MemoryDataStore
from quill.conversation.scheduler import PeriodicTask
from quill.models import EditCommand, EditResult, now_ms

DAY_MS = 24 * 60 * 60 * 1000


def _store(backend=None, **kwargs):
    kwargs.setdefault("cleanup_interval", None)
    return ConversationStore(backend or MemoryDataStore(), **kwargs)


class FailingDataStore(MemoryDataStore):
    def save_data(self, key, data):
        raise OSError("disk full")


def test_add_messages_updates_metadata():
    backend = MemoryDataStore()
    store = _store(backend)

    msg = store.add_user_message("a.md", "add a summary", EditCommand("add", "end", "add a summary"))
    assert re.match(r"^msg_\d+_[0-9a-f]{9}$", msg.id)
    assert backend.save_count == 1

    store.add_assistant_message("a.md", "done", EditResult(success=True, edit_type="append"))
    store.add_assistant_message("a.md", "failed", EditResult(success=False, edit_type="append", error="x"))
    assert backend.save_count == 3

    conversation = store.get_conversation("a.md")
    assert conversation.metadata.command_frequency["add"] == 1
    assert conversation.metadata.edit_count == 1
    assert [m.role for m in conversation.messages] == ["user", "assistant", "assistant"]


def test_messages_are_trimmed():
    store = _store(max_messages_per_file=3)
    for i in range(5):
        store.add_user_message("a.md", f"m{i}")
    assert [m.content for m in store.get_conversation("a.md").messages] == ["m2", "m3", "m4"]


def test_recent_messages_and_roles():
    store = _store()
    store.add_user_message("a.md", "one")
    store.add_assistant_message("a.md", "two")
    store.add_system_message("a.md", "three", {"code": "x"})

    assert [m.content for m in store.get_recent_messages("a.md", 2)] == ["two", "three"]
    assert store.get_recent_messages("a.md", 0) == []
    assert [m.content for m in store.get_messages_by_role("a.md", "system")] == ["three"]
    assert store.get_messages_by_role("a.md", "system")[0].metadata == {"code": "x"}


def test_clear_conversation_keeps_context_documents():
    store = _store()
    store.add_user_message("a.md", "hi", EditCommand("edit", "cursor", "hi"))
    assert store.add_context_document("a.md", "b.md")
    assert not store.add_context_document("a.md", "b.md")
    assert store.add_context_document("a.md", "b.md", "status")

    store.clear_conversation("a.md")
    assert store.get_conversation("a.md").messages == []
    assert store.get_conversation("a.md").metadata.command_frequency["edit"] == 0
    assert len(store.get_context_documents("a.md")) == 2


def test_clear_context_documents_keeps_messages():
    store = _store()
    store.add_user_message("a.md", "hi")
    store.add_context_document("a.md", "b.md")
    store.clear_context_documents("a.md")
    assert store.get_context_documents("a.md") == []
    assert len(store.get_conversation("a.md").messages) == 1


def test_remove_and_set_context_documents():
    store = _store()
    store.add_context_document("a.md", "b.md")
    store.add_context_document("a.md", "c.md", "status")
    store.remove_context_document("a.md", "c.md")
    assert len(store.get_context_documents("a.md")) == 2
    store.remove_context_document("a.md", "c.md", "status")
    assert [d.path for d in store.get_context_documents("a.md")] == ["b.md"]

    store.set_context_documents("a.md", [])
    assert store.get_context_documents("a.md") == []


def test_persistence_round_trip():
    backend = MemoryDataStore()
    store = _store(backend)
    store.add_user_message("a.md", "fix it", EditCommand("grammar", "document", "fix it"))
    store.add_assistant_message(
        "a.md", "fixed", EditResult(success=True, edit_type="replace", content="NEW TEXT", applied_at=3)
    )
    store.add_context_document("a.md", "b.md", "status")

    reloaded = _store(backend)
    conversation = reloaded.get_conversation("a.md")
    assert conversation.messages == store.get_conversation("a.md").messages
    assert conversation.messages[1].result.content == "NEW TEXT"
    assert [m.content for m in conversation.messages] == ["fix it", "fixed"]
    assert conversation.messages[0].command == EditCommand("grammar", "document", "fix it")
    assert conversation.messages[1].result.applied_at == 3
    assert conversation.metadata.edit_count == 1
    assert conversation.metadata.command_frequency["grammar"] == 1
    assert [(d.path, d.property) for d in conversation.context_documents] == [("b.md", "status")]


def test_malformed_records_are_skipped():
    backend = MemoryDataStore({"conversations": [
        {
            "file_path": "ok.md",
            "messages": [
                {"id": "1", "role": "user", "content": "hi", "timestamp": 1},
                {"role": "bogus"},
                "junk",
            ],
            "context_documents": [{"path": ""}, {"path": 7}, {"path": "x.md"}],
            "metadata": "bad",
        },
        {"messages": []},
        "junk",
        {"file_path": "empty.md", "messages": "nope", "context_documents": None},
    ]})
    store = _store(backend)

    assert sorted(store.get_all_conversation_files()) == ["empty.md", "ok.md"]
    ok = store.get_conversation("ok.md")
    assert [m.content for m in ok.messages] == ["hi"]
    assert [d.path for d in ok.context_documents] == ["x.md"]
    assert isinstance(ok.context_documents[0].added_at, int)
    assert ok.metadata.edit_count == 0
    assert set(ok.metadata.command_frequency) == {"add", "edit", "delete", "grammar", "rewrite", "metadata"}
    assert store.get_conversation("empty.md").messages == []


def test_non_list_payload_is_ignored():
    store = _store(MemoryDataStore({"conversations": {"a.md": {}}}))
    assert store.get_all_conversation_files() == []


def test_save_failure_is_logged_not_raised():
    store = _store(FailingDataStore())
    store.add_user_message("a.md", "still here")
    assert store.get_conversation("a.md").messages[0].content == "still here"


def test_stats():
    store = _store()
    assert store.get_stats("a.md").most_used_command is None

    for action in ("edit", "add", "edit", "add"):
        store.add_user_message("a.md", action, EditCommand(action, "cursor", action))
    stats = store.get_stats("a.md")
    assert stats.message_count == 4
    assert stats.most_used_command == "add"
    assert stats.conversation_age >= 0


def test_conversation_context_and_export():
    store = _store()
    assert store.get_conversation_context("a.md") == ""

    store.add_user_message("a.md", "hi", EditCommand("add", "end", "hi"))
    store.add_assistant_message("a.md", "oops", EditResult(success=False, edit_type="append", error="bad output"))

    context = store.get_conversation_context("a.md")
    assert context.startswith("PREVIOUS CONVERSATION:\n")
    assert "USER: hi (Command: add end)" in context
    assert "ASSISTANT: oops (Result: failed)" in context

    exported = store.export_conversation("a.md")
    assert exported.startswith("# Conversation History for a.md\n")
    assert "*Error: bad output*" in exported


def test_update_file_path():
    store = _store()
    store.add_user_message("old.md", "hi")
    assert store.update_file_path("old.md", "new.md")
    assert not store.update_file_path("missing.md", "x.md")
    assert store.has_conversation("new.md")
    assert not store.has_conversation("old.md")
    assert store.get_conversation("new.md").file_path == "new.md"


def test_cleanup_old_conversations():
    store = _store()
    store.add_user_message("old.md", "hi")
    store.add_user_message("fresh.md", "hi")
    store.get_conversation("idle.md")
    store.get_conversation("old.md").messages[-1].timestamp = now_ms() - 10 * DAY_MS

    assert store.cleanup_old_conversations(7 * DAY_MS) == 1
    assert sorted(store.get_all_conversation_files()) == ["fresh.md", "idle.md"]


def test_cleanup_task_registered_and_stopped():
    backend = MemoryDataStore()
    store = ConversationStore(backend, cleanup_interval=3600)
    assert len(backend.registered) == 1
    task = backend.registered[0]
    assert isinstance(task, PeriodicTask)
    assert task.running
    store.close()
    assert not task.running
    store.close()


def test_store_from_config():
    config = {"conversation": {"max_messages_per_file": 2, "cleanup_interval_hours": 0}}
    store = ConversationStore.from_config(config, MemoryDataStore())
    assert store.max_messages_per_file == 2
    assert store.max_age_ms == 7 * DAY_MS
    assert store._cleanup_task is None


def test_json_file_data_store():
    with tempfile.TemporaryDirectory() as tmpdir:
        backend = JsonFileDataStore(Path(tmpdir) / "data")
        assert backend.load_data("conversations") is None

        with _store(backend) as store:
            store.add_user_message("a.md", "persisted")

        files = sorted(p.name for p in (Path(tmpdir) / "data").iterdir())
        assert files == ["conversations.json"]
        data = json.loads((Path(tmpdir) / "data" / "conversations.json").read_text())
        assert data[0]["file_path"] == "a.md"
        assert data[0]["messages"][0]["content"] == "persisted"

        assert _store(backend).get_conversation("a.md").messages[0].content == "persisted"
