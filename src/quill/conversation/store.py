"""Per-document conversation history and attached context documents.

One :class:`ConversationData` per note path lives in an in-memory table that is
mirrored, as a full snapshot, to a :class:`DataStore` on every change. The
message log and the context-document list have independent lifecycles:
clearing one never touches the other.
"""

import logging
import threading
import uuid
from datetime import datetime
from typing import Any

from ..models import (
    ACTIONS,
    ROLES,
    ContextDocumentRef,
    ConversationData,
    ConversationMessage,
    ConversationMetadata,
    ConversationStats,
    EditCommand,
    EditResult,
    now_ms,
)
from .backend import DataStore
from .scheduler import PeriodicTask

logger = logging.getLogger(__name__)

DAY_MS = 24 * 60 * 60 * 1000


class ConversationStore:
    """File-scoped conversation storage and retrieval."""

    def __init__(
        self,
        backend: DataStore,
        max_messages_per_file: int = 100,
        storage_key: str = "conversations",
        max_age_ms: int = 7 * DAY_MS,
        cleanup_interval: float | None = 24 * 60 * 60,
    ):
        self.backend = backend
        self.max_messages_per_file = max_messages_per_file
        self.storage_key = storage_key
        self.max_age_ms = max_age_ms
        self._conversations: dict[str, ConversationData] = {}
        self._lock = threading.RLock()
        self._cleanup_task: PeriodicTask | None = None

        self.load()

        if cleanup_interval:
            task = PeriodicTask(
                cleanup_interval,
                lambda: self.cleanup_old_conversations(self.max_age_ms),
                name="conversation-cleanup",
            )
            self._cleanup_task = backend.register_interval(task) or task
            self._cleanup_task.start()

    @classmethod
    def from_config(cls, config: dict[str, Any], backend: DataStore) -> "ConversationStore":
        conv = config.get("conversation", {})
        interval_hours = conv.get("cleanup_interval_hours", 24)
        return cls(
            backend,
            max_messages_per_file=conv.get("max_messages_per_file", 100),
            storage_key=conv.get("storage_key", "conversations"),
            max_age_ms=int(conv.get("max_age_days", 7) * DAY_MS),
            cleanup_interval=interval_hours * 3600 if interval_hours else None,
        )

    # -- persistence -------------------------------------------------------

    def load(self) -> None:
        """Populate the table from the backend, skipping malformed records."""
        try:
            data = self.backend.load_data(self.storage_key)
        except Exception as e:
            logger.error(f"Failed to load conversations: {e}")
            return

        if data is None:
            return
        if not isinstance(data, list):
            logger.warning(f"Ignoring stored conversations: expected a list, got {type(data).__name__}")
            return

        with self._lock:
            for record in data:
                try:
                    conversation = self._sanitize_conversation(record)
                except (TypeError, ValueError) as e:
                    path = record.get("file_path", "unknown") if isinstance(record, dict) else "unknown"
                    logger.warning(f"Skipped corrupted conversation for file: {path} ({e})")
                    continue
                self._conversations[conversation.file_path] = conversation

    def _sanitize_conversation(self, record: Any) -> ConversationData:
        if not isinstance(record, dict):
            raise TypeError("conversation record is not an object")
        file_path = record.get("file_path")
        if not isinstance(file_path, str) or not file_path:
            raise ValueError("invalid or missing file_path")

        messages = []
        raw_messages = record.get("messages")
        for raw in raw_messages if isinstance(raw_messages, list) else []:
            message = self._sanitize_message(raw)
            if message:
                messages.append(message)

        context_documents = []
        raw_docs = record.get("context_documents")
        for raw in raw_docs if isinstance(raw_docs, list) else []:
            if isinstance(raw, dict) and isinstance(raw.get("path"), str) and raw["path"].strip():
                context_documents.append(ContextDocumentRef(
                    path=raw["path"],
                    property=raw["property"] if isinstance(raw.get("property"), str) else None,
                    added_at=raw["added_at"] if isinstance(raw.get("added_at"), int) else now_ms(),
                ))

        last_updated = record.get("last_updated")
        return ConversationData(
            file_path=file_path,
            messages=messages,
            last_updated=last_updated if isinstance(last_updated, int) else now_ms(),
            context_documents=context_documents,
            metadata=self._sanitize_metadata(record.get("metadata")),
        )

    @staticmethod
    def _sanitize_message(raw: Any) -> ConversationMessage | None:
        if not isinstance(raw, dict) or raw.get("role") not in ROLES or not isinstance(raw.get("content"), str):
            logger.warning("Skipped malformed conversation message")
            return None
        try:
            return ConversationMessage.from_dict(raw)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Skipped malformed conversation message: {e}")
            return None

    @staticmethod
    def _sanitize_metadata(raw: Any) -> ConversationMetadata:
        metadata = ConversationMetadata()
        if not isinstance(raw, dict):
            return metadata
        if isinstance(raw.get("edit_count"), int):
            metadata.edit_count = raw["edit_count"]
        frequency = raw.get("command_frequency")
        if isinstance(frequency, dict):
            for action in ACTIONS:
                if isinstance(frequency.get(action), int):
                    metadata.command_frequency[action] = frequency[action]
        return metadata

    def save(self) -> None:
        """Persist a snapshot of every conversation."""
        with self._lock:
            snapshot = [c.to_dict() for c in self._conversations.values()]
        try:
            self.backend.save_data(self.storage_key, snapshot)
        except Exception as e:
            logger.error(f"Failed to save conversations: {e}")

    # -- messages ----------------------------------------------------------

    def get_conversation(self, path: str) -> ConversationData:
        """The conversation for ``path``, created empty on first access."""
        with self._lock:
            conversation = self._conversations.get(path)
            if conversation is None:
                conversation = ConversationData(file_path=path)
                self._conversations[path] = conversation
            return conversation

    @staticmethod
    def _new_message_id() -> str:
        return f"msg_{now_ms()}_{uuid.uuid4().hex[:9]}"

    def _append(self, conversation: ConversationData, message: ConversationMessage) -> ConversationMessage:
        with self._lock:
            conversation.messages.append(message)
            conversation.last_updated = now_ms()
            if len(conversation.messages) > self.max_messages_per_file:
                conversation.messages = conversation.messages[-self.max_messages_per_file:]
            self.save()
        return message

    def add_user_message(self, path: str, content: str, command: EditCommand | None = None) -> ConversationMessage:
        with self._lock:
            conversation = self.get_conversation(path)
            if command is not None and command.action in conversation.metadata.command_frequency:
                conversation.metadata.command_frequency[command.action] += 1
            message = ConversationMessage(
                id=self._new_message_id(), role="user", content=content,
                timestamp=now_ms(), command=command,
            )
            return self._append(conversation, message)

    def add_assistant_message(self, path: str, content: str, result: EditResult | None = None) -> ConversationMessage:
        with self._lock:
            conversation = self.get_conversation(path)
            if result is not None and result.success:
                conversation.metadata.edit_count += 1
            message = ConversationMessage(
                id=self._new_message_id(), role="assistant", content=content,
                timestamp=now_ms(), result=result,
            )
            return self._append(conversation, message)

    def add_system_message(self, path: str, content: str, metadata: dict[str, Any] | None = None) -> ConversationMessage:
        with self._lock:
            conversation = self.get_conversation(path)
            message = ConversationMessage(
                id=self._new_message_id(), role="system", content=content,
                timestamp=now_ms(), metadata=metadata,
            )
            return self._append(conversation, message)

    def get_recent_messages(self, path: str, count: int = 10) -> list[ConversationMessage]:
        if count <= 0:
            return []
        return list(self.get_conversation(path).messages[-count:])

    def get_messages_by_role(self, path: str, role: str) -> list[ConversationMessage]:
        return [m for m in self.get_conversation(path).messages if m.role == role]

    def get_conversation_context(self, path: str, max_messages: int = 6) -> str:
        """Recent turns formatted as a prompt block; empty when there is no history."""
        messages = self.get_recent_messages(path, max_messages)
        if not messages:
            return ""

        lines = []
        for msg in messages:
            stamp = datetime.fromtimestamp(msg.timestamp / 1000).strftime("%H:%M:%S")
            line = f"[{stamp}] {msg.role.upper()}: {msg.content}"
            if msg.command:
                line += f" (Command: {msg.command.action} {msg.command.target})"
            if msg.result:
                line += f" (Result: {'success' if msg.result.success else 'failed'})"
            lines.append(line)
        return "PREVIOUS CONVERSATION:\n" + "\n".join(lines) + "\n"

    def clear_conversation(self, path: str) -> None:
        """Drop the message log and tallies. Context documents are kept."""
        with self._lock:
            conversation = self.get_conversation(path)
            conversation.messages = []
            conversation.metadata = ConversationMetadata()
            conversation.last_updated = now_ms()
            self.save()

    def get_stats(self, path: str) -> ConversationStats:
        conversation = self.get_conversation(path)

        most_used = None
        max_count = 0
        for action, count in conversation.metadata.command_frequency.items():
            if count > max_count:
                max_count = count
                most_used = action

        age = now_ms() - conversation.messages[0].timestamp if conversation.messages else 0
        return ConversationStats(
            message_count=len(conversation.messages),
            edit_count=conversation.metadata.edit_count,
            most_used_command=most_used,
            conversation_age=age,
        )

    def export_conversation(self, path: str) -> str:
        """Render the log as a Markdown transcript."""
        conversation = self.get_conversation(path)
        lines = [f"# Conversation History for {path}", ""]

        for message in conversation.messages:
            stamp = datetime.fromtimestamp(message.timestamp / 1000).strftime("%Y-%m-%d %H:%M:%S")
            lines.append(f"## {message.role.upper()} ({stamp})")
            lines.append(message.content)
            if message.command:
                lines.append(f"*Command: {message.command.action} {message.command.target}*")
            if message.result:
                lines.append(f"*Result: {'Success' if message.result.success else 'Failed'}*")
                if message.result.error:
                    lines.append(f"*Error: {message.result.error}*")
            lines.append("")

        return "\n".join(lines)

    def has_conversation(self, path: str) -> bool:
        with self._lock:
            conversation = self._conversations.get(path)
            return bool(conversation and conversation.messages)

    def get_all_conversation_files(self) -> list[str]:
        with self._lock:
            return list(self._conversations)

    def update_file_path(self, old_path: str, new_path: str) -> bool:
        """Re-key a conversation after its note was renamed."""
        with self._lock:
            conversation = self._conversations.pop(old_path, None)
            if conversation is None:
                return False
            conversation.file_path = new_path
            self._conversations[new_path] = conversation
            self.save()
        logger.info(f"Moved conversation {old_path} -> {new_path}")
        return True

    def cleanup_old_conversations(self, max_age_ms: int | None = None) -> int:
        """Evict conversations whose last message is older than ``max_age_ms``."""
        max_age_ms = self.max_age_ms if max_age_ms is None else max_age_ms
        now = now_ms()
        with self._lock:
            stale = [
                path for path, conversation in self._conversations.items()
                if conversation.messages and now - conversation.messages[-1].timestamp > max_age_ms
            ]
            for path in stale:
                del self._conversations[path]
            if stale:
                self.save()
        if stale:
            logger.info(f"Cleaned up {len(stale)} old conversation(s)")
        return len(stale)

    # -- context documents -------------------------------------------------

    def add_context_document(self, path: str, context_path: str, property: str | None = None) -> bool:
        """Attach a note; returns False when the (path, property) pair is already attached."""
        with self._lock:
            conversation = self.get_conversation(path)
            if any(d.path == context_path and d.property == property for d in conversation.context_documents):
                return False
            conversation.context_documents.append(ContextDocumentRef(path=context_path, property=property))
            conversation.last_updated = now_ms()
            self.save()
            return True

    def remove_context_document(self, path: str, context_path: str, property: str | None = None) -> None:
        with self._lock:
            conversation = self.get_conversation(path)
            conversation.context_documents = [
                d for d in conversation.context_documents
                if not (d.path == context_path and d.property == property)
            ]
            conversation.last_updated = now_ms()
            self.save()

    def get_context_documents(self, path: str) -> list[ContextDocumentRef]:
        return list(self.get_conversation(path).context_documents)

    def clear_context_documents(self, path: str) -> None:
        """Detach every context document. The message log is kept."""
        with self._lock:
            conversation = self.get_conversation(path)
            conversation.context_documents = []
            conversation.last_updated = now_ms()
            self.save()

    def set_context_documents(self, path: str, documents: list[ContextDocumentRef]) -> None:
        with self._lock:
            conversation = self.get_conversation(path)
            conversation.context_documents = list(documents)
            conversation.last_updated = now_ms()
            self.save()

    # -- lifecycle ---------------------------------------------------------

    def close(self) -> None:
        """Stop the periodic cleanup task."""
        if self._cleanup_task is not None:
            self._cleanup_task.stop()
            self._cleanup_task = None

    def __enter__(self) -> "ConversationStore":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
