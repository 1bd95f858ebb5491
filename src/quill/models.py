"""Data models used throughout Quill."""

import time
from dataclasses import dataclass, field
from typing import Any, Literal

Action = Literal["add", "edit", "delete", "grammar", "rewrite", "metadata"]
Target = Literal["selection", "cursor", "document", "end", "section", "paragraph"]
Role = Literal["user", "assistant", "system"]
ContextSource = Literal["linked", "backlink", "manual"]

ACTIONS: tuple[str, ...] = ("add", "edit", "delete", "grammar", "rewrite", "metadata")
TARGETS: tuple[str, ...] = ("selection", "cursor", "document", "end", "section", "paragraph")
ROLES: tuple[str, ...] = ("user", "assistant", "system")


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


@dataclass(frozen=True)
class EditCommand:
    """A structured edit request parsed from user input."""
    action: str
    target: str
    instruction: str
    location: str | None = None
    context: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "action": self.action,
            "target": self.target,
            "instruction": self.instruction,
        }
        if self.location is not None:
            data["location"] = self.location
        if self.context is not None:
            data["context"] = self.context
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EditCommand":
        return cls(
            action=data["action"],
            target=data["target"],
            instruction=data.get("instruction", ""),
            location=data.get("location"),
            context=data.get("context"),
        )


@dataclass
class HeadingInfo:
    """A heading in the document outline."""
    text: str
    level: int  # 1-6
    line: int
    start: int  # character offset of the heading line
    end: int


@dataclass
class SurroundingLines:
    before: list[str] = field(default_factory=list)
    after: list[str] = field(default_factory=list)


@dataclass
class DocumentContext:
    """Snapshot of the live document for a single request."""
    path: str
    filename: str
    content: str
    headings: list[HeadingInfo] = field(default_factory=list)
    selected_text: str | None = None
    selection_start: int | None = None
    selection_end: int | None = None
    cursor_line: int | None = None
    cursor_ch: int = 0
    surrounding_lines: SurroundingLines | None = None


@dataclass
class PromptConfig:
    """Knobs for prompt assembly."""
    max_context_lines: int = 20
    include_structure: bool = True
    include_history: bool = False
    temperature: float = 0.7
    max_tokens: int = 1000

    @classmethod
    def from_config(cls, config: dict[str, Any], **overrides: Any) -> "PromptConfig":
        values = dict(config.get("prompt", {}))
        values.update({k: v for k, v in overrides.items() if v is not None})
        known = {k: v for k, v in values.items() if k in cls.__dataclass_fields__}
        return cls(**known)


@dataclass
class GenerationConfig:
    temperature: float = 0.7
    max_tokens: int = 1000


@dataclass
class GeneratedPrompt:
    """A system/user prompt pair ready for the completion call."""
    system_prompt: str
    user_prompt: str
    context: str
    config: GenerationConfig = field(default_factory=GenerationConfig)


@dataclass
class IntentClassification:
    type: str  # "consultation", "editing" or "ambiguous"
    confidence: float
    matched_patterns: list[str] = field(default_factory=list)


@dataclass
class ValidationResult:
    valid: bool
    error: str | None = None
    code: str | None = None  # "selection-required", "invalid-combination"


@dataclass
class PromptValidation:
    valid: bool
    issues: list[str] = field(default_factory=list)


@dataclass
class EditResult:
    """Outcome of applying a completion to a document."""
    success: bool
    edit_type: str  # "insert", "replace", "append" or "delete"
    content: str | None = None
    error: str | None = None
    applied_at: int | None = None  # line number

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"success": self.success, "edit_type": self.edit_type}
        if self.content is not None:
            data["content"] = self.content
        if self.error is not None:
            data["error"] = self.error
        if self.applied_at is not None:
            data["applied_at"] = self.applied_at
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EditResult":
        return cls(
            success=bool(data.get("success")),
            edit_type=data.get("edit_type", "replace"),
            content=data.get("content"),
            error=data.get("error"),
            applied_at=data.get("applied_at"),
        )


@dataclass
class ConversationMessage:
    """A single entry in a document's chat log."""
    id: str
    role: str
    content: str
    timestamp: int
    command: EditCommand | None = None
    result: EditResult | None = None
    metadata: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp,
        }
        if self.command is not None:
            data["command"] = self.command.to_dict()
        if self.result is not None:
            data["result"] = self.result.to_dict()
        if self.metadata is not None:
            data["metadata"] = self.metadata
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConversationMessage":
        command = data.get("command")
        result = data.get("result")
        return cls(
            id=str(data["id"]),
            role=data["role"],
            content=data["content"],
            timestamp=int(data["timestamp"]),
            command=EditCommand.from_dict(command) if isinstance(command, dict) else None,
            result=EditResult.from_dict(result) if isinstance(result, dict) else None,
            metadata=data.get("metadata") if isinstance(data.get("metadata"), dict) else None,
        )


@dataclass
class ContextDocumentRef:
    """A standing reference from a conversation to another note."""
    path: str
    property: str | None = None
    added_at: int = field(default_factory=now_ms)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"path": self.path, "added_at": self.added_at}
        if self.property is not None:
            data["property"] = self.property
        return data


def _empty_frequency() -> dict[str, int]:
    return {action: 0 for action in ACTIONS}


@dataclass
class ConversationMetadata:
    edit_count: int = 0
    command_frequency: dict[str, int] = field(default_factory=_empty_frequency)


@dataclass
class ConversationData:
    """Per-document conversation state."""
    file_path: str
    messages: list[ConversationMessage] = field(default_factory=list)
    last_updated: int = field(default_factory=now_ms)
    context_documents: list[ContextDocumentRef] = field(default_factory=list)
    metadata: ConversationMetadata = field(default_factory=ConversationMetadata)

    def to_dict(self) -> dict[str, Any]:
        return {
            "file_path": self.file_path,
            "messages": [m.to_dict() for m in self.messages],
            "last_updated": self.last_updated,
            "context_documents": [d.to_dict() for d in self.context_documents],
            "metadata": {
                "edit_count": self.metadata.edit_count,
                "command_frequency": dict(self.metadata.command_frequency),
            },
        }


@dataclass
class ConversationStats:
    message_count: int
    edit_count: int
    most_used_command: str | None
    conversation_age: int  # milliseconds since the first message


@dataclass
class AutoContextDocument:
    """A note pulled into context through a link or backlink."""
    path: str
    source: str  # "linked", "backlink" or "manual"
    token_count: int
    is_truncated: bool
    section: str | None = None
    full_token_count: int | None = None
    included_sections: list[str] | None = None
    content: str = ""
    size_warning: bool = False
