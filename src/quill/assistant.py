"""One chat turn against a note, from raw message to committed edit."""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any

from .completion import Completer, CompletionError
from .context.auto_context import AutoContextOptions, AutoContextResolver, render_auto_context
from .context.references import SEPARATOR, MultiDocContext, MultiDocResult
from .conversation.store import ConversationStore
from .editing import apply_edit
from .intent.classifier import AMBIGUOUS, EDITING, IntentClassifier
from .intent.parser import CommandParser, is_likely_command
from .models import EditCommand, EditResult, GeneratedPrompt, IntentClassification, PromptConfig
from .prompt.builder import ContextBuilder, PromptLimits
from .vault.document import build_document_context
from .vault.index import Vault

logger = logging.getLogger(__name__)


@dataclass
class TurnResult:
    """What happened during a turn.

    ``kind`` is one of ``edit``, ``consultation``, ``context``, ``invalid``,
    ``error`` or ``cancelled``.
    """
    kind: str
    message: str
    reply: str | None = None
    classification: IntentClassification | None = None
    command: EditCommand | None = None
    result: EditResult | None = None
    prompt: GeneratedPrompt | None = None
    context: MultiDocResult | None = None
    warnings: list[str] = field(default_factory=list)


class EditAssistant:
    """Wires intent detection, prompting, completion and editing together."""

    def __init__(
        self,
        vault: Vault,
        store: ConversationStore,
        completer: Completer | None,
        config: dict[str, Any] | None = None,
    ):
        config = config or {}
        self.vault = vault
        self.store = store
        self.completer = completer
        self.classifier = IntentClassifier()
        self.parser = CommandParser()
        self.prompt_config = PromptConfig.from_config(config)
        self.builder = ContextBuilder(self.prompt_config, PromptLimits.from_config(config))
        self.references = MultiDocContext.from_config(vault, store, config)
        self.auto_context = AutoContextResolver(vault, AutoContextOptions.from_config(config))
        self.history_messages = config.get("conversation", {}).get("history_messages", 5)

    def is_editing(self, classification: IntentClassification, message: str) -> bool:
        if classification.type == EDITING:
            return True
        if classification.type == AMBIGUOUS:
            return is_likely_command(message)
        return False

    def _reference_context(self, path: str, refs: MultiDocResult) -> str:
        """Attached notes followed by notes linked from the current one."""
        attached = [doc.path for doc in refs.documents]
        linked = self.auto_context.build_auto_context(path, existing_paths=[path, *attached])
        parts = [refs.reference_context] if refs.reference_context else []
        if linked:
            parts.append(render_auto_context(linked, self.vault))
        return SEPARATOR.join(parts)

    def handle_message(
        self,
        path: str,
        message: str,
        selection: str | None = None,
        cursor_line: int | None = None,
        cursor_ch: int = 0,
        cancel_event: threading.Event | None = None,
        dry_run: bool = False,
    ) -> TurnResult:
        """Run one turn. With ``dry_run`` the prompt is built but nothing is sent or stored."""
        refs = self.references.build_context(message, path, persist=not dry_run)
        text = refs.cleaned_message
        warnings = []
        if refs.is_near_limit:
            warnings.append(f"Context is approaching the token limit ({self.references.context_indicator(refs)})")

        if not text:
            count = len(refs.documents)
            reply = f"Added {count} document{'s' if count != 1 else ''} to context."
            if not dry_run:
                self.store.add_system_message(path, reply, {"context_documents": [d.path for d in refs.documents]})
            return TurnResult(kind="context", message=text, reply=reply, context=refs, warnings=warnings)

        document = build_document_context(self.vault, path, selection, cursor_line, cursor_ch)
        classification = self.classifier.classify_input(text)
        reference_context = self._reference_context(path, refs)

        if not self.is_editing(classification, text):
            history = self.store.get_recent_messages(path, self.history_messages)
            prompt = self.builder.build_conversation_prompt(text, document, history, reference_context)
            turn = TurnResult(
                kind="consultation", message=text, classification=classification,
                prompt=prompt, context=refs, warnings=warnings,
            )
            if dry_run:
                return turn
            self.store.add_user_message(path, text)
            return self._consult(path, turn, cancel_event)

        has_selection = bool(document.selected_text)
        command = self.parser.parse_command(text, has_selection)
        turn = TurnResult(
            kind="edit", message=text, classification=classification,
            command=command, context=refs, warnings=warnings,
        )

        validation = self.parser.validate_command(command, has_selection)
        if not validation.valid:
            turn.kind = "invalid"
            turn.reply = validation.error
            if not dry_run:
                self.store.add_user_message(path, text, command)
                self.store.add_system_message(path, validation.error or "Invalid command", {"code": validation.code})
            return turn

        history = self.store.get_conversation_context(path, self.history_messages)
        prompt = self.builder.build_prompt(
            command, document, conversation_context=history, reference_context=reference_context
        )
        check = self.builder.validate_prompt(prompt)
        if not check.valid:
            turn.warnings.extend(check.issues)
            prompt = self.builder.optimize_prompt(prompt)
        turn.prompt = prompt

        if dry_run:
            return turn

        self.store.add_user_message(path, text, command)
        output = self._complete(path, turn, cancel_event)
        if output is None:
            return turn

        result = apply_edit(command, document, output)
        turn.result = result
        if result.success and result.content is not None:
            self.vault.write(path, result.content)
            turn.reply = f"{self.parser.describe_command(command)}: done"
        else:
            turn.kind = "error"
            turn.reply = f"Could not apply edit: {result.error}"
        self.store.add_assistant_message(path, turn.reply, result)
        return turn

    def _require_completer(self) -> Completer:
        if self.completer is None:
            raise CompletionError("No completion provider configured")
        return self.completer

    def _run_completion(self, prompt: GeneratedPrompt) -> str:
        return self._require_completer().complete(
            prompt.system_prompt,
            prompt.user_prompt,
            prompt.config.temperature,
            prompt.config.max_tokens,
        )

    def _complete(self, path: str, turn: TurnResult, cancel_event: threading.Event | None) -> str | None:
        """Completion text, or None when the turn ended in an error or was cancelled."""
        try:
            output = self._run_completion(turn.prompt)
        except CompletionError as e:
            logger.error(f"Completion failed for {path}: {e}")
            turn.kind = "error"
            turn.reply = str(e)
            turn.result = EditResult(success=False, edit_type="replace", error=str(e))
            self.store.add_assistant_message(path, f"Error: {e}", turn.result)
            return None

        if cancel_event is not None and cancel_event.is_set():
            logger.info(f"Turn for {path} cancelled before commit")
            turn.kind = "cancelled"
            return None
        return output

    def _consult(self, path: str, turn: TurnResult, cancel_event: threading.Event | None) -> TurnResult:
        reply = self._complete(path, turn, cancel_event)
        if reply is None:
            return turn
        turn.reply = reply.strip()
        self.store.add_assistant_message(path, turn.reply)
        return turn
