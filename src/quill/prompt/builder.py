"""Prompt assembly for edit commands and chat turns."""

import logging
from dataclasses import dataclass, replace
from typing import Any

from ..context.tokens import estimate_tokens
from ..models import (
    ConversationMessage,
    DocumentContext,
    EditCommand,
    GeneratedPrompt,
    GenerationConfig,
    PromptConfig,
    PromptValidation,
)
from ..vault.sections import find_section, list_section_paths
from . import templates

logger = logging.getLogger(__name__)


@dataclass
class PromptLimits:
    """Advisory bounds checked by ``validate_prompt``."""
    max_prompt_tokens: int = 8000
    min_temperature: float = 0.0
    max_temperature: float = 1.0
    min_max_tokens: int = 10
    max_max_tokens: int = 4000

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> "PromptLimits":
        values = config.get("limits", {})
        return cls(**{k: v for k, v in values.items() if k in cls.__dataclass_fields__})


class ContextBuilder:
    """Renders the system/user prompt pair for a parsed command."""

    def __init__(self, config: PromptConfig | None = None, limits: PromptLimits | None = None):
        self.config = config or PromptConfig()
        self.limits = limits or PromptLimits()

    def build_prompt(
        self,
        command: EditCommand,
        document: DocumentContext,
        config: PromptConfig | None = None,
        conversation_context: str | None = None,
        reference_context: str | None = None,
    ) -> GeneratedPrompt:
        config = config or self.config
        system_prompt = self.build_system_prompt(command.action)
        context, section_found = self._build_context_block(
            document, command, config, conversation_context, reference_context
        )
        user_prompt = self._build_user_prompt(command, context, section_found)

        return GeneratedPrompt(
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            context=context,
            config=GenerationConfig(
                temperature=config.temperature if config.temperature is not None else 0.7,
                max_tokens=config.max_tokens or 1000,
            ),
        )

    def build_system_prompt(self, action: str) -> str:
        return templates.SYSTEM_PREAMBLE + templates.ACTION_TASKS.get(action, templates.ACTION_TASKS["edit"])

    def _build_user_prompt(self, command: EditCommand, context: str, section_found: bool) -> str:
        parts = [f"{context}\n\nUSER REQUEST: {command.instruction}"]

        if command.target == "section" and command.location:
            parts.append(templates.LOCATION_REMINDER.format(location=command.location))

        if command.context and command.context.strip():
            parts.append(f"ADDITIONAL REQUIREMENTS: {command.context}")

        focus = self._target_instructions(command, section_found)
        if focus:
            parts.append(focus)

        output = templates.ACTION_OUTPUT.get(command.action)
        if output:
            parts.append(output)

        return "\n\n".join(parts)

    def _target_instructions(self, command: EditCommand, section_found: bool) -> str:
        if command.target != "section":
            return templates.TARGET_FOCUS.get(command.target, "")

        if not command.location:
            return templates.SECTION_FOCUS_UNRESOLVED

        focus = f'FOCUS: Work with the "{command.location}" section.'
        if section_found:
            return f"{focus} {templates.SECTION_SUB_INSTRUCTIONS[command.action]}"
        return f"{focus} {templates.SECTION_NOT_FOUND}"

    def _build_context_block(
        self,
        document: DocumentContext,
        command: EditCommand,
        config: PromptConfig,
        conversation_context: str | None,
        reference_context: str | None,
    ) -> tuple[str, bool]:
        context = f"DOCUMENT: {document.filename}\n"
        section_found = False

        if config.include_history and conversation_context and conversation_context.strip():
            context += f"\n{conversation_context.rstrip()}\n"

        if reference_context and reference_context.strip():
            context += f"\nREFERENCED DOCUMENTS:\n{reference_context.strip()}\n"

        if config.include_structure and document.headings:
            context += "\nDOCUMENT STRUCTURE:\n"
            for heading in document.headings:
                indent = "  " * (heading.level - 1)
                context += f"{indent}- {heading.text}\n"

        if command.target == "selection" and document.selected_text:
            context += f"\nSELECTED TEXT:\n{document.selected_text}\n"

        if command.target == "section" and command.location:
            section = find_section(document.content, document.headings, command.location)
            if section:
                section_found = True
                context += f'\nCURRENT SECTION "{command.location}":\n{section.text}\n'
            else:
                logger.debug(f"Section not found: {command.location}")
                context += f'\nSECTION "{command.location}" NOT FOUND. AVAILABLE SECTIONS:\n'
                available = list_section_paths(document.headings)
                if available:
                    context += "\n".join(f"- {path}" for path in available) + "\n"
                else:
                    context += "- (document has no headings)\n"
        elif command.target == "paragraph" and document.surrounding_lines:
            context += "\nCURRENT CONTEXT:\n"
            if document.surrounding_lines.before:
                context += f"Before: {' '.join(document.surrounding_lines.before)}\n"
            if document.surrounding_lines.after:
                context += f"After: {' '.join(document.surrounding_lines.after)}\n"

        lines = document.content.split("\n")
        if len(lines) > config.max_context_lines:
            context += f"\nRECENT CONTENT (last {config.max_context_lines} lines):\n"
            context += "\n".join(lines[-config.max_context_lines:]) if config.max_context_lines > 0 else ""
        else:
            context += f"\nFULL DOCUMENT:\n{document.content}"

        return context, section_found

    def build_simple_prompt(self, instruction: str, context: str | None = None) -> GeneratedPrompt:
        user_prompt = f"Context: {context}\n\nRequest: {instruction}" if context else instruction
        return GeneratedPrompt(
            system_prompt=templates.SIMPLE_SYSTEM_PROMPT,
            user_prompt=user_prompt,
            context=context or "",
            config=GenerationConfig(temperature=0.7, max_tokens=500),
        )

    def build_conversation_prompt(
        self,
        message: str,
        document: DocumentContext | None = None,
        recent_history: list[ConversationMessage] | None = None,
        reference_context: str | None = None,
    ) -> GeneratedPrompt:
        """Prompt for a chat turn that should not edit the document."""
        context = ""
        if document:
            context += f"Current document: {document.filename}\n"
            if document.headings:
                context += "Document structure:\n"
                for heading in document.headings:
                    context += f"{'  ' * (heading.level - 1)}- {heading.text}\n"

        if reference_context and reference_context.strip():
            context += f"\nReferenced documents:\n{reference_context.strip()}\n"

        if recent_history:
            context += "\nRecent conversation:\n"
            for msg in recent_history[-3:]:
                if msg.role == "user":
                    context += f"You: {msg.content}\n"
                elif msg.role == "assistant":
                    context += f"Quill: {msg.content}\n"

        user_prompt = f"{context}\n\nCurrent message: {message}" if context else message
        return GeneratedPrompt(
            system_prompt=templates.CONVERSATION_SYSTEM_PROMPT,
            user_prompt=user_prompt,
            context=context,
            config=GenerationConfig(temperature=0.8, max_tokens=800),
        )

    @staticmethod
    def estimate_token_count(prompt: GeneratedPrompt) -> int:
        return estimate_tokens(prompt.system_prompt + prompt.user_prompt + prompt.context)

    def validate_prompt(self, prompt: GeneratedPrompt) -> PromptValidation:
        """Advisory checks; the caller decides what to do with the issues."""
        issues = []
        limits = self.limits

        if not prompt.system_prompt or not prompt.system_prompt.strip():
            issues.append("System prompt is empty")
        if not prompt.user_prompt or not prompt.user_prompt.strip():
            issues.append("User prompt is empty")

        token_count = self.estimate_token_count(prompt)
        if token_count > limits.max_prompt_tokens:
            issues.append(f"Prompt is too long ({token_count} tokens, max {limits.max_prompt_tokens})")

        if not limits.min_temperature <= prompt.config.temperature <= limits.max_temperature:
            issues.append(f"Temperature must be between {limits.min_temperature:g} and {limits.max_temperature:g}")

        if not limits.min_max_tokens <= prompt.config.max_tokens <= limits.max_max_tokens:
            issues.append(f"Max tokens must be between {limits.min_max_tokens} and {limits.max_max_tokens}")

        return PromptValidation(valid=not issues, issues=issues)

    def optimize_prompt(self, prompt: GeneratedPrompt) -> GeneratedPrompt:
        """Return a copy with out-of-range settings clamped and oversized context cut."""
        validation = self.validate_prompt(prompt)
        if validation.valid:
            return prompt

        logger.info(f"Adjusting prompt: {'; '.join(validation.issues)}")
        limits = self.limits
        optimized = replace(prompt, config=replace(prompt.config))

        if self.estimate_token_count(prompt) > limits.max_prompt_tokens and prompt.context:
            cut = int(len(prompt.context) * 0.6)
            shortened = prompt.context[:cut] + "\n[Context truncated...]"
            optimized.user_prompt = prompt.user_prompt.replace(prompt.context, shortened, 1)
            optimized.context = shortened

        optimized.config.temperature = max(limits.min_temperature, min(limits.max_temperature, prompt.config.temperature))
        optimized.config.max_tokens = max(limits.min_max_tokens, min(limits.max_max_tokens, prompt.config.max_tokens))
        return optimized
