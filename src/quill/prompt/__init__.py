"""Prompt construction."""

from .builder import ContextBuilder, PromptLimits

__all__ = ["ContextBuilder", "PromptLimits"]
