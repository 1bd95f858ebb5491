"""Context gathering: token estimates, linked notes and inline references."""

from .auto_context import AutoContextOptions, AutoContextResolver, render_auto_context
from .references import MultiDocContext
from .tokens import estimate_tokens

__all__ = [
    "AutoContextOptions",
    "AutoContextResolver",
    "render_auto_context",
    "MultiDocContext",
    "estimate_tokens",
]
