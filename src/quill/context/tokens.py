"""Token estimation shared by prompt assembly and context resolution."""

import math


def estimate_tokens(text: str | None) -> int:
    """Rough token estimate (~4 chars per token, rounded up)."""
    if not text:
        return 0
    return math.ceil(len(text) / 4)
