"""Markdown rendering helpers for note frontmatter."""

import json
from typing import Any

import yaml


def render_frontmatter(data: dict[str, Any]) -> str:
    """Render YAML frontmatter block."""
    fm = yaml.dump(data, default_flow_style=False, allow_unicode=True, sort_keys=False)
    return f"---\n{fm}---\n"


def format_property_value(value: Any) -> str:
    """Flatten a frontmatter value for display in a prompt."""
    if isinstance(value, (list, dict)):
        return json.dumps(value, default=str)
    return str(value)


def render_properties(frontmatter: dict[str, Any]) -> list[str]:
    """Render frontmatter as ``- key: value`` bullet lines."""
    return [f"- {key}: {format_property_value(value)}" for key, value in frontmatter.items()]
