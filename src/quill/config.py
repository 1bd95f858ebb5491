"""Configuration management for Quill."""

import os
from pathlib import Path
from typing import Any

import yaml


DEFAULT_CONFIG = {
    "vault_path": "~/notes",
    "data_path": "~/.quill",
    "claude_model": "claude-sonnet-4-20250514",
    "prompt": {
        "max_context_lines": 20,
        "include_structure": True,
        "include_history": False,
        "temperature": 0.7,
        "max_tokens": 1000,
    },
    "limits": {
        "max_prompt_tokens": 8000,
        "min_temperature": 0.0,
        "max_temperature": 1.0,
        "min_max_tokens": 10,
        "max_max_tokens": 4000,
    },
    "auto_context": {
        "include_outgoing": True,
        "include_backlinks": False,
        "small_doc_threshold": 2000,
        "medium_doc_threshold": 8000,
        "large_doc_max_tokens": 2000,
        "min_content_length": 10,
    },
    "multi_doc": {
        "token_limit": 8000,
        "warning_threshold": 0.8,
        "current_file_max_lines": 100,
        "reference_max_lines": 50,
    },
    "conversation": {
        "storage_key": "conversations",
        "max_messages_per_file": 100,
        "max_age_days": 7,
        "cleanup_interval_hours": 24,
        "history_messages": 5,
    },
}


def _find_config_file() -> Path | None:
    """Look for config.yaml in standard locations."""
    candidates = [
        Path.cwd() / "config" / "config.yaml",
        Path.cwd() / "config.yaml",
        Path.home() / ".quill" / "config.yaml",
    ]
    for p in candidates:
        if p.exists():
            return p
    return None


def load_config(config_path: str | Path | None = None) -> dict[str, Any]:
    """Load configuration, merging defaults with file and env vars."""
    cfg = _copy(DEFAULT_CONFIG)

    path = Path(config_path) if config_path else _find_config_file()
    if path and path.exists():
        with open(path) as f:
            file_cfg = yaml.safe_load(f) or {}
        _deep_merge(cfg, file_cfg)

    # Env overrides
    if api_key := os.environ.get("ANTHROPIC_API_KEY"):
        cfg["claude_api_key"] = api_key

    # Expand paths
    for key in ("vault_path", "data_path"):
        cfg[key] = str(Path(cfg[key]).expanduser().resolve())

    return cfg


def _copy(data: dict) -> dict:
    return {k: _copy(v) if isinstance(v, dict) else v for k, v in data.items()}


def _deep_merge(base: dict, override: dict) -> None:
    """Merge override into base in-place."""
    for k, v in override.items():
        if k in base and isinstance(base[k], dict) and isinstance(v, dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v
