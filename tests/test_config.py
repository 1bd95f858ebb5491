"""Tests for configuration loading."""

import tempfile
from pathlib import Path

from quill.config import DEFAULT_CONFIG, load_config
from quill.models import PromptConfig
from quill.prompt import PromptLimits


def test_defaults(monkeypatch):
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    with tempfile.TemporaryDirectory() as tmpdir:
        missing = Path(tmpdir) / "none.yaml"
        cfg = load_config(missing)
        assert cfg["prompt"] == DEFAULT_CONFIG["prompt"]
        assert cfg["conversation"]["max_messages_per_file"] == 100
        assert "claude_api_key" not in cfg
        assert Path(cfg["vault_path"]).is_absolute()


def test_file_overrides_are_deep_merged(monkeypatch):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "config.yaml"
        path.write_text(f"vault_path: {tmpdir}\nprompt:\n  temperature: 0.2\n")
        cfg = load_config(path)
        assert cfg["prompt"]["temperature"] == 0.2
        assert cfg["prompt"]["max_tokens"] == 1000
        assert cfg["claude_api_key"] == "sk-test"
        assert cfg["vault_path"] == str(Path(tmpdir).resolve())

    # defaults are not mutated by a load
    assert DEFAULT_CONFIG["prompt"]["temperature"] == 0.7


def test_prompt_config_from_config():
    config = {"prompt": {"max_context_lines": 5, "unknown": True}}
    prompt_config = PromptConfig.from_config(config, temperature=0.3, max_tokens=None)
    assert prompt_config.max_context_lines == 5
    assert prompt_config.temperature == 0.3
    assert prompt_config.max_tokens == 1000


def test_prompt_limits_from_config():
    limits = PromptLimits.from_config({"limits": {"max_prompt_tokens": 100}})
    assert limits.max_prompt_tokens == 100
    assert limits.max_max_tokens == 4000
