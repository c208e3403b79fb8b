#!/usr/bin/env python3
"""
Pytest configuration and fixtures for all tests.
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

import rulegen.config
import rulegen.credentials
import rulegen.logging_config
from rulegen.logging_config import setup_logging


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Keep logs, credentials and user config out of the real home directory."""
    home = tmp_path / "home"
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setattr(rulegen.credentials, "CREDENTIALS_FILE", home / ".rulegen" / "credentials.json")
    monkeypatch.setattr(rulegen.config, "USER_CONFIG_PATH", home / ".rulegen" / "config.yaml")

    for var in ("GEMINI_API_KEY", "GOOGLE_API_KEY"):
        monkeypatch.delenv(var, raising=False)
    for field_name in ("MODEL", "MAX_FILES", "MAX_RULES", "FORMAT", "STRUCTURED_OUTPUT",
                       "CONTEXT_LIMIT", "PROMPT_RESERVE", "MAX_OUTPUT_TOKENS",
                       "TEMPERATURE", "TIMEOUT_SECONDS"):
        monkeypatch.delenv(f"RULEGEN_{field_name}", raising=False)

    setup_logging(log_dir=home / ".rulegen" / "logs")
    yield
    rulegen.logging_config._logging_config = None


@pytest.fixture
def make_project(tmp_path):
    """Create a project tree from a {relative_path: content} mapping."""
    def _make(files):
        root = tmp_path / "project"
        root.mkdir(exist_ok=True)
        for rel_path, content in files.items():
            path = root / rel_path
            path.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, bytes):
                path.write_bytes(content)
            else:
                path.write_text(content, encoding="utf-8")
        return root
    return _make
