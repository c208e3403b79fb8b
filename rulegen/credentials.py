#!/usr/bin/env python3
"""
Gemini API key lookup and storage.
"""

import json
import os
import logging
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

CREDENTIALS_DIR = Path.home() / ".rulegen"
CREDENTIALS_FILE = CREDENTIALS_DIR / "credentials.json"
KEY_NAME = "gemini-api-key"
ENV_VARS = ("GEMINI_API_KEY", "GOOGLE_API_KEY")


def _read_credentials(path: Path) -> dict:
    if not path.exists():
        return {}
    try:
        with open(path) as f:
            creds = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Could not read credentials file {path}: {e}")
        return {}
    return creds if isinstance(creds, dict) else {}


def _write_credentials(path: Path, creds: dict) -> None:
    # Directory and file are readable by the owner only
    path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
    with open(path, "w", opener=lambda p, f: os.open(p, f, 0o600)) as f:
        json.dump(creds, f)


def get_api_key(explicit: Optional[str] = None, credentials_file: Optional[Path] = None) -> Optional[str]:
    """Find an API key: explicit value, environment, then the credentials file."""
    if explicit:
        return explicit
    for var in ENV_VARS:
        key = os.getenv(var)
        if key:
            return key
    return _read_credentials(credentials_file or CREDENTIALS_FILE).get(KEY_NAME)


def store_api_key(key: str, credentials_file: Optional[Path] = None) -> Path:
    path = credentials_file or CREDENTIALS_FILE
    creds = _read_credentials(path)
    creds[KEY_NAME] = key
    _write_credentials(path, creds)
    return path


def clear_api_key(credentials_file: Optional[Path] = None) -> bool:
    """Remove the stored key. Returns True if a key was removed."""
    path = credentials_file or CREDENTIALS_FILE
    creds = _read_credentials(path)
    if KEY_NAME not in creds:
        return False
    creds.pop(KEY_NAME)
    _write_credentials(path, creds)
    return True


def mask_api_key(key: Optional[str]) -> str:
    """Mask an API key for display, showing only first/last few characters."""
    if not key or len(key) < 8:
        return "***"
    return f"{key[:4]}...{key[-4:]}"
