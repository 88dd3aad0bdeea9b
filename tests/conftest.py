# tests/conftest.py
#
# Project-wide fixtures. The project root is put on sys.path so that
# `main` and the `synax` package import without installation.

import sys
import os
from unittest.mock import MagicMock

import pytest

project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if project_root not in sys.path:
    sys.path.insert(0, project_root)


@pytest.fixture
def mock_config():
    """A configuration shaped like synax/config/default_config.json."""
    return {
        "ollama": {
            "base_url": "http://localhost:11434",
            "default_model": "mistral",
            "auto_detect_model": True,
            "request_timeout_seconds": 5,
            "options": {"temperature": 0.7, "top_p": 0.9, "top_k": 40},
        },
        "security": {
            "blocked_keywords": ["rm", "shutdown", "reboot", "halt", "poweroff", "mkfs", "dd", "chmod 777"],
        },
        "execution": {"shell": "/bin/bash", "max_buffer_bytes": 1048576, "timeout_seconds": None},
        "ui": {"show_spinner": False, "history_file": None},
    }


@pytest.fixture
def mock_ui_manager():
    """A UIManager stand-in that records every output call."""
    manager = MagicMock()
    manager.append_output = MagicMock()
    manager.write_fragments = MagicMock()
    manager.show_assistant_reply = MagicMock()
    manager.show_help = MagicMock()
    return manager
