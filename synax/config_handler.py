# synax/config_handler.py

import os
import sys
import json
import re
import logging
from typing import Any, Dict, Optional

# --- Module-specific logger ---
logger = logging.getLogger(__name__)

PACKAGE_CONFIG_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "config")
DEFAULT_CONFIG_FILENAME = "default_config.json"
USER_CONFIG_FILENAME = "user_config.json"
HOME_ENV_VAR = "SYNAX_HOME"

# String literals are matched first so "http://..." values keep their slashes.
_COMMENT_PATTERN = re.compile(r'("(?:\\.|[^"\\])*")|//[^\n]*|/\*.*?\*/', re.DOTALL)


def get_synax_home() -> str:
    """Per-user directory for the user config, logs and input history."""
    return os.environ.get(HOME_ENV_VAR) or os.path.join(os.path.expanduser("~"), ".synax")


def load_jsonc_file(filepath: str) -> Optional[Dict[str, Any]]:
    """
    Loads a JSON file that may contain single-line (//) and multi-line (/* */) comments.

    Args:
        filepath (str): The full path to the .jsonc or .json file.

    Returns:
        Optional[Dict[str, Any]]: A dictionary with the file's contents,
                                  or None if the file is not found or cannot be parsed.
    """
    if not os.path.exists(filepath):
        logger.info(f"Configuration file not found at: {filepath}")
        return None

    try:
        with open(filepath, 'r', encoding='utf-8') as f:
            file_content = f.read()
        content_without_comments = _strip_comments(file_content)
        return json.loads(content_without_comments)

    except json.JSONDecodeError as e:
        logger.error(f"Error decoding JSON from {filepath}: {e}", exc_info=True)
        print(f"❌ Error: Could not parse the configuration file at {filepath}. Please check for syntax errors.", file=sys.stderr)
        return None
    except IOError as e:
        logger.error(f"Error reading file {filepath}: {e}", exc_info=True)
        print(f"❌ Error: Could not read the file at {filepath}.", file=sys.stderr)
        return None


def _strip_comments(content: str) -> str:
    return _COMMENT_PATTERN.sub(lambda m: m.group(1) or '', content)


def merge_configs(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merges `override` into a copy of `base`."""
    merged = base.copy()
    for key, value in override.items():
        if isinstance(value, dict) and key in merged and isinstance(merged[key], dict):
            merged[key] = merge_configs(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_configuration(default_config_path: Optional[str] = None,
                       user_config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Loads the packaged defaults and overlays the optional user configuration.

    Raises:
        FileNotFoundError: The default configuration is missing or unparsable.
    """
    default_config_path = default_config_path or os.path.join(PACKAGE_CONFIG_DIR, DEFAULT_CONFIG_FILENAME)
    user_config_path = user_config_path or os.path.join(get_synax_home(), USER_CONFIG_FILENAME)

    base_config = load_jsonc_file(default_config_path)
    if base_config is None:
        error_msg = f"Default configuration file not found or failed to parse at '{default_config_path}'."
        logger.critical(error_msg)
        raise FileNotFoundError(error_msg)
    logger.info(f"Successfully loaded base configuration from {default_config_path}")

    user_settings = load_jsonc_file(user_config_path)
    if user_settings:
        logger.info(f"Loaded and merged user configuration from {user_config_path}")
        return merge_configs(base_config, user_settings)

    logger.info(f"{user_config_path} not found or is invalid. No user configuration overrides applied.")
    return base_config
