# synax/command_gate.py
#
# Keyword denylist for model-proposed commands.
#
# This is a coarse substring heuristic, NOT a security boundary:
#   - false positives: any command that merely mentions a keyword is blocked
#     ("ls ~/firmware" contains "rm", "grep address" contains "dd").
#   - false negatives: aliases, `sudo` wrappers around other binaries,
#     `find -delete`, base64-encoded payloads and the like pass untouched.
# The interactive confirmation in confirm_prompt.py is the real safeguard.

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from synax.errors import CommandBlockedError

logger = logging.getLogger(__name__)

DEFAULT_BLOCKED_KEYWORDS = (
    'rm', 'shutdown', 'reboot', 'halt', 'poweroff', 'mkfs', 'dd', 'chmod 777',
)


@dataclass(frozen=True)
class GateDecision:
    command: str
    allowed: bool
    matched_keyword: Optional[str] = None


def find_blocked_keyword(command: str, blocked_keywords: Iterable[str] = DEFAULT_BLOCKED_KEYWORDS) -> Optional[str]:
    """Returns the first denylisted keyword found in the command, or None."""
    lowered = command.lower()
    for keyword in blocked_keywords:
        if keyword and keyword.lower() in lowered:
            return keyword
    return None


def check_command(command: str, blocked_keywords: Iterable[str] = DEFAULT_BLOCKED_KEYWORDS) -> GateDecision:
    """
    Classifies a candidate command as allowed or blocked.

    Args:
        command (str): The command string proposed by the model.
        blocked_keywords (Iterable[str]): Substrings that forbid execution.

    Returns:
        GateDecision: The outcome together with the original command and,
                      when blocked, the keyword that matched.
    """
    keyword = find_blocked_keyword(command, blocked_keywords)
    if keyword is not None:
        logger.warning(f"Command blocked (matched keyword '{keyword}'): '{command}'")
        return GateDecision(command=command, allowed=False, matched_keyword=keyword)
    return GateDecision(command=command, allowed=True)


def is_command_allowed(command: str, blocked_keywords: Iterable[str] = DEFAULT_BLOCKED_KEYWORDS) -> bool:
    return find_blocked_keyword(command, blocked_keywords) is None


def blocked_keywords_from_config(config: dict) -> tuple:
    """Reads `security.blocked_keywords`, falling back to the built-in list."""
    configured = config.get("security", {}).get("blocked_keywords")
    if not configured:
        return DEFAULT_BLOCKED_KEYWORDS
    return tuple(str(k) for k in configured)


def ensure_allowed(command: str, blocked_keywords: Iterable[str] = DEFAULT_BLOCKED_KEYWORDS) -> GateDecision:
    """Like check_command, but raises CommandBlockedError for a blocked command."""
    decision = check_command(command, blocked_keywords)
    if not decision.allowed:
        raise CommandBlockedError(command, decision.matched_keyword)
    return decision
