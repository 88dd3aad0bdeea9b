# tests/test_command_gate.py

import pytest

from synax.command_gate import (
    DEFAULT_BLOCKED_KEYWORDS,
    GateDecision,
    blocked_keywords_from_config,
    check_command,
    ensure_allowed,
    find_blocked_keyword,
    is_command_allowed,
)
from synax.errors import CommandBlockedError

blocked_commands = [
    "rm -rf /",
    "RM -RF /tmp/x",
    "sudo shutdown -h now",
    "Reboot",
    "halt",
    "systemctl poweroff",
    "mkfs.ext4 /dev/sda1",
    "dd if=/dev/zero of=/dev/sdb",
    "chmod 777 /etc/passwd",
    "CHMOD 777 file",
    # Substring matches inside unrelated words are blocked too.
    "ls ~/firmware",
    "grep address notes.txt",
    "cat /var/log/dmesg | grep -i warm",
]

allowed_commands = [
    "ls -la",
    "pwd",
    "echo hello",
    "cat notes.txt | grep foo",
    "chmod 755 script.sh",
    "git status",
    "df -h",
    "",
]


@pytest.mark.parametrize("command", blocked_commands)
def test_blocked_commands_are_refused(command):
    assert is_command_allowed(command) is False
    decision = check_command(command)
    assert decision.allowed is False
    assert decision.command == command
    assert decision.matched_keyword in DEFAULT_BLOCKED_KEYWORDS


@pytest.mark.parametrize("command", allowed_commands)
def test_commands_without_keywords_are_allowed(command):
    assert is_command_allowed(command) is True
    assert check_command(command) == GateDecision(command=command, allowed=True, matched_keyword=None)


def test_every_default_keyword_blocks_in_any_case():
    for keyword in DEFAULT_BLOCKED_KEYWORDS:
        assert is_command_allowed(f"echo x; {keyword.upper()} y") is False
        assert is_command_allowed(f"prefix{keyword}suffix") is False


def test_find_blocked_keyword_returns_first_match_in_list_order():
    assert find_blocked_keyword("dd if=a of=b; rm c") == "rm"
    assert find_blocked_keyword("uptime") is None


def test_custom_keyword_list():
    assert is_command_allowed("rm file", blocked_keywords=["curl"]) is True
    assert is_command_allowed("curl http://x", blocked_keywords=["curl"]) is False


def test_empty_keywords_in_list_are_ignored():
    assert is_command_allowed("ls", blocked_keywords=["", "curl"]) is True


def test_blocked_keywords_from_config(mock_config):
    mock_config["security"]["blocked_keywords"] = ["wget", "curl"]
    assert blocked_keywords_from_config(mock_config) == ("wget", "curl")


def test_blocked_keywords_from_config_falls_back_to_defaults():
    assert blocked_keywords_from_config({}) == DEFAULT_BLOCKED_KEYWORDS
    assert blocked_keywords_from_config({"security": {"blocked_keywords": []}}) == DEFAULT_BLOCKED_KEYWORDS


def test_ensure_allowed_raises_with_matched_keyword():
    with pytest.raises(CommandBlockedError) as exc_info:
        ensure_allowed("sudo reboot")
    assert exc_info.value.command == "sudo reboot"
    assert exc_info.value.keyword == "reboot"
    assert str(exc_info.value) == "Command blocked for security reasons: sudo reboot"


def test_ensure_allowed_passes_safe_command():
    assert ensure_allowed("ls").allowed is True
