# tests/test_command_executor.py

import asyncio
import time
from unittest.mock import patch

import pytest

from synax.command_executor import (
    NO_OUTPUT_PLACEHOLDER,
    CommandExecutor,
    ExecutionResult,
    combine_output,
)
from synax.errors import CommandExecutionError

# --- combine_output ---

def test_combine_output_stdout_only():
    assert combine_output("hello\n", "") == "hello\n"

def test_combine_output_labels_stderr():
    assert combine_output("out\n", "warn\n") == "out\n\nSTDERR:\nwarn\n"

def test_combine_output_stderr_only():
    assert combine_output("", "oops") == "\nSTDERR:\noops"

def test_combine_output_placeholder_when_blank():
    assert combine_output("", "") == NO_OUTPUT_PLACEHOLDER
    assert combine_output("  \n", "") == NO_OUTPUT_PLACEHOLDER

# --- CommandExecutor with a real shell ---

@pytest.mark.asyncio
async def test_execute_captures_stdout():
    result = await CommandExecutor().execute("echo hello")
    assert result == ExecutionResult(success=True, text="hello\n", returncode=0)

@pytest.mark.asyncio
async def test_execute_supports_pipes_and_bash_syntax():
    result = await CommandExecutor().execute("printf 'b\\na\\n' | sort && [[ 1 -eq 1 ]] && echo done")
    assert result.success is True
    assert result.text == "a\nb\ndone\n"

@pytest.mark.asyncio
async def test_execute_successful_command_with_stderr():
    result = await CommandExecutor().execute("echo out; echo err 1>&2")
    assert result.success is True
    assert result.text == "out\n\nSTDERR:\nerr\n"

@pytest.mark.asyncio
async def test_execute_stderr_only_command_has_labelled_section():
    result = await CommandExecutor().execute("echo err 1>&2")
    assert result.success is True
    assert result.text == "\nSTDERR:\nerr\n"

@pytest.mark.asyncio
async def test_execute_silent_command_returns_placeholder():
    result = await CommandExecutor().execute("true")
    assert result.success is True
    assert result.text == NO_OUTPUT_PLACEHOLDER

@pytest.mark.asyncio
async def test_execute_nonzero_exit_is_failure():
    result = await CommandExecutor().execute("echo bad 1>&2; exit 3")
    assert result.success is False
    assert result.returncode == 3
    assert result.text == "Command failed: echo bad 1>&2; exit 3\nbad"

@pytest.mark.asyncio
async def test_run_nonzero_exit_without_stderr_mentions_exit_code():
    with pytest.raises(CommandExecutionError) as exc_info:
        await CommandExecutor().run("exit 2")
    assert exc_info.value.returncode == 2
    assert str(exc_info.value) == "Command failed: exit 2 (exit code 2)"

@pytest.mark.asyncio
async def test_execute_buffer_overrun_is_failure():
    executor = CommandExecutor(max_buffer_bytes=1000)
    result = await executor.execute("head -c 5000 /dev/zero | tr '\\0' a")
    assert result.success is False
    assert "stdout maxBuffer length exceeded" in result.text

@pytest.mark.asyncio
async def test_execute_output_within_buffer_is_kept():
    executor = CommandExecutor(max_buffer_bytes=1000)
    result = await executor.execute("head -c 500 /dev/zero | tr '\\0' a")
    assert result.success is True
    assert result.text == "a" * 500

@pytest.mark.asyncio
async def test_execute_timeout_kills_child():
    executor = CommandExecutor(timeout_seconds=0.2)
    result = await executor.execute("sleep 5")
    assert result.success is False
    assert result.text.startswith("Command timed out after 0.2 seconds")

@pytest.mark.asyncio
async def test_execute_spawn_failure_is_reported():
    with patch("asyncio.create_subprocess_shell", side_effect=FileNotFoundError("no such shell")):
        result = await CommandExecutor(shell="/nonexistent/sh").execute("ls")
    assert result.success is False
    assert "Failed to start shell '/nonexistent/sh'" in result.text

@pytest.mark.asyncio
async def test_execute_never_raises_for_process_errors():
    executor = CommandExecutor()
    result = await executor.execute("this-command-does-not-exist-synax")
    assert isinstance(result, ExecutionResult)
    assert result.success is False
    assert result.returncode == 127

def _pending_reader_tasks():
    current = asyncio.current_task()
    return [t for t in asyncio.all_tasks()
            if t is not current and getattr(t.get_coro(), "__name__", "") == "_read_bounded"]

@pytest.mark.asyncio
async def test_buffer_overrun_leaves_no_reader_tasks_behind():
    executor = CommandExecutor(max_buffer_bytes=1000)
    result = await executor.execute("head -c 5000 /dev/zero | tr '\\0' a; sleep 30 1>&2")
    assert result.success is False
    assert _pending_reader_tasks() == []

@pytest.mark.asyncio
async def test_timeout_leaves_no_reader_tasks_behind():
    result = await CommandExecutor(timeout_seconds=0.2).execute("sleep 30")
    assert result.success is False
    assert _pending_reader_tasks() == []

@pytest.mark.asyncio
async def test_cancelling_execute_kills_the_whole_pipeline():
    task = asyncio.create_task(CommandExecutor().execute("sleep 30 | cat"))
    await asyncio.sleep(0.3)
    started = time.monotonic()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert time.monotonic() - started < 5
    assert _pending_reader_tasks() == []

# --- from_config ---

def test_from_config_reads_execution_section(mock_config):
    mock_config["execution"] = {"shell": "/bin/sh", "max_buffer_bytes": 2048, "timeout_seconds": 9}
    executor = CommandExecutor.from_config(mock_config)
    assert (executor.shell, executor.max_buffer_bytes, executor.timeout_seconds) == ("/bin/sh", 2048, 9)

def test_from_config_defaults():
    executor = CommandExecutor.from_config({})
    assert executor.shell == "/bin/bash"
    assert executor.max_buffer_bytes == 1024 * 1024
    assert executor.timeout_seconds is None
