# --- API DOCUMENTATION for synax/command_executor.py ---
#
# **Purpose:** Runs a confirmed, gate-approved command through a POSIX shell
# and turns the captured streams into a single displayable text.
#
# **Public Classes:**
#
# class ExecutionResult:
#     """Tagged outcome: success with combined output, or failure with a message."""
#
# class CommandExecutor:
#     async def execute(self, command: str) -> ExecutionResult:
#         """Never raises for process problems; failures come back as ExecutionResult."""
#
#     async def run(self, command: str) -> str:
#         """Same as execute() but raises CommandExecutionError on failure."""
#
# **Notes:**
#   - The command is free-form shell syntax (pipes, redirections, chaining).
#   - Working directory and environment are inherited from this process.
#   - Each stream is capped at `max_buffer_bytes`; exceeding it kills the child.
#   - No timeout unless `timeout_seconds` is set.
#   - Each command runs in its own session; timeout, overrun and cancellation
#     kill its whole process group. Cancelling run()/execute() re-raises
#     CancelledError once the child is gone.
#
# --- END API DOCUMENTATION ---

import asyncio
import logging
import os
import signal
from dataclasses import dataclass
from typing import Optional

from synax.errors import CommandExecutionError

logger = logging.getLogger(__name__)

DEFAULT_SHELL = "/bin/bash"
DEFAULT_MAX_BUFFER_BYTES = 1024 * 1024
READ_CHUNK_SIZE = 64 * 1024
STDERR_LABEL = "STDERR:"
NO_OUTPUT_PLACEHOLDER = "<no output>"


class _BufferOverrun(Exception):
    def __init__(self, stream_name: str):
        super().__init__(stream_name)
        self.stream_name = stream_name


@dataclass(frozen=True)
class ExecutionResult:
    success: bool
    text: str
    returncode: Optional[int] = None

    @classmethod
    def ok(cls, combined_output: str, returncode: int = 0) -> "ExecutionResult":
        return cls(success=True, text=combined_output, returncode=returncode)

    @classmethod
    def failure(cls, message: str, returncode: Optional[int] = None) -> "ExecutionResult":
        return cls(success=False, text=message, returncode=returncode)


def combine_output(stdout: str, stderr: str) -> str:
    """Joins stdout and a labelled stderr block; placeholder when both are blank."""
    output = ""
    if stdout:
        output += stdout
    if stderr:
        output += f"\n{STDERR_LABEL}\n{stderr}"
    if not output.strip():
        return NO_OUTPUT_PLACEHOLDER
    return output


async def _read_bounded(stream: asyncio.StreamReader, limit: int, stream_name: str) -> bytes:
    chunks = []
    total = 0
    while True:
        chunk = await stream.read(READ_CHUNK_SIZE)
        if not chunk:
            break
        total += len(chunk)
        if total > limit:
            raise _BufferOverrun(stream_name)
        chunks.append(chunk)
    return b"".join(chunks)


def _kill_quietly(process):
    # The child leads its own process group, so pipelines die with it.
    try:
        os.killpg(process.pid, signal.SIGKILL)
    except (ProcessLookupError, PermissionError):
        try:
            process.kill()
        except ProcessLookupError:
            pass


class CommandExecutor:
    def __init__(self, shell: str = DEFAULT_SHELL,
                 max_buffer_bytes: int = DEFAULT_MAX_BUFFER_BYTES,
                 timeout_seconds: Optional[float] = None):
        self.shell = shell
        self.max_buffer_bytes = max_buffer_bytes
        self.timeout_seconds = timeout_seconds

    @classmethod
    def from_config(cls, config: dict) -> "CommandExecutor":
        execution_config = config.get("execution", {})
        return cls(
            shell=execution_config.get("shell") or DEFAULT_SHELL,
            max_buffer_bytes=execution_config.get("max_buffer_bytes") or DEFAULT_MAX_BUFFER_BYTES,
            timeout_seconds=execution_config.get("timeout_seconds"),
        )

    async def execute(self, command: str) -> ExecutionResult:
        try:
            output = await self.run(command)
        except CommandExecutionError as e:
            return ExecutionResult.failure(str(e), returncode=e.returncode)
        return ExecutionResult.ok(output)

    async def run(self, command: str) -> str:
        """
        Executes the command and returns the combined output.

        Args:
            command (str): Shell command line, already confirmed and allowed.

        Returns:
            str: stdout, followed by a labelled stderr section if stderr is not empty.

        Raises:
            CommandExecutionError: Spawn failure, non-zero exit, buffer overrun or timeout.
        """
        logger.info(f"Executing command via {self.shell}: '{command}'")
        try:
            process = await asyncio.create_subprocess_shell(
                command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                executable=self.shell,
                start_new_session=True,
            )
        except OSError as e:
            logger.error(f"Could not spawn shell '{self.shell}' for '{command}': {e}")
            raise CommandExecutionError(command, f"Failed to start shell '{self.shell}': {e}") from e

        try:
            if self.timeout_seconds:
                stdout_b, stderr_b = await asyncio.wait_for(self._collect(process), timeout=self.timeout_seconds)
            else:
                stdout_b, stderr_b = await self._collect(process)
        except _BufferOverrun as e:
            _kill_quietly(process)
            await process.wait()
            logger.warning(f"Command '{command}' exceeded the {self.max_buffer_bytes} byte buffer on {e.stream_name}.")
            raise CommandExecutionError(command, f"{e.stream_name} maxBuffer length exceeded ({self.max_buffer_bytes} bytes)") from e
        except asyncio.TimeoutError as e:
            _kill_quietly(process)
            await process.wait()
            logger.warning(f"Command '{command}' timed out after {self.timeout_seconds}s.")
            raise CommandExecutionError(command, f"Command timed out after {self.timeout_seconds} seconds: {command}") from e
        except asyncio.CancelledError:
            _kill_quietly(process)
            await process.wait()
            logger.info(f"Command '{command}' interrupted; child process killed.")
            raise

        stdout = stdout_b.decode(errors='replace')
        stderr = stderr_b.decode(errors='replace')

        if process.returncode != 0:
            logger.warning(f"Command '{command}' exited with code {process.returncode}")
            message = f"Command failed: {command}"
            if stderr.strip():
                message += f"\n{stderr.strip()}"
            else:
                message += f" (exit code {process.returncode})"
            raise CommandExecutionError(command, message, returncode=process.returncode)

        logger.debug(f"Command '{command}' finished: {len(stdout_b)} bytes stdout, {len(stderr_b)} bytes stderr.")
        return combine_output(stdout, stderr)

    async def _collect(self, process):
        readers = [
            asyncio.ensure_future(_read_bounded(process.stdout, self.max_buffer_bytes, "stdout")),
            asyncio.ensure_future(_read_bounded(process.stderr, self.max_buffer_bytes, "stderr")),
        ]
        try:
            stdout_b, stderr_b = await asyncio.gather(*readers)
        except BaseException:
            for reader in readers:
                reader.cancel()
            await asyncio.gather(*readers, return_exceptions=True)
            raise
        await process.wait()
        return stdout_b, stderr_b
