# synax/errors.py

from typing import Optional


class SynaxError(Exception):
    """Base class for all errors raised by synax modules."""
    pass


class InferenceError(SynaxError):
    """Raised when the inference endpoint cannot produce a usable reply."""
    pass


class NetworkError(InferenceError):
    """The endpoint is unreachable or the request timed out."""
    pass


class ProtocolError(InferenceError):
    """The endpoint answered with a non-2xx status or a malformed body."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class CommandBlockedError(SynaxError):
    """A command matched a denylisted keyword and must not be executed."""

    def __init__(self, command: str, keyword: str):
        super().__init__(f"Command blocked for security reasons: {command}")
        self.command = command
        self.keyword = keyword


class CommandExecutionError(SynaxError):
    """The child process failed: spawn error, non-zero exit or buffer overrun."""

    def __init__(self, command: str, message: str, returncode: Optional[int] = None):
        super().__init__(message)
        self.command = command
        self.returncode = returncode


class ConfirmationInProgressError(SynaxError):
    """A confirmation prompt was requested while another one is still active."""
    pass
