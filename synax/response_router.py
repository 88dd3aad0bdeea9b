# synax/response_router.py

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Optional, Union

from synax.command_executor import ExecutionResult
from synax.command_gate import DEFAULT_BLOCKED_KEYWORDS, ensure_allowed
from synax.errors import CommandBlockedError

logger = logging.getLogger(__name__)

ACTION_MARKER = "ACTION:"

_FENCED_BLOCK = re.compile(r'^```[\w+-]*[ \t]*\n(.*?)\n?```$', re.DOTALL)


@dataclass(frozen=True)
class DisplayAction:
    text: str


@dataclass(frozen=True)
class ExecuteAction:
    command: str


Action = Union[DisplayAction, ExecuteAction]


def clean_command(raw: str) -> str:
    """Removes markdown fences, stray backticks and surrounding whitespace."""
    candidate = raw.strip()
    fenced = _FENCED_BLOCK.match(candidate)
    if fenced:
        candidate = fenced.group(1)
    return candidate.strip().strip('`').strip()


def route(model_reply: str) -> Action:
    """
    Classifies a raw model reply.

    A reply whose trimmed text starts with "ACTION:" is a command request;
    anything else is displayed unchanged. An action whose command is empty
    after cleaning degrades to displaying the reply without the marker.
    """
    stripped = model_reply.strip()
    if not stripped.startswith(ACTION_MARKER):
        return DisplayAction(model_reply)

    remainder = stripped[len(ACTION_MARKER):]
    command = clean_command(remainder)
    if not command:
        logger.warning(f"Malformed action reply (no command): '{model_reply}'")
        return DisplayAction(remainder.strip())
    return ExecuteAction(command)


class ResponseRouter:
    """Drives a model reply through confirmation, the gate and the executor.

    Nothing raised while handling an action escapes `handle_reply`; failures
    are shown to the user and the session carries on. Cancellation (Ctrl-C
    during execution) is reported and then re-raised to the caller.
    """

    def __init__(self, ui_manager, confirmation_prompt, executor, blocked_keywords=DEFAULT_BLOCKED_KEYWORDS):
        self.ui_manager = ui_manager
        self.confirmation_prompt = confirmation_prompt
        self.executor = executor
        self.blocked_keywords = tuple(blocked_keywords)

    async def handle_reply(self, model_reply: str) -> Action:
        action = route(model_reply)
        if isinstance(action, DisplayAction):
            self.ui_manager.show_assistant_reply(action.text)
        else:
            await self.run_action(action.command)
        return action

    async def run_action(self, command: str) -> Optional[ExecutionResult]:
        """Confirm -> gate -> execute. Returns the result, or None when nothing ran."""
        try:
            approved = await self.confirmation_prompt.confirm(command)
            if not approved:
                logger.info(f"User declined execution of '{command}'.")
                return None

            ensure_allowed(command, self.blocked_keywords)
            result = await self.executor.execute(command)
        except CommandBlockedError as e:
            self.ui_manager.append_output(f"⛔ {e}", style_class='security-critical')
            return None
        except asyncio.CancelledError:
            logger.info(f"Action '{command}' interrupted.")
            self.ui_manager.append_output("❌ Execution error: interrupted", style_class='error')
            raise
        except Exception as e:
            logger.exception(f"Unexpected error while handling action '{command}'")
            self.ui_manager.append_output(f"❌ Execution error: {e}", style_class='error')
            return None

        if result.success:
            self.ui_manager.append_output(f"\n{result.text}", style_class='command-output')
        else:
            self.ui_manager.append_output(f"❌ Execution error: {result.text}", style_class='error')
        return result
