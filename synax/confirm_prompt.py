# synax/confirm_prompt.py
#
# Execute/Cancel selector shown before any model-proposed command runs.
#
# Interactive mode puts the terminal in raw mode through prompt_toolkit's
# Input object and feeds parsed key presses into ConfirmationState:
#
#   RENDERING --(block drawn)--> AWAITING_INPUT
#   AWAITING_INPUT --Left/Up, Right/Down--> AWAITING_INPUT (redraw)
#   AWAITING_INPUT --Enter--> RESOLVED (True iff cursor on "Execute")
#   AWAITING_INPUT --Ctrl-C--> RESOLVED (False)
#
# Raw mode and the key listener are both context managers, so they are
# released on every exit path (Enter, Ctrl-C, error, task cancellation).
# Without a TTY the prompt falls back to a y/N question read from stdin.

import asyncio
import logging
import sys
from enum import Enum
from typing import Optional

from prompt_toolkit.input import create_input
from prompt_toolkit.keys import Keys

from synax.errors import ConfirmationInProgressError

logger = logging.getLogger(__name__)


class PromptChoice(Enum):
    EXECUTE = 0
    CANCEL = 1


class PromptPhase(Enum):
    RENDERING = "rendering"
    AWAITING_INPUT = "awaiting_input"
    RESOLVED = "resolved"


CHOICES = (PromptChoice.EXECUTE, PromptChoice.CANCEL)
CHOICE_LABELS = {
    PromptChoice.EXECUTE: "Execute command",
    PromptChoice.CANCEL: "Cancel",
}

PREVIOUS_KEYS = frozenset({Keys.Left, Keys.Up})
NEXT_KEYS = frozenset({Keys.Right, Keys.Down})
CONFIRM_KEYS = frozenset({Keys.ControlM, Keys.ControlJ})
CANCEL_KEYS = frozenset({Keys.ControlC})

AFFIRMATIVE_ANSWERS = ('y', 'yes', 'o', 'oui')


class ConfirmationState:
    """Cursor position and lifecycle of a single confirmation."""

    def __init__(self, choices=CHOICES):
        self.choices = tuple(choices)
        self.index = 0
        self.phase = PromptPhase.RENDERING
        self.result: Optional[bool] = None

    @property
    def selected(self) -> PromptChoice:
        return self.choices[self.index]

    @property
    def resolved(self) -> bool:
        return self.phase is PromptPhase.RESOLVED

    def mark_rendered(self):
        if self.phase is PromptPhase.RENDERING:
            self.phase = PromptPhase.AWAITING_INPUT

    def feed(self, key) -> bool:
        """Applies one key press. Returns True when the block must be redrawn."""
        if self.resolved:
            return False
        if key in CANCEL_KEYS:
            self._resolve(False)
            return False
        if key in CONFIRM_KEYS:
            self._resolve(self.selected is PromptChoice.EXECUTE)
            return False
        if key in PREVIOUS_KEYS:
            self.index = (self.index - 1) % len(self.choices)
            return True
        if key in NEXT_KEYS:
            self.index = (self.index + 1) % len(self.choices)
            return True
        return False

    def _resolve(self, result: bool):
        self.result = result
        self.phase = PromptPhase.RESOLVED


def build_prompt_fragments(command: str, selected_index: int, choices=CHOICES) -> list:
    """Formatted-text fragments for the whole prompt block."""
    fragments = [
        ('class:confirm-title', "Authorize execution of:\n"),
        ('class:confirm-command', f'"{command}"\n'),
    ]
    for i, choice in enumerate(choices):
        label = CHOICE_LABELS[choice]
        if i == selected_index:
            fragments.append(('class:confirm-selected', f"> {label}"))
        else:
            fragments.append(('class:confirm-choice', f"  {label}"))
        if i < len(choices) - 1:
            fragments.append(('', "\n"))
    return fragments


class ConfirmationPrompt:
    """Asks the user whether a command may run. One prompt at a time."""

    def __init__(self, ui_manager, input_factory=create_input, stdin=None, stream=None):
        self.ui_manager = ui_manager
        self.input_factory = input_factory
        self.stdin = stdin or sys.stdin
        self.stream = stream or sys.stdout
        self._active = False
        self._rendered_height = 0

    @property
    def is_active(self) -> bool:
        return self._active

    def is_interactive(self) -> bool:
        try:
            return self.stdin.isatty()
        except (AttributeError, ValueError):
            return False

    async def confirm(self, command: str) -> bool:
        """
        Suspends until the user accepts or declines the command.

        Args:
            command (str): The command that would be executed.

        Returns:
            bool: True to execute, False to cancel.

        Raises:
            ConfirmationInProgressError: Another confirmation is still pending.
        """
        if self._active:
            raise ConfirmationInProgressError("A confirmation prompt is already active.")
        self._active = True
        try:
            if self.is_interactive():
                approved = await self._confirm_interactive(command)
            else:
                approved = await self._confirm_line_based(command)
            logger.info(f"Confirmation for '{command}': {'approved' if approved else 'declined'}")
            return approved
        finally:
            self._active = False

    async def _confirm_interactive(self, command: str) -> bool:
        state = ConfirmationState()
        decided = asyncio.get_running_loop().create_future()
        raw_input = self.input_factory(self.stdin)

        def on_keys_ready():
            try:
                for key_press in raw_input.read_keys():
                    if state.feed(key_press.key):
                        self._render(command, state, redraw=True)
                    if state.resolved:
                        break
            except Exception as e:
                logger.error(f"Error while reading confirmation keys: {e}", exc_info=True)
                if not decided.done():
                    decided.set_exception(e)
                return
            if state.resolved and not decided.done():
                decided.set_result(state.result)

        self._rendered_height = 0
        self.stream.write("\n")
        self.stream.flush()
        try:
            with raw_input.raw_mode():
                with raw_input.attach(on_keys_ready):
                    self._render(command, state)
                    return await decided
        finally:
            self.stream.write("\n")
            self.stream.flush()
            raw_input.close()
            logger.debug("Confirmation prompt released raw mode and detached its key listener.")

    def _render(self, command: str, state: ConfirmationState, redraw: bool = False):
        if redraw and self._rendered_height:
            # Back to the first line of the previous block, then erase below.
            self.stream.write(f"\x1b[{self._rendered_height}F\x1b[J")
            self.stream.flush()
        fragments = build_prompt_fragments(command, state.index, state.choices)
        self.ui_manager.write_fragments(fragments)
        self._rendered_height = "".join(text for _, text in fragments).count("\n") + 1
        state.mark_rendered()

    async def _confirm_line_based(self, command: str) -> bool:
        self.ui_manager.write_fragments(
            [('class:warning', f'\nAuthorize execution of "{command}"? (y/N): ')], end=''
        )
        answer = await asyncio.to_thread(self.stdin.readline)
        return answer.strip().lower() in AFFIRMATIVE_ANSWERS
