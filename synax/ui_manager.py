# synax/ui_manager.py

import asyncio
import logging
import os
import sys
from contextlib import contextmanager
from typing import Optional

from prompt_toolkit import PromptSession, print_formatted_text
from prompt_toolkit.formatted_text import FormattedText
from prompt_toolkit.history import FileHistory, InMemoryHistory
from prompt_toolkit.styles import Style

logger = logging.getLogger(__name__)

ASCII_BANNER = r"""
  ____
 / ___| _   _ _ __   __ ___  __
 \___ \| | | | '_ \ / _` \ \/ /
  ___) | |_| | | | | (_| |>  <
 |____/ \__, |_| |_|\__,_/_/\_\
        |___/
"""

HELP_LINES = [
    ("exit/quit", "Quit the program"),
    ("clear", "Clear conversation history"),
    ("help", "Display this help"),
    ("status", "Check connection to the model"),
]

DEFAULT_STYLE = Style.from_dict({
    'default': '',
    'banner': 'ansiblue bold',
    'info': '#888888',
    'success': 'ansigreen',
    'warning': 'ansiyellow',
    'error': 'ansired',
    'security-critical': 'ansired bold',
    'assistant': 'ansicyan',
    'command-output': 'ansiblue',
    'help-header': 'ansicyan bold',
    'prompt': 'ansiblue bold',
    'confirm-title': 'ansimagenta',
    'confirm-command': '#888888',
    'confirm-choice': '',
    'confirm-selected': 'ansiblue bold',
    'spinner': 'ansiblue',
})


class UIManager:
    """Writes styled lines to the terminal.

    Every message goes through `append_output(text, style_class=...)`, the
    style class being one of the keys of DEFAULT_STYLE.
    """

    def __init__(self, config: dict, style: Optional[Style] = None, output=None):
        self.config = config
        self.style = style or DEFAULT_STYLE
        self.output = output

    def append_output(self, text: str, style_class: str = 'default'):
        self.write_fragments([(f'class:{style_class}', text)])

    def write_fragments(self, fragments, end: str = '\n'):
        print_formatted_text(FormattedText(fragments), style=self.style, output=self.output, end=end)

    def show_banner(self, base_url: str, model: str, is_default_model: bool):
        self.append_output(ASCII_BANNER, style_class='banner')
        model_label = f"{model} (default)" if is_default_model else model
        self.append_output(f" Connected to: {base_url}", style_class='info')
        self.append_output(f" Model: {model_label}", style_class='info')
        self.append_output(' Type "exit" or "quit" to quit, "clear" to clear history', style_class='info')
        self.append_output(' Type "help" to see available commands\n', style_class='info')

    def show_help(self):
        self.append_output("\n📖 Available commands:", style_class='help-header')
        width = max(len(name) for name, _ in HELP_LINES)
        for name, description in HELP_LINES:
            self.append_output(f"  {name.ljust(width)}  - {description}", style_class='info')

    def show_assistant_reply(self, text: str):
        self.append_output(f"\n {text}\n", style_class='assistant')


class LoadingAnimation:
    """Braille spinner drawn on the current line while a request is pending."""

    FRAMES = ['⠋', '⠙', '⠹', '⠸', '⠼', '⠴', '⠦', '⠧', '⠇', '⠏']
    HIDE_CURSOR = '\x1b[?25l'
    SHOW_CURSOR = '\x1b[?25h'
    CLEAR_LINE = '\r\x1b[2K'

    def __init__(self, stream=None, interval: float = 0.08, enabled: bool = True):
        self.stream = stream or sys.stdout
        self.interval = interval
        self.enabled = enabled
        self.frame_index = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None

    def start(self):
        if self._task is not None or not self.enabled:
            return
        self.frame_index = 0
        self.stream.write(self.HIDE_CURSOR)
        self.stream.flush()
        self._task = asyncio.get_running_loop().create_task(self._spin())

    def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        self._task = None
        self.stream.write(self.CLEAR_LINE + self.SHOW_CURSOR)
        self.stream.flush()

    @contextmanager
    def running(self):
        self.start()
        try:
            yield self
        finally:
            self.stop()

    async def _spin(self):
        while True:
            frame = self.FRAMES[self.frame_index]
            self.stream.write(f"\r\x1b[34m{frame}\x1b[0m")
            self.stream.flush()
            self.frame_index = (self.frame_index + 1) % len(self.FRAMES)
            await asyncio.sleep(self.interval)


class LineReader:
    """Reads one user line at a time.

    On a terminal this is a prompt_toolkit PromptSession with persistent
    history; otherwise lines are read straight from stdin.
    """

    def __init__(self, prompt_text: str = '> ', history_file: Optional[str] = None,
                 style: Optional[Style] = None, stdin=None):
        self.prompt_text = prompt_text
        self.stdin = stdin or sys.stdin
        self.interactive = self.stdin.isatty()
        self.session = None
        if self.interactive:
            history = InMemoryHistory()
            if history_file:
                os.makedirs(os.path.dirname(history_file) or '.', exist_ok=True)
                history = FileHistory(history_file)
            self.session = PromptSession(
                FormattedText([('class:prompt', prompt_text)]),
                history=history,
                style=style or DEFAULT_STYLE,
            )
            logger.debug(f"LineReader using PromptSession (history: {history_file}).")
        else:
            logger.info("stdin is not a TTY; reading plain lines.")

    async def read_line(self) -> str:
        """
        Returns the next line without its trailing newline.

        Raises:
            KeyboardInterrupt: Ctrl-C was pressed at the prompt.
            EOFError: Ctrl-D or end of input.
        """
        if self.session is not None:
            return await self.session.prompt_async()
        line = await asyncio.to_thread(self.stdin.readline)
        if line == '':
            raise EOFError
        return line.rstrip('\r\n')
