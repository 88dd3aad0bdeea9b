# synax/chat_engine.py

import asyncio
import logging
import signal
import sys
from contextlib import contextmanager
from typing import Optional

from synax.errors import InferenceError
from synax.history import ConversationHistory
from synax.preprompt import PRE_PROMPT, compose_prompt
from synax.ui_manager import LoadingAnimation

logger = logging.getLogger(__name__)

EXIT_COMMANDS = ('exit', 'quit')
INTERRUPT_NOTICE = '\n\nInterruption detected. Type "exit" to quit properly.'


class ChatEngine:
    def __init__(self, config, ui_manager, ollama_client, response_router,
                 history: Optional[ConversationHistory] = None,
                 spinner: Optional[LoadingAnimation] = None,
                 pre_prompt: str = PRE_PROMPT):
        """
        Initializes the ChatEngine.

        Args:
            config (dict): The application configuration.
            ui_manager (UIManager): Terminal output.
            ollama_client (OllamaClient): Inference endpoint client.
            response_router (ResponseRouter): Handles each model reply.
            history (ConversationHistory): Session history; a fresh one if omitted.
            spinner (LoadingAnimation): Shown while waiting on the model.
            pre_prompt (str): Instructions placed ahead of every prompt.
        """
        self.config = config
        self.ui_manager = ui_manager
        self.ollama_client = ollama_client
        self.response_router = response_router
        self.history = history if history is not None else ConversationHistory()
        if spinner is None:
            show_spinner = config.get("ui", {}).get("show_spinner", True)
            spinner = LoadingAnimation(enabled=show_spinner and sys.stdout.isatty())
        self.spinner = spinner
        self.pre_prompt = pre_prompt
        self._interrupted = False
        logger.info(f"ChatEngine initialized for model '{ollama_client.model}' at {ollama_client.base_url}")

    async def handle_built_in_command(self, user_input: str) -> bool:
        """
        Handles exit/quit, clear, help and status.

        Returns:
            bool: True if the input was a built-in and was handled, False otherwise.

        Raises:
            SystemExit: On exit/quit.
        """
        if user_input in EXIT_COMMANDS:
            logger.info(f"Exit requested via '{user_input}'.")
            raise SystemExit(0)

        if user_input == 'clear':
            self.history.clear()
            self.ui_manager.append_output("✅ History cleared", style_class='success')
            return True

        if user_input == 'help':
            self.ui_manager.show_help()
            return True

        if user_input == 'status':
            await self.check_status()
            return True

        return False

    async def check_status(self) -> bool:
        self.ui_manager.append_output("🔍 Checking connection...", style_class='info')
        try:
            model_names = await self.ollama_client.list_models()
        except InferenceError as e:
            logger.warning(f"Status check failed: {e}")
            self.ui_manager.append_output("❌ Connection to Ollama failed", style_class='error')
            return False
        self.ui_manager.append_output(f"✅ Connection OK - Models: {', '.join(model_names)}", style_class='success')
        return True

    async def submit_user_input(self, user_text: str) -> Optional[str]:
        """Sends one user turn to the model and routes the reply.

        Returns the model reply, or None when the request failed.
        """
        prompt = compose_prompt(user_text, self.history, self.pre_prompt)
        try:
            with self.spinner.running():
                reply = await self.ollama_client.generate(prompt)
        except InferenceError as e:
            self.ui_manager.append_output(f"❌ Error: {e}", style_class='error')
            return None

        self.history.add_exchange(user_text, reply)
        await self.response_router.handle_reply(reply)
        return reply

    async def process_input(self, raw_input: str):
        user_input = raw_input.strip()
        if not user_input:
            return
        if await self.handle_built_in_command(user_input):
            return
        await self.run_interruptible(self.submit_user_input(user_input))

    async def run_interruptible(self, coro):
        """
        Runs one user turn as a task that Ctrl-C cancels without ending the session.

        The SIGINT handler only exists while the turn is in flight; line input
        keeps its own Ctrl-C handling.

        Returns:
            The coroutine's result, or None if it was interrupted.
        """
        task = asyncio.ensure_future(coro)
        self._interrupted = False
        with self._sigint_cancels(task):
            try:
                return await task
            except asyncio.CancelledError:
                if not self._interrupted:
                    raise
        logger.info("User turn interrupted with Ctrl-C.")
        self.ui_manager.append_output(INTERRUPT_NOTICE, style_class='warning')
        return None

    def _on_interrupt(self, task: asyncio.Task):
        if task.done():
            return
        self._interrupted = True
        task.cancel()

    @contextmanager
    def _sigint_cancels(self, task: asyncio.Task):
        loop = asyncio.get_running_loop()
        previous_handler = signal.getsignal(signal.SIGINT)
        installed = False
        try:
            loop.add_signal_handler(signal.SIGINT, self._on_interrupt, task)
            installed = True
        except (NotImplementedError, RuntimeError, ValueError) as e:
            logger.debug(f"Cannot install SIGINT handler for this turn: {e}")
        try:
            yield
        finally:
            if installed:
                loop.remove_signal_handler(signal.SIGINT)
                # remove_signal_handler leaves the default handler; put back whoever ran before.
                if previous_handler is not None:
                    signal.signal(signal.SIGINT, previous_handler)

    async def run(self, line_reader):
        """Reads and processes lines until exit, quit or end of input."""
        while True:
            try:
                line = await line_reader.read_line()
            except KeyboardInterrupt:
                self.ui_manager.append_output(INTERRUPT_NOTICE, style_class='warning')
                continue
            except EOFError:
                logger.info("End of input reached; leaving the session.")
                return
            await self.process_input(line)
