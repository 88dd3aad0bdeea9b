# main.py

import argparse
import asyncio
import datetime
import logging
import os
import sys

from synax import config_handler
from synax.chat_engine import ChatEngine
from synax.command_executor import CommandExecutor
from synax.command_gate import blocked_keywords_from_config
from synax.confirm_prompt import ConfirmationPrompt
from synax.errors import InferenceError
from synax.ollama_client import DEFAULT_MODEL, OllamaClient
from synax.response_router import ResponseRouter
from synax.ui_manager import LineReader, UIManager

LOG_DIR = "logs"
LOG_FILENAME = "synax.log"
INPUT_HISTORY_FILENAME = "input_history"

logger = logging.getLogger(__name__)


class StartupError(Exception):
    """Signals a fatal problem while bringing the session up."""
    pass


def setup_logging(home_dir: str) -> str:
    """Sends all log records to <home>/logs/synax.log; the terminal stays clean."""
    log_dir = os.path.join(home_dir, LOG_DIR)
    os.makedirs(log_dir, exist_ok=True)
    log_file = os.path.join(log_dir, LOG_FILENAME)
    logging.basicConfig(
        level=logging.DEBUG,
        format='%(asctime)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s',
        handlers=[logging.FileHandler(log_file)]
    )
    return log_file


def parse_arguments(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="synax",
        description="Synax CLI - chat with a local Ollama model and run the commands it proposes after confirmation.",
    )
    parser.add_argument('--url', metavar='<url>',
                        help="URL of the Ollama server (default: http://localhost:11434)")
    parser.add_argument('--model', metavar='<name>',
                        help="Name of the model (default: first model served by Ollama, else mistral)")
    return parser.parse_args(argv)


async def resolve_model(ollama_client: OllamaClient, config: dict, requested_model, ui_manager) -> str:
    default_model = config.get("ollama", {}).get("default_model", DEFAULT_MODEL)
    if requested_model:
        return requested_model
    if not config.get("ollama", {}).get("auto_detect_model", True):
        return default_model
    try:
        return await ollama_client.detect_model(default_model)
    except InferenceError:
        ui_manager.append_output("⚠️  Could not detect running model, using default", style_class='warning')
        return default_model


async def main_async_runner(config: dict, args: argparse.Namespace):
    """ Main asynchronous runner for the session. """
    ui_manager = UIManager(config)
    ollama_client = OllamaClient.from_config(config, base_url=args.url, model=args.model)
    ollama_client.model = await resolve_model(ollama_client, config, args.model, ui_manager)

    response_router = ResponseRouter(
        ui_manager,
        ConfirmationPrompt(ui_manager),
        CommandExecutor.from_config(config),
        blocked_keywords=blocked_keywords_from_config(config),
    )
    chat_engine = ChatEngine(config, ui_manager, ollama_client, response_router)

    default_model = config.get("ollama", {}).get("default_model", DEFAULT_MODEL)
    ui_manager.show_banner(ollama_client.base_url, ollama_client.model, ollama_client.model == default_model)

    history_file = config.get("ui", {}).get("history_file") or \
        os.path.join(config_handler.get_synax_home(), INPUT_HISTORY_FILENAME)
    try:
        line_reader = LineReader('> ', history_file=history_file, style=ui_manager.style)
    except (OSError, ValueError) as e:
        raise StartupError(f"Cannot open interactive input: {e}") from e

    ui_manager.append_output(f" {ollama_client.model} CLI started!", style_class='success')
    logger.info(f"Session ready: model='{ollama_client.model}', endpoint='{ollama_client.base_url}'")
    await chat_engine.run(line_reader)


def run_shell(argv=None) -> int:
    """ Entry point: returns the process exit status. """
    args = parse_arguments(argv)

    try:
        log_file = setup_logging(config_handler.get_synax_home())
    except OSError as e:
        print(f"\nFATAL STARTUP ERROR: cannot create the log directory: {e}", file=sys.stderr)
        return 1

    logger.info("=" * 80)
    logger.info("  Synax Session Started")
    logger.info(f"  Timestamp: {datetime.datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    logger.info("=" * 80)

    exit_code = 0
    try:
        config = config_handler.load_configuration()
        asyncio.run(main_async_runner(config, args))
    except (StartupError, FileNotFoundError) as e:
        print(f"\nFATAL STARTUP ERROR: {e}", file=sys.stderr)
        logger.critical(f"Session halting due to fatal startup error: {e}")
        exit_code = 1
    except (EOFError, KeyboardInterrupt):
        print("\nGoodbye! 👋")
        logger.info("Exiting due to EOF or KeyboardInterrupt at run_shell level.")
    except SystemExit as e:
        exit_code = e.code if isinstance(e.code, int) else 0
        if exit_code == 0:
            logger.info("Exiting Synax normally via SystemExit(0).")
        else:
            print(f"\nExiting Synax due to an issue (Code: {exit_code}). Check logs at {log_file}")
            logger.warning(f"Exiting Synax with code {exit_code}.")
    except Exception as e:
        print(f"\nUnexpected critical error: {e}", file=sys.stderr)
        logger.critical("Critical error in run_shell or main_async_runner", exc_info=True)
        exit_code = 1
    finally:
        logger.info("=" * 80)
        logger.info("  Synax Session Ended")
        logger.info(f"  Timestamp: {datetime.datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
        logger.info("=" * 80)
        logging.shutdown()
    return exit_code


def main():
    sys.exit(run_shell())


if __name__ == "__main__":
    main()
