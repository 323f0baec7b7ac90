import argparse
import asyncio
import json
import os
import sys
from typing import Callable, Mapping

from dotenv import load_dotenv
from loguru import logger

from clip_gpt.actions import build_action_table
from clip_gpt.app_config import AppConfig, apply_popclip_options, load_json_config, parse_app_config
from clip_gpt.chat_client import ChatCompletionClient, create_chat_client
from clip_gpt.commands.router import CommandRouter
from clip_gpt.console_host import ConsoleHost, ScriptHost
from clip_gpt.dispatcher import Dispatcher, Outcome
from clip_gpt.errors import ConfigurationError
from clip_gpt.invocation import ActionKind, CallerContext, Invocation, Modifiers
from clip_gpt.logging_config import setup_logging
from clip_gpt.manifest import build_actions, build_options
from clip_gpt.session import SessionStore

_HELP = """Commands:
  <text>                 chat with the model (history kept per app)
  /<action> <text>       run custom, writing, dialogue, translate or spell on <text>
  /shift                 hold shift for the next action (secondary language / clear history)
  /clear                 clear the chat history of the current app
  /app <id> [name]       switch the calling application
  /help                  show this help
  exit                   quit"""


def load_config(environ: Mapping[str, str]) -> AppConfig:
    raw = apply_popclip_options(load_json_config(), environ)
    return parse_app_config(raw, environ)


def invocation_from_env(action: ActionKind, environ: Mapping[str, str]) -> Invocation:
    try:
        flags = int(environ.get("POPCLIP_MODIFIER_FLAGS", "0") or 0)
    except ValueError:
        flags = 0
    return Invocation(
        action=action,
        text=environ.get("POPCLIP_TEXT", ""),
        context=CallerContext(
            app_identifier=environ.get("POPCLIP_APP_IDENTIFIER", "unknown"),
            app_name=environ.get("POPCLIP_APP_NAME", ""),
        ),
        modifiers=Modifiers.from_flags(flags),
    )


async def run_once(action: ActionKind, config: AppConfig, environ: Mapping[str, str]) -> int:
    dispatcher = Dispatcher(build_action_table(), ScriptHost())
    result = await dispatcher.run(invocation_from_env(action, environ), config)
    return 1 if result.outcome is Outcome.FAILED else 0


class ConsoleLoop:
    def __init__(
        self,
        config: AppConfig,
        host: ConsoleHost,
        *,
        client_factory: Callable[[AppConfig], ChatCompletionClient] = create_chat_client,
    ):
        self._config = config
        self._store = SessionStore()
        self._dispatcher = Dispatcher(build_action_table(self._store), host, client_factory=client_factory)
        self._context = CallerContext(app_identifier="console", app_name="Console")
        self._shift = False
        self.router = CommandRouter(
            on_action=self._run,
            on_clear=self._clear,
            on_shift=self._toggle_shift,
            on_app=self._switch_app,
            on_help=lambda: print(_HELP),
            on_unknown=lambda line: print(f"Unknown command: {line} (try /help)"),
        )

    async def _run(self, action: ActionKind, text: str) -> None:
        modifiers = Modifiers(shift=self._shift)
        self._shift = False
        await self._dispatcher.run(Invocation(action, text, self._context, modifiers), self._config)

    async def _clear(self) -> None:
        self._shift = True
        await self._run(ActionKind.CHAT, "")

    def _toggle_shift(self) -> None:
        self._shift = not self._shift
        print(f"shift {'held' if self._shift else 'released'}")

    def _switch_app(self, rest: str) -> None:
        identifier, _, name = rest.partition(" ")
        if not identifier:
            print(f"Current app: {self._context.app_name}({self._context.app_identifier})")
            return
        self._context = CallerContext(app_identifier=identifier, app_name=name.strip() or identifier)
        print(f"Now acting for {self._context.app_name}({self._context.app_identifier})")


async def repl(config: AppConfig, log_descriptions: list[str]) -> None:
    loop = ConsoleLoop(config, ConsoleHost())
    print("clip-gpt (type 'exit' to quit, '/help' for commands)")
    print(f"Model: {config.model} via {config.api_type} ({config.api_base})")
    if log_descriptions:
        print(f"Logging: {', '.join(log_descriptions)}")
    print()

    while True:
        try:
            line = input("you> ")
        except (EOFError, KeyboardInterrupt):
            break

        trimmed = line.strip()
        if trimmed in ("exit", "quit"):
            break
        if not trimmed:
            continue

        try:
            await loop.router.handle(trimmed)
        except Exception as ex:
            logger.error(f"Unhandled error: {ex}")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="clip_gpt", description="Send selected text to a chat-completion API.")
    parser.add_argument(
        "action",
        nargs="?",
        choices=[a.value for a in ActionKind],
        help="run one action using POPCLIP_* environment variables and exit",
    )
    parser.add_argument(
        "--manifest",
        action="store_true",
        help="print the extension's action and option declarations as JSON and exit",
    )
    args = parser.parse_args(argv)

    if args.manifest:
        print(json.dumps({"actions": build_actions(), "options": build_options()}, ensure_ascii=False, indent=2))
        return 0

    load_dotenv()
    environ = os.environ
    try:
        config = load_config(environ)
    except ConfigurationError as ex:
        # Printed like any other result so the host can show it.
        print(f"Configuration error: {ex}")
        return 1
    log_descriptions = setup_logging(level=config.log_level, consumers=config.log_consumers)

    if args.action:
        logger.debug(f"Logging: {', '.join(log_descriptions)}")
        return asyncio.run(run_once(ActionKind(args.action), config, environ))
    asyncio.run(repl(config, log_descriptions))
    return 0


if __name__ == "__main__":
    sys.exit(main())
