"""Terminal front end for the turn loop.

Confirmations are asked on stdin; Ctrl+C while a turn is running fires the
kill switch. Host tool executors are registered by the embedding application,
so this CLI runs with whatever ``register_executors`` returns.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
import threading
from typing import Callable, Dict, List, Optional

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage

from daemonAgent.config.settings import get_settings
from daemonAgent.config.store import StaticSettingsStore, YamlSettingsStore
from daemonAgent.interfaces import ToolExecutor
from daemonAgent.models.enums import AutonomyLevel, RiskTier
from daemonAgent.models.turn import ProposedAction, Scope
from daemonAgent.runtime import Orchestrator
from daemonAgent.utils.error_handler import DaemonAgentError
from daemonAgent.utils.logging_utils import setup_logging


class ConsoleInput:
    """Reads stdin on one thread; the prompt and confirmations share its queue.

    A confirmation abandoned by the kill switch leaves no reader behind, so
    the next line typed goes to whoever asks next.
    """

    def __init__(self, readline: Optional[Callable[[], str]] = None):
        self._readline = readline or sys.stdin.readline
        self._lines: Optional[asyncio.Queue] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._eof = False

    def start(self) -> None:
        self._loop = asyncio.get_running_loop()
        self._lines = asyncio.Queue()
        threading.Thread(target=self._pump, name="stdin-reader", daemon=True).start()

    def _pump(self) -> None:
        while True:
            try:
                line = self._readline()
            except (OSError, ValueError):
                line = ""
            try:
                self._loop.call_soon_threadsafe(self._lines.put_nowait, line)
            except RuntimeError:
                return  # loop closed
            if not line:
                return

    async def ask(self, prompt: str) -> str:
        if self._eof:
            raise EOFError
        print(prompt, end="", flush=True)
        line = await self._lines.get()
        if not line:
            self._eof = True
            raise EOFError
        return line.strip()


class TerminalConfirmation:
    """Asks y/N through the shared console reader."""

    def __init__(self, console: ConsoleInput):
        self.console = console

    async def request(self, action: ProposedAction, reason: str, risk_tier: RiskTier) -> bool:
        args = ", ".join(f"{key}={value!r}" for key, value in action.arguments.items())
        print(f"\n[{risk_tier.value}] {reason}")
        print(f"  {action.tool}({args})")
        try:
            answer = await self.console.ask("Allow? [y/N] ")
        except EOFError:
            return False
        return answer.lower() in {"y", "yes"}


def register_executors() -> Dict[str, ToolExecutor]:
    return {}


def _print_help() -> None:
    print("Commands:")
    print("  /quit, /exit          - leave")
    print("  /reset                - forget the conversation")
    print("  /level <0-3>          - set the autonomy level")
    print("  /scope <cap> [path]   - pre-approve a capability, optionally under a path")
    print("  /scopes               - list autonomy level and scopes")


def _handle_command(command: str, store) -> bool:
    """Apply a slash command. Returns False when the session should end."""
    parts = command.split(maxsplit=2)
    name = parts[0].lower()

    if name in {"/quit", "/exit"}:
        return False
    if name == "/help":
        _print_help()
    elif name == "/level" and len(parts) == 2 and parts[1].isdigit():
        if not isinstance(store, StaticSettingsStore):
            print("Autonomy comes from the policy file; edit it instead.")
        else:
            store.set_autonomy_level(int(parts[1]))
            print(f"Autonomy level: {int(store.autonomy_level())}")
    elif name == "/scope" and len(parts) >= 2:
        if not isinstance(store, StaticSettingsStore):
            print("Scopes come from the policy file; edit it instead.")
        else:
            store.add_scope(Scope(parts[1], parts[2] if len(parts) == 3 else None))
            print(f"Added scope {parts[1]}" + (f" under {parts[2]}" if len(parts) == 3 else ""))
    elif name == "/scopes":
        print(f"Autonomy level: {int(store.autonomy_level())} ({AutonomyLevel(store.autonomy_level()).name.lower()})")
        for scope in store.scopes():
            print(f"  {scope.capability}" + (f" under {scope.path}" if scope.path else " (any target)"))
    else:
        print(f"Unknown command: {command}")
        _print_help()
    return True


async def async_main():
    settings = get_settings()
    logger = setup_logging(
        level=getattr(logging, settings.observability.log_level.upper(), logging.INFO),
        log_dir=settings.observability.log_dir,
    )

    console = ConsoleInput()
    try:
        orchestrator = Orchestrator.from_settings(
            settings,
            executors=register_executors(),
            confirmation=TerminalConfirmation(console),
        )
    except DaemonAgentError as e:
        print(f"Cannot start: {e.user_message}")
        return

    store = orchestrator.settings_store
    if isinstance(store, YamlSettingsStore):
        print(f"Policy file: {store.path}")
    print("daemonAgent ready. Type /help for commands, Ctrl+C during a turn to stop it.")

    loop = asyncio.get_running_loop()
    console.start()
    history: List[BaseMessage] = []

    try:
        while True:
            try:
                user_input = await console.ask("You> ")
            except EOFError:
                print()
                logger.info("Session ended by user")
                break

            if not user_input:
                continue
            if user_input.startswith("/"):
                if user_input.lower() == "/reset":
                    history = []
                    print("Conversation cleared.")
                    continue
                if not _handle_command(user_input, store):
                    logger.info("Session ended by /quit command")
                    break
                continue

            loop.add_signal_handler(signal.SIGINT, orchestrator.stop)
            try:
                turn = await orchestrator.run_turn(user_input, history)
            finally:
                loop.remove_signal_handler(signal.SIGINT)

            print(f"Agent> {turn.reply}")
            print(f"       {turn.outcome.value} {turn.metrics.summary()}")
            history.extend([HumanMessage(content=turn.user_input), AIMessage(content=turn.reply)])
    finally:
        orchestrator.audit.close()


def main():
    try:
        asyncio.run(async_main())
    except KeyboardInterrupt:
        print()


if __name__ == "__main__":
    main()
