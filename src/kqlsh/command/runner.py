"""Command-line parsing and dispatch.

CommandRunner turns one input line into a command invocation. Handlers may
be sync or async; awaitables are driven to completion on the runner's event
loop so the shell itself stays synchronous.
"""

import asyncio
import inspect
import shlex
from dataclasses import dataclass
from typing import Any, Optional

from kqlsh.command.base import Command
from kqlsh.command.manager import ModuleManager
from kqlsh.common.errors import CommandSyntaxError, ModuleError
from kqlsh.common.logging import command_context, get_logger
from kqlsh.common.metrics import create_component_metrics

logger = get_logger(__name__, component="command")
metrics = create_component_metrics("shell")


@dataclass(frozen=True)
class CommandLine:
    """A tokenized input line."""

    name: str
    args: tuple[str, ...]
    remainder: str


@dataclass(frozen=True)
class Outcome:
    command: Command
    value: Any


def parse_line(line: str) -> Optional[CommandLine]:
    """Split a line into command name, arguments and unparsed remainder.

    Returns None for a blank line.

    Raises:
        CommandSyntaxError: On unbalanced quotes
    """
    stripped = line.strip()
    if not stripped:
        return None

    name, _, remainder = stripped.partition(" ")
    remainder = remainder.strip()
    try:
        args = tuple(shlex.split(remainder, posix=True))
    except ValueError as e:
        raise CommandSyntaxError(str(e)) from e
    return CommandLine(name=name.lower(), args=args, remainder=remainder)


class CommandRunner:
    """Resolves, validates and runs commands.

    Args:
        manager: Module registry to resolve commands against
        loop: Event loop for async handlers (a private loop by default)
    """

    def __init__(self, manager: ModuleManager, loop: Optional[asyncio.AbstractEventLoop] = None):
        self.manager = manager
        self.loop = loop or asyncio.new_event_loop()
        self.running: Optional[Command] = None

    def run(self, line: str) -> Optional[Outcome]:
        parsed = parse_line(line)
        if parsed is None:
            return None

        try:
            command = self.manager.resolve(parsed.name)
        except CommandSyntaxError:
            metrics.increment(
                "commands_total", labels={"module": "", "command": parsed.name, "status": "syntax_error"}
            )
            raise

        labels = {"module": command.module.name, "command": command.name}
        tokens = ((parsed.remainder,) if parsed.remainder else ()) if command.raw else parsed.args

        self.running = command
        try:
            with command_context(command.name, module=command.module.name), metrics.timer(
                "command_duration_seconds", labels=labels
            ):
                value = self.manager.invoke(command, tokens)
                if inspect.isawaitable(value):
                    value = self._complete(command, value)
        except CommandSyntaxError:
            metrics.increment("commands_total", labels={**labels, "status": "syntax_error"})
            raise
        except Exception:
            metrics.increment("commands_total", labels={**labels, "status": "error"})
            raise
        finally:
            self.running = None

        metrics.increment("commands_total", labels={**labels, "status": "ok"})
        return Outcome(command, value)

    def _complete(self, command: Command, awaitable: Any) -> Any:
        if asyncio.iscoroutine(awaitable):
            task = self.loop.create_task(awaitable)
        else:
            task = asyncio.ensure_future(awaitable, loop=self.loop)
        interrupted = False
        while True:
            try:
                return self.loop.run_until_complete(task)
            except KeyboardInterrupt:
                if interrupted:
                    # second Ctrl-C: abandon the command
                    task.cancel()
                    try:
                        self.loop.run_until_complete(task)
                    except asyncio.CancelledError:
                        pass
                    raise ModuleError(f"Command '{command.name}' aborted")
                interrupted = True
                logger.info("Interrupting command", command=command.name)
                command.module.interrupt()

    def interrupt(self) -> None:
        if self.running is not None:
            self.running.module.interrupt()

    def close(self) -> None:
        if not self.loop.is_closed():
            self.loop.close()
