"""Core shell commands: help, module switching, history and session flags."""

from typing import Any, Optional, Sequence

from kqlsh import __version__
from kqlsh.command import Command, Module, Session, UnixLikeArgs
from kqlsh.common.config import config
from kqlsh.common.logging import configure_logging


class CoreModule(Module):
    name = "core"
    label = "Core"

    def __init__(self, session: Session):
        super().__init__()
        self.session = session

    def get_commands(self) -> Sequence[Command]:
        return [
            self.command("help", self.help, [("command", False)], help="Lists commands, or shows one command's usage"),
            self.command("modules", self.list_modules, help="Lists the loaded modules"),
            self.command("use", self.use, [("module", True)], help="Switches the active module"),
            self.command("history", self.history, [("count", False)], help="Shows recent commands"),
            self.command("debug", self.debug, [("state", False)], help="Turns debug output on or off"),
            self.command("version", self.version, help="Shows the kqlsh version"),
            self.command("exit", self.exit, help="Exits the shell"),
            self.command("quit", self.exit, help="Exits the shell"),
        ]

    def help(self, args: UnixLikeArgs) -> Any:
        manager = self.session.manager
        name = args.get(0)
        if name is not None:
            command = manager.resolve(name)
            return [command.usage, command.help] if command.help else [command.usage]

        return [
            {"command": c.name, "module": c.module.name, "description": c.help}
            for c in manager.commands
        ]

    def list_modules(self, args: UnixLikeArgs) -> list[dict]:
        active = self.session.manager.active
        return [
            {
                "name": m.name,
                "label": m.label,
                "commands": len(m.get_commands()),
                "active": m is active,
            }
            for m in self.session.manager.modules
        ]

    def use(self, args: UnixLikeArgs) -> None:
        self.session.manager.use(args[0])

    def history(self, args: UnixLikeArgs) -> list[str]:
        count = self._count(args.get(0))
        return [f"{number}: {line}" for number, line in self.session.history.last(count)]

    def debug(self, args: UnixLikeArgs) -> str:
        state = args.get(0)
        if state is None:
            enabled = not self.session.debug
        elif state.lower() in ("on", "true", "yes"):
            enabled = True
        elif state.lower() in ("off", "false", "no"):
            enabled = False
        else:
            raise self.syntax_error("debug", f"Expected on or off, got '{state}'")

        self.session.debug = enabled
        configure_logging(
            json_output=config.observability.json_logs,
            log_level="DEBUG" if enabled else config.observability.log_level,
        )
        return f"debugging is {'on' if enabled else 'off'}"

    def version(self, args: UnixLikeArgs) -> str:
        return f"kqlsh {__version__}"

    def exit(self, args: UnixLikeArgs) -> None:
        self.session.alive = False

    def _count(self, value: Optional[str]) -> Optional[int]:
        if value is None:
            return None
        try:
            count = int(value)
        except ValueError:
            raise self.syntax_error("history", f"Expected a number, got '{value}'")
        if count < 0:
            raise self.syntax_error("history", "count must not be negative")
        return count
