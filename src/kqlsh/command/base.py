"""Commands and the modules that own them."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence

from kqlsh.command.params import NO_PARAMS, UnixLikeArgs, UnixLikeParams
from kqlsh.common.errors import CommandSyntaxError
from kqlsh.common.logging import get_logger

Handler = Callable[[UnixLikeArgs], Any]


@dataclass(frozen=True)
class Command:
    """A named, validated entry point into a module.

    Attributes:
        module: Module that owns the command
        name: Command name as typed at the prompt (lowercase)
        fx: Handler; may return a value or an awaitable
        params: Positional and flag declaration
        help: One-line description
        raw: Pass the rest of the line as a single positional, unparsed
    """

    module: "Module" = field(repr=False, compare=False)
    name: str
    fx: Handler = field(repr=False, compare=False)
    params: UnixLikeParams = NO_PARAMS
    help: str = ""
    raw: bool = False

    @property
    def prototype(self) -> str:
        return self.params.prototype(self.name)

    @property
    def usage(self) -> str:
        return f"Usage: {self.prototype}"

    def bind(self, tokens: Sequence[str]) -> UnixLikeArgs:
        return self.params.bind(tokens, usage=self.usage)


class Module(ABC):
    """A group of commands sharing one connection to an external system.

    Subclasses set ``name`` and ``label``, return their commands from
    ``get_commands()`` and release their connection in ``shutdown()``.
    """

    name: str = ""
    label: str = ""

    def __init__(self) -> None:
        self.logger = get_logger(f"kqlsh.modules.{self.name}", component="modules")

    @abstractmethod
    def get_commands(self) -> Sequence[Command]:
        """Commands exposed by this module."""

    def command(
        self,
        name: str,
        fx: Handler,
        positional: Sequence[tuple[str, bool]] = (),
        flags: Sequence[tuple[str, str]] = (),
        help: str = "",
        raw: bool = False,
    ) -> Command:
        return Command(
            module=self,
            name=name.lower(),
            fx=fx,
            params=UnixLikeParams(tuple(positional), tuple(flags)),
            help=help,
            raw=raw,
        )

    def get_command(self, name: str) -> Command:
        return next(c for c in self.get_commands() if c.name == name)

    def syntax_error(self, command: str, message: str) -> CommandSyntaxError:
        """Syntax error carrying the usage of one of this module's commands."""
        return CommandSyntaxError(message, self.get_command(command).usage)

    def prompt(self) -> str:
        return f"{self.name}$ "

    def decipher(self, value: Any) -> Optional[Any]:
        """Module-specific view of a command result, or None for generic rendering."""
        return None

    def interrupt(self) -> None:
        """Ask a running command of this module to stop early."""

    def shutdown(self) -> None:
        """Release the module's connection. Safe to call more than once."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name})"
