"""Module registry and command lookup."""

from typing import Any, Optional, Sequence

from kqlsh.command.base import Command, Module
from kqlsh.common.errors import CommandNotFoundError, ModuleError
from kqlsh.common.logging import get_logger

logger = get_logger(__name__, component="command")


class ModuleManager:
    """Holds the registered modules and the flat command table.

    Modules are registered once at startup. Command names are unique across
    all modules; the table is read-only after registration.
    """

    def __init__(self, modules: Sequence[Module] = ()):
        self._modules: dict[str, Module] = {}
        self._commands: dict[str, Command] = {}
        self._active: Optional[Module] = None
        for module in modules:
            self.register(module)

    def register(self, module: Module) -> None:
        if module.name in self._modules:
            raise ModuleError(f"Module '{module.name}' is already registered")

        commands = {}
        for command in module.get_commands():
            name = command.name.lower()
            owner = self._commands.get(name) or commands.get(name)
            if owner is not None:
                raise ModuleError(
                    f"Command '{name}' of module '{module.name}' is already defined "
                    f"by module '{owner.module.name}'"
                )
            commands[name] = command

        self._modules[module.name] = module
        self._commands.update(commands)
        if self._active is None:
            self._active = module
        logger.debug("Module registered", module=module.name, commands=sorted(commands))

    @property
    def modules(self) -> list[Module]:
        return list(self._modules.values())

    @property
    def commands(self) -> list[Command]:
        return sorted(self._commands.values(), key=lambda c: c.name)

    @property
    def active(self) -> Module:
        if self._active is None:
            raise ModuleError("No modules registered")
        return self._active

    def get_module(self, name: str) -> Module:
        module = self._modules.get(name.lower())
        if module is None:
            raise ModuleError(
                f"Module '{name}' not found (available: {', '.join(sorted(self._modules))})"
            )
        return module

    def use(self, name: str) -> Module:
        self._active = self.get_module(name)
        return self._active

    def resolve(self, name: str) -> Command:
        """Look up a command by name (case-insensitive).

        Raises:
            CommandNotFoundError: If no module defines the command
        """
        command = self._commands.get(name.lower())
        if command is None:
            raise CommandNotFoundError(f"'{name}' not recognized")
        return command

    def invoke(self, command: Command, tokens: Sequence[str]) -> Any:
        """Bind arguments and call the handler.

        Returns the handler's value, which may be an awaitable.

        Raises:
            CommandSyntaxError: If the arguments do not fit the command; the
                handler is not called
        """
        args = command.bind(tokens)
        return command.fx(args)

    def shutdown(self) -> None:
        """Shut every module down, continuing past individual failures."""
        for module in reversed(self.modules):
            try:
                module.shutdown()
            except Exception as e:
                logger.error("Module shutdown failed", module=module.name, error=str(e))
