"""Unix-style command parameters.

A command declares its positional parameters (each required or optional)
and the flags it accepts. Invocations are bound against that declaration
before a handler ever runs:

    kget <topic> <partition> <offset> [-f format]

    params = UnixLikeParams(
        positional=(("topic", True), ("partition", True), ("offset", True)),
        flags=(("-f", "format"),),
    )
    args = params.bind(["quotes", "0", "42", "-f", "json"], usage="kget ...")
    args[0]             # "quotes"
    args.option("format")  # "json"
"""

import re
from dataclasses import dataclass, field
from typing import Mapping, Optional, Sequence

from kqlsh.common.errors import CommandSyntaxError

_NUMBER = re.compile(r"-\d+(\.\d+)?")


def _is_flag(token: str) -> bool:
    # negative numbers are values, not flags
    return token.startswith("-") and len(token) > 1 and not _NUMBER.fullmatch(token)


@dataclass(frozen=True)
class UnixLikeArgs:
    """A bound invocation: positional values plus the flags that were given.

    ``flags`` maps each given flag (e.g. ``-f``) to its value, or None for a
    flag given without one. ``options`` holds the same values keyed by the
    flag's semantic name (e.g. ``format``).
    """

    positional: tuple[str, ...] = ()
    flags: Mapping[str, Optional[str]] = field(default_factory=dict)
    options: Mapping[str, Optional[str]] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.positional)

    def __getitem__(self, index: int) -> str:
        return self.positional[index]

    def get(self, index: int, default: Optional[str] = None) -> Optional[str]:
        return self.positional[index] if index < len(self.positional) else default

    def option(self, name: str, default: Optional[str] = None) -> Optional[str]:
        value = self.options.get(name)
        return default if value is None else value

    def has_option(self, name: str) -> bool:
        return name in self.options


@dataclass(frozen=True)
class UnixLikeParams:
    """Parameter declaration for one command.

    Attributes:
        positional: Ordered (name, required) pairs; required ones come first
        flags: (flag, semantic name) pairs, e.g. ("-t", "timeout")
    """

    positional: tuple[tuple[str, bool], ...] = ()
    flags: tuple[tuple[str, str], ...] = ()

    def __post_init__(self) -> None:
        seen_optional = False
        for name, required in self.positional:
            if required and seen_optional:
                raise ValueError(f"Required parameter '{name}' follows an optional one")
            seen_optional = seen_optional or not required

    @property
    def min_args(self) -> int:
        return sum(1 for _, required in self.positional if required)

    @property
    def max_args(self) -> int:
        return len(self.positional)

    def prototype(self, command: str) -> str:
        parts = [command]
        for name, required in self.positional:
            parts.append(f"<{name}>" if required else f"[{name}]")
        for flag, name in self.flags:
            parts.append(f"[{flag} {name}]")
        return " ".join(parts)

    def bind(self, tokens: Sequence[str], usage: Optional[str] = None) -> UnixLikeArgs:
        """Bind command-line tokens to this declaration.

        Raises:
            CommandSyntaxError: Unknown flag, or positional count outside
                [min_args, max_args]
        """
        names = dict(self.flags)
        positional: list[str] = []
        flags: dict[str, Optional[str]] = {}

        index = 0
        while index < len(tokens):
            token = tokens[index]
            index += 1
            if not _is_flag(token):
                positional.append(token)
                continue

            if token not in names:
                raise CommandSyntaxError(f"Unknown option '{token}'", usage)

            value = None
            if index < len(tokens) and not _is_flag(tokens[index]):
                value = tokens[index]
                index += 1
            flags[token] = value

        if not self.min_args <= len(positional) <= self.max_args:
            if self.min_args == self.max_args:
                expected = str(self.min_args)
            else:
                expected = f"{self.min_args} to {self.max_args}"
            raise CommandSyntaxError(
                f"Expected {expected} argument(s), got {len(positional)}", usage,
            )

        return UnixLikeArgs(
            positional=tuple(positional),
            flags=flags,
            options={names[flag]: value for flag, value in flags.items()},
        )


NO_PARAMS = UnixLikeParams()
