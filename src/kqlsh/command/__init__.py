"""Command framework.

Modules expose Commands; the ModuleManager holds them in one flat table and
the CommandRunner parses input lines, validates arguments and runs handlers.
"""

from kqlsh.command.base import Command, Module
from kqlsh.command.manager import ModuleManager
from kqlsh.command.params import UnixLikeArgs, UnixLikeParams
from kqlsh.command.runner import CommandLine, CommandRunner, Outcome, parse_line
from kqlsh.command.session import Session, SessionHistory

__all__ = [
    "Command",
    "CommandLine",
    "CommandRunner",
    "Module",
    "ModuleManager",
    "Outcome",
    "Session",
    "SessionHistory",
    "UnixLikeArgs",
    "UnixLikeParams",
    "parse_line",
]
