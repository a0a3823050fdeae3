"""Shell session state shared with the core module."""

from collections import deque
from dataclasses import dataclass, field
from typing import Optional

from kqlsh.command.manager import ModuleManager
from kqlsh.common.config import config


class SessionHistory:
    """In-memory command history, oldest first, bounded to ``size`` entries."""

    def __init__(self, size: Optional[int] = None):
        self._lines: deque[str] = deque(maxlen=config.shell.history_size if size is None else size)

    def add(self, line: str) -> None:
        line = line.strip()
        if line:
            self._lines.append(line)

    def last(self, count: Optional[int] = None) -> list[tuple[int, str]]:
        """The most recent ``count`` entries (all by default) with their 1-based numbers."""
        numbered = list(enumerate(self._lines, start=1))
        if count is None:
            return numbered
        return numbered[-count:] if count > 0 else []

    def __len__(self) -> int:
        return len(self._lines)


@dataclass
class Session:
    manager: ModuleManager
    history: SessionHistory = field(default_factory=SessionHistory)
    debug: bool = False
    alive: bool = True
