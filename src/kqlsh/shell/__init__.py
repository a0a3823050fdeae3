"""Interactive shell."""

from kqlsh.shell.shell import Shell

__all__ = ["Shell"]
