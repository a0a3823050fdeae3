"""Exception hierarchy for kqlsh.

Error classes map onto how a failure is handled:

- CommandSyntaxError: malformed command line or argument count out of
  bounds. Reported with the command's usage, handler never invoked.
- QueryValidationError: a query cannot be planned (unknown partition,
  malformed predicate, unresolvable schema). Terminal before scanning.
- DecodeError: a payload does not match its format. Absorbed per message.
- FetchError: a partition could not be read. Absorbed per partition.
- ModuleError: a module cannot serve the command (e.g. not connected).
- SinkError: an export could not be written.
"""


class KqlshError(Exception):
    """Base class for all kqlsh errors."""


class CommandSyntaxError(KqlshError):
    """Raised when a command line cannot be bound to a command's parameters."""

    def __init__(self, message: str, usage: str | None = None):
        super().__init__(message)
        self.usage = usage


class CommandNotFoundError(CommandSyntaxError):
    """Raised when no registered command matches the given name."""


class QueryValidationError(KqlshError):
    """Raised when a KQL query cannot be parsed or planned."""


class SchemaError(QueryValidationError):
    """Raised when a schema cannot be resolved or parsed."""


class DecodeError(KqlshError):
    """Raised by a codec when a payload is not valid for its format."""


class FetchError(KqlshError):
    """Raised by a message source when a partition cannot be read."""

    def __init__(self, message: str, topic: str | None = None, partition: int | None = None):
        super().__init__(message)
        self.topic = topic
        self.partition = partition


class ModuleError(KqlshError):
    """Raised when a module cannot serve a command."""


class SinkError(KqlshError):
    """Raised when rows cannot be written to an output sink."""
