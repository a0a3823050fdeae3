"""Access to the message log: the source contract and its Kafka implementations."""

from kqlsh.messages.source import FetchedMessage, MessageSource

__all__ = ["FetchedMessage", "MessageSource"]
