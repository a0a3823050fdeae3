"""Codec contract and the decoded message model.

A codec turns raw message bytes into a DecodedMessage. Codecs raise
DecodeError for payloads that do not match their format; callers that
scan many messages go through ``decode_message`` which converts that
failure into a decode-error record so one bad payload never halts a scan.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional

from kqlsh.common.errors import DecodeError
from kqlsh.common.io_counter import IOCounter
from kqlsh.common.logging import get_logger
from kqlsh.common.metrics import create_component_metrics

logger = get_logger(__name__, component="codecs")
metrics = create_component_metrics("codecs")


class MessageFormat(str, Enum):
    """Message formats understood by the codec pipeline."""

    AUTO = "auto"
    BINARY = "binary"
    AVRO = "avro"
    JSON = "json"
    TEXT = "text"


@dataclass(frozen=True)
class DecodedMessage:
    """A single decoded payload.

    Attributes:
        format: Format that actually decoded the payload (for ``auto`` this
            is the detected format, never AUTO)
        raw: Original payload bytes
        fields: Structured fields for Avro/JSON payloads
        text: Decoded text for plain-text payloads
        error: Decode failure description; set only on decode-error records
    """

    format: MessageFormat
    raw: bytes
    fields: Optional[Mapping[str, Any]] = None
    text: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def as_record(self) -> dict[str, Any]:
        """Field view used by predicates and projections.

        Plain-text and binary payloads expose a single ``value`` field.
        Decode-error records expose no fields.
        """
        if self.error is not None:
            return {}
        if self.fields is not None:
            return dict(self.fields)
        if self.text is not None:
            return {"value": self.text}
        return {"value": self.raw}

    @classmethod
    def failure(cls, fmt: MessageFormat, raw: bytes, error: str) -> "DecodedMessage":
        return cls(format=fmt, raw=raw, error=error)


class Codec(ABC):
    """Decodes payloads of one format."""

    format: MessageFormat

    @abstractmethod
    def decode(self, payload: bytes) -> DecodedMessage:
        """Decode a payload.

        Raises:
            DecodeError: If the payload is not valid for this format
        """

    @property
    def name(self) -> str:
        return self.format.value

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name})"


def decode_message(codec: Codec, payload: bytes, counter: Optional[IOCounter] = None) -> DecodedMessage:
    """Run a payload through a codec, absorbing decode failures.

    Counts the payload's bytes (and any failure) on ``counter``.

    Returns:
        The decoded message, or a decode-error record tagged with the
        codec's format
    """
    if counter is not None:
        counter.increment_bytes(len(payload))

    try:
        return codec.decode(payload)
    except DecodeError as e:
        if counter is not None:
            counter.increment_errors()
        metrics.increment("decode_errors_total", labels={"format": codec.name})
        logger.debug("Payload failed to decode", format=codec.name, size=len(payload), error=str(e))
        return DecodedMessage.failure(codec.format, payload, str(e))
