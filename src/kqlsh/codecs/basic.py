"""Binary, JSON and plain-text codecs."""

import json

from kqlsh.codecs.base import Codec, DecodedMessage, MessageFormat
from kqlsh.common.errors import DecodeError

_WHITESPACE = frozenset("\t\n\r")


class BinaryCodec(Codec):
    """Passes bytes through unchanged. Never fails."""

    format = MessageFormat.BINARY

    def decode(self, payload: bytes) -> DecodedMessage:
        return DecodedMessage(format=self.format, raw=bytes(payload))


class JsonCodec(Codec):
    """Parses UTF-8 JSON documents.

    Objects become the message fields; any other JSON value is exposed as
    ``{"value": ...}``.

    Args:
        structured_only: Reject documents whose top level is not an object
            or array. Used by auto-detection, where bare scalars such as
            ``42`` or ``"abc"`` are better treated as plain text.
    """

    format = MessageFormat.JSON

    def __init__(self, structured_only: bool = False):
        self.structured_only = structured_only

    def decode(self, payload: bytes) -> DecodedMessage:
        try:
            document = json.loads(payload.decode("utf-8"))
        except (UnicodeDecodeError, ValueError, RecursionError) as e:
            # ValueError also covers over-long integer literals; RecursionError covers deep nesting
            raise DecodeError(f"Invalid JSON: {e}") from e

        if isinstance(document, dict):
            return DecodedMessage(format=self.format, raw=payload, fields=document)

        if self.structured_only and not isinstance(document, list):
            raise DecodeError(f"JSON document is a bare {type(document).__name__}, not an object or array")

        return DecodedMessage(format=self.format, raw=payload, fields={"value": document})


class TextCodec(Codec):
    """Decodes UTF-8 text without interpreting it.

    Args:
        printable_only: Reject text containing control characters other
            than tab, CR and LF. Used by auto-detection so that binary
            payloads which happen to be valid UTF-8 fall through to binary.
    """

    format = MessageFormat.TEXT

    def __init__(self, printable_only: bool = False):
        self.printable_only = printable_only

    def decode(self, payload: bytes) -> DecodedMessage:
        try:
            text = payload.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(f"Invalid UTF-8 text: {e}") from e

        if self.printable_only and not all(c.isprintable() or c in _WHITESPACE for c in text):
            raise DecodeError("Text contains non-printable characters")

        return DecodedMessage(format=self.format, raw=payload, text=text)
