"""Message decoding pipeline.

Codecs turn raw message bytes into DecodedMessage values:

- BinaryCodec: bytes passed through unchanged
- AvroCodec: schema-based structured decoding (fastavro)
- JsonCodec: JSON documents
- TextCodec: plain UTF-8 text
- AutoCodec: fixed-priority detection across the above

Usage:
    from kqlsh.codecs import CodecRegistry, decode_message

    registry = CodecRegistry()
    codec = registry.create("auto:file:schemas/quote.avsc")
    message = decode_message(codec, payload, counter)
    print(message.format, message.as_record())
"""

from kqlsh.codecs.auto import AutoCodec
from kqlsh.codecs.avro import AvroCodec, extract_schema_id
from kqlsh.codecs.base import Codec, DecodedMessage, MessageFormat, decode_message
from kqlsh.codecs.basic import BinaryCodec, JsonCodec, TextCodec
from kqlsh.codecs.registry import CodecRegistry, FormatSpec

__all__ = [
    "AutoCodec",
    "AvroCodec",
    "BinaryCodec",
    "Codec",
    "CodecRegistry",
    "DecodedMessage",
    "FormatSpec",
    "JsonCodec",
    "MessageFormat",
    "TextCodec",
    "decode_message",
    "extract_schema_id",
]
