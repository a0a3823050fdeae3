"""Avro codec backed by fastavro.

Supports plain schemaless Avro payloads and Confluent wire-format payloads.

Schema Registry Header Format (5 bytes):
    [0]:     Magic byte (0x00)
    [1-4]:   Schema ID (big-endian int32)
    [5-end]: Avro payload

The schema is parsed once, when the codec is constructed. A malformed
schema is a SchemaError; a payload that does not match the schema is a
DecodeError for that message only.
"""

import io
import json
import struct
from typing import Any, Mapping, Optional

from fastavro import parse_schema, schemaless_reader, schemaless_writer

from kqlsh.codecs.base import Codec, DecodedMessage, MessageFormat
from kqlsh.common.errors import DecodeError, SchemaError

MAGIC_BYTE = 0x00
HEADER_SIZE = 5


class AvroCodec(Codec):
    """Decodes (and encodes) Avro records for one schema.

    Args:
        schema_text: Avro schema as JSON text
        framed: Expect the 5-byte Schema Registry header before each payload
        schema_id: Registry ID of the schema; when set on a framed codec,
            payloads written with a different schema ID are rejected
    """

    format = MessageFormat.AVRO

    def __init__(self, schema_text: str, framed: bool = False, schema_id: Optional[int] = None):
        self.schema_text = schema_text
        self.framed = framed
        self.schema_id = schema_id

        try:
            self._schema = parse_schema(json.loads(schema_text))
        except Exception as e:
            raise SchemaError(f"Invalid Avro schema: {e}") from e

    def decode(self, payload: bytes) -> DecodedMessage:
        body = self._strip_header(payload) if self.framed else payload

        buffer = io.BytesIO(body)
        try:
            datum = schemaless_reader(buffer, self._schema)
        except Exception as e:
            raise DecodeError(f"Avro deserialization failed: {e}") from e

        # a payload that only partially matches the schema is not this format
        if buffer.tell() != len(body):
            raise DecodeError(
                f"Avro payload has {len(body) - buffer.tell()} trailing bytes after a complete record"
            )

        fields = datum if isinstance(datum, dict) else {"value": datum}
        return DecodedMessage(format=self.format, raw=payload, fields=fields)

    def encode(self, record: Mapping[str, Any]) -> bytes:
        """Serialize a record with this codec's schema.

        Framed codecs prepend the Schema Registry header, which requires
        ``schema_id``.
        """
        buffer = io.BytesIO()
        if self.framed:
            if self.schema_id is None:
                raise ValueError("A schema_id is required to encode framed Avro payloads")
            buffer.write(struct.pack(">bI", MAGIC_BYTE, self.schema_id))

        try:
            schemaless_writer(buffer, self._schema, record)
        except Exception as e:
            raise DecodeError(f"Avro serialization failed: {e}") from e
        return buffer.getvalue()

    def _strip_header(self, payload: bytes) -> bytes:
        if len(payload) < HEADER_SIZE:
            raise DecodeError(f"Payload too short for Schema Registry header: {len(payload)} bytes")

        if payload[0] != MAGIC_BYTE:
            raise DecodeError(f"Invalid magic byte: {hex(payload[0])} (expected 0x00)")

        schema_id = struct.unpack(">I", payload[1:HEADER_SIZE])[0]
        if self.schema_id is not None and schema_id != self.schema_id:
            raise DecodeError(f"Payload written with schema ID {schema_id}, expected {self.schema_id}")

        return payload[HEADER_SIZE:]

    def __repr__(self) -> str:
        return f"AvroCodec(framed={self.framed}, schema_id={self.schema_id})"


def extract_schema_id(payload: bytes) -> Optional[int]:
    """Read the Schema Registry ID from a framed payload, if it has one."""
    if len(payload) < HEADER_SIZE or payload[0] != MAGIC_BYTE:
        return None
    return struct.unpack(">I", payload[1:HEADER_SIZE])[0]
