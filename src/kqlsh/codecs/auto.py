"""Format auto-detection.

Candidates are tried in a fixed priority order and the first codec that
decodes the payload without a structural error wins:

    1. Avro         (only when a schema was supplied)
    2. JSON         (objects and arrays only)
    3. plain text   (printable UTF-8)
    4. binary       (always succeeds)

The order is the only tie-break. A payload that is both a complete Avro
record and a JSON document is reported as Avro.
"""

from typing import Optional, Sequence

from kqlsh.codecs.avro import AvroCodec
from kqlsh.codecs.base import Codec, DecodedMessage, MessageFormat
from kqlsh.codecs.basic import BinaryCodec, JsonCodec, TextCodec
from kqlsh.common.errors import DecodeError


class AutoCodec(Codec):
    """Tries candidate codecs in priority order."""

    format = MessageFormat.AUTO

    def __init__(self, candidates: Sequence[Codec]):
        if not candidates:
            raise ValueError("AutoCodec requires at least one candidate codec")
        self.candidates = tuple(candidates)

    @classmethod
    def with_schema(cls, avro: Optional[AvroCodec] = None) -> "AutoCodec":
        """Build the standard detection chain, optionally led by an Avro codec."""
        candidates: list[Codec] = [] if avro is None else [avro]
        candidates += [JsonCodec(structured_only=True), TextCodec(printable_only=True), BinaryCodec()]
        return cls(candidates)

    def decode(self, payload: bytes) -> DecodedMessage:
        failures = []
        for codec in self.candidates:
            try:
                return codec.decode(payload)
            except DecodeError as e:
                failures.append(f"{codec.name}: {e}")

        # only reachable when the chain has no binary fallback
        raise DecodeError("No codec accepted the payload (" + "; ".join(failures) + ")")

    def __repr__(self) -> str:
        return "AutoCodec(" + " > ".join(c.name for c in self.candidates) + ")"
