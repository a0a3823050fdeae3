"""Codec lookup by format specification.

A format spec is a format name, optionally followed by a schema identifier:

    auto                      binary
    json                      text  (alias: plain-text)
    avro:file:quote.avsc      schemaless Avro with a schema file
    confluent:registry:quotes Avro in Schema Registry wire format
    auto:file:quote.avsc      auto-detection led by an Avro schema

Codecs are built once per spec and cached, so a schema is resolved and
parsed once per decoder rather than once per message.
"""

from dataclasses import dataclass
from typing import Callable, Optional

from kqlsh.codecs.auto import AutoCodec
from kqlsh.codecs.avro import AvroCodec
from kqlsh.codecs.base import Codec
from kqlsh.codecs.basic import BinaryCodec, JsonCodec, TextCodec
from kqlsh.common.errors import QueryValidationError
from kqlsh.common.logging import get_logger
from kqlsh.schemas import CompositeSchemaProvider, SchemaProvider

logger = get_logger(__name__, component="codecs")

CodecFactory = Callable[[Optional[str]], Codec]

REGISTRY_ID_PREFIX = "registry:id:"


def registry_schema_id(identifier: str) -> Optional[int]:
    """The global ID in a ``registry:id:<n>`` identifier, None for any other identifier."""
    if not identifier.startswith(REGISTRY_ID_PREFIX):
        return None
    try:
        return int(identifier[len(REGISTRY_ID_PREFIX):])
    except ValueError:
        raise QueryValidationError(f"Invalid schema ID in '{identifier}'")


@dataclass(frozen=True)
class FormatSpec:
    """A parsed format specification."""

    name: str
    schema_id: Optional[str] = None

    @classmethod
    def parse(cls, spec: str) -> "FormatSpec":
        spec = (spec or "").strip()
        if not spec:
            raise QueryValidationError("Empty message format")

        name, _, schema_id = spec.partition(":")
        return cls(name=name.lower(), schema_id=schema_id or None)

    def __str__(self) -> str:
        return self.name if self.schema_id is None else f"{self.name}:{self.schema_id}"


class CodecRegistry:
    """Maps format names to codec factories."""

    def __init__(self, schema_provider: Optional[SchemaProvider] = None):
        self.schema_provider = schema_provider or CompositeSchemaProvider.from_config()
        self._factories: dict[str, CodecFactory] = {}
        self._cache: dict[FormatSpec, Codec] = {}

        self.register("binary", self._schemaless(BinaryCodec))
        self.register("json", self._schemaless(JsonCodec))
        self.register("text", self._schemaless(TextCodec))
        self.register("plain-text", self._schemaless(TextCodec))
        self.register("avro", lambda schema_id: self._avro(schema_id, framed=False))
        self.register("confluent", lambda schema_id: self._avro(schema_id, framed=True))
        self.register("auto", self._auto)

    def register(self, name: str, factory: CodecFactory) -> None:
        self._factories[name.lower()] = factory

    @property
    def formats(self) -> list[str]:
        return sorted(self._factories)

    def create(self, spec: str | FormatSpec) -> Codec:
        """Return the codec for a format spec.

        Raises:
            QueryValidationError: Unknown format, or the schema cannot be
                resolved or parsed (SchemaError)
        """
        format_spec = spec if isinstance(spec, FormatSpec) else FormatSpec.parse(spec)
        if format_spec in self._cache:
            return self._cache[format_spec]

        factory = self._factories.get(format_spec.name)
        if factory is None:
            raise QueryValidationError(
                f"Unknown message format '{format_spec.name}' (valid formats: {', '.join(self.formats)})"
            )

        codec = factory(format_spec.schema_id)
        self._cache[format_spec] = codec
        logger.debug("Codec created", format=str(format_spec), codec=repr(codec))
        return codec

    def _schemaless(self, codec_type: type[Codec]) -> CodecFactory:
        def factory(schema_id: Optional[str]) -> Codec:
            if schema_id is not None:
                raise QueryValidationError(f"Format '{codec_type.format.value}' does not take a schema")
            return codec_type()

        return factory

    def _avro(self, schema_id: Optional[str], framed: bool) -> AvroCodec:
        if schema_id is None:
            raise QueryValidationError("Avro formats require a schema, e.g. avro:file:schemas/quote.avsc")

        registry_id = registry_schema_id(schema_id)
        with logger.timer("schema_resolution", identifier=schema_id):
            schema_text = self.schema_provider.resolve_schema(schema_id)
        return AvroCodec(schema_text, framed=framed, schema_id=registry_id)

    def _auto(self, schema_id: Optional[str]) -> AutoCodec:
        avro = self._avro(schema_id, framed=False) if schema_id else None
        return AutoCodec.with_schema(avro)
