"""Schema resolution for structured (Avro) decoding.

Schema identifiers select where a schema comes from:

- ``file:<path>`` (or a bare path): an ``.avsc`` file on disk
- ``registry:<subject>``: latest version of a Schema Registry subject
- ``registry:id:<n>``: a Schema Registry schema by global ID

Usage:
    from kqlsh.schemas import CompositeSchemaProvider

    provider = CompositeSchemaProvider.from_config()
    schema_str = provider.resolve_schema("file:schemas/quote.avsc")
"""

import json
from pathlib import Path
from typing import Optional, Protocol

from confluent_kafka.schema_registry import SchemaRegistryClient
from confluent_kafka.schema_registry.error import SchemaRegistryError

from kqlsh.common.errors import SchemaError
from kqlsh.common.logging import get_logger

logger = get_logger(__name__, component="schemas")

FILE_PREFIX = "file:"
REGISTRY_PREFIX = "registry:"


class SchemaProvider(Protocol):
    """Resolves a schema identifier to schema text."""

    def resolve_schema(self, identifier: str) -> str:
        """Return the schema text for ``identifier``.

        Raises:
            SchemaError: If the schema cannot be found or is not valid JSON
        """
        ...


class FileSchemaProvider:
    """Loads Avro schemas from ``.avsc`` files.

    Relative paths are resolved against ``base_dir`` (default: the current
    working directory).
    """

    def __init__(self, base_dir: Optional[Path] = None):
        self.base_dir = Path(base_dir) if base_dir else Path.cwd()

    def resolve_schema(self, identifier: str) -> str:
        location = identifier.removeprefix(FILE_PREFIX)
        schema_path = Path(location).expanduser()
        if not schema_path.is_absolute():
            schema_path = self.base_dir / schema_path

        if not schema_path.is_file():
            raise SchemaError(f"Schema file not found: {schema_path}")

        schema_str = schema_path.read_text(encoding="utf-8")

        try:
            json.loads(schema_str)
        except json.JSONDecodeError as e:
            logger.error("Invalid JSON in schema file", path=str(schema_path), error=str(e))
            raise SchemaError(f"Schema file {schema_path} is not valid JSON: {e}") from e

        logger.debug("Schema loaded", path=str(schema_path))
        return schema_str


class RegistrySchemaProvider:
    """Fetches schemas from a Confluent Schema Registry, with caching."""

    def __init__(self, url: str, client: Optional[SchemaRegistryClient] = None):
        self.url = url
        self._client = client or SchemaRegistryClient({"url": url})
        self._cache: dict[str, str] = {}

    def resolve_schema(self, identifier: str) -> str:
        key = identifier.removeprefix(REGISTRY_PREFIX)
        if key in self._cache:
            return self._cache[key]

        try:
            if key.startswith("id:"):
                schema_str = self._client.get_schema(int(key[3:])).schema_str
            else:
                schema_str = self._client.get_latest_version(key).schema.schema_str
        except ValueError as e:
            raise SchemaError(f"Invalid schema ID in '{identifier}'") from e
        except SchemaRegistryError as e:
            logger.warning("Schema Registry lookup failed", identifier=identifier, error=str(e))
            raise SchemaError(f"Schema '{identifier}' not found in registry {self.url}: {e}") from e

        self._cache[key] = schema_str
        return schema_str


class CompositeSchemaProvider:
    """Dispatches identifiers to the file or registry provider by prefix."""

    def __init__(
        self,
        files: Optional[FileSchemaProvider] = None,
        registry: Optional[SchemaProvider] = None,
    ):
        self.files = files or FileSchemaProvider()
        self.registry = registry

    @classmethod
    def from_config(cls, schema_registry_url: Optional[str] = None) -> "CompositeSchemaProvider":
        """Build a provider from configuration (registry only when a URL is set)."""
        from kqlsh.common.config import config

        url = schema_registry_url or config.kafka.schema_registry_url
        return cls(registry=RegistrySchemaProvider(url) if url else None)

    def resolve_schema(self, identifier: str) -> str:
        if not identifier:
            raise SchemaError("Empty schema identifier")

        if identifier.startswith(REGISTRY_PREFIX):
            if self.registry is None:
                raise SchemaError(
                    f"Cannot resolve '{identifier}': no Schema Registry configured "
                    "(set KQLSH_KAFKA_SCHEMA_REGISTRY_URL)"
                )
            return self.registry.resolve_schema(identifier)

        return self.files.resolve_schema(identifier)
