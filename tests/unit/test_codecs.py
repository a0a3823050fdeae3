"""
Unit tests for the codec pipeline.

Tests cover:
- Binary, JSON and plain-text codecs
- decode_message error absorption and counting
- Auto-detection priority order
- CodecRegistry format specs and caching
- Schema providers (file, registry, composite)
"""

import json
from unittest.mock import MagicMock

import pytest
from confluent_kafka.schema_registry.error import SchemaRegistryError

from kqlsh.codecs import (
    AutoCodec,
    AvroCodec,
    BinaryCodec,
    CodecRegistry,
    FormatSpec,
    JsonCodec,
    MessageFormat,
    TextCodec,
    decode_message,
)
from kqlsh.common.errors import DecodeError, QueryValidationError, SchemaError
from kqlsh.common.io_counter import IOCounter
from kqlsh.schemas import CompositeSchemaProvider, FileSchemaProvider, RegistrySchemaProvider
from tests.fixtures.sources import PAYMENT_SCHEMA


@pytest.mark.unit
class TestBasicCodecs:
    """Test the binary, JSON and text codecs."""

    def test_binary_passes_bytes_through(self):
        message = BinaryCodec().decode(b"\x00\xffabc")

        assert message.format == MessageFormat.BINARY
        assert message.raw == b"\x00\xffabc"
        assert message.as_record() == {"value": b"\x00\xffabc"}

    def test_json_object_becomes_fields(self):
        message = JsonCodec().decode(b'{"id": 1, "symbol": "AAPL"}')

        assert message.format == MessageFormat.JSON
        assert message.fields == {"id": 1, "symbol": "AAPL"}

    def test_json_scalar_becomes_value_field(self):
        assert JsonCodec().decode(b"42").as_record() == {"value": 42}

    def test_json_structured_only_rejects_scalars(self):
        with pytest.raises(DecodeError):
            JsonCodec(structured_only=True).decode(b'"just a string"')

    def test_json_structured_only_accepts_arrays(self):
        assert JsonCodec(structured_only=True).decode(b"[1, 2]").as_record() == {"value": [1, 2]}

    def test_invalid_json(self):
        with pytest.raises(DecodeError, match="Invalid JSON"):
            JsonCodec().decode(b"{not json")

    def test_oversized_integer_literal(self):
        """Test integers beyond the int conversion digit limit are a decode error."""
        with pytest.raises(DecodeError, match="Invalid JSON"):
            JsonCodec().decode(b'{"id": ' + b"1" * 5000 + b"}")

    def test_deeply_nested_document(self):
        with pytest.raises(DecodeError, match="Invalid JSON"):
            JsonCodec().decode(b"[" * 100_000 + b"]" * 100_000)

    def test_text(self):
        message = TextCodec().decode("héllo".encode("utf-8"))

        assert message.format == MessageFormat.TEXT
        assert message.as_record() == {"value": "héllo"}

    def test_text_rejects_invalid_utf8(self):
        with pytest.raises(DecodeError):
            TextCodec().decode(b"\xff\xfe")

    def test_text_printable_only(self):
        """Control characters other than whitespace are not text for auto-detection."""
        assert TextCodec(printable_only=True).decode(b"line one\n\tline two").text == "line one\n\tline two"
        with pytest.raises(DecodeError):
            TextCodec(printable_only=True).decode(b"abc\x01")


@pytest.mark.unit
class TestDecodeMessage:
    """Test that decode failures become error records."""

    def test_success_counts_bytes(self):
        counter = IOCounter()

        message = decode_message(JsonCodec(), b'{"a": 1}', counter)

        assert message.ok
        assert counter.snapshot().bytes == 8
        assert counter.snapshot().errors == 0

    def test_failure_becomes_error_record(self):
        counter = IOCounter()

        message = decode_message(JsonCodec(), b"{broken", counter)

        assert not message.ok
        assert message.format == MessageFormat.JSON
        assert message.raw == b"{broken"
        assert "Invalid JSON" in message.error
        assert message.as_record() == {}
        assert counter.snapshot().errors == 1

    def test_oversized_integer_becomes_error_record(self):
        counter = IOCounter()

        message = decode_message(JsonCodec(), b'{"id": ' + b"1" * 5000 + b"}", counter)

        assert not message.ok
        assert counter.snapshot().errors == 1

    def test_auto_falls_back_from_deeply_nested_json(self):
        payload = b"[" * 100_000 + b"]" * 100_000

        message = decode_message(AutoCodec.with_schema(), payload)

        assert message.ok
        assert message.format == MessageFormat.TEXT

    def test_counter_is_optional(self):
        assert decode_message(TextCodec(), b"ok").text == "ok"


@pytest.mark.unit
class TestAutoCodec:
    """Test auto-detection priority: avro > json > text > binary."""

    @pytest.fixture
    def auto(self):
        return AutoCodec.with_schema()

    def test_json_object_detected(self, auto):
        message = auto.decode(b'{"id": 1}')

        assert message.format == MessageFormat.JSON
        assert message.fields == {"id": 1}

    def test_plain_text_detected(self, auto):
        assert auto.decode(b"hello world").format == MessageFormat.TEXT

    def test_bare_json_scalar_is_text(self, auto):
        """Only objects and arrays count as detected JSON."""
        message = auto.decode(b"42")

        assert message.format == MessageFormat.TEXT
        assert message.text == "42"

    def test_binary_fallback(self, auto):
        assert auto.decode(b"\x00\x01\xff\xfe").format == MessageFormat.BINARY

    def test_detection_is_idempotent(self, auto):
        payloads = [b'{"a": [1, 2]}', b"plain", b"\x00\x9f", b"[]"]

        first = [auto.decode(p) for p in payloads]
        second = [auto.decode(p) for p in payloads]

        assert first == second

    def test_avro_leads_when_schema_given(self):
        avro = AvroCodec(json.dumps(PAYMENT_SCHEMA))
        auto = AutoCodec.with_schema(avro)
        payload = avro.encode({"id": 7, "amount": 12.25})

        message = auto.decode(payload)

        assert message.format == MessageFormat.AVRO
        assert message.fields == {"id": 7, "amount": 12.25}

    def test_json_still_detected_with_schema(self):
        """A JSON document that is not a complete Avro record falls through to JSON."""
        auto = AutoCodec.with_schema(AvroCodec(json.dumps(PAYMENT_SCHEMA)))

        message = auto.decode(b'{"id": 1, "amount": 2.5}')

        assert message.format == MessageFormat.JSON

    def test_requires_candidates(self):
        with pytest.raises(ValueError):
            AutoCodec([])

    def test_no_candidate_accepts(self):
        with pytest.raises(DecodeError, match="No codec accepted"):
            AutoCodec([JsonCodec()]).decode(b"\xff")


@pytest.mark.unit
class TestFormatSpec:
    """Test format spec parsing."""

    def test_name_only(self):
        assert FormatSpec.parse("JSON") == FormatSpec("json")

    def test_schema_identifier_keeps_colons(self):
        spec = FormatSpec.parse("avro:file:schemas/quote.avsc")

        assert spec.name == "avro"
        assert spec.schema_id == "file:schemas/quote.avsc"
        assert str(spec) == "avro:file:schemas/quote.avsc"

    def test_empty(self):
        with pytest.raises(QueryValidationError):
            FormatSpec.parse("  ")


@pytest.mark.unit
class TestCodecRegistry:
    """Test codec lookup by format spec."""

    def test_builtin_formats(self, codecs):
        assert isinstance(codecs.create("binary"), BinaryCodec)
        assert isinstance(codecs.create("json"), JsonCodec)
        assert isinstance(codecs.create("text"), TextCodec)
        assert isinstance(codecs.create("plain-text"), TextCodec)
        assert isinstance(codecs.create("auto"), AutoCodec)

    def test_codecs_are_cached(self, codecs):
        assert codecs.create("json") is codecs.create("json")

    def test_unknown_format(self, codecs):
        with pytest.raises(QueryValidationError, match="Unknown message format 'xml'"):
            codecs.create("xml")

    def test_schemaless_format_rejects_schema(self, codecs):
        with pytest.raises(QueryValidationError, match="does not take a schema"):
            codecs.create("json:file:payment.avsc")

    def test_avro_requires_schema(self, codecs):
        with pytest.raises(QueryValidationError, match="require a schema"):
            codecs.create("avro")

    def test_avro_from_schema_file(self, codecs):
        codec = codecs.create("avro:file:payment.avsc")

        assert isinstance(codec, AvroCodec)
        assert not codec.framed

    def test_confluent_is_framed_avro(self, codecs):
        assert codecs.create("confluent:payment.avsc").framed

    def test_confluent_registry_id_pins_schema_id(self, tmp_path):
        registry = MagicMock()
        registry.resolve_schema.return_value = json.dumps(PAYMENT_SCHEMA)
        codecs = CodecRegistry(CompositeSchemaProvider(files=FileSchemaProvider(tmp_path), registry=registry))

        codec = codecs.create("confluent:registry:id:8")
        payload = codec.encode({"id": 1, "amount": 2.5})

        assert codec.schema_id == 8
        assert payload[1:5] == (8).to_bytes(4, "big")
        assert codec.decode(payload).fields == {"id": 1, "amount": 2.5}
        with pytest.raises(DecodeError, match="schema ID 7, expected 8"):
            codec.decode(b"\x00" + (7).to_bytes(4, "big") + payload[5:])

    def test_subject_schema_has_no_pinned_id(self, tmp_path):
        registry = MagicMock()
        registry.resolve_schema.return_value = json.dumps(PAYMENT_SCHEMA)
        codecs = CodecRegistry(CompositeSchemaProvider(files=FileSchemaProvider(tmp_path), registry=registry))

        assert codecs.create("confluent:registry:payments-value").schema_id is None

    def test_invalid_registry_schema_id(self, codecs):
        with pytest.raises(QueryValidationError, match="Invalid schema ID"):
            codecs.create("confluent:registry:id:abc")

    def test_auto_with_schema_leads_with_avro(self, codecs):
        codec = codecs.create("auto:payment.avsc")

        assert isinstance(codec.candidates[0], AvroCodec)

    def test_missing_schema_file(self, codecs):
        with pytest.raises(SchemaError, match="not found"):
            codecs.create("avro:file:missing.avsc")

    def test_custom_format_registration(self, codecs):
        codecs.register("raw", lambda schema_id: BinaryCodec())

        assert "raw" in codecs.formats
        assert isinstance(codecs.create("raw"), BinaryCodec)


@pytest.mark.unit
class TestSchemaProviders:
    """Test schema resolution."""

    def test_file_provider_rejects_invalid_json(self, tmp_path):
        (tmp_path / "broken.avsc").write_text("{not json", encoding="utf-8")

        with pytest.raises(SchemaError, match="not valid JSON"):
            FileSchemaProvider(tmp_path).resolve_schema("file:broken.avsc")

    def test_registry_subject_lookup_is_cached(self):
        client = MagicMock()
        client.get_latest_version.return_value.schema.schema_str = '"string"'
        provider = RegistrySchemaProvider("http://registry:8081", client=client)

        assert provider.resolve_schema("registry:quotes-value") == '"string"'
        assert provider.resolve_schema("registry:quotes-value") == '"string"'
        client.get_latest_version.assert_called_once_with("quotes-value")

    def test_registry_lookup_by_id(self):
        client = MagicMock()
        client.get_schema.return_value.schema_str = '"long"'
        provider = RegistrySchemaProvider("http://registry:8081", client=client)

        assert provider.resolve_schema("registry:id:42") == '"long"'
        client.get_schema.assert_called_once_with(42)

    def test_registry_error_becomes_schema_error(self):
        client = MagicMock()
        client.get_latest_version.side_effect = SchemaRegistryError(404, 40401, "Subject not found")
        provider = RegistrySchemaProvider("http://registry:8081", client=client)

        with pytest.raises(SchemaError):
            provider.resolve_schema("registry:missing")

    def test_composite_without_registry(self, tmp_path):
        provider = CompositeSchemaProvider(files=FileSchemaProvider(tmp_path))

        with pytest.raises(SchemaError, match="no Schema Registry configured"):
            provider.resolve_schema("registry:quotes-value")

    def test_composite_dispatches_registry_prefix(self, tmp_path):
        registry = MagicMock()
        registry.resolve_schema.return_value = '"int"'
        provider = CompositeSchemaProvider(files=FileSchemaProvider(tmp_path), registry=registry)

        assert provider.resolve_schema("registry:id:1") == '"int"'
        registry.resolve_schema.assert_called_once_with("registry:id:1")
