"""
Unit test configuration for tests/unit/.

Every external system (Kafka, ZooKeeper, Schema Registry) is replaced by an
in-memory fake from tests/fixtures/sources.py.
"""

import json

import pytest

from kqlsh.codecs import CodecRegistry
from kqlsh.schemas import CompositeSchemaProvider, FileSchemaProvider
from tests.fixtures.sources import PAYMENT_SCHEMA, FakeCoordinationStore, FakeMessageSource, json_payloads


@pytest.fixture
def codecs(tmp_path) -> CodecRegistry:
    """Codec registry resolving schemas from a temp directory, no registry."""
    (tmp_path / "payment.avsc").write_text(json.dumps(PAYMENT_SCHEMA), encoding="utf-8")
    return CodecRegistry(CompositeSchemaProvider(files=FileSchemaProvider(tmp_path)))


@pytest.fixture
def orders_source() -> FakeMessageSource:
    """Three partitions of JSON orders, 4 + 3 + 5 messages."""
    return FakeMessageSource(
        "orders",
        {
            0: json_payloads(
                {"id": 1, "symbol": "AAPL", "qty": 10},
                {"id": 2, "symbol": "MSFT", "qty": 5},
                {"id": 3, "symbol": "AAPL", "qty": 7},
                {"id": 4, "symbol": "GOOG", "qty": 1},
            ),
            1: json_payloads(
                {"id": 5, "symbol": "AAPL", "qty": 2},
                {"id": 6, "symbol": "TSLA", "qty": 9},
                {"id": 7, "symbol": "MSFT", "qty": 3},
            ),
            2: json_payloads(
                {"id": 8, "symbol": "AAPL", "qty": 4},
                {"id": 9, "symbol": "GOOG", "qty": 6},
                {"id": 10, "symbol": "AAPL", "qty": 8},
                {"id": 11, "symbol": "MSFT", "qty": 2},
                {"id": 12, "symbol": "TSLA", "qty": 1},
            ),
        },
    )


@pytest.fixture
def coordination_store() -> FakeCoordinationStore:
    return FakeCoordinationStore(
        {
            "/brokers": None,
            "/brokers/ids": None,
            "/brokers/ids/1": b'{"host": "kafka-1", "port": 9092}',
            "/brokers/ids/2": b'{"host": "kafka-2", "port": 9092}',
            "/config": b"plain settings",
        }
    )
