"""
Unit tests for the Kafka-backed message source and cluster client.

librdkafka is never contacted: consumers and the admin client are
MagicMocks returned from the injectable factories.
"""

from unittest.mock import MagicMock

import pytest
from confluent_kafka import KafkaError, KafkaException, TopicPartition

from kqlsh.common.errors import FetchError, ModuleError
from kqlsh.messages.cluster import KafkaClusterClient
from kqlsh.messages.kafka_source import KafkaMessageSource


def kafka_message(offset, value=b'{"id": 1}', key=None):
    msg = MagicMock()
    msg.error.return_value = None
    msg.offset.return_value = offset
    msg.value.return_value = value
    msg.key.return_value = key
    msg.timestamp.return_value = (1, 1_700_000_000_000)
    return msg


def kafka_error(code, retriable=False):
    error = MagicMock()
    error.code.return_value = code
    error.retriable.return_value = retriable
    error.str.return_value = f"error {code}"
    msg = MagicMock()
    msg.error.return_value = error
    return msg


@pytest.fixture
def consumer():
    consumer = MagicMock()
    consumer.get_watermark_offsets.return_value = (0, 5)
    return consumer


@pytest.fixture
def source(consumer):
    return KafkaMessageSource(
        "kafka:9092", fetch_timeout=0.1, fetch_retries=2, consumer_factory=lambda conf: consumer,
    )


@pytest.mark.unit
class TestKafkaMessageSource:
    """Test single-message reads and metadata lookups."""

    @pytest.mark.asyncio
    async def test_fetch_returns_message(self, source, consumer):
        """Test a fetched message carries its offset, value and timestamp."""
        consumer.poll.return_value = kafka_message(3, key=b"k")

        message = await source.fetch("orders", 0, 3)

        assert message.offset == 3
        assert message.next_offset == 4
        assert message.value == b'{"id": 1}'
        assert message.key == b"k"
        assert message.timestamp_ms == 1_700_000_000_000

    @pytest.mark.asyncio
    async def test_sequential_fetches_reuse_assignment(self, source, consumer):
        """Test reading the next offset does not seek again."""
        consumer.poll.side_effect = [kafka_message(3), kafka_message(4)]

        await source.fetch("orders", 0, 3)
        await source.fetch("orders", 0, 4)

        assert consumer.assign.call_count == 1

    @pytest.mark.asyncio
    async def test_seek_on_non_sequential_fetch(self, source, consumer):
        consumer.poll.side_effect = [kafka_message(3), kafka_message(0)]

        await source.fetch("orders", 0, 3)
        await source.fetch("orders", 0, 0)

        assert consumer.assign.call_count == 2

    @pytest.mark.asyncio
    async def test_partition_eof(self, source, consumer):
        consumer.poll.return_value = kafka_error(KafkaError._PARTITION_EOF)

        assert await source.fetch("orders", 0, 5) is None

    @pytest.mark.asyncio
    async def test_poll_timeout_at_high_water_mark(self, source, consumer):
        consumer.poll.return_value = None

        assert await source.fetch("orders", 0, 5) is None

    @pytest.mark.asyncio
    async def test_poll_timeout_below_high_water_mark_is_retried(self, source, consumer):
        consumer.poll.return_value = None

        with pytest.raises(FetchError, match="Timed out reading offset 3"):
            await source.fetch("orders", 0, 3)

        assert consumer.poll.call_count == 2

    @pytest.mark.asyncio
    async def test_transient_error_recovers(self, source, consumer):
        consumer.poll.side_effect = [kafka_error(KafkaError._TRANSPORT), kafka_message(1)]

        message = await source.fetch("orders", 0, 1)

        assert message.offset == 1

    @pytest.mark.asyncio
    async def test_permanent_error_is_not_retried(self, source, consumer):
        consumer.poll.return_value = kafka_error(KafkaError.UNKNOWN_TOPIC_OR_PART)

        with pytest.raises(FetchError) as exc:
            await source.fetch("orders", 2, 0)

        assert exc.value.partition == 2
        assert consumer.poll.call_count == 1

    @pytest.mark.asyncio
    async def test_list_partitions(self, source, consumer):
        metadata = MagicMock()
        metadata.topics = {"orders": MagicMock(error=None, partitions={0: None, 1: None})}
        consumer.list_topics.return_value = metadata

        assert await source.list_partitions("orders") == {0, 1}
        assert await source.list_partitions("trades") == set()

    @pytest.mark.asyncio
    async def test_offset_bounds(self, source):
        assert await source.offset_bounds("orders", 0) == (0, 5)

    def test_watermark_failure(self, source, consumer):
        consumer.get_watermark_offsets.side_effect = KafkaException(KafkaError(KafkaError._TRANSPORT))

        with pytest.raises(FetchError, match="Cannot read offsets"):
            source.watermarks("orders", 0)

    @pytest.mark.asyncio
    async def test_close_closes_every_consumer(self, source, consumer):
        consumer.poll.return_value = kafka_message(0)
        await source.fetch("orders", 0, 0)
        await source.offset_bounds("orders", 0)

        source.close()

        assert consumer.close.call_count == 2

    def test_consumer_never_commits(self, source):
        conf = source._consumer_config()

        assert conf["enable.auto.commit"] is False
        assert conf["bootstrap.servers"] == "kafka:9092"


def partition_meta(leader, replicas, isrs):
    return MagicMock(leader=leader, replicas=replicas, isrs=isrs)


@pytest.fixture
def admin():
    orders = MagicMock(
        error=None,
        partitions={0: partition_meta(1, [1, 2], [1, 2]), 1: partition_meta(2, [2, 3], [2])},
    )
    offsets = MagicMock(error=None, partitions={0: partition_meta(1, [1], [1])})
    metadata = MagicMock()
    metadata.topics = {"orders": orders, "__consumer_offsets": offsets}

    admin = MagicMock()
    admin.list_topics.return_value = metadata
    return admin


@pytest.fixture
def cluster(admin):
    return KafkaClusterClient(
        lambda topic, partition: (10, 20 + partition),
        bootstrap_servers="kafka:9092",
        admin_factory=lambda conf: admin,
    )


@pytest.mark.unit
class TestKafkaClusterClient:
    """Test cluster metadata views."""

    def test_list_topics_hides_internal(self, cluster):
        assert [t.topic for t in cluster.list_topics()] == ["orders"]

    def test_list_topics_with_internal(self, cluster):
        topics = cluster.list_topics(include_internal=True)

        assert [t.topic for t in topics] == ["__consumer_offsets", "orders"]
        assert topics[1].partitions == 2

    def test_list_topics_sums_retained_messages(self, cluster):
        assert [(t.topic, t.messages) for t in cluster.list_topics()] == [("orders", 21)]

    def test_topic_size_unknown_when_watermarks_fail(self, admin):
        def watermarks(topic, partition):
            raise FetchError("Cannot read offsets", partition=partition)

        cluster = KafkaClusterClient(watermarks, bootstrap_servers="kafka:9092", admin_factory=lambda conf: admin)

        [summary] = cluster.list_topics()
        assert summary.partitions == 2
        assert summary.messages is None

    def test_partitions(self, cluster):
        details = cluster.partitions("orders")

        assert [(d.partition, d.earliest, d.latest, d.messages) for d in details] == [(0, 10, 20, 10), (1, 10, 21, 11)]

    def test_replicas(self, cluster):
        infos = cluster.replicas("orders")

        assert [i.replicas for i in infos] == ["1,2", "2,3"]
        assert [i.under_replicated for i in infos] == [False, True]

    def test_unknown_topic(self, cluster):
        with pytest.raises(ModuleError, match="Topic 'trades' not found"):
            cluster.partitions("trades")

    def test_unreachable_cluster(self, cluster, admin):
        admin.list_topics.side_effect = KafkaException(KafkaError(KafkaError._TRANSPORT))

        with pytest.raises(ModuleError, match="Cannot reach Kafka"):
            cluster.list_topics()

    def test_consumer_lag(self, cluster, admin):
        committed = MagicMock()
        committed.topic_partitions = [
            TopicPartition("orders", 1, -1001),
            TopicPartition("orders", 0, 15),
            TopicPartition("trades", 0, 3),
        ]
        future = MagicMock()
        future.result.return_value = committed
        admin.list_consumer_group_offsets.return_value = {"dashboard": future}

        lags = cluster.consumer_lag(group="dashboard", topic="orders")

        assert [(lag.partition, lag.committed, lag.lag) for lag in lags] == [(0, 15, 5), (1, None, None)]
