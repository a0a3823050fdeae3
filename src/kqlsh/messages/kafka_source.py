"""Kafka-backed message source.

Reads single messages at arbitrary offsets with one assigned (not
subscribed) consumer per partition. Consumers never join a group or commit
offsets, so browsing a topic has no effect on the cluster.

Blocking librdkafka calls run in worker threads via ``asyncio.to_thread`` so
that several partitions can be scanned concurrently from one event loop.
Transient broker errors are retried with exponential backoff (tenacity);
anything else surfaces as a FetchError for the partition.
"""

import asyncio
import threading
import uuid
from typing import Any, Callable, Optional

from confluent_kafka import Consumer, KafkaError, KafkaException, TopicPartition
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from kqlsh.common.config import config
from kqlsh.common.errors import FetchError
from kqlsh.common.logging import get_logger
from kqlsh.messages.source import FetchedMessage

logger = get_logger(__name__, component="kafka")


class _TransientFetchError(Exception):
    """A fetch failure worth retrying (poll timeout, broker transport error)."""


class _PartitionReader:
    """Positioned reader over one topic partition.

    Not shared between scans; the lock only guards against overlapping
    calls from the thread pool.
    """

    def __init__(self, consumer: Any, topic: str, partition: int, timeout: float, attempts: int):
        self.consumer = consumer
        self.topic = topic
        self.partition = partition
        self.timeout = timeout
        self.attempts = attempts
        self._position: Optional[int] = None
        self._lock = threading.Lock()

    def read(self, offset: int) -> Optional[FetchedMessage]:
        with self._lock:
            try:
                for attempt in Retrying(
                    stop=stop_after_attempt(self.attempts),
                    wait=wait_exponential(multiplier=0.1, max=2.0),
                    retry=retry_if_exception_type(_TransientFetchError),
                    reraise=True,
                ):
                    with attempt:
                        return self._read_once(offset)
            except _TransientFetchError as e:
                self._position = None
                raise FetchError(str(e), topic=self.topic, partition=self.partition) from e
            except KafkaException as e:
                self._position = None
                raise FetchError(f"Kafka error: {e}", topic=self.topic, partition=self.partition) from e

    def _read_once(self, offset: int) -> Optional[FetchedMessage]:
        if self._position != offset:
            self.consumer.assign([TopicPartition(self.topic, self.partition, offset)])
            self._position = offset

        msg = self.consumer.poll(self.timeout)

        if msg is None:
            _, high = self.consumer.get_watermark_offsets(
                TopicPartition(self.topic, self.partition), timeout=self.timeout, cached=False
            )
            if offset >= high:
                return None
            self._position = None
            raise _TransientFetchError(f"Timed out reading offset {offset}")

        error = msg.error()
        if error is not None:
            if error.code() == KafkaError._PARTITION_EOF:
                return None
            self._position = None
            if error.retriable() or error.code() in (KafkaError._TRANSPORT, KafkaError._TIMED_OUT):
                raise _TransientFetchError(error.str())
            raise FetchError(error.str(), topic=self.topic, partition=self.partition)

        self._position = msg.offset() + 1
        _, timestamp = msg.timestamp()
        return FetchedMessage(
            partition=self.partition,
            offset=msg.offset(),
            value=msg.value() or b"",
            next_offset=msg.offset() + 1,
            key=msg.key(),
            timestamp_ms=timestamp if timestamp > 0 else None,
        )

    def close(self) -> None:
        self.consumer.close()


class KafkaMessageSource:
    """Message source over a Kafka cluster.

    Args:
        bootstrap_servers: Kafka bootstrap servers (defaults to config)
        fetch_timeout: Seconds to wait per poll (defaults to config)
        fetch_retries: Attempts for transient failures (defaults to config)
        consumer_factory: Builds a consumer from a librdkafka config dict
    """

    def __init__(
        self,
        bootstrap_servers: Optional[str] = None,
        fetch_timeout: Optional[float] = None,
        fetch_retries: Optional[int] = None,
        consumer_factory: Callable[[dict], Any] = Consumer,
    ):
        self.bootstrap_servers = bootstrap_servers or config.kafka.bootstrap_servers
        self.fetch_timeout = fetch_timeout or config.kafka.fetch_timeout_seconds
        self.fetch_retries = fetch_retries or config.kafka.fetch_retries
        self._consumer_factory = consumer_factory
        self._readers: dict[tuple[str, int], _PartitionReader] = {}
        self._metadata_consumer: Optional[Any] = None
        self._lock = threading.Lock()

    def _consumer_config(self) -> dict:
        return {
            "bootstrap.servers": self.bootstrap_servers,
            "client.id": config.kafka.client_id,
            # librdkafka requires a group even for assign(); it is never joined
            "group.id": f"kqlsh-browse-{uuid.uuid4().hex[:8]}",
            "enable.auto.commit": False,
            "enable.partition.eof": True,
            "auto.offset.reset": "earliest",
        }

    def _metadata(self) -> Any:
        with self._lock:
            if self._metadata_consumer is None:
                self._metadata_consumer = self._consumer_factory(self._consumer_config())
            return self._metadata_consumer

    def _reader(self, topic: str, partition: int) -> _PartitionReader:
        key = (topic, partition)
        with self._lock:
            reader = self._readers.get(key)
            if reader is None:
                reader = _PartitionReader(
                    self._consumer_factory(self._consumer_config()),
                    topic,
                    partition,
                    self.fetch_timeout,
                    self.fetch_retries,
                )
                self._readers[key] = reader
            return reader

    async def list_partitions(self, topic: str) -> set[int]:
        metadata = await asyncio.to_thread(self._metadata().list_topics, topic, self.fetch_timeout)
        topic_meta = metadata.topics.get(topic)
        if topic_meta is None or topic_meta.error is not None:
            return set()
        return set(topic_meta.partitions)

    def watermarks(self, topic: str, partition: int) -> tuple[int, int]:
        """Blocking ``(low, high)`` watermark lookup."""
        try:
            low, high = self._metadata().get_watermark_offsets(
                TopicPartition(topic, partition), self.fetch_timeout, False
            )
        except KafkaException as e:
            raise FetchError(f"Cannot read offsets: {e}", topic=topic, partition=partition) from e
        return low, high

    async def offset_bounds(self, topic: str, partition: int) -> tuple[int, int]:
        return await asyncio.to_thread(self.watermarks, topic, partition)

    async def fetch(self, topic: str, partition: int, offset: int) -> Optional[FetchedMessage]:
        return await asyncio.to_thread(self._reader(topic, partition).read, offset)

    def close(self) -> None:
        """Close every consumer opened by this source."""
        with self._lock:
            readers = list(self._readers.values())
            self._readers.clear()
            metadata_consumer, self._metadata_consumer = self._metadata_consumer, None

        for reader in readers:
            reader.close()
        if metadata_consumer is not None:
            metadata_consumer.close()

        logger.debug("Kafka message source closed", readers=len(readers))
