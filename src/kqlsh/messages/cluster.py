"""Kafka cluster metadata: topics, replicas and consumer group offsets.

Wraps confluent_kafka's AdminClient and returns observation models so the
results are plain data for both the console and dashboards.
"""

from typing import Any, Callable, Optional

from confluent_kafka import ConsumerGroupTopicPartitions, KafkaException
from confluent_kafka.admin import AdminClient

from kqlsh.common.config import config
from kqlsh.common.errors import FetchError, ModuleError
from kqlsh.common.logging import get_logger
from kqlsh.observe.models import ConsumerLag, PartitionDetail, ReplicaInfo, TopicSummary

logger = get_logger(__name__, component="kafka")

# internal bookkeeping topics hidden from listings unless asked for
INTERNAL_TOPIC_PREFIX = "__"


class KafkaClusterClient:
    """Read-only view of cluster metadata.

    Args:
        bootstrap_servers: Kafka bootstrap servers (defaults to config)
        timeout: Seconds to wait for admin requests
        admin_factory: Builds the admin client from a librdkafka config dict
        watermarks: Callable ``(topic, partition) -> (low, high)``; usually a
            KafkaMessageSource.watermarks
    """

    def __init__(
        self,
        watermarks: Callable[[str, int], tuple[int, int]],
        bootstrap_servers: Optional[str] = None,
        timeout: Optional[float] = None,
        admin_factory: Callable[[dict], Any] = AdminClient,
    ):
        self.bootstrap_servers = bootstrap_servers or config.kafka.bootstrap_servers
        self.timeout = timeout or config.kafka.fetch_timeout_seconds
        self._watermarks = watermarks
        self._admin = admin_factory(
            {"bootstrap.servers": self.bootstrap_servers, "client.id": config.kafka.client_id}
        )

    def _metadata(self, topic: Optional[str] = None) -> Any:
        try:
            return self._admin.list_topics(topic=topic, timeout=self.timeout)
        except KafkaException as e:
            raise ModuleError(f"Cannot reach Kafka at {self.bootstrap_servers}: {e}") from e

    def _topic(self, topic: str) -> Any:
        topic_meta = self._metadata(topic).topics.get(topic)
        if topic_meta is None or topic_meta.error is not None or not topic_meta.partitions:
            raise ModuleError(f"Topic '{topic}' not found")
        return topic_meta

    def list_topics(self, prefix: Optional[str] = None, include_internal: bool = False) -> list[TopicSummary]:
        metadata = self._metadata()
        summaries = []
        for name in sorted(metadata.topics):
            if prefix and not name.startswith(prefix):
                continue
            if name.startswith(INTERNAL_TOPIC_PREFIX) and not include_internal:
                continue
            partitions = sorted(metadata.topics[name].partitions)
            summaries.append(
                TopicSummary(topic=name, partitions=len(partitions), messages=self._retained(name, partitions))
            )
        return summaries

    def _retained(self, topic: str, partitions: list[int]) -> Optional[int]:
        try:
            return sum(max(high - low, 0) for low, high in (self._watermarks(topic, p) for p in partitions))
        except FetchError as e:
            # listing still works when one partition is unreadable
            logger.warning("Cannot read topic size", topic=topic, error=str(e))
            return None

    def partitions(self, topic: str) -> list[PartitionDetail]:
        details = []
        for partition in sorted(self._topic(topic).partitions):
            low, high = self._watermarks(topic, partition)
            details.append(PartitionDetail(topic=topic, partition=partition, earliest=low, latest=high))
        return details

    def replicas(self, topic: str) -> list[ReplicaInfo]:
        topic_meta = self._topic(topic)
        infos = []
        for partition_id in sorted(topic_meta.partitions):
            p = topic_meta.partitions[partition_id]
            infos.append(
                ReplicaInfo(
                    topic=topic,
                    partition=partition_id,
                    leader=p.leader,
                    replicas=",".join(str(r) for r in p.replicas),
                    in_sync=",".join(str(r) for r in p.isrs),
                    under_replicated=len(p.isrs) < len(p.replicas),
                )
            )
        return infos

    def consumer_groups(self) -> list[str]:
        try:
            listing = self._admin.list_consumer_groups(request_timeout=self.timeout).result()
        except KafkaException as e:
            raise ModuleError(f"Cannot list consumer groups: {e}") from e
        return sorted(g.group_id for g in listing.valid)

    def consumer_lag(self, group: Optional[str] = None, topic: Optional[str] = None) -> list[ConsumerLag]:
        """Committed offsets and lag for one group (or all groups)."""
        groups = [group] if group else self.consumer_groups()
        lags: list[ConsumerLag] = []

        for group_id in groups:
            request = [ConsumerGroupTopicPartitions(group_id)]
            try:
                futures = self._admin.list_consumer_group_offsets(request, request_timeout=self.timeout)
                committed = futures[group_id].result()
            except KafkaException as e:
                logger.warning("Cannot read consumer group offsets", group=group_id, error=str(e))
                continue

            for tp in sorted(committed.topic_partitions, key=lambda t: (t.topic, t.partition)):
                if topic and tp.topic != topic:
                    continue
                _, high = self._watermarks(tp.topic, tp.partition)
                offset = tp.offset if tp.offset >= 0 else None
                lags.append(
                    ConsumerLag(
                        group=group_id,
                        topic=tp.topic,
                        partition=tp.partition,
                        committed=offset,
                        latest=high,
                        lag=None if offset is None else max(high - offset, 0),
                    )
                )
        return lags

