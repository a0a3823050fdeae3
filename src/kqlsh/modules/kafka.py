"""Kafka module: topic inspection, message retrieval, KQL queries and exports.

Commands:
    kconnect [servers]                 Connect (or reconnect) to a cluster
    ktopics [prefix]                   List topics
    kpartitions <topic>                Offset range of each partition
    kreplicas <topic>                  Replica placement and ISR
    kconsumers [-g group] [-t topic]   Committed offsets and lag
    kget <topic> <partition> <offset> [-f format]
    kdecoder [topic] [format]          Default message format per topic
    kql <query> [-t timeout]           Run a KQL query
    select ...                         Run a KQL query (rest of line)
    kstats                             I/O counters of the last query
    kexport <target> [-t table]        Export the last query's records

The connection is opened on first use and closed at shutdown.
"""

from typing import Any, Callable, Optional, Sequence

from kqlsh.codecs import CodecRegistry, DecodedMessage, decode_message
from kqlsh.command import Command, Module, UnixLikeArgs
from kqlsh.common.config import config
from kqlsh.common.errors import FetchError, ModuleError
from kqlsh.common.io_counter import IOCounter
from kqlsh.messages.cluster import KafkaClusterClient
from kqlsh.messages.kafka_source import KafkaMessageSource
from kqlsh.messages.source import MessageSource
from kqlsh.modules.views import message_view, result_view
from kqlsh.observe.models import ConsumerLag, CounterSnapshot, PartitionDetail, ReplicaInfo, TopicSummary
from kqlsh.query import KQLResult, QueryEngine, QueryExecution
from kqlsh.render import Maybe
from kqlsh.sinks import open_sink

SourceFactory = Callable[[str], MessageSource]
ClusterFactory = Callable[[str, MessageSource], Any]


def _kafka_source(servers: str) -> KafkaMessageSource:
    return KafkaMessageSource(bootstrap_servers=servers)


def _kafka_cluster(servers: str, source: KafkaMessageSource) -> KafkaClusterClient:
    return KafkaClusterClient(source.watermarks, bootstrap_servers=servers)


class KafkaModule(Module):
    """Kafka commands.

    Args:
        bootstrap_servers: Initial cluster (defaults to config)
        codecs: Codec registry shared by kget and queries
        source_factory: Builds the message source for a bootstrap string
        cluster_factory: Builds the metadata client for a bootstrap string
            and its message source
    """

    name = "kafka"
    label = "Kafka"

    def __init__(
        self,
        bootstrap_servers: Optional[str] = None,
        codecs: Optional[CodecRegistry] = None,
        source_factory: SourceFactory = _kafka_source,
        cluster_factory: ClusterFactory = _kafka_cluster,
    ):
        super().__init__()
        self.bootstrap_servers = bootstrap_servers or config.kafka.bootstrap_servers
        self.codecs = codecs or CodecRegistry()
        self._source_factory = source_factory
        self._cluster_factory = cluster_factory
        self._source: Optional[MessageSource] = None
        self._cluster: Optional[Any] = None
        self._engine: Optional[QueryEngine] = None
        self._execution: Optional[QueryExecution] = None
        self.decoders: dict[str, str] = {}
        self.last_result: Optional[KQLResult] = None

    def get_commands(self) -> Sequence[Command]:
        return [
            self.command("kconnect", self.connect, [("servers", False)], help="Connects to a Kafka cluster"),
            self.command("ktopics", self.topics, [("prefix", False)], help="Lists topics"),
            self.command("kpartitions", self.partitions, [("topic", True)], help="Shows partition offsets"),
            self.command("kreplicas", self.replicas, [("topic", True)], help="Shows replica placement"),
            self.command(
                "kconsumers",
                self.consumers,
                flags=[("-g", "group"), ("-t", "topic")],
                help="Shows consumer group offsets and lag",
            ),
            self.command(
                "kget",
                self.get_message,
                [("topic", True), ("partition", True), ("offset", True)],
                [("-f", "format")],
                help="Retrieves and decodes one message",
            ),
            self.command(
                "kdecoder",
                self.decoder,
                [("topic", False), ("format", False)],
                help="Shows or sets the default message format of a topic",
            ),
            self.command("kql", self.query, [("query", True)], [("-t", "timeout")], help="Runs a KQL query"),
            self.command("select", self.select, [("query", True)], help="Runs a KQL query", raw=True),
            self.command("kstats", self.stats, help="Shows I/O counters of the last query"),
            self.command(
                "kexport",
                self.export,
                [("target", True)],
                [("-t", "table")],
                help="Exports the last query's records to *.jsonl, *.csv or duckdb:<path>",
            ),
        ]

    # connection

    @property
    def source(self) -> MessageSource:
        if self._source is None:
            self._connect()
        return self._source

    @property
    def cluster(self) -> Any:
        if self._cluster is None:
            self._connect()
        return self._cluster

    @property
    def engine(self) -> QueryEngine:
        if self._engine is None:
            self._engine = QueryEngine(self.source, self.codecs)
        return self._engine

    def _connect(self) -> None:
        self.logger.info("Connecting to Kafka", bootstrap_servers=self.bootstrap_servers)
        source = self._source_factory(self.bootstrap_servers)
        self._cluster = self._cluster_factory(self.bootstrap_servers, source)
        self._source = source

    def prompt(self) -> str:
        return f"{self.bootstrap_servers}/kafka$ "

    def shutdown(self) -> None:
        source, self._source = self._source, None
        self._cluster = None
        self._engine = None
        close = getattr(source, "close", None)
        if close is not None:
            close()
            self.logger.info("Disconnected from Kafka", bootstrap_servers=self.bootstrap_servers)

    def interrupt(self) -> None:
        if self._execution is not None:
            self._execution.cancel("interrupted")

    # commands

    def connect(self, args: UnixLikeArgs) -> str:
        self.shutdown()
        self.bootstrap_servers = args.get(0) or self.bootstrap_servers
        self._connect()
        return f"Connected to {self.bootstrap_servers}"

    def topics(self, args: UnixLikeArgs) -> list[TopicSummary]:
        return self.cluster.list_topics(prefix=args.get(0))

    def partitions(self, args: UnixLikeArgs) -> list[PartitionDetail]:
        return self.cluster.partitions(args[0])

    def replicas(self, args: UnixLikeArgs) -> list[ReplicaInfo]:
        return self.cluster.replicas(args[0])

    def consumers(self, args: UnixLikeArgs) -> list[ConsumerLag]:
        return self.cluster.consumer_lag(group=args.option("group"), topic=args.option("topic"))

    async def get_message(self, args: UnixLikeArgs) -> Any:
        topic = args[0]
        partition = self._int(args[1], "kget", "partition")
        offset = self._int(args[2], "kget", "offset")
        codec = self.codecs.create(args.option("format") or self.format_for(topic))

        try:
            message = await self.source.fetch(topic, partition, offset)
        except FetchError as e:
            raise ModuleError(f"Cannot read {topic}/{partition}: {e}") from e
        if message is None:
            return Maybe(None)
        return decode_message(codec, message.value)

    def decoder(self, args: UnixLikeArgs) -> Any:
        topic, fmt = args.get(0), args.get(1)
        if topic is None:
            return [{"topic": t, "format": f} for t, f in sorted(self.decoders.items())]
        if fmt is None:
            return {"topic": topic, "format": self.format_for(topic)}

        # fail now rather than at the next query
        self.codecs.create(fmt)
        self.decoders[topic] = fmt
        return f"Decoder for '{topic}' set to {fmt}"

    async def query(self, args: UnixLikeArgs) -> KQLResult:
        timeout = args.option("timeout")
        seconds = None
        if timeout is not None:
            try:
                seconds = float(timeout)
            except ValueError:
                raise self.syntax_error("kql", f"Expected a timeout in seconds, got '{timeout}'")
            if seconds <= 0:
                raise self.syntax_error("kql", "timeout must be positive")
        return await self._run_query(args[0], seconds)

    async def select(self, args: UnixLikeArgs) -> KQLResult:
        return await self._run_query(f"select {args[0]}", None)

    def stats(self, args: UnixLikeArgs) -> CounterSnapshot:
        if self.last_result is None:
            raise ModuleError("No query has been run")
        counters = self.last_result.counters
        return CounterSnapshot(
            messages=counters.messages,
            bytes=counters.bytes,
            errors=counters.errors,
            elapsed_seconds=round(counters.elapsed_seconds, 3),
            rate=round(counters.rate, 1),
        )

    def export(self, args: UnixLikeArgs) -> str:
        if self.last_result is None:
            raise ModuleError("No query results to export")
        sink = open_sink(args[0], table=args.option("table"))
        written = sink.write_rows(self.last_result.rows())
        return f"{written} row(s) written to {sink.target}"

    # helpers

    def format_for(self, topic: str) -> str:
        return self.decoders.get(topic, config.query.default_format)

    async def _run_query(self, text: str, timeout: Optional[float]) -> KQLResult:
        query = self.engine.parse(text)
        execution = self.engine.start(
            query,
            counter=IOCounter(),
            timeout=timeout,
            default_format=self.decoders.get(query.topic),
        )
        self._execution = execution
        try:
            result = await execution.run()
        finally:
            self._execution = None
        self.last_result = result
        return result

    def _int(self, value: str, command: str, name: str) -> int:
        try:
            number = int(value)
        except ValueError:
            raise self.syntax_error(command, f"{name} must be an integer, got '{value}'")
        if number < 0:
            raise self.syntax_error(command, f"{name} must not be negative")
        return number

    def decipher(self, value: Any) -> Optional[Any]:
        if isinstance(value, KQLResult):
            return result_view(value)
        if isinstance(value, DecodedMessage):
            return message_view(value)
        return None
