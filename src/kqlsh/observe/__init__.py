"""Plain-data models shared by module commands and observation views."""

from kqlsh.observe.models import (
    ConsumerLag,
    CoordinationNode,
    CounterSnapshot,
    PartitionDetail,
    ReplicaInfo,
    TopicSummary,
)

__all__ = [
    "ConsumerLag",
    "CoordinationNode",
    "CounterSnapshot",
    "PartitionDetail",
    "ReplicaInfo",
    "TopicSummary",
]
