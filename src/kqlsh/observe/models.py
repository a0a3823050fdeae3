"""Serializable observation models.

Module commands return these instead of rendered text so the same data can
feed the console renderer or a dashboard (``model_dump()`` / JSON).
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field


class TopicSummary(BaseModel):
    """A topic and its size."""

    model_config = ConfigDict(frozen=True)

    topic: str = Field(description="Topic name")
    partitions: int = Field(description="Number of partitions")
    messages: Optional[int] = Field(default=None, description="Messages currently retained (sum over partitions)")


class PartitionDetail(BaseModel):
    """Offset range of one partition."""

    model_config = ConfigDict(frozen=True)

    topic: str
    partition: int
    earliest: int = Field(description="First retained offset")
    latest: int = Field(description="High-water mark (next offset to be written)")

    @computed_field
    @property
    def messages(self) -> int:
        return max(self.latest - self.earliest, 0)


class ReplicaInfo(BaseModel):
    """Replica placement of one partition."""

    model_config = ConfigDict(frozen=True)

    topic: str
    partition: int
    leader: int = Field(description="Broker ID of the partition leader (-1 when leaderless)")
    replicas: str = Field(description="Comma-separated broker IDs holding a replica")
    in_sync: str = Field(description="Comma-separated broker IDs in the ISR")
    under_replicated: bool


class ConsumerLag(BaseModel):
    """A consumer group's committed position on one partition."""

    model_config = ConfigDict(frozen=True)

    group: str
    topic: str
    partition: int
    committed: Optional[int] = Field(default=None, description="Committed offset (None when never committed)")
    latest: int = Field(description="High-water mark of the partition")
    lag: Optional[int] = Field(default=None, description="latest - committed")


class CoordinationNode(BaseModel):
    """A node in the coordination store."""

    model_config = ConfigDict(frozen=True)

    path: str
    name: str
    version: int = 0
    size: int = Field(default=0, description="Data length in bytes")
    children: int = Field(default=0, description="Number of child nodes")
    modified: Optional[datetime] = None


class CounterSnapshot(BaseModel):
    """IOCounter totals for the most recent query."""

    model_config = ConfigDict(frozen=True)

    messages: int
    bytes: int
    errors: int
    elapsed_seconds: float
    rate: float = Field(description="Messages per second")
