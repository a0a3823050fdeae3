"""Coordination store access.

The zookeeper module talks to the store through the narrow
CoordinationStore protocol; KazooCoordinationStore implements it over kazoo.
"""

import posixpath
from dataclasses import dataclass
from typing import Optional, Protocol

from kazoo.client import KazooClient
from kazoo.exceptions import KazooException, NoNodeError
from kazoo.handlers.threading import KazooTimeoutError

from kqlsh.common.config import config
from kqlsh.common.errors import ModuleError
from kqlsh.common.logging import get_logger

logger = get_logger(__name__, component="zookeeper")


@dataclass(frozen=True)
class NodeStat:
    """Metadata of one node."""

    path: str
    version: int
    data_length: int
    num_children: int
    ctime_ms: int
    mtime_ms: int
    ephemeral_owner: int = 0


class CoordinationStore(Protocol):
    def list_children(self, path: str) -> list[str]:
        ...

    def get_data(self, path: str) -> Optional[bytes]:
        ...

    def get_metadata(self, path: str) -> NodeStat:
        ...

    def close(self) -> None:
        ...


def normalize_path(path: str, cwd: str = "/") -> str:
    """Resolve a possibly relative path against ``cwd``."""
    joined = posixpath.join(cwd, path) if path else cwd
    normalized = posixpath.normpath(joined)
    # normpath keeps a leading '//' as-is
    return "/" + normalized.lstrip("/")


class KazooCoordinationStore:
    """ZooKeeper-backed coordination store.

    Args:
        hosts: ZooKeeper connect string (defaults to config)
        timeout: Connection timeout in seconds (defaults to config)
        client: Pre-built KazooClient (used by tests)
    """

    def __init__(
        self,
        hosts: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[KazooClient] = None,
    ):
        self.hosts = hosts or config.zookeeper.hosts
        self.timeout = timeout or config.zookeeper.timeout_seconds
        self._client = client or KazooClient(hosts=self.hosts, timeout=self.timeout, read_only=True)

        try:
            self._client.start(timeout=self.timeout)
        except KazooTimeoutError as e:
            raise ModuleError(f"Could not connect to ZooKeeper at {self.hosts}: {e}") from e

        logger.info("Connected to ZooKeeper", hosts=self.hosts)

    def list_children(self, path: str) -> list[str]:
        try:
            return sorted(self._client.get_children(path))
        except NoNodeError:
            raise ModuleError(f"Node '{path}' does not exist")
        except KazooException as e:
            raise ModuleError(f"Cannot list '{path}': {e}") from e

    def get_data(self, path: str) -> Optional[bytes]:
        try:
            data, _ = self._client.get(path)
        except NoNodeError:
            raise ModuleError(f"Node '{path}' does not exist")
        except KazooException as e:
            raise ModuleError(f"Cannot read '{path}': {e}") from e
        return data

    def get_metadata(self, path: str) -> NodeStat:
        try:
            stat = self._client.exists(path)
        except KazooException as e:
            raise ModuleError(f"Cannot stat '{path}': {e}") from e
        if stat is None:
            raise ModuleError(f"Node '{path}' does not exist")

        return NodeStat(
            path=path,
            version=stat.version,
            data_length=stat.dataLength,
            num_children=stat.numChildren,
            ctime_ms=stat.ctime,
            mtime_ms=stat.mtime,
            ephemeral_owner=stat.ephemeralOwner,
        )

    def close(self) -> None:
        self._client.stop()
        self._client.close()
        logger.info("Disconnected from ZooKeeper", hosts=self.hosts)


__all__ = ["CoordinationStore", "KazooCoordinationStore", "NodeStat", "normalize_path"]
