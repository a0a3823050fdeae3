"""ZooKeeper module: browse the coordination store like a file system."""

from datetime import datetime, timezone
from typing import Any, Callable, Optional, Sequence

from kqlsh.codecs import CodecRegistry, DecodedMessage, decode_message
from kqlsh.command import Command, Module, UnixLikeArgs
from kqlsh.common.config import config
from kqlsh.modules.views import message_view
from kqlsh.observe.models import CoordinationNode
from kqlsh.render import Maybe
from kqlsh.zookeeper import CoordinationStore, KazooCoordinationStore, NodeStat, normalize_path

StoreFactory = Callable[[str], CoordinationStore]


def _kazoo_store(hosts: str) -> KazooCoordinationStore:
    return KazooCoordinationStore(hosts=hosts)


def _node(stat: NodeStat) -> CoordinationNode:
    return CoordinationNode(
        path=stat.path,
        name=stat.path.rsplit("/", 1)[-1] or "/",
        version=stat.version,
        size=stat.data_length,
        children=stat.num_children,
        modified=datetime.fromtimestamp(stat.mtime_ms / 1000, tz=timezone.utc) if stat.mtime_ms else None,
    )


class ZookeeperModule(Module):
    """ZooKeeper commands. Relative paths resolve against the current node."""

    name = "zookeeper"
    label = "ZooKeeper"

    def __init__(
        self,
        hosts: Optional[str] = None,
        codecs: Optional[CodecRegistry] = None,
        store_factory: StoreFactory = _kazoo_store,
    ):
        super().__init__()
        self.hosts = hosts or config.zookeeper.hosts
        self.codecs = codecs or CodecRegistry()
        self._store_factory = store_factory
        self._store: Optional[CoordinationStore] = None
        self.cwd = "/"

    def get_commands(self) -> Sequence[Command]:
        return [
            self.command("zconnect", self.connect, [("hosts", False)], help="Connects to ZooKeeper"),
            self.command("zcd", self.change_dir, [("path", True)], help="Changes the current node"),
            self.command("zls", self.list_children, [("path", False)], help="Lists child nodes"),
            self.command(
                "zget", self.get_data, [("path", True)], [("-f", "format")], help="Shows a node's data",
            ),
            self.command("zstat", self.stat, [("path", True)], help="Shows a node's metadata"),
            self.command(
                "ztree", self.tree, [("path", False)], [("-d", "depth")], help="Lists a subtree of nodes",
            ),
        ]

    @property
    def store(self) -> CoordinationStore:
        if self._store is None:
            self._open()
        return self._store

    def _open(self) -> None:
        self.logger.info("Connecting to ZooKeeper", hosts=self.hosts)
        self._store = self._store_factory(self.hosts)

    def prompt(self) -> str:
        return f"{self.hosts}{self.cwd}$ "

    def shutdown(self) -> None:
        store, self._store = self._store, None
        if store is not None:
            store.close()

    def resolve(self, path: Optional[str]) -> str:
        return normalize_path(path or "", self.cwd)

    # commands

    def connect(self, args: UnixLikeArgs) -> str:
        self.shutdown()
        self.hosts = args.get(0) or self.hosts
        self.cwd = "/"
        self._open()
        return f"Connected to {self.hosts}"

    def change_dir(self, args: UnixLikeArgs) -> None:
        path = self.resolve(args[0])
        # raises if the node does not exist
        self.store.get_metadata(path)
        self.cwd = path

    def list_children(self, args: UnixLikeArgs) -> list[str]:
        return self.store.list_children(self.resolve(args.get(0)))

    def get_data(self, args: UnixLikeArgs) -> Any:
        data = self.store.get_data(self.resolve(args[0]))
        if not data:
            return Maybe(None)
        codec = self.codecs.create(args.option("format") or config.query.default_format)
        return decode_message(codec, data)

    def stat(self, args: UnixLikeArgs) -> CoordinationNode:
        return _node(self.store.get_metadata(self.resolve(args[0])))

    def tree(self, args: UnixLikeArgs) -> list[str]:
        root = self.resolve(args.get(0))
        depth = args.option("depth")
        max_depth = None
        if depth is not None:
            try:
                max_depth = int(depth)
            except ValueError:
                raise self.syntax_error("ztree", f"depth must be an integer, got '{depth}'")
            if max_depth < 0:
                raise self.syntax_error("ztree", "depth must not be negative")

        paths: list[str] = []
        self._walk(root, 0, max_depth, paths)
        return paths

    def _walk(self, path: str, level: int, max_depth: Optional[int], paths: list[str]) -> None:
        paths.append(path)
        if max_depth is not None and level >= max_depth:
            return
        for child in self.store.list_children(path):
            self._walk(normalize_path(child, path), level + 1, max_depth, paths)

    def decipher(self, value: Any) -> Optional[Any]:
        if isinstance(value, DecodedMessage):
            return message_view(value)
        return None
