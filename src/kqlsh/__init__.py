"""kqlsh - interactive console for querying Kafka topics and ZooKeeper."""

__version__ = "0.4.0"

# Expose submodules for easier imports and to support unittest.mock patching
from . import codecs
from . import common
from . import query

__all__ = ["__version__", "codecs", "common", "query"]
