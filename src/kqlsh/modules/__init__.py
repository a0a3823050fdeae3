"""Shell modules.

Each module groups the commands for one external system and owns that
system's connection.
"""

from kqlsh.modules.core import CoreModule
from kqlsh.modules.kafka import KafkaModule
from kqlsh.modules.zookeeper import ZookeeperModule

__all__ = ["CoreModule", "KafkaModule", "ZookeeperModule"]
