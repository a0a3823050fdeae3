"""Centralized configuration management for kqlsh.

This module provides type-safe configuration using Pydantic Settings with
environment variable override support. Configuration is hierarchical:
- KafkaConfig: Kafka brokers and Schema Registry settings
- ZookeeperConfig: Coordination store connection settings
- QueryConfig: KQL engine defaults (workers, timeouts, formats)
- ShellConfig: Interactive shell behaviour
- ObservabilityConfig: Logging settings
- KqlshConfig: Main configuration aggregating all sub-configs

Environment variables follow the pattern: KQLSH_{COMPONENT}_{PARAMETER}

Examples:
    KQLSH_KAFKA_BOOTSTRAP_SERVERS=kafka:29092
    KQLSH_ZOOKEEPER_HOSTS=zk1:2181,zk2:2181
    KQLSH_QUERY_MAX_WORKERS=8

Usage:
    from kqlsh.common.config import config

    print(config.kafka.bootstrap_servers)
    print(config.query.max_workers)
"""

from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class KafkaConfig(BaseSettings):
    """Kafka and Schema Registry configuration."""

    model_config = SettingsConfigDict(env_prefix="KQLSH_KAFKA_", case_sensitive=False, extra="ignore")

    bootstrap_servers: str = Field(
        default="localhost:9092",
        description="Kafka bootstrap servers (comma-separated for multiple brokers)",
    )

    schema_registry_url: Optional[str] = Field(
        default=None,
        description="Confluent Schema Registry URL, used to resolve 'registry:' schema identifiers",
    )

    client_id: str = Field(default="kqlsh", description="Client ID reported to the brokers")

    fetch_timeout_seconds: float = Field(
        default=5.0,
        description="Seconds to wait for a single message fetch before treating it as a timeout",
        gt=0,
    )

    fetch_retries: int = Field(
        default=3,
        description="Attempts for a fetch that fails with a transient broker error",
        ge=1,
        le=10,
    )

    @field_validator("bootstrap_servers")
    @classmethod
    def validate_bootstrap_servers(cls, v: str) -> str:
        """Ensure bootstrap servers is not empty."""
        if not v or not v.strip():
            raise ValueError("bootstrap_servers cannot be empty")
        return v.strip()

    @field_validator("schema_registry_url")
    @classmethod
    def validate_schema_registry_url(cls, v: Optional[str]) -> Optional[str]:
        """Ensure schema registry URL is a valid HTTP(S) URL."""
        if v is None:
            return v
        if not v.startswith(("http://", "https://")):
            raise ValueError("schema_registry_url must start with http:// or https://")
        return v.rstrip("/")


class ZookeeperConfig(BaseSettings):
    """ZooKeeper coordination store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="KQLSH_ZOOKEEPER_", case_sensitive=False, extra="ignore",
    )

    hosts: str = Field(default="localhost:2181", description="ZooKeeper connect string")

    timeout_seconds: float = Field(default=10.0, description="Connection timeout", gt=0)

    @field_validator("hosts")
    @classmethod
    def validate_hosts(cls, v: str) -> str:
        """Ensure the connect string is not empty."""
        if not v or not v.strip():
            raise ValueError("hosts cannot be empty")
        return v.strip()


class QueryConfig(BaseSettings):
    """KQL query engine configuration."""

    model_config = SettingsConfigDict(env_prefix="KQLSH_QUERY_", case_sensitive=False, extra="ignore")

    max_workers: int = Field(
        default=4, description="Maximum partitions scanned concurrently", ge=1, le=256,
    )

    default_format: str = Field(
        default="auto", description="Message format used when a query has no 'with' clause",
    )

    timeout_seconds: Optional[float] = Field(
        default=None,
        description="Wall-clock budget for a query (None = unbounded); expiry returns a partial result",
        gt=0,
    )

    max_decode_failures: int = Field(
        default=100,
        description="Decode failures listed in a query result (all are still counted)",
        ge=0,
    )


class ShellConfig(BaseSettings):
    """Interactive shell configuration."""

    model_config = SettingsConfigDict(env_prefix="KQLSH_SHELL_", case_sensitive=False, extra="ignore")

    history_size: int = Field(default=500, description="Commands kept in session history", ge=0)

    default_module: str = Field(default="core", description="Module active at startup")

    debug: bool = Field(default=False, description="Log stack traces for failed commands")


class ObservabilityConfig(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(
        env_prefix="KQLSH_OBSERVABILITY_", case_sensitive=False, extra="ignore",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="WARNING", description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    json_logs: bool = Field(default=False, description="Emit JSON log lines instead of console format")


class KqlshConfig(BaseSettings):
    """Main kqlsh configuration.

    Aggregates all sub-configurations into a single config object.
    Automatically loads from environment variables with KQLSH_ prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="KQLSH_",
        case_sensitive=False,
        extra="ignore",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    kafka: KafkaConfig = Field(default_factory=KafkaConfig)
    zookeeper: ZookeeperConfig = Field(default_factory=ZookeeperConfig)
    query: QueryConfig = Field(default_factory=QueryConfig)
    shell: ShellConfig = Field(default_factory=ShellConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)


# Global singleton instance
# Import this in other modules: from kqlsh.common.config import config
config = KqlshConfig()
