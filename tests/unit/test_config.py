"""
Unit tests for kqlsh configuration management.

Tests cover:
- Default values
- Environment variable overrides (KQLSH_{COMPONENT}_{PARAMETER})
- Validation of invalid values
"""

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from kqlsh.common.config import KafkaConfig, KqlshConfig, QueryConfig, ShellConfig, ZookeeperConfig


@pytest.mark.unit
class TestConfig:
    """Test suite for configuration management."""

    def test_default_config_loading(self):
        """Test loading default configuration values."""
        with patch.dict(os.environ, {}, clear=True):
            config = KqlshConfig()

        assert config.kafka.bootstrap_servers == "localhost:9092"
        assert config.kafka.schema_registry_url is None
        assert config.zookeeper.hosts == "localhost:2181"
        assert config.query.max_workers == 4
        assert config.query.default_format == "auto"
        assert config.query.timeout_seconds is None
        assert config.shell.default_module == "core"
        assert config.observability.log_level == "WARNING"

    def test_config_from_environment_variables(self):
        """Test loading configuration from environment variables."""
        env_vars = {
            "KQLSH_KAFKA_BOOTSTRAP_SERVERS": "kafka:29092",
            "KQLSH_ZOOKEEPER_HOSTS": "zk1:2181,zk2:2181",
            "KQLSH_QUERY_MAX_WORKERS": "8",
            "KQLSH_QUERY_TIMEOUT_SECONDS": "2.5",
            "KQLSH_SHELL_HISTORY_SIZE": "50",
        }

        with patch.dict(os.environ, env_vars):
            config = KqlshConfig()

        assert config.kafka.bootstrap_servers == "kafka:29092"
        assert config.zookeeper.hosts == "zk1:2181,zk2:2181"
        assert config.query.max_workers == 8
        assert config.query.timeout_seconds == 2.5
        assert config.shell.history_size == 50

    def test_bootstrap_servers_stripped(self):
        assert KafkaConfig(bootstrap_servers="  kafka:9092 ").bootstrap_servers == "kafka:9092"

    def test_schema_registry_url_trailing_slash(self):
        config = KafkaConfig(schema_registry_url="http://registry:8081/")

        assert config.schema_registry_url == "http://registry:8081"


@pytest.mark.unit
class TestConfigValidation:
    """Test rejection of invalid values."""

    def test_empty_bootstrap_servers(self):
        with pytest.raises(ValidationError, match="bootstrap_servers cannot be empty"):
            KafkaConfig(bootstrap_servers="  ")

    def test_schema_registry_url_scheme(self):
        with pytest.raises(ValidationError, match="http:// or https://"):
            KafkaConfig(schema_registry_url="registry:8081")

    def test_empty_zookeeper_hosts(self):
        with pytest.raises(ValidationError):
            ZookeeperConfig(hosts="")

    @pytest.mark.parametrize("workers", [0, 1000])
    def test_max_workers_bounds(self, workers):
        with pytest.raises(ValidationError):
            QueryConfig(max_workers=workers)

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValidationError):
            QueryConfig(timeout_seconds=0)

    def test_fetch_retries_bounds(self):
        with pytest.raises(ValidationError):
            KafkaConfig(fetch_retries=0)

    def test_negative_history_size(self):
        with patch.dict(os.environ, {"KQLSH_SHELL_HISTORY_SIZE": "-1"}):
            with pytest.raises(ValidationError):
                ShellConfig()
