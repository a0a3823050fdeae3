"""
Prometheus metrics registry for kqlsh.

Pre-registers all metrics at module load time for better performance
and fail-fast behavior on duplicate metric names.

Metrics follow Prometheus naming conventions:
- snake_case names
- Base unit suffixes (_seconds, _bytes, _total)
- Descriptive help text
"""

from typing import Dict

from prometheus_client import Counter, Histogram

# ==============================================================================
# Configuration
# ==============================================================================

# Standard labels applied to all metrics
STANDARD_LABELS = ["service", "component"]

# Scans are interactive, so buckets go up to a few minutes
QUERY_BUCKETS = [
    0.010,  # 10ms
    0.050,  # 50ms
    0.100,  # 100ms
    0.500,  # 500ms
    1.000,  # 1s
    5.000,  # 5s
    30.000,  # 30s
    120.000,  # 2m
    600.000,  # 10m
]

# ==============================================================================
# Query Layer Metrics
# ==============================================================================

KQL_QUERIES_TOTAL = Counter(
    "kqlsh_kql_queries_total",
    "Total KQL queries executed",
    STANDARD_LABELS + ["status"],  # status: complete|cancelled|failed
)

KQL_QUERY_DURATION_SECONDS = Histogram(
    "kqlsh_kql_query_duration_seconds",
    "KQL query wall-clock duration in seconds",
    STANDARD_LABELS,
    buckets=QUERY_BUCKETS,
)

MESSAGES_SCANNED_TOTAL = Counter(
    "kqlsh_messages_scanned_total",
    "Total messages read from the log during queries",
    STANDARD_LABELS + ["topic"],
)

DECODE_ERRORS_TOTAL = Counter(
    "kqlsh_decode_errors_total",
    "Total payloads that failed to decode",
    STANDARD_LABELS + ["format"],
)

PARTITION_FETCH_ERRORS_TOTAL = Counter(
    "kqlsh_partition_fetch_errors_total",
    "Total partitions left partial by a fetch error",
    STANDARD_LABELS + ["topic"],
)

# ==============================================================================
# Shell Metrics
# ==============================================================================

COMMANDS_TOTAL = Counter(
    "kqlsh_commands_total",
    "Total shell commands executed",
    STANDARD_LABELS + ["module", "command", "status"],  # status: ok|syntax_error|error
)

COMMAND_DURATION_SECONDS = Histogram(
    "kqlsh_command_duration_seconds",
    "Shell command duration in seconds, including awaited queries",
    STANDARD_LABELS + ["module", "command"],
    buckets=QUERY_BUCKETS,
)

ROWS_EXPORTED_TOTAL = Counter(
    "kqlsh_rows_exported_total",
    "Total rows written to output sinks",
    STANDARD_LABELS + ["sink"],
)

# ==============================================================================
# Registry Helper Functions
# ==============================================================================

_METRIC_REGISTRY: Dict[str, object] = {
    # Query
    "kql_queries_total": KQL_QUERIES_TOTAL,
    "kql_query_duration_seconds": KQL_QUERY_DURATION_SECONDS,
    "messages_scanned_total": MESSAGES_SCANNED_TOTAL,
    "decode_errors_total": DECODE_ERRORS_TOTAL,
    "partition_fetch_errors_total": PARTITION_FETCH_ERRORS_TOTAL,

    # Shell
    "commands_total": COMMANDS_TOTAL,
    "command_duration_seconds": COMMAND_DURATION_SECONDS,
    "rows_exported_total": ROWS_EXPORTED_TOTAL,
}


def get_metric(metric_name: str) -> object:
    """
    Get a pre-registered metric by name.

    Args:
        metric_name: Metric name (without kqlsh_ prefix)

    Returns:
        Prometheus metric object (Counter or Histogram)

    Raises:
        KeyError: If metric name not found in registry
    """
    if metric_name not in _METRIC_REGISTRY:
        raise KeyError(
            f"Metric '{metric_name}' not found in registry. "
            f"Available metrics: {sorted(_METRIC_REGISTRY.keys())}"
        )
    return _METRIC_REGISTRY[metric_name]


def get_counter(metric_name: str) -> Counter:
    """Get a Counter metric."""
    return get_metric(metric_name)


def get_histogram(metric_name: str) -> Histogram:
    """Get a Histogram metric."""
    return get_metric(metric_name)
