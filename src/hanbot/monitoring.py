"""Monitoring configuration for the tutor."""
from prometheus_client import Counter, Histogram, start_http_server

# Conversation metrics
turns = Counter(
    "hanbot_turns_total",
    "Total number of conversation turns handled",
    ["kind", "outcome"],
)

conversations_started = Counter(
    "hanbot_conversations_started_total",
    "Total number of conversations created",
)

# Model metrics
model_calls = Counter(
    "hanbot_model_calls_total",
    "Total number of language model calls",
    ["outcome"],
)

model_call_duration = Histogram(
    "hanbot_model_call_duration_seconds",
    "Duration of language model calls in seconds",
    buckets=[0.5, 1.0, 2.0, 5.0, 10.0, 30.0],
)

# Learning metrics
usage_events = Counter(
    "hanbot_usage_events_total",
    "Total number of word usage events recorded",
    ["correct"],
)

# Error metrics
error_count = Counter(
    "hanbot_errors_total",
    "Total number of errors encountered",
    ["error_type"],
)


def start_monitoring(port: int = 9090) -> None:
    """Start the Prometheus metrics server."""
    start_http_server(port)
