"""Outbound request pipeline: admission gate, executor, metrics exporter."""

from oxfd.connectors.bucket import (
    AUTO_CAPACITY,
    AUTO_REFILL_RATE_PER_MS,
    TokenBucket,
    TokenBucketMetrics,
    create_bucket,
)
from oxfd.connectors.exporter import MetricsExporter
from oxfd.connectors.rest_client import (
    OxfordRestClient,
    RawResponse,
    RequestAttempt,
    RequestMetrics,
    parse_body,
    parse_retry_after,
)

__all__ = [
    "AUTO_CAPACITY",
    "AUTO_REFILL_RATE_PER_MS",
    "MetricsExporter",
    "OxfordRestClient",
    "RawResponse",
    "RequestAttempt",
    "RequestMetrics",
    "TokenBucket",
    "TokenBucketMetrics",
    "create_bucket",
    "parse_body",
    "parse_retry_after",
]
