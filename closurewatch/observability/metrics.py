"""
Metrics definitions for closurewatch.

This module defines Prometheus metrics for monitoring the closure
ingestion, enrichment and notification pipeline.
"""

from prometheus_client import Counter, Histogram, Gauge

# 카운터 메트릭
closures_received = Counter(
    "closures_received_total",
    "Number of raw closures received",
    ["source"]
)

closures_duplicate = Counter(
    "closures_duplicate_total",
    "Number of already tracked closures filtered out"
)

closures_unassigned = Counter(
    "closures_unassigned_total",
    "Number of closures that matched no region"
)

closures_stale = Counter(
    "closures_stale_total",
    "Number of closures rejected by the region age policy",
    ["region"]
)

closures_suppressed = Counter(
    "closures_suppressed_total",
    "Number of scanned closures kept tracked but not notified",
    ["region"]
)

closures_reassigned = Counter(
    "closures_reassigned_total",
    "Number of scanned closures moved to another region",
    ["region"]
)

notifications_sent = Counter(
    "notifications_sent_total",
    "Webhook deliveries that succeeded",
    ["destination"]
)

notifications_failed = Counter(
    "notifications_failed_total",
    "Webhook deliveries that failed or exhausted retries",
    ["destination"]
)

webhook_retries = Counter(
    "webhook_retries_total",
    "Webhook retries after a rate-limit response",
    ["destination"]
)

enrichment_fetches = Counter(
    "enrichment_fetches_total",
    "Upstream Features requests issued for cache misses"
)

enrichment_cache_hits = Counter(
    "enrichment_cache_hits_total",
    "Closures fully enriched from the feature cache"
)

# 히스토그램 메트릭
batch_seconds = Histogram(
    "batch_duration_seconds",
    "Time spent processing one upload or scan job",
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 10.0, 30.0, 60.0]
)

enrichment_fetch_seconds = Histogram(
    "enrichment_fetch_duration_seconds",
    "Upstream Features request latency",
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
)

# 게이지 메트릭
queue_depth = Gauge(
    "internal_queue_depth",
    "Current depth of the pipeline job queue"
)

tracking_store_size = Gauge(
    "tracking_store_size",
    "Current number of tracked closure ids"
)

feature_cache_size = Gauge(
    "feature_cache_size",
    "Current number of cached feature records"
)

uptime_seconds = Gauge(
    "uptime_seconds",
    "Service uptime in seconds"
)
