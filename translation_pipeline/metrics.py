from prometheus_client import Counter, Gauge, Histogram

JOB_DURATION = Histogram(
    "translation_job_duration_seconds",
    "Duration of background jobs",
    ["job_name"],
)
JOB_SUCCESS = Counter(
    "translation_job_success_total",
    "Total successful job executions",
    ["job_name"],
)
JOB_FAILURE = Counter(
    "translation_job_failure_total",
    "Total failed job executions",
    ["job_name"],
)
TRANSLATION_QUEUE_SIZE = Gauge(
    "translation_queue_size",
    "Number of translation requests waiting for a batch",
)
TRANSLATION_CACHE_LOOKUPS = Counter(
    "translation_cache_lookups_total",
    "Translation cache lookups by outcome",
    ["result"],
)
TRANSLATION_PROVIDER_CALLS = Counter(
    "translation_provider_calls_total",
    "Batched translation provider calls",
    ["provider"],
)
TRANSLATION_PROVIDER_FAILURES = Counter(
    "translation_provider_failures_total",
    "Batched translation provider calls that failed",
    ["provider"],
)
TRANSLATION_BATCH_SIZE = Histogram(
    "translation_batch_texts",
    "Number of texts carried by one provider call",
    buckets=(1, 2, 5, 10, 20, 50, 100),
)
