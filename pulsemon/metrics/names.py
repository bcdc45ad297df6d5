"""Well-known metric names and their HELP text."""

from __future__ import annotations

HTTP_REQUESTS_TOTAL = "http_requests_total"
HTTP_REQUEST_DURATION_SECONDS = "http_request_duration_seconds"
ERRORS_TOTAL = "errors_total"

SYSTEM_CPU_USAGE_PERCENT = "system_cpu_usage_percent"
SYSTEM_MEMORY_USAGE_BYTES = "system_memory_usage_bytes"
SYSTEM_DISK_USAGE_PERCENT = "system_disk_usage_percent"

DATABASE_CONNECTIONS_ACTIVE = "database_connections_active"
DATABASE_QUERY_TIME_MS = "database_query_time_ms"
DATABASE_SLOW_QUERIES = "database_slow_queries"

CACHE_HIT_RATE_PERCENT = "cache_hit_rate_percent"
CACHE_EVICTION_RATE = "cache_eviction_rate"

ACTIVE_USERS_TOTAL = "active_users_total"

CUSTOM_PREFIX = "custom_"

HELP: dict[str, str] = {
    HTTP_REQUESTS_TOTAL: "Total number of HTTP requests",
    HTTP_REQUEST_DURATION_SECONDS: "HTTP request duration in seconds",
    ERRORS_TOTAL: "Total number of errors",
    SYSTEM_CPU_USAGE_PERCENT: "System CPU usage percentage",
    SYSTEM_MEMORY_USAGE_BYTES: "System memory usage in bytes",
    SYSTEM_DISK_USAGE_PERCENT: "System disk usage percentage",
    DATABASE_CONNECTIONS_ACTIVE: "Number of active database connections",
    DATABASE_QUERY_TIME_MS: "Average database query time in milliseconds",
    DATABASE_SLOW_QUERIES: "Number of slow database queries",
    CACHE_HIT_RATE_PERCENT: "Cache hit rate percentage",
    CACHE_EVICTION_RATE: "Cache evictions per second",
    ACTIVE_USERS_TOTAL: "Number of active users",
}
