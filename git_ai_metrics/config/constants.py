"""
Metrics export constants

Central location for environment variable names, config file keys,
built-in defaults and exported metric identities.
"""

# Service identity for resource attributes
SERVICE_NAME = "git-ai"

# Prefix applied to every exported metric name
METRIC_PREFIX = "git_ai"

# Environment variables (highest precedence)
ENV_OTEL_ENABLED = "GIT_AI_OTEL_ENABLED"
ENV_OTEL_ENDPOINT = "GIT_AI_OTEL_ENDPOINT"
ENV_OTEL_EXPORT_INTERVAL = "GIT_AI_OTEL_EXPORT_INTERVAL"
ENV_OTEL_PROTOCOL = "GIT_AI_OTEL_PROTOCOL"
ENV_OTEL_AUTH_HEADER = "GIT_AI_OTEL_AUTH_HEADER"
ENV_API_ENDPOINT = "GIT_AI_API_ENDPOINT"
ENV_API_KEY = "GIT_AI_API_KEY"
ENV_API_EXPORT_INTERVAL = "GIT_AI_METRICS_EXPORT_INTERVAL"
ENV_REQUEST_TIMEOUT = "GIT_AI_METRICS_TIMEOUT"
ENV_SHUTDOWN_TIMEOUT = "GIT_AI_METRICS_SHUTDOWN_TIMEOUT"
ENV_FALLBACK_DB = "GIT_AI_METRICS_DB"
ENV_FALLBACK_MAX_ATTEMPTS = "GIT_AI_METRICS_MAX_ATTEMPTS"
ENV_FALLBACK_MAX_AGE = "GIT_AI_METRICS_MAX_AGE"
ENV_CONFIG_FILE = "GIT_AI_CONFIG_FILE"

# Config file keys
FILE_OTEL_ENABLED = "otel_enabled"
FILE_OTEL_ENDPOINT = "otel_endpoint"
FILE_OTEL_EXPORT_INTERVAL = "otel_export_interval_secs"
FILE_OTEL_PROTOCOL = "otel_protocol"
FILE_OTEL_AUTH_HEADER = "otel_auth_header"
FILE_API_ENDPOINT = "api_endpoint"
FILE_API_KEY = "api_key"
FILE_API_EXPORT_INTERVAL = "metrics_export_interval_secs"
FILE_REQUEST_TIMEOUT = "metrics_timeout_secs"
FILE_SHUTDOWN_TIMEOUT = "metrics_shutdown_timeout_secs"
FILE_FALLBACK_DB = "metrics_db_path"
FILE_FALLBACK_MAX_ATTEMPTS = "metrics_max_attempts"
FILE_FALLBACK_MAX_AGE = "metrics_max_age_secs"

# Built-in defaults
DEFAULT_OTEL_ENDPOINT = "http://localhost:4317"
DEFAULT_OTEL_EXPORT_INTERVAL_SECS = 60
DEFAULT_OTEL_PROTOCOL = "grpc"
DEFAULT_API_ENDPOINT = "https://usegitai.com/worker/metrics/upload"
DEFAULT_API_EXPORT_INTERVAL_SECS = 60
DEFAULT_REQUEST_TIMEOUT_SECS = 10
DEFAULT_SHUTDOWN_TIMEOUT_SECS = 5
DEFAULT_CONFIG_FILE = "~/.git-ai/config.json"
DEFAULT_FALLBACK_DB_PATH = "~/.git-ai/internal/metrics.db"
DEFAULT_FALLBACK_MAX_ATTEMPTS = 3
DEFAULT_FALLBACK_MAX_AGE_SECS = 24 * 60 * 60

# Upload payload schema version
UPLOAD_PAYLOAD_VERSION = 1

# OpenTelemetry default explicit bucket boundaries
DEFAULT_HISTOGRAM_BOUNDS = (
    0.0, 5.0, 10.0, 25.0, 50.0, 75.0, 100.0, 250.0,
    500.0, 750.0, 1000.0, 2500.0, 5000.0, 7500.0, 10000.0,
)

# Exported metric names
COMMITTED_HUMAN_ADDITIONS = f"{METRIC_PREFIX}.committed.human_additions"
COMMITTED_AI_ADDITIONS = f"{METRIC_PREFIX}.committed.ai_additions"
COMMITTED_DIFF_ADDED = f"{METRIC_PREFIX}.committed.diff_added"
COMMITTED_DIFF_DELETED = f"{METRIC_PREFIX}.committed.diff_deleted"
COMMITTED_AI_ACCEPTED = f"{METRIC_PREFIX}.committed.ai_accepted"
AGENT_USAGE_COUNT = f"{METRIC_PREFIX}.agent_usage.count"
CHECKPOINT_COUNT = f"{METRIC_PREFIX}.checkpoint.count"
CHECKPOINT_LINES_ADDED = f"{METRIC_PREFIX}.checkpoint.lines_added"
CHECKPOINT_LINES_DELETED = f"{METRIC_PREFIX}.checkpoint.lines_deleted"

METRIC_DESCRIPTIONS = {
    COMMITTED_HUMAN_ADDITIONS: "Number of human-written lines committed",
    COMMITTED_AI_ADDITIONS: "Number of AI-generated lines committed",
    COMMITTED_DIFF_ADDED: "Total lines added in git diff",
    COMMITTED_DIFF_DELETED: "Total lines deleted in git diff",
    COMMITTED_AI_ACCEPTED: "Number of AI-generated lines accepted into commit",
    AGENT_USAGE_COUNT: "Number of AI agent usage events",
    CHECKPOINT_COUNT: "Number of checkpoint events",
    CHECKPOINT_LINES_ADDED: "Lines added per checkpoint",
    CHECKPOINT_LINES_DELETED: "Lines deleted per checkpoint",
}

# Per-event attributes, attached only when the event carries them
COMMON_ATTRIBUTE_KEYS = (
    "repo_url",
    "author",
    "commit_sha",
    "base_commit_sha",
    "branch",
    "tool",
    "model",
    "prompt_id",
)
