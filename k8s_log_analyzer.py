#!/usr/bin/env python3
"""
K8s Log Analyzer v1.0.0

Turns a Kubernetes monitoring log archive (pod error streams, periodic cluster
metrics snapshots, MySQL processlist dumps, raw kubectl pod logs) into a
normalized set of classified events, time-series, correlated issues and
prioritized recommendations.

================================================================================
FEATURES
================================================================================

Streaming Parsers
   • Pod error streams: "[<pod>] <ISO8601> <message>" records, stack-trace
     continuation lines folded into the record that started them
   • Metrics snapshots: sectioned text (nodes, pods, deployments, pod status,
     DB connection pool, per-pod DB connections, pod config)
   • DB debug log: MySQL processlist snapshots separated by `date` headers
   • Raw pod logs: per-pod summaries with 5-minute buckets

Classification
   • Ordered regex taxonomy of 23 categories plus `uncategorized`
   • Fixed severity weight (1-5) per category

Bounded Memory
   • Files are read line by line, one file at a time
   • Global event cap with a per-file floor and uniform-stride sampling

Correlation Engine
   • Rule table of (predicate, builder) pairs producing severity-ranked issues
   • Recommendations with priority, category, effort and impact labels

================================================================================
USAGE
================================================================================

Basic usage (writes <log-dir>/log-analysis-report.json):
    k8s-log-analyzer ./monitor-logs_20260211_204624/

Custom output and time window:
    k8s-log-analyzer ./logs/ -o report.json \\
        --start 2026-02-11T14:00:00Z --end 2026-02-11T15:00:00Z

Window in a local timezone:
    k8s-log-analyzer ./logs/ --start "2026-02-11 19:30" --timezone "Asia/Kolkata"

================================================================================
SUPPORTED LOG TYPES
================================================================================

    errors_YYYYMMDD_HHMMSS.log     Pod error streams
    metrics_YYYYMMDD_HHMMSS.txt    Cluster metrics snapshots
    db_debug.log                   MySQL processlist snapshots
    pod_logs/**/*.log              Raw kubectl logs (one file per pod)
    MANIFEST.txt                   Archive source and capture time

================================================================================
EXIT CODES
================================================================================

    0   - Success, no issues found
    1   - Success, issues found in archive
    2   - Error (missing archive, invalid dates, bad config, write failure)
    130 - Interrupted by user (Ctrl+C)

================================================================================
"""

# === SECTION 1: IMPORTS & CONSTANTS ===

import argparse
import json
import logging
import os
import re
import sys
import time
from collections import defaultdict
from dataclasses import asdict, dataclass, field, is_dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Iterable, Iterator, Optional

import pytz
import yaml
from dateutil import parser as date_parser

# Configure module-level logger
logger = logging.getLogger(__name__)

logger.setLevel(logging.INFO)

VERSION = "1.0.0"
MAX_EVENTS = 200000
MIN_EVENTS_PER_FILE = 5000
MAX_MESSAGE_LENGTH = 500
MAX_CATEGORY_SAMPLES = 5
TIMELINE_BUCKET_MINUTES = 5
TOP_PODS_LIMIT = 20
TOP_BOTS_LIMIT = 20
HOT_POD_LIMIT = 10
LONG_QUERY_SECONDS = 60
MAX_LONG_QUERIES = 20
MAX_QUERY_TEXT_LENGTH = 200
PROGRESS_INTERVAL_LINES = 10000
MAX_POD_LOG_ERRORS = 10
MAX_NOTABLE_EVENTS = 20
MAX_POD_LOG_MESSAGE_LENGTH = 150
MAX_ENDPOINT_LENGTH = 60
TOP_ENDPOINTS_LIMIT = 10
DEFAULT_REPORT_NAME = "log-analysis-report.json"
IGNORED_DB_COMMANDS = ("Sleep", "Daemon")
UNCATEGORIZED = "uncategorized"
UNCATEGORIZED_SEVERITY = 1


class Thresholds:
    """Fixed detection thresholds (counts are exclusive lower bounds)"""

    NODE_CPU_PERCENT = 80
    NODE_MEMORY_PERCENT = 80
    DB_PEAK_ACTIVE = 50
    REDIS_CONNECTION = 50
    RASA_TIMEOUT = 10
    OOM_KILLED = 0
    CRASH_RESTART = 0
    MYSQL_WARNING = 20
    NLU_FALLBACK = 50
    HTTP_5XX = 10
    CONNECTION_RESET = 20
    SLOW_QUERY = 5
    KAFKA_ERROR = 5
    LOCK_FAILURE = 0
    TENSORFLOW_WARNING = 5


# (name, pattern, severity). All patterns are tested; order only affects presentation.
ERROR_PATTERNS = [
    ("redis_connection", re.compile(r"ECONNREFUSED.*6379|Redis.*connect.*refused|connect ECONNREFUSED", re.I), 5),
    ("redis_error", re.compile(r"Redis.*error|redis.*fail|RedisError", re.I), 4),
    ("rasa_timeout", re.compile(r"Request timeout after \d+s for bot", re.I), 5),
    ("mysql_warning", re.compile(r"Ignoring invalid.*MySQL2|invalid configuration option.*Connection", re.I), 3),
    ("mysql_error", re.compile(r"\bER_[A-Z_]+|(?i:ECONNREFUSED.*3306|mysql.*error|SequelizeConnectionError)"), 5),
    ("nlu_fallback", re.compile(r"nlu_fallback|intent.*fallback", re.I), 3),
    ("tensorflow_warning", re.compile(r"WARNING:tensorflow|tf\.function retracing", re.I), 2),
    ("oom_killed", re.compile(r"OOMKilled|Out of memory|SIGKILL|Cannot allocate memory", re.I), 5),
    ("http_5xx", re.compile(r'"statusCode":\s*5\d{2}|HTTP\s+5\d{2}|status[: ]+5\d{2}', re.I), 4),
    ("http_4xx", re.compile(r'"statusCode":\s*4\d{2}', re.I), 2),
    ("connection_reset", re.compile(r"ECONNRESET|EPIPE|socket hang up|connection reset", re.I), 4),
    ("dns_error", re.compile(r"ENOTFOUND|EAI_AGAIN|DNS.*fail", re.I), 4),
    ("timeout_generic", re.compile(r"ETIMEDOUT|ESOCKETTIMEDOUT|timeout.*exceeded", re.I), 4),
    ("crash_restart", re.compile(r"CrashLoopBackOff|Back-off restarting|container.*killed", re.I), 5),
    ("memory_pressure", re.compile(r"memory.*pressure|heap.*out|FATAL ERROR.*heap", re.I), 5),
    ("disk_pressure", re.compile(r"disk.*pressure|no space left|ENOSPC", re.I), 5),
    ("auth_error", re.compile(r"unauthorized|403.*forbidden|authentication.*fail|JWT.*expired", re.I), 3),
    ("rate_limit", re.compile(r"rate.?limit|too many requests|\b429\b", re.I), 3),
    ("slow_query", re.compile(r"slow.*query|query.*took.*\d+ms|execution time.*exceeded", re.I), 3),
    ("lock_failure", re.compile(r"Failed to release lock|deadlock|lock.*timeout", re.I), 4),
    ("kafka_error", re.compile(r"kafka.*error|KafkaJSError|consumer.*disconnect", re.I), 4),
    ("unhandled_exception", re.compile(r"unhandled.*rejection|uncaught.*exception", re.I), 5),
    ("stack_trace", re.compile(r"^\s+at\s+\S+", re.M), 3),
]

CATEGORY_SEVERITY = {name: severity for name, _, severity in ERROR_PATTERNS}
CATEGORY_SEVERITY[UNCATEGORIZED] = UNCATEGORIZED_SEVERITY

SEVERITY_RANK = {"critical": 0, "high": 1, "medium": 2, "low": 3}
SEVERITY_PRIORITY = {"critical": 10, "high": 7, "medium": 4, "low": 2}

POD_LINE_RE = re.compile(r"^\[([^\]]+)\]\s+(\d{4}-\d{2}-\d{2}T[\d:.]+(?:Z|[+-]\d{2}:?\d{2})?)(?:\s+(.*))?$")
STACK_FRAME_RE = re.compile(r"^\s+at\s")
BOT_ID_RE = re.compile(
    r"(?:bot|Welcome-)[\s-]?([a-f0-9]{8}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{12})", re.I
)
RASA_BOT_RE = re.compile(r"for bot ([a-f0-9-]+)", re.I)
ERROR_LEVEL_RE = re.compile(r"\b(?:error|fatal|critical)\b", re.I)
WARNING_LEVEL_RE = re.compile(r"\bwarn(?:ing)?\b", re.I)
DEBUG_LEVEL_RE = re.compile(r"\bdebug\b", re.I)
ANSI_ESCAPE_RE = re.compile(r"\x1b\[[0-9;]*[A-Za-z]")
ANSI_RESIDUE_RE = re.compile(r"\[\d+(?:;\d+)*m")

PROCESSLIST_TIMESTAMP_RE = re.compile(r"^(Mon|Tue|Wed|Thu|Fri|Sat|Sun)\s+\w+\s+\d+\s+[\d:]+\s+\w+\s+\d{4}")
PROCESSLIST_HEADER_RE = re.compile(r"^Id\s+User\s+Host")

ERROR_LOG_RE = re.compile(r"errors_\d{8}_\d{6}\.log$", re.I)
METRICS_FILE_RE = re.compile(r"metrics_\d{8}_\d{6}\.txt$", re.I)
DASHBOARD_LOG_RE = re.compile(r"monitoring_dashboard.*\.log$", re.I)
MANIFEST_RE = re.compile(r"from\s+(\S+)\s+\((.+)\)", re.I)


class PerformanceTracker:
    """Track and report durations of pipeline steps and per-file parses."""

    def __init__(self):
        self._timings: dict[str, list[float]] = {}

    def record(self, step_name: str, duration: float) -> None:
        """Record execution time for a step."""
        self._timings.setdefault(step_name, []).append(duration)

    def get_summary(self) -> dict[str, dict]:
        """Get summary statistics for all tracked steps."""
        summary = {}
        for step, times in self._timings.items():
            if times:
                summary[step] = {
                    "calls": len(times),
                    "total": sum(times),
                    "avg": sum(times) / len(times),
                    "min": min(times),
                    "max": max(times),
                }
        return summary

    def get_slowest(self, limit: int = 10) -> list[tuple[str, float]]:
        """Get the slowest steps by total time."""
        summary = self.get_summary()
        sorted_steps = sorted(summary.items(), key=lambda x: x[1]["total"], reverse=True)
        return [(s, stats["total"]) for s, stats in sorted_steps[:limit]]


class TimezoneManager:
    """Centralized timezone handling for consistent datetime operations."""

    UTC = timezone.utc

    @staticmethod
    def ensure_utc(dt: datetime) -> datetime:
        if dt.tzinfo is None:
            return dt.replace(tzinfo=TimezoneManager.UTC)
        return dt.astimezone(TimezoneManager.UTC)

    @staticmethod
    def now_utc() -> datetime:
        return datetime.now(TimezoneManager.UTC)

    @staticmethod
    def parse_iso_utc(iso_str: str) -> Optional[datetime]:
        try:
            dt = datetime.fromisoformat(iso_str.replace("Z", "+00:00"))
            return TimezoneManager.ensure_utc(dt)
        except (ValueError, AttributeError):
            return None

    @staticmethod
    def to_iso_string(dt: datetime) -> str:
        utc_dt = TimezoneManager.ensure_utc(dt)
        return utc_dt.strftime("%Y-%m-%dT%H:%M:%S") + "Z"


class ConfigLoader:
    """Load configuration from YAML/JSON files with environment variable support."""

    ENV_MAPPING = {
        "K8S_LOG_ANALYZER_OUTPUT": "output",
        "K8S_LOG_ANALYZER_START": "start",
        "K8S_LOG_ANALYZER_END": "end",
        "K8S_LOG_ANALYZER_TIMEZONE": "timezone",
        "K8S_LOG_ANALYZER_MAX_EVENTS": "max_events",
        "K8S_LOG_ANALYZER_VERBOSE": "verbose",
        "K8S_LOG_ANALYZER_QUIET": "quiet",
    }

    @staticmethod
    def load(config_path: Optional[str] = None) -> dict:
        config = {}
        if config_path:
            if not os.path.exists(config_path):
                raise ConfigError(f"Config file not found: {config_path}")
            if not config_path.endswith((".yaml", ".yml", ".json")):
                raise ConfigError(f"Unsupported config format: {config_path} (use .yaml, .yml or .json)")
            try:
                with open(config_path, "r") as f:
                    content = f.read()
                if config_path.endswith(".json"):
                    config = json.loads(content)
                else:
                    config = yaml.safe_load(content) or {}
            except (OSError, yaml.YAMLError, json.JSONDecodeError) as e:
                raise ConfigError(f"Failed to read config file {config_path}: {e}") from e
            if not isinstance(config, dict):
                raise ConfigError(f"Config file {config_path} must contain a mapping")
        config.update(ConfigLoader._load_from_env())
        return config

    @staticmethod
    def _load_from_env() -> dict:
        config = {}
        for env_var, config_key in ConfigLoader.ENV_MAPPING.items():
            value = os.environ.get(env_var)
            if value:
                if config_key in ("verbose", "quiet"):
                    config[config_key] = value.lower() in ("true", "1", "yes")
                elif config_key == "max_events":
                    try:
                        config[config_key] = int(value)
                    except ValueError:
                        logger.warning(f"Ignoring non-integer {env_var}={value!r}")
                else:
                    config[config_key] = value
        return config


# === SECTION 2: EXCEPTION CLASSES ===


class LogAnalyzerError(Exception):
    """Base exception for the log analyzer"""

    pass


class ArchiveNotFoundError(LogAnalyzerError):
    """Target log archive directory does not exist"""

    pass


class DateValidationError(LogAnalyzerError):
    """Invalid date format or range"""

    pass


class ConfigError(LogAnalyzerError):
    """Config file missing, unreadable or malformed"""

    pass


# === SECTION 3: UTILITY CLASSES & HELPERS ===


class ProgressTracker:
    """Track progress of pipeline steps with console and logger output."""

    def __init__(self, verbose=False, quiet=False, log_level=None):
        self.verbose = verbose
        self.quiet = quiet
        self.steps_completed = 0
        self.total_steps = 0
        self.log_level = log_level
        self._configure_logging()

    def _configure_logging(self):
        """Configure logging based on settings."""
        if self.log_level:
            logger.setLevel(self.log_level)
        elif self.verbose:
            logger.setLevel(logging.DEBUG)
        else:
            logger.setLevel(logging.INFO)

    def set_total_steps(self, total):
        self.total_steps = total

    def step(self, message):
        """Show progress for current step."""
        self.steps_completed += 1
        prefix = f"[{self.steps_completed}/{self.total_steps}]" if self.total_steps > 0 else ""

        logger.info(f"{prefix} {message}")

        if not self.quiet:
            print(f"{prefix} {message}")

    def info(self, message):
        """Show info message."""
        logger.info(message)

        if self.verbose and not self.quiet:
            print(f"ℹ️  {message}")

    def warning(self, message):
        """Show warning message."""
        logger.warning(message)

        if not self.quiet:
            print(f"⚠️  {message}")

    def error(self, message):
        """Show error message."""
        logger.error(message)

        print(f"✗ {message}", file=sys.stderr)


def is_in_time_range(timestamp: datetime, start_date: Optional[datetime], end_date: Optional[datetime]) -> bool:
    """Inclusive range check; a missing bound is open."""
    if start_date and timestamp < start_date:
        return False
    if end_date and timestamp > end_date:
        return False
    return True


class DateFilterMixin:
    """Mixin for filtering parsed records by the configured time range"""

    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    @property
    def has_time_filter(self) -> bool:
        return self.start_date is not None or self.end_date is not None

    def is_in_time_range(self, timestamp: Optional[datetime]) -> bool:
        """Records without a parseable timestamp only pass when no filter is set."""
        if not self.has_time_filter:
            return True
        if timestamp is None:
            return False
        return is_in_time_range(timestamp, self.start_date, self.end_date)


_EXCESS_FRACTION_RE = re.compile(r"(\.\d{6})\d+")
_METRICS_TIMESTAMP_RE = re.compile(r"(\d{4}-\d{2}-\d{2})[ T](\d{2}:\d{2}:\d{2})")
_FILENAME_TIMESTAMP_RE = re.compile(r"(\d{8})_(\d{6})")


def parse_iso_timestamp(text: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 instant (pod stream format) into UTC, or None."""
    if not text:
        return None
    text = text.strip()
    # kubectl emits nanoseconds; datetime keeps microseconds
    parsed = TimezoneManager.parse_iso_utc(_EXCESS_FRACTION_RE.sub(r"\1", text))
    if parsed is not None:
        return parsed
    try:
        return TimezoneManager.ensure_utc(date_parser.isoparse(text))
    except (ValueError, OverflowError):
        return None


def parse_db_timestamp(text: Optional[str]) -> Optional[datetime]:
    """Parse a `date` header such as "Wed Feb 11 20:46:24 UTC 2026"."""
    if not text:
        return None
    try:
        return TimezoneManager.ensure_utc(date_parser.parse(text.strip()))
    except (ValueError, OverflowError):
        return None


def parse_metrics_timestamp(text: Optional[str]) -> Optional[datetime]:
    """Extract "YYYY-MM-DD HH:MM:SS" from a metrics header line, read as UTC."""
    if not text:
        return None
    match = _METRICS_TIMESTAMP_RE.search(text)
    if not match:
        return None
    try:
        dt = datetime.strptime(f"{match.group(1)} {match.group(2)}", "%Y-%m-%d %H:%M:%S")
    except ValueError:
        return None
    return dt.replace(tzinfo=timezone.utc)


def parse_filename_timestamp(filename: str) -> Optional[datetime]:
    match = _FILENAME_TIMESTAMP_RE.search(os.path.basename(filename))
    if not match:
        return None
    try:
        dt = datetime.strptime(match.group(1) + match.group(2), "%Y%m%d%H%M%S")
    except ValueError:
        return None
    return dt.replace(tzinfo=timezone.utc)


def bucket_timestamp(timestamp: datetime, minutes: int = TIMELINE_BUCKET_MINUTES) -> datetime:
    """Floor a timestamp to the start of its fixed-width bucket."""
    size = minutes * 60
    epoch = int(timestamp.timestamp())
    return datetime.fromtimestamp(epoch - epoch % size, tz=timezone.utc)


def format_duration(seconds: int) -> str:
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        return f"{seconds // 60}m {seconds % 60}s"
    return f"{seconds // 3600}h {(seconds % 3600) // 60}m"


def round_half_up(value: float) -> int:
    if value < 0:
        return -int(-value + 0.5)
    return int(value + 0.5)


def strip_ansi(text: str) -> str:
    """Remove ANSI color codes, including residue whose ESC byte was lost."""
    return ANSI_RESIDUE_RE.sub("", ANSI_ESCAPE_RE.sub("", text))


def parse_cpu(text: Optional[str]) -> Optional[int]:
    """CPU quantity in millicores ("250m" -> 250, "1.5" -> 1500)."""
    if not text or text.strip() == "-":
        return None
    text = text.strip()
    match = re.match(r"^(\d+)m$", text)
    if match:
        return int(match.group(1))
    match = re.match(r"^(\d+(?:\.\d+)?)$", text)
    if match:
        return round_half_up(float(match.group(1)) * 1000)
    return None


def parse_memory(text: Optional[str]) -> Optional[int]:
    """Memory quantity in Mi ("512Mi", "1.5Gi", "204800Ki")."""
    if not text or text.strip() == "-":
        return None
    text = text.strip()
    match = re.match(r"^(\d+(?:\.\d+)?)Mi$", text)
    if match:
        return round_half_up(float(match.group(1)))
    match = re.match(r"^(\d+(?:\.\d+)?)Gi$", text)
    if match:
        return round_half_up(float(match.group(1)) * 1024)
    match = re.match(r"^(\d+)Ki$", text)
    if match:
        return round_half_up(int(match.group(1)) / 1024)
    return None


def parse_percent(text: Optional[str]) -> Optional[int]:
    if not text or text.strip() == "-":
        return None
    match = re.search(r"(\d+)%", text)
    return int(match.group(1)) if match else None


def parse_int_safe(text: Optional[str]) -> Optional[int]:
    """Leading integer of a column value ("3", "2/2" -> 2), None for "-" or junk."""
    if not text or text.strip() == "-":
        return None
    match = re.match(r"^-?\d+", text.strip())
    return int(match.group(0)) if match else None


def extract_pod_info(pod_name: Optional[str]) -> dict:
    """Split "<deployment>-<replicaset-hash>-<pod-hash>" into its parts."""
    if not pod_name:
        return {"pod": None, "deployment": None, "replica_set": None}
    parts = pod_name.split("-")
    if len(parts) < 3:
        return {"pod": pod_name, "deployment": pod_name, "replica_set": None}
    return {"pod": pod_name, "deployment": "-".join(parts[:-2]), "replica_set": parts[-2]}


def extract_deployment_name(pod_name: Optional[str]) -> Optional[str]:
    return extract_pod_info(pod_name)["deployment"] or pod_name


def classify_message(message: str) -> list[str]:
    """Return every category whose pattern matches, or ["uncategorized"]."""
    clean = strip_ansi(message)
    categories = [name for name, pattern, _ in ERROR_PATTERNS if pattern.search(clean)]
    return categories or [UNCATEGORIZED]


def category_severity(category: str) -> int:
    return CATEGORY_SEVERITY.get(category, UNCATEGORIZED_SEVERITY)


def detect_level(message: str) -> str:
    if ERROR_LEVEL_RE.search(message):
        return "error"
    if WARNING_LEVEL_RE.search(message):
        return "warning"
    if DEBUG_LEVEL_RE.search(message):
        return "debug"
    return "info"


def extract_bot_id(message: str) -> Optional[str]:
    match = RASA_BOT_RE.search(message)
    if match:
        return match.group(1)
    match = BOT_ID_RE.search(message)
    if match:
        return match.group(1)
    return None


def to_serializable(value: Any) -> Any:
    """Convert records, datetimes and containers into plain JSON types."""
    if is_dataclass(value) and not isinstance(value, type):
        return to_serializable(asdict(value))
    if isinstance(value, datetime):
        return TimezoneManager.to_iso_string(value)
    if isinstance(value, dict):
        return {str(k): to_serializable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [to_serializable(v) for v in value]
    return value


# === SECTION 4: RECORD TYPES ===


@dataclass(frozen=True)
class LogEvent:
    """One classified pod-stream record."""

    timestamp: Optional[datetime]
    pod: str
    deployment: str
    level: str
    message: str
    categories: tuple = (UNCATEGORIZED,)
    bot_id: Optional[str] = None
    stack_trace: Optional[str] = None

    def __post_init__(self):
        # every event carries at least one category
        if not self.categories:
            object.__setattr__(self, "categories", (UNCATEGORIZED,))
        elif not isinstance(self.categories, tuple):
            object.__setattr__(self, "categories", tuple(self.categories))

    @property
    def severity(self) -> int:
        return max(category_severity(c) for c in self.categories)


@dataclass(frozen=True)
class NodeReading:
    name: str
    cpu_millicores: Optional[int]
    cpu_percent: Optional[int]
    memory_mi: Optional[int]
    memory_percent: Optional[int]


@dataclass(frozen=True)
class PodReading:
    name: str
    cpu_millicores: Optional[int]
    memory_mi: Optional[int]


@dataclass(frozen=True)
class DeploymentReading:
    name: str
    desired: Optional[int]
    ready: Optional[int]
    cpu_request: Optional[int] = None
    cpu_limit: Optional[int] = None
    memory_request: Optional[int] = None
    memory_limit: Optional[int] = None


@dataclass(frozen=True)
class PodStatusCounts:
    running: int = 0
    pending: int = 0
    failed: int = 0


@dataclass(frozen=True)
class DbPoolSummary:
    available: bool = False
    error: Optional[str] = None


@dataclass(frozen=True)
class PodDbConnections:
    pod: str
    total: int
    idle: int
    active: int
    max_seconds: int


@dataclass(frozen=True)
class PodPoolConfig:
    deployment: str
    db_pool_max: Optional[int]
    db_pool_min: Optional[int]
    db_max_connections: Optional[int]
    acquire_ms: Optional[int]
    idle_ms: Optional[int]


@dataclass(frozen=True)
class MetricSnapshot:
    """Everything parsed from one metrics_*.txt file."""

    timestamp: Optional[datetime]
    file: str
    nodes: tuple = ()
    pods: tuple = ()
    deployments: tuple = ()
    pod_status: PodStatusCounts = field(default_factory=PodStatusCounts)
    db_pool_summary: DbPoolSummary = field(default_factory=DbPoolSummary)
    db_connections: tuple = ()
    pod_config: tuple = ()


@dataclass(frozen=True)
class Connection:
    """One processlist row."""

    id: int
    user: str
    host: str
    database: Optional[str]
    command: str
    time: int
    state: Optional[str]
    info: Optional[str]


@dataclass(frozen=True)
class DbSnapshot:
    timestamp: Optional[datetime]
    connections: tuple
    stats: dict

    @classmethod
    def from_connections(cls, timestamp: Optional[datetime], connections: Iterable[Connection]) -> "DbSnapshot":
        connections = tuple(connections)
        by_database: dict[str, int] = {}
        sleeping = 0
        longest = 0
        for conn in connections:
            if conn.command == "Sleep":
                sleeping += 1
            if conn.database:
                by_database[conn.database] = by_database.get(conn.database, 0) + 1
            longest = max(longest, conn.time)
        stats = {
            "total": len(connections),
            "sleeping": sleeping,
            "active": len(connections) - sleeping,
            "by_database": by_database,
            "longest_connection": longest,
        }
        return cls(timestamp=timestamp, connections=connections, stats=stats)


@dataclass(frozen=True)
class Issue:
    id: str
    severity: str
    title: str
    description: str
    evidence: tuple
    impact: str
    affected_services: tuple
    root_cause: str
    action: str


@dataclass(frozen=True)
class Recommendation:
    priority: int
    category: str
    action: str
    rationale: str
    effort: str
    impact: str
    related_issue: str


# === SECTION 5: PARSERS ===


@dataclass
class StreamParseState:
    """Per-file state threaded through ErrorStreamParser._process_line.

    `pending` is the single record that may still receive stack-trace
    continuation lines; it is flushed when the next record line arrives
    or at end of file.
    """

    stats: dict
    pending: Optional[dict] = None
    trace_lines: list = field(default_factory=list)


class ErrorStreamParser(DateFilterMixin):
    """
    Streaming parser for errors_*.log pod error streams.

    Each participating line has the form ``[<pod>] <ISO8601> <message>``.
    Indented ``at ...`` lines that follow a record are folded into its stack
    trace; any other non-record line is discarded. Files are consumed one line
    at a time so memory stays bounded by the retained events, not file size.

    Example:
        >>> parser = ErrorStreamParser()
        >>> events, stats = parser.parse_file("errors_20260211_204624.log")
    """

    def __init__(self, start_date=None, end_date=None, progress=None, perf_tracker=None):
        self.start_date = start_date
        self.end_date = end_date
        self.progress = progress or ProgressTracker(quiet=True)
        self.perf_tracker = perf_tracker
        self.errors: list[dict] = []

    @staticmethod
    def new_stats() -> dict:
        return {
            "total_lines": 0,
            "error_count": 0,
            "warning_count": 0,
            "by_pod": {},
            "by_deployment": {},
            "by_category": {},
            "first_timestamp": None,
            "last_timestamp": None,
        }

    def iter_events(self, file_path: str, stats: Optional[dict] = None) -> Iterator[LogEvent]:
        """Yield events from one file, updating `stats` in place."""
        state = StreamParseState(stats=stats if stats is not None else self.new_stats())
        name = os.path.basename(file_path)
        with open(file_path, "r", encoding="utf-8", errors="replace") as handle:
            for line in handle:
                state.stats["total_lines"] += 1
                if state.stats["total_lines"] % PROGRESS_INTERVAL_LINES == 0:
                    logger.debug(f"Parsing {name}... {state.stats['total_lines']:,} lines")
                event = self._process_line(line.rstrip("\r\n"), state)
                if event is not None:
                    yield event
        event = self._flush(state)
        if event is not None:
            yield event

    def parse_file(self, file_path: str) -> tuple[list[LogEvent], dict]:
        stats = self.new_stats()
        events = list(self.iter_events(file_path, stats))
        return events, stats

    def parse_files(self, file_paths: list[str], max_events: int = MAX_EVENTS) -> tuple[list[LogEvent], dict]:
        """
        Parse every file in order and merge them under the global event cap.

        A file that cannot be read contributes zero events; the failure is
        recorded in ``self.errors`` and parsing continues with the next file.

        Returns:
            (events, stats): time-sorted events and combined run stats
        """
        combined = self.new_stats()
        combined.update({"file_count": len(file_paths), "files": [], "events_parsed": 0})
        per_file_events = []

        for file_path in file_paths:
            start_time = time.time()
            try:
                events, stats = self.parse_file(file_path)
            except OSError as e:
                self.errors.append({"step": "parse_error_logs", "file": file_path, "message": str(e)})
                self.progress.warning(f"Could not read {file_path}: {e}")
                continue
            finally:
                if self.perf_tracker is not None:
                    self.perf_tracker.record(f"parse_file:{os.path.basename(file_path)}", time.time() - start_time)

            per_file_events.append(events)
            self._merge_stats(combined, stats)
            combined["events_parsed"] += len(events)
            combined["files"].append({"path": file_path, "lines": stats["total_lines"], "events": len(events)})
            self.progress.info(f"{os.path.basename(file_path)}: {stats['total_lines']:,} lines, {len(events):,} events")

        budgeter = EventBudgeter(max_events=max_events)
        events, dropped = budgeter.merge(per_file_events)
        combined["total_events"] = len(events)
        combined["events_dropped"] = dropped
        if dropped:
            self.progress.info(f"Event cap {max_events:,} reached: sampled down, {dropped:,} events dropped")
        return events, combined

    def _process_line(self, line: str, state: StreamParseState) -> Optional[LogEvent]:
        """Consume one line; return an event when a pending record completes."""
        match = POD_LINE_RE.match(line)
        if not match:
            if state.pending is not None and STACK_FRAME_RE.match(line):
                state.trace_lines.append(line)
            return None

        flushed = self._flush(state)
        timestamp = parse_iso_timestamp(match.group(2))
        if not self.is_in_time_range(timestamp):
            return flushed

        state.pending = {
            "timestamp": timestamp,
            "pod": match.group(1),
            "message": strip_ansi(match.group(3) or ""),
        }
        return flushed

    def _flush(self, state: StreamParseState) -> Optional[LogEvent]:
        pending = state.pending
        if pending is None:
            return None
        stack_trace = "\n".join(state.trace_lines) or None
        state.pending = None
        state.trace_lines = []

        message = pending["message"]
        pod = pending["pod"]
        text = f"{message}\n{stack_trace}" if stack_trace else message
        event = LogEvent(
            timestamp=pending["timestamp"],
            pod=pod,
            deployment=extract_deployment_name(pod),
            level=detect_level(message),
            message=message[:MAX_MESSAGE_LENGTH],
            categories=tuple(classify_message(text)),
            bot_id=extract_bot_id(message),
            stack_trace=stack_trace,
        )
        self._record_stats(state.stats, event)
        return event

    @staticmethod
    def _record_stats(stats: dict, event: LogEvent) -> None:
        if event.level == "error":
            stats["error_count"] += 1
        elif event.level == "warning":
            stats["warning_count"] += 1
        stats["by_pod"][event.pod] = stats["by_pod"].get(event.pod, 0) + 1
        stats["by_deployment"][event.deployment] = stats["by_deployment"].get(event.deployment, 0) + 1
        for category in event.categories:
            stats["by_category"][category] = stats["by_category"].get(category, 0) + 1
        ts = event.timestamp
        if ts is not None:
            if stats["first_timestamp"] is None or ts < stats["first_timestamp"]:
                stats["first_timestamp"] = ts
            if stats["last_timestamp"] is None or ts > stats["last_timestamp"]:
                stats["last_timestamp"] = ts

    @staticmethod
    def _merge_stats(combined: dict, stats: dict) -> None:
        for key in ("total_lines", "error_count", "warning_count"):
            combined[key] += stats[key]
        for key in ("by_pod", "by_deployment", "by_category"):
            for name, count in stats[key].items():
                combined[key][name] = combined[key].get(name, 0) + count
        first, last = stats["first_timestamp"], stats["last_timestamp"]
        if first is not None and (combined["first_timestamp"] is None or first < combined["first_timestamp"]):
            combined["first_timestamp"] = first
        if last is not None and (combined["last_timestamp"] is None or last > combined["last_timestamp"]):
            combined["last_timestamp"] = last


def _event_sort_key(event) -> float:
    # undated events sort first
    return event.timestamp.timestamp() if event.timestamp is not None else float("-inf")


class EventBudgeter:
    """
    Caps the number of retained events across many files.

    Every file is first guaranteed ``min(count, min(min_per_file, cap // files))``
    events; the remaining budget is shared in proportion to each file's
    leftover count. Files over their allocation are sampled with a uniform
    stride that keeps their first and last events.
    """

    def __init__(self, max_events: int = MAX_EVENTS, min_per_file: int = MIN_EVENTS_PER_FILE):
        self.max_events = max_events
        self.min_per_file = min_per_file

    def allocate(self, counts: list[int]) -> list[int]:
        if not counts or sum(counts) <= self.max_events:
            return list(counts)

        guaranteed = min(self.min_per_file, self.max_events // len(counts))
        allocations = [min(count, guaranteed) for count in counts]

        remaining = self.max_events - sum(allocations)
        if remaining > 0:
            leftover = [count - alloc for count, alloc in zip(counts, allocations)]
            total_leftover = sum(leftover)
            if total_leftover > 0:
                for i, left in enumerate(leftover):
                    allocations[i] += min(left, left * remaining // total_leftover)
        return allocations

    @staticmethod
    def sample(events: list, budget: int) -> list:
        total = len(events)
        if budget >= total:
            return list(events)
        if budget <= 0:
            return []
        if budget == 1:
            return [events[0]]
        indices = [j * total // budget for j in range(budget - 1)]
        indices.append(total - 1)
        return [events[i] for i in indices]

    def merge(self, per_file_events: list[list]) -> tuple[list, int]:
        """Return (time-sorted combined events, number of events dropped)."""
        allocations = self.allocate([len(events) for events in per_file_events])
        merged = []
        dropped = 0
        for events, budget in zip(per_file_events, allocations):
            sampled = self.sample(events, budget)
            dropped += len(events) - len(sampled)
            merged.extend(sampled)
        merged.sort(key=_event_sort_key)
        return merged, dropped


class Section:
    """Sections of a metrics snapshot file"""

    NODES = "nodes"
    PODS = "pods"
    DEPLOYMENTS = "deployments"
    POD_STATUS = "pod_status"
    DB_POOL_SUMMARY = "db_pool_summary"
    DB_CONNECTIONS = "db_connections"
    POD_CONFIG = "pod_config"

    HEADER_PATTERNS = [
        (re.compile(r"^---\s*NODES\b", re.I), NODES),
        (re.compile(r"^---\s*PODS\b", re.I), PODS),
        (re.compile(r"^---\s*DEPLOYMENTS\b", re.I), DEPLOYMENTS),
        (re.compile(r"^---\s*POD STATUS\b", re.I), POD_STATUS),
        (re.compile(r"^---\s*DB CONNECTION POOL\b", re.I), DB_POOL_SUMMARY),
        (re.compile(r"^---\s*DB CONNECTIONS\b", re.I), DB_CONNECTIONS),
        (re.compile(r"^---\s*POD CONFIG\b", re.I), POD_CONFIG),
    ]

    # Sections without an entry have no column-header row.
    COLUMN_HEADERS = {
        NODES: re.compile(r"^NAME\s"),
        PODS: re.compile(r"^NAME\s"),
        DEPLOYMENTS: re.compile(r"^DEPLOYMENT\s"),
        DB_CONNECTIONS: re.compile(r"^POD_NAME\b"),
        POD_CONFIG: re.compile(r"^DEPLOYMENT\b"),
    }

    @classmethod
    def match_header(cls, line: str) -> Optional[str]:
        for pattern, section in cls.HEADER_PATTERNS:
            if pattern.match(line):
                return section
        return None


@dataclass
class SectionState:
    section: Optional[str] = None
    header_seen: bool = False

    def enter(self, section: Optional[str]) -> None:
        self.section = section
        self.header_seen = section not in Section.COLUMN_HEADERS


class SnapshotTextParser:
    """Section-scoped state machine over one metrics_*.txt file."""

    METRICS_HEADER_RE = re.compile(r"METRICS\b.*\d{4}-\d{2}-\d{2}")
    SEPARATOR_RE = re.compile(r"^={5,}")
    POD_STATUS_RE = re.compile(r"(\d+)\s+(Running|Pending|Failed|CrashLoopBackOff)", re.I)

    def __init__(self, progress=None):
        self.progress = progress or ProgressTracker(quiet=True)
        self.errors: list[dict] = []

    def parse_file(self, file_path: str) -> MetricSnapshot:
        rows: dict[str, list] = defaultdict(list)
        pod_status = {"running": 0, "pending": 0, "failed": 0}
        pool = {"available": False, "error": None}
        timestamp = None
        state = SectionState()

        with open(file_path, "r", encoding="utf-8", errors="replace") as handle:
            for line in handle:
                trimmed = line.strip()
                if not trimmed:
                    continue
                if timestamp is None and self.METRICS_HEADER_RE.search(trimmed):
                    timestamp = parse_metrics_timestamp(trimmed)
                    continue
                if self.SEPARATOR_RE.match(trimmed):
                    continue
                if trimmed.startswith("---"):
                    state.enter(Section.match_header(trimmed))
                    continue
                if state.section is None:
                    continue
                if not state.header_seen:
                    if Section.COLUMN_HEADERS[state.section].match(trimmed):
                        state.header_seen = True
                    continue

                if state.section == Section.POD_STATUS:
                    self._parse_pod_status(trimmed, pod_status)
                elif state.section == Section.DB_POOL_SUMMARY:
                    self._parse_pool_summary(trimmed, pool)
                else:
                    record = self.ROW_PARSERS[state.section](trimmed.split())
                    if record is not None:
                        rows[state.section].append(record)

        return MetricSnapshot(
            timestamp=timestamp or parse_filename_timestamp(file_path),
            file=os.path.basename(file_path),
            nodes=tuple(rows[Section.NODES]),
            pods=tuple(rows[Section.PODS]),
            deployments=tuple(rows[Section.DEPLOYMENTS]),
            pod_status=PodStatusCounts(**pod_status),
            db_pool_summary=DbPoolSummary(**pool),
            db_connections=tuple(rows[Section.DB_CONNECTIONS]),
            pod_config=tuple(rows[Section.POD_CONFIG]),
        )

    def parse_files(self, file_paths: list[str]) -> tuple[list[MetricSnapshot], dict]:
        """Parse each file into a snapshot; unreadable files are skipped."""
        snapshots = []
        for file_path in file_paths:
            try:
                snapshots.append(self.parse_file(file_path))
            except OSError as e:
                self.errors.append({"step": "parse_metrics", "file": file_path, "message": str(e)})
                self.progress.warning(f"Could not read {file_path}: {e}")
        snapshots.sort(key=_event_sort_key)

        stats = {
            "snapshot_count": len(snapshots),
            "time_range": {
                "start": snapshots[0].timestamp if snapshots else None,
                "end": snapshots[-1].timestamp if snapshots else None,
            },
            "node_count": len(snapshots[0].nodes) if snapshots else 0,
            "pod_count": max((len(s.pods) for s in snapshots), default=0),
        }
        return snapshots, stats

    @staticmethod
    def _parse_node_row(parts: list[str]) -> Optional[NodeReading]:
        if len(parts) < 5:
            return None
        return NodeReading(
            name=parts[0],
            cpu_millicores=parse_cpu(parts[1]),
            cpu_percent=parse_percent(parts[2]),
            memory_mi=parse_memory(parts[3]),
            memory_percent=parse_percent(parts[4]),
        )

    @staticmethod
    def _parse_pod_row(parts: list[str]) -> Optional[PodReading]:
        if len(parts) < 3 or not re.search(r"\d+m?$", parts[1]):
            return None
        return PodReading(name=parts[0], cpu_millicores=parse_cpu(parts[1]), memory_mi=parse_memory(parts[2]))

    @staticmethod
    def _parse_deployment_row(parts: list[str]) -> Optional[DeploymentReading]:
        if len(parts) < 3:
            return None

        def column(index, parse):
            return parse(parts[index]) if len(parts) > index else None

        return DeploymentReading(
            name=parts[0],
            desired=parse_int_safe(parts[1]),
            ready=parse_int_safe(parts[2]),
            cpu_request=column(3, parse_cpu),
            cpu_limit=column(4, parse_cpu),
            memory_request=column(5, parse_memory),
            memory_limit=column(6, parse_memory),
        )

    @staticmethod
    def _parse_db_connections_row(parts: list[str]) -> Optional[PodDbConnections]:
        if len(parts) < 4:
            return None
        numeric = parts[-4:]
        total = parse_int_safe(numeric[0])
        if total is None:
            return None
        return PodDbConnections(
            pod=" ".join(parts[:-4]) or "unknown",
            total=total,
            idle=parse_int_safe(numeric[1]) or 0,
            active=parse_int_safe(numeric[2]) or 0,
            max_seconds=parse_int_safe(numeric[3]) or 0,
        )

    @staticmethod
    def _parse_pod_config_row(parts: list[str]) -> Optional[PodPoolConfig]:
        if len(parts) < 2:
            return None

        def column(index):
            return parse_int_safe(parts[index]) if len(parts) > index else None

        return PodPoolConfig(
            deployment=parts[0],
            db_pool_max=column(1),
            db_pool_min=column(2),
            db_max_connections=column(3),
            acquire_ms=column(4),
            idle_ms=column(5),
        )

    def _parse_pod_status(self, line: str, pod_status: dict) -> None:
        match = self.POD_STATUS_RE.search(line)
        if not match:
            return
        count = int(match.group(1))
        status = match.group(2).lower()
        if status in ("running", "pending"):
            pod_status[status] += count
        else:
            pod_status["failed"] += count

    @staticmethod
    def _parse_pool_summary(line: str, pool: dict) -> None:
        if re.search(r"DB query failed", line, re.I):
            pool["error"] = "DB query failed"
        elif re.search(r"\d", line):
            pool["available"] = True

    ROW_PARSERS = {
        Section.NODES: _parse_node_row.__func__,
        Section.PODS: _parse_pod_row.__func__,
        Section.DEPLOYMENTS: _parse_deployment_row.__func__,
        Section.DB_CONNECTIONS: _parse_db_connections_row.__func__,
        Section.POD_CONFIG: _parse_pod_config_row.__func__,
    }


class ProcesslistParser:
    """
    Streaming parser for db_debug.log (MySQL processlist dumps).

    A `date` header line opens a new snapshot; tab-delimited rows are
    connections; the ``Id User Host ...`` column header is skipped. Only the
    open snapshot's rows are held besides snapshots already closed.
    """

    def __init__(self, progress=None):
        self.progress = progress or ProgressTracker(quiet=True)
        self.errors: list[dict] = []

    def iter_snapshots(self, file_path: str) -> Iterator[DbSnapshot]:
        timestamp = None
        connections: Optional[list[Connection]] = None
        line_count = 0

        with open(file_path, "r", encoding="utf-8", errors="replace") as handle:
            for line in handle:
                line_count += 1
                if line_count % PROGRESS_INTERVAL_LINES == 0:
                    logger.debug(f"Parsing {os.path.basename(file_path)}... {line_count:,} lines")
                trimmed = line.strip()
                if not trimmed:
                    continue
                if PROCESSLIST_TIMESTAMP_RE.match(trimmed):
                    if connections is not None:
                        yield DbSnapshot.from_connections(timestamp, connections)
                    timestamp = parse_db_timestamp(trimmed)
                    connections = []
                    continue
                if PROCESSLIST_HEADER_RE.match(trimmed) or connections is None:
                    continue
                conn = self._parse_row(trimmed.split("\t"))
                if conn is not None:
                    connections.append(conn)

        if connections is not None:
            yield DbSnapshot.from_connections(timestamp, connections)

    def parse_file(self, file_path: Optional[str]) -> tuple[list[DbSnapshot], dict]:
        snapshots = []
        if file_path and os.path.exists(file_path):
            try:
                snapshots = list(self.iter_snapshots(file_path))
            except OSError as e:
                self.errors.append({"step": "parse_db_debug", "file": file_path, "message": str(e)})
                self.progress.warning(f"Could not read {file_path}: {e}")

        stats = {
            "snapshot_count": len(snapshots),
            "time_range": {
                "start": snapshots[0].timestamp if snapshots else None,
                "end": snapshots[-1].timestamp if snapshots else None,
            },
            "avg_connections_per_snapshot": (
                round_half_up(sum(s.stats["total"] for s in snapshots) / len(snapshots)) if snapshots else 0
            ),
        }
        return snapshots, stats

    @staticmethod
    def _parse_row(parts: list[str]) -> Optional[Connection]:
        if len(parts) < 5:
            return None

        def column(index):
            return parts[index] if len(parts) > index else ""

        def nullable(value):
            return None if value in ("", "NULL") else value

        return Connection(
            id=parse_int_safe(parts[0]) or 0,
            user=parts[1],
            host=parts[2],
            database=nullable(parts[3]),
            command=parts[4],
            time=parse_int_safe(column(5)) or 0,
            state=nullable(column(6)),
            info=nullable(column(7)),
        )


class PodStreamParser:
    """Summarizes raw kubectl pod logs (pod_logs/<pod>.log) into 5-minute buckets."""

    LINE_TIMESTAMP_RE = re.compile(r"^(\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}:\d{2})")
    TIMESTAMP_PREFIX_RE = re.compile(r"^\d{4}-\d{2}-\d{2}[T ][\d:.]+Z?\s*")
    JSON_TIMESTAMP_RE = re.compile(r'"timestamp"\s*:\s*"([^"]+)"')
    ERROR_RE = re.compile(r"\[31merror\[39m|\[error\]|\berror\b", re.I)
    WARN_RE = re.compile(r"\[33mwarn\[39m|\[warn\]|\bwarn(?:ing)?\b", re.I)
    INFO_RE = re.compile(r"\[32minfo\[39m|\[info\]|INFO:", re.I)
    HEALTH_CHECKER_RE = re.compile(r"ELB-HealthChecker", re.I)
    HEALTH_RE = re.compile(r"ELB-HealthChecker|health|readiness|liveness", re.I)
    GET_RE = re.compile(r"GET\s+/", re.I)
    HTTP_RE = re.compile(r'"(GET|POST|PUT|DELETE|PATCH)\s+([^\s"]+)\s+HTTP/\d\.\d"\s+(\d{3})')
    UNTRACKED_ENDPOINT_RE = re.compile(r"health|readiness|liveness|metrics", re.I)
    SERVICE_RE = re.compile(r'"service"\s*:\s*"([^"]+)"')
    NOTABLE_PATTERNS = [
        ("model_lifecycle", re.compile(r"model.*unloaded|model.*loaded|cleanup.*models", re.I)),
        ("oom", re.compile(r"OOMKilled|\boom\b|out.of.memory", re.I)),
        ("crash", re.compile(r"CrashLoopBackOff|crash.*restart|BackOff", re.I)),
    ]

    def __init__(self, bucket_minutes: int = TIMELINE_BUCKET_MINUTES, progress=None):
        self.bucket_minutes = bucket_minutes
        self.progress = progress or ProgressTracker(quiet=True)
        self.errors: list[dict] = []

    def parse_file(self, file_path: str) -> dict:
        pod_name = os.path.splitext(os.path.basename(file_path))[0]
        summary = {
            "pod_name": pod_name,
            "deployment": extract_deployment_name(pod_name),
            "file_path": file_path,
            "total_lines": 0,
            "error_lines": 0,
            "warn_lines": 0,
            "info_lines": 0,
            "health_checks": 0,
            "api_requests": 0,
            "service_name": None,
            "first_timestamp": None,
            "last_timestamp": None,
            "errors": [],
            "http_codes": {},
            "endpoints": {},
            "notable_events": [],
        }
        buckets: dict[datetime, dict] = {}
        seen_errors: set[str] = set()
        last_bucket = None

        with open(file_path, "r", encoding="utf-8", errors="replace") as handle:
            for raw in handle:
                summary["total_lines"] += 1
                line = raw.rstrip("\r\n")
                if not line.strip():
                    continue

                ts = self._extract_timestamp(line)
                if ts is not None:
                    if summary["first_timestamp"] is None or ts < summary["first_timestamp"]:
                        summary["first_timestamp"] = ts
                    if summary["last_timestamp"] is None or ts > summary["last_timestamp"]:
                        summary["last_timestamp"] = ts
                    last_bucket = bucket_timestamp(ts, self.bucket_minutes)
                # untimestamped lines belong to the nearest preceding timestamped line
                bucket = None
                if last_bucket is not None:
                    bucket = buckets.setdefault(last_bucket, self._new_bucket())
                    bucket["lines"] += 1

                self._count_level(line, ts, summary, bucket, seen_errors)
                self._count_http(line, summary, bucket)

                if summary["service_name"] is None:
                    match = self.SERVICE_RE.search(line)
                    if match:
                        summary["service_name"] = match.group(1)

                for event_type, pattern in self.NOTABLE_PATTERNS:
                    if len(summary["notable_events"]) < MAX_NOTABLE_EVENTS and pattern.search(line):
                        summary["notable_events"].append(
                            {
                                "type": event_type,
                                "message": re.sub(r"\{.*\}$", "", line, flags=re.S).strip()[:MAX_POD_LOG_MESSAGE_LENGTH],
                                "timestamp": ts,
                            }
                        )

        summary["top_endpoints"] = [
            {"endpoint": endpoint, "count": count}
            for endpoint, count in sorted(summary["endpoints"].items(), key=lambda x: x[1], reverse=True)[
                :TOP_ENDPOINTS_LIMIT
            ]
        ]
        summary["time_buckets"] = [
            {
                "timestamp": bucket_ts,
                "lines": b["lines"],
                "errors": b["errors"],
                "warnings": b["warnings"],
                "api_requests": b["api_requests"],
                "health_checks": b["health_checks"],
                "endpoints": [{"endpoint": e, "count": c} for e, c in b["endpoints"].items()],
            }
            for bucket_ts, b in sorted(buckets.items())
        ]
        return summary

    def parse_files(self, file_paths: list[str]) -> dict:
        pods = []
        for file_path in file_paths:
            try:
                pods.append(self.parse_file(file_path))
            except OSError as e:
                self.errors.append({"step": "parse_pod_logs", "file": file_path, "message": str(e)})
                self.progress.warning(f"Could not read {file_path}: {e}")
        pods.sort(key=lambda p: p["error_lines"], reverse=True)
        return {
            "pods": pods,
            "stats": {
                "pod_count": len(pods),
                "total_lines": sum(p["total_lines"] for p in pods),
                "total_errors": sum(p["error_lines"] for p in pods),
                "total_requests": sum(p["api_requests"] for p in pods),
            },
        }

    @staticmethod
    def _new_bucket() -> dict:
        return {"lines": 0, "errors": 0, "warnings": 0, "api_requests": 0, "health_checks": 0, "endpoints": {}}

    def _extract_timestamp(self, line: str) -> Optional[datetime]:
        match = self.LINE_TIMESTAMP_RE.match(line)
        if match:
            return parse_iso_timestamp(match.group(1).replace(" ", "T"))
        match = self.JSON_TIMESTAMP_RE.search(line)
        if match:
            return parse_iso_timestamp(match.group(1))
        return None

    def _count_level(self, line, ts, summary, bucket, seen_errors) -> None:
        if self.ERROR_RE.search(line) and not self.HEALTH_CHECKER_RE.search(line):
            summary["error_lines"] += 1
            if bucket is not None:
                bucket["errors"] += 1
            message = re.sub(r"\[.*?\]", "", self.TIMESTAMP_PREFIX_RE.sub("", line))
            message = re.sub(r"\{.*\}$", "", message, flags=re.S).strip()[:MAX_POD_LOG_MESSAGE_LENGTH]
            if message not in seen_errors and len(seen_errors) < MAX_POD_LOG_ERRORS:
                seen_errors.add(message)
                summary["errors"].append({"message": message, "timestamp": ts})
        elif self.WARN_RE.search(line):
            summary["warn_lines"] += 1
            if bucket is not None:
                bucket["warnings"] += 1
        elif self.INFO_RE.search(line):
            summary["info_lines"] += 1

        if self.HEALTH_RE.search(line) and self.GET_RE.search(line):
            summary["health_checks"] += 1
            if bucket is not None:
                bucket["health_checks"] += 1

    def _count_http(self, line, summary, bucket) -> None:
        match = self.HTTP_RE.search(line)
        if not match:
            return
        method, path, code = match.groups()
        summary["http_codes"][code] = summary["http_codes"].get(code, 0) + 1
        endpoint = path.split("?")[0]
        if endpoint == "/" or self.UNTRACKED_ENDPOINT_RE.search(endpoint):
            return
        if len(endpoint) > MAX_ENDPOINT_LENGTH:
            endpoint = endpoint[:MAX_ENDPOINT_LENGTH] + "..."
        key = f"{method} {endpoint}"
        summary["api_requests"] += 1
        summary["endpoints"][key] = summary["endpoints"].get(key, 0) + 1
        if bucket is not None:
            bucket["api_requests"] += 1
            bucket["endpoints"][key] = bucket["endpoints"].get(key, 0) + 1


# === SECTION 6: ANALYZERS ===


class ErrorAggregator:
    """
    Incremental category/pod/bot rollups and a bucketed timeline.

    Affected pods, deployments and bots are kept in insertion order so the
    output is identical across runs.
    """

    def __init__(self, bucket_minutes: int = TIMELINE_BUCKET_MINUTES):
        self.bucket_minutes = bucket_minutes
        self.categories: dict[str, dict] = {
            name: self._new_category(severity) for name, _, severity in ERROR_PATTERNS
        }
        self.categories[UNCATEGORIZED] = self._new_category(UNCATEGORIZED_SEVERITY)
        self.by_pod: dict[str, dict] = {}
        self.by_bot: dict[str, dict] = {}
        self.buckets: dict[datetime, dict] = {}
        self.event_count = 0

    @staticmethod
    def _new_category(severity: int) -> dict:
        return {
            "count": 0,
            "severity": severity,
            "affected_pods": {},
            "affected_deployments": {},
            "affected_bots": {},
            "samples": [],
        }

    def add(self, event: LogEvent) -> None:
        self.event_count += 1
        for name in event.categories:
            if name not in self.categories:
                self.categories[name] = self._new_category(category_severity(name))
            category = self.categories[name]
            category["count"] += 1
            if event.pod:
                category["affected_pods"][event.pod] = True
            if event.deployment:
                category["affected_deployments"][event.deployment] = True
            if event.bot_id:
                category["affected_bots"][event.bot_id] = True
            if len(category["samples"]) < MAX_CATEGORY_SAMPLES:
                category["samples"].append(event)

        pod = self.by_pod.setdefault(event.pod or "unknown", {"count": 0, "categories": {}})
        pod["count"] += 1
        self._tally(pod["categories"], event.categories)

        if event.bot_id:
            bot = self.by_bot.setdefault(event.bot_id, {"count": 0, "categories": {}, "pods": {}})
            bot["count"] += 1
            if event.pod:
                bot["pods"][event.pod] = True
            self._tally(bot["categories"], event.categories)

        if event.timestamp is not None:
            key = bucket_timestamp(event.timestamp, self.bucket_minutes)
            bucket = self.buckets.setdefault(key, {"categories": {}, "total": 0})
            bucket["total"] += 1
            self._tally(bucket["categories"], event.categories)

    def add_all(self, events: Iterable[LogEvent]) -> "ErrorAggregator":
        for event in events:
            self.add(event)
        return self

    @staticmethod
    def _tally(counter: dict, categories: Iterable[str]) -> None:
        for name in categories:
            counter[name] = counter.get(name, 0) + 1

    def result(self) -> dict:
        categories = [
            {
                "name": name,
                "count": data["count"],
                "severity": data["severity"],
                "affected_pods": list(data["affected_pods"]),
                "affected_deployments": list(data["affected_deployments"]),
                "affected_bots": list(data["affected_bots"]),
                "samples": [{"timestamp": s.timestamp, "message": s.message, "pod": s.pod} for s in data["samples"]],
            }
            for name, data in self.categories.items()
            if data["count"] > 0
        ]
        categories.sort(key=lambda c: c["count"], reverse=True)

        timeline = [
            {"timestamp": ts, "categories": dict(b["categories"]), "total": b["total"]}
            for ts, b in sorted(self.buckets.items())
        ]
        top_pods = [
            {"name": name, "count": data["count"], "categories": dict(data["categories"])}
            for name, data in sorted(self.by_pod.items(), key=lambda x: x[1]["count"], reverse=True)[:TOP_PODS_LIMIT]
        ]
        top_bots = [
            {"id": bot_id, "count": data["count"], "categories": dict(data["categories"]), "pods": list(data["pods"])}
            for bot_id, data in sorted(self.by_bot.items(), key=lambda x: x[1]["count"], reverse=True)[
                :TOP_BOTS_LIMIT
            ]
        ]
        return {
            "categories": categories,
            "timeline": timeline,
            "top_pods": top_pods,
            "top_bots": top_bots,
            "total_events": self.event_count,
        }


def classify_errors(events: Iterable[LogEvent]) -> dict:
    return ErrorAggregator().add_all(events).result()


class MetricsAnalyzer:
    """Node/pod trends, scaling events, hot pods and node alerts from snapshots."""

    @staticmethod
    def empty_result() -> dict:
        return {
            "node_trends": {"cpu": [], "memory": []},
            "pod_trends": {"cpu": {}, "memory": {}},
            "scaling_events": [],
            "hot_pods": [],
            "utilization_stats": {},
            "node_alerts": [],
            "deployment_timelines": {},
        }

    def analyze(self, snapshots: list[MetricSnapshot]) -> dict:
        if not snapshots:
            return self.empty_result()
        snapshots = sorted(snapshots, key=_event_sort_key)

        node_cpu, node_memory, node_alerts, scaling_events = [], [], [], []
        pod_cpu: dict[str, list] = {}
        pod_memory: dict[str, list] = {}
        deployment_timelines: dict[str, list] = {}
        previous_desired: dict[str, Optional[int]] = {}

        for snap in snapshots:
            ts = snap.timestamp
            cpu_entry = {"timestamp": ts, "nodes": {}}
            memory_entry = {"timestamp": ts, "nodes": {}}
            for node in snap.nodes:
                short_name = node.name.split(".")[0].replace("ip-", "")
                cpu_entry["nodes"][short_name] = node.cpu_percent
                memory_entry["nodes"][short_name] = node.memory_percent
                if node.cpu_percent is not None and node.cpu_percent > Thresholds.NODE_CPU_PERCENT:
                    node_alerts.append({"timestamp": ts, "node": short_name, "type": "high_cpu", "value": node.cpu_percent})
                if node.memory_percent is not None and node.memory_percent > Thresholds.NODE_MEMORY_PERCENT:
                    node_alerts.append(
                        {"timestamp": ts, "node": short_name, "type": "high_memory", "value": node.memory_percent}
                    )
            node_cpu.append(cpu_entry)
            node_memory.append(memory_entry)

            for pod in snap.pods:
                deployment = extract_deployment_name(pod.name)
                pod_cpu.setdefault(deployment, []).append({"timestamp": ts, "pod": pod.name, "value": pod.cpu_millicores})
                pod_memory.setdefault(deployment, []).append({"timestamp": ts, "pod": pod.name, "value": pod.memory_mi})

            # only the previous snapshot counts as a baseline; an unknown count carries it forward
            current_desired: dict[str, Optional[int]] = {}
            for deployment in snap.deployments:
                previous = previous_desired.get(deployment.name)
                if previous is not None and deployment.desired is not None and previous != deployment.desired:
                    scaling_events.append(
                        {"timestamp": ts, "deployment": deployment.name, "from": previous, "to": deployment.desired}
                    )
                current_desired[deployment.name] = deployment.desired if deployment.desired is not None else previous
                deployment_timelines.setdefault(deployment.name, []).append(
                    {"timestamp": ts, "desired": deployment.desired, "ready": deployment.ready}
                )
            previous_desired = current_desired

        return {
            "node_trends": {"cpu": node_cpu, "memory": node_memory},
            "pod_trends": {"cpu": pod_cpu, "memory": pod_memory},
            "scaling_events": scaling_events,
            "hot_pods": self._rank_hot_pods(pod_cpu),
            "utilization_stats": self._utilization_stats(snapshots),
            "node_alerts": node_alerts,
            "deployment_timelines": deployment_timelines,
        }

    @staticmethod
    def _rank_hot_pods(pod_cpu: dict[str, list]) -> list[dict]:
        hot_pods = []
        for deployment, points in pod_cpu.items():
            readings = [p for p in points if p["value"] is not None]
            if not readings:
                continue
            peak = max(readings, key=lambda p: p["value"])
            hot_pods.append(
                {
                    "deployment": deployment,
                    "pod": peak["pod"],
                    "avg_cpu": round_half_up(sum(p["value"] for p in readings) / len(readings)),
                    "max_cpu": peak["value"],
                    "data_points": len(readings),
                }
            )
        hot_pods.sort(key=lambda p: p["max_cpu"], reverse=True)
        return hot_pods[:HOT_POD_LIMIT]

    @staticmethod
    def _utilization_stats(snapshots: list[MetricSnapshot]) -> dict:
        cpus = [n.cpu_percent for s in snapshots for n in s.nodes if n.cpu_percent is not None]
        memories = [n.memory_percent for s in snapshots for n in s.nodes if n.memory_percent is not None]
        return {
            "avg_node_cpu": round_half_up(sum(cpus) / len(cpus)) if cpus else 0,
            "peak_node_cpu": max(cpus, default=0),
            "avg_node_memory": round_half_up(sum(memories) / len(memories)) if memories else 0,
            "peak_node_memory": max(memories, default=0),
        }


class DbAnalyzer:
    """Pool usage, per-database connections and long-running queries."""

    @staticmethod
    def empty_result() -> dict:
        return {"pool_usage": {}, "long_running_queries": [], "connections_by_database": [], "alerts": [], "timeline": []}

    def analyze(self, snapshots: list[DbSnapshot]) -> dict:
        if not snapshots:
            return self.empty_result()

        total_active = total_idle = total_connections = 0
        peak_active = peak_total = 0
        database_counts: dict[str, dict] = {}
        long_running = []
        timeline = []

        for snap in snapshots:
            stats = snap.stats
            total_active += stats["active"]
            total_idle += stats["sleeping"]
            total_connections += stats["total"]
            peak_active = max(peak_active, stats["active"])
            peak_total = max(peak_total, stats["total"])

            for database, count in stats["by_database"].items():
                entry = database_counts.setdefault(database, {"total": 0, "snapshots": 0, "peak": 0})
                entry["total"] += count
                entry["snapshots"] += 1
                entry["peak"] = max(entry["peak"], count)

            for conn in snap.connections:
                if conn.time > LONG_QUERY_SECONDS and conn.command not in IGNORED_DB_COMMANDS:
                    long_running.append(
                        {
                            "timestamp": snap.timestamp,
                            "id": conn.id,
                            "user": conn.user,
                            "database": conn.database,
                            "duration": conn.time,
                            "command": conn.command,
                            "query": conn.info[:MAX_QUERY_TEXT_LENGTH] if conn.info else None,
                        }
                    )

            timeline.append(
                {
                    "timestamp": snap.timestamp,
                    "total": stats["total"],
                    "active": stats["active"],
                    "sleeping": stats["sleeping"],
                    "longest_seconds": stats["longest_connection"],
                }
            )

        n = len(snapshots)
        pool_usage = {
            "avg_active": round(total_active / n, 1),
            "avg_idle": round(total_idle / n, 1),
            "avg_total": round(total_connections / n, 1),
            "peak_active": peak_active,
            "peak_total": peak_total,
        }
        connections_by_database = sorted(
            (
                {
                    "database": database,
                    "avg_connections": round(data["total"] / data["snapshots"], 1),
                    "peak_connections": data["peak"],
                }
                for database, data in database_counts.items()
            ),
            key=lambda d: d["peak_connections"],
            reverse=True,
        )

        alerts = []
        if peak_active > Thresholds.DB_PEAK_ACTIVE:
            alerts.append({"severity": "high", "message": f"Peak active DB connections: {peak_active}"})
        if long_running:
            max_duration = max(q["duration"] for q in long_running)
            alerts.append(
                {
                    "severity": "medium",
                    "message": f"{len(long_running)} long-running queries detected (max {max_duration}s)",
                }
            )

        return {
            "pool_usage": pool_usage,
            "long_running_queries": self._dedupe_long_queries(long_running),
            "connections_by_database": connections_by_database,
            "alerts": alerts,
            "timeline": timeline,
        }

    @staticmethod
    def _dedupe_long_queries(queries: list[dict]) -> list[dict]:
        unique = []
        seen = set()
        for query in sorted(queries, key=lambda q: q["duration"], reverse=True):
            key = (query["database"], query["query"])
            if key in seen:
                continue
            seen.add(key)
            unique.append(query)
            if len(unique) >= MAX_LONG_QUERIES:
                break
        return unique


# === SECTION 7: ISSUE DETECTION & RECOMMENDATIONS ===


class DetectionRule:
    """A named (predicate, builder) pair evaluated against the detection context."""

    def __init__(self, name: str, predicate: Callable[[dict], bool], builder: Callable[[dict], list[dict]]):
        self.name = name
        self.predicate = predicate
        self.builder = builder

    def evaluate(self, context: dict) -> list[dict]:
        if not self.predicate(context):
            return []
        return list(self.builder(context))

    def __repr__(self):
        return f"DetectionRule({self.name!r})"


def build_detection_context(error_analysis: dict, metrics_analysis: dict, db_analysis: dict) -> dict:
    return {
        "categories": {c["name"]: c for c in error_analysis.get("categories", [])},
        "metrics": metrics_analysis,
        "db": db_analysis,
    }


def _category_count_above(name: str, threshold: int) -> Callable[[dict], bool]:
    return lambda ctx: ctx["categories"].get(name, {}).get("count", 0) > threshold


def _affected(category: dict) -> str:
    return ", ".join(category["affected_deployments"])


def _category_issue(name: str, severity: str, title: str, description: str, evidence: Callable[[dict], list],
                    impact: str, root_cause: str, action: str, affected_services: Optional[list] = None):
    """Builder for the common shape: one issue from one category's rollup."""

    def build(ctx: dict) -> list[dict]:
        category = ctx["categories"][name]
        return [
            {
                "severity": severity,
                "title": title.format(count=category["count"], bots=len(category["affected_bots"])),
                "description": description,
                "evidence": [e for e in evidence(category) if e],
                "impact": impact,
                "affected_services": affected_services if affected_services is not None else category["affected_deployments"],
                "root_cause": root_cause,
                "action": action,
            }
        ]

    return build


def _build_scale_up_issues(ctx: dict) -> list[dict]:
    metrics = ctx["metrics"]
    issues = []
    for event in metrics.get("scaling_events", []):
        if event["to"] <= event["from"]:
            continue
        hot = next((p for p in metrics.get("hot_pods", []) if p["deployment"] == event["deployment"]), None)
        issues.append(
            {
                "severity": "high",
                "title": f"Auto-Scaling: {event['deployment']} ({event['from']} -> {event['to']} replicas)",
                "description": "The deployment scaled up under load." + (f" Peak CPU: {hot['max_cpu']}m." if hot else ""),
                "evidence": [
                    f"Scaled from {event['from']} to {event['to']} replicas",
                    f"Max CPU: {hot['max_cpu']}m, Avg CPU: {hot['avg_cpu']}m" if hot else None,
                ],
                "impact": "Auto-scaling indicates load pressure. Check if root cause is organic traffic or a bug amplifying requests.",
                "affected_services": [event["deployment"]],
                "root_cause": "CPU/memory pressure from traffic or upstream issues",
                "action": "Investigate if scaling is expected. If Redis is down, fixing it may reduce CPU and prevent excessive scaling.",
            }
        )
    return issues


def _nodes_with_alert(ctx: dict, alert_type: str) -> list[str]:
    alerts = ctx["metrics"].get("node_alerts", [])
    return list(dict.fromkeys(a["node"] for a in alerts if a["type"] == alert_type))


def _build_node_issue(alert_type: str, resource: str, threshold: int, description: str, impact: str,
                      root_cause: str, action: str):
    def build(ctx: dict) -> list[dict]:
        nodes = _nodes_with_alert(ctx, alert_type)
        return [
            {
                "severity": "high",
                "title": f"Nodes with High {resource} (>{threshold}%): {', '.join(nodes)}",
                "description": description,
                "evidence": [f"Node {node} above {threshold}% {resource.lower()}" for node in nodes],
                "impact": impact,
                "affected_services": [],
                "root_cause": root_cause,
                "action": action,
            }
        ]

    return build


def _build_db_alert_issues(ctx: dict) -> list[dict]:
    return [
        {
            "severity": alert["severity"],
            "title": alert["message"],
            "description": alert["message"],
            "evidence": [],
            "impact": "Database performance or availability may be affected.",
            "affected_services": [],
            "root_cause": "Database load or misconfiguration",
            "action": "Review DB connection pool settings and query performance.",
        }
        for alert in ctx["db"].get("alerts", [])
    ]


DETECTION_RULES = [
    DetectionRule(
        "redis_connection",
        _category_count_above("redis_connection", Thresholds.REDIS_CONNECTION),
        _category_issue(
            "redis_connection",
            "critical",
            "Redis Connection Failures ({count:,} errors)",
            "Pods are failing to connect to Redis on port 6379. Each pod expects a reachable Redis "
            "(local sidecar or REDIS_HOST), but nothing is accepting connections.",
            lambda c: [
                f"{c['count']:,} ECONNREFUSED errors on port 6379",
                f"Affected deployments: {_affected(c)}",
                f"Affected pods: {len(c['affected_pods'])}",
                f"Affected bots: {len(c['affected_bots'])}" if c["affected_bots"] else None,
            ],
            "Cache layer is down. Every request hits the database directly, increasing latency.",
            "Redis sidecar not running or REDIS_HOST misconfigured",
            "Check if the Redis sidecar container is defined and running. If using remote Redis, update REDIS_HOST.",
        ),
    ),
    DetectionRule(
        "rasa_timeout",
        _category_count_above("rasa_timeout", Thresholds.RASA_TIMEOUT),
        _category_issue(
            "rasa_timeout",
            "critical",
            "Rasa Request Timeouts ({count} timeouts, {bots} bots)",
            "Rasa server pods are timing out while processing bot messages. Users of affected bots get no response.",
            lambda c: [
                f"{c['count']} timeout errors from rasa-server pods",
                f"Affected bots: {', '.join(c['affected_bots'])}",
                f"Affected pods: {', '.join(c['affected_pods'])}",
            ],
            "Complete conversation failure for affected bots. End users send messages but receive no response.",
            "Model loading/retraining blocking the message pipeline, or model too large for available resources",
            "Check model sizes for affected bots. Investigate if retraining was scheduled during peak hours.",
        ),
    ),
    DetectionRule(
        "oom_killed",
        _category_count_above("oom_killed", Thresholds.OOM_KILLED),
        _category_issue(
            "oom_killed",
            "critical",
            "OOM Killed Events ({count} occurrences)",
            "Pods are being killed due to out-of-memory conditions.",
            lambda c: [f"{c['count']} OOM events", f"Affected: {_affected(c)}"],
            "Pod restarts cause request failures and potential data loss.",
            "Memory limits too low or memory leak in application",
            "Increase memory limits or investigate memory usage patterns.",
        ),
    ),
    DetectionRule(
        "crash_restart",
        _category_count_above("crash_restart", Thresholds.CRASH_RESTART),
        _category_issue(
            "crash_restart",
            "critical",
            "Pod Crash/Restart Events ({count})",
            "Pods are crash-looping or being repeatedly killed and restarted.",
            lambda c: [f"{c['count']} crash events", f"Affected: {_affected(c)}"],
            "Service intermittently unavailable during restarts.",
            "Application crash, resource limits, or startup failure",
            "Check pod describe output and container logs for crash reason.",
        ),
    ),
    DetectionRule(
        "deployment_scale_up",
        lambda ctx: any(e["to"] > e["from"] for e in ctx["metrics"].get("scaling_events", [])),
        _build_scale_up_issues,
    ),
    DetectionRule(
        "mysql_warning",
        _category_count_above("mysql_warning", Thresholds.MYSQL_WARNING),
        _category_issue(
            "mysql_warning",
            "medium",
            "MySQL2 Configuration Warnings ({count})",
            "Invalid options are passed to MySQL2 connections. These are warnings today and become errors in "
            "future driver versions.",
            lambda c: [f"{c['count']} warnings", f"Affected: {_affected(c)}"],
            "No immediate impact. A future MySQL2 upgrade will break connections.",
            "Outdated DB connection configuration",
            "Remove unsupported connection options (useUTC) and use an offset such as +05:30 for timezone.",
        ),
    ),
    DetectionRule(
        "nlu_fallback",
        _category_count_above("nlu_fallback", Thresholds.NLU_FALLBACK),
        _category_issue(
            "nlu_fallback",
            "medium",
            "NLU Fallback Rate High ({count:,} unrecognized messages)",
            "A significant number of user messages fall back to NLU fallback, meaning the bot cannot understand them.",
            lambda c: [f"{c['count']:,} fallback events"],
            "Users not getting meaningful bot responses for common phrases.",
            "Missing training data for common conversational phrases",
            "Add training examples for small-talk intents (ok, thanks, bye, etc.).",
            affected_services=["rasa-server"],
        ),
    ),
    DetectionRule(
        "http_5xx",
        _category_count_above("http_5xx", Thresholds.HTTP_5XX),
        _category_issue(
            "http_5xx",
            "high",
            "HTTP 5xx Errors ({count})",
            "Server-side errors detected in API responses.",
            lambda c: [f"{c['count']} 5xx responses", f"Affected: {_affected(c)}"],
            "API clients receiving server errors.",
            "Application bugs or upstream service failures",
            "Check application logs for root cause of 5xx responses.",
        ),
    ),
    DetectionRule(
        "connection_reset",
        _category_count_above("connection_reset", Thresholds.CONNECTION_RESET),
        _category_issue(
            "connection_reset",
            "medium",
            "Connection Resets ({count})",
            "TCP connections being reset or hung up unexpectedly.",
            lambda c: [f"{c['count']} reset events", f"Affected: {_affected(c)}"],
            "Intermittent request failures.",
            "Network issues, load balancer timeouts, or upstream service restarts",
            "Check network policies, LB idle timeout settings, and upstream service health.",
        ),
    ),
    DetectionRule(
        "slow_query",
        _category_count_above("slow_query", Thresholds.SLOW_QUERY),
        _category_issue(
            "slow_query",
            "medium",
            "Slow Queries Detected ({count})",
            "Database queries exceeding normal execution time.",
            lambda c: [f"{c['count']} slow query events"],
            "Degraded response times for affected endpoints.",
            "Missing indexes, large table scans, or lock contention",
            "Review slow query logs, add indexes, optimize queries.",
        ),
    ),
    DetectionRule(
        "kafka_error",
        _category_count_above("kafka_error", Thresholds.KAFKA_ERROR),
        _category_issue(
            "kafka_error",
            "high",
            "Kafka Errors ({count})",
            "Kafka consumer/producer errors detected.",
            lambda c: [f"{c['count']} Kafka errors", f"Affected: {_affected(c)}"],
            "Message processing delays or data loss.",
            "Kafka broker issues or consumer group rebalancing",
            "Check Kafka broker health, consumer lag, and partition assignments.",
        ),
    ),
    DetectionRule(
        "lock_failure",
        _category_count_above("lock_failure", Thresholds.LOCK_FAILURE),
        _category_issue(
            "lock_failure",
            "low",
            "Lock Release Failures ({count})",
            "Distributed lock release failures detected.",
            lambda c: [f"{c['count']} lock failures"],
            "Potential race conditions or stale locks.",
            "Lock TTL expired before operation completed",
            "Review lock TTL configuration and operation durations.",
        ),
    ),
    DetectionRule(
        "tensorflow_warning",
        _category_count_above("tensorflow_warning", Thresholds.TENSORFLOW_WARNING),
        _category_issue(
            "tensorflow_warning",
            "low",
            "TensorFlow Function Retracing ({count})",
            "TensorFlow is retracing tf.function calls, which is expensive and slows inference.",
            lambda c: [f"{c['count']} retracing warnings"],
            "Slower model inference, increased CPU usage.",
            "Models with varying input shapes triggering recompilation",
            "Investigate model architecture, consider setting reduce_retracing=True.",
            affected_services=["rasa-server"],
        ),
    ),
    DetectionRule(
        "node_high_cpu",
        lambda ctx: bool(_nodes_with_alert(ctx, "high_cpu")),
        _build_node_issue(
            "high_cpu",
            "CPU",
            Thresholds.NODE_CPU_PERCENT,
            f"One or more cluster nodes are running above {Thresholds.NODE_CPU_PERCENT}% CPU utilization.",
            "Pod scheduling may be affected. Risk of node-level resource exhaustion.",
            "High workload or insufficient cluster capacity",
            "Scale the cluster or redistribute workloads.",
        ),
    ),
    DetectionRule(
        "node_high_memory",
        lambda ctx: bool(_nodes_with_alert(ctx, "high_memory")),
        _build_node_issue(
            "high_memory",
            "Memory",
            Thresholds.NODE_MEMORY_PERCENT,
            f"Cluster nodes running above {Thresholds.NODE_MEMORY_PERCENT}% memory.",
            "Risk of OOM kills and pod evictions.",
            "Memory-heavy workloads or insufficient node sizing",
            "Add nodes or increase node instance sizes.",
        ),
    ),
    DetectionRule("db_alerts", lambda ctx: bool(ctx["db"].get("alerts")), _build_db_alert_issues),
]


class IssueDetector:
    """
    Evaluates the detection rule table against the combined analysis.

    Rules are independent: each may emit zero or more issues, and a rule that
    raises is recorded in ``self.errors`` without affecting the others. Issues
    are numbered in detection order, then stably sorted by severity.
    """

    def __init__(self, rules: Optional[list[DetectionRule]] = None, progress=None):
        self.rules = DETECTION_RULES if rules is None else rules
        self.progress = progress or ProgressTracker(quiet=True)
        self.errors: list[dict] = []

    def detect(self, error_analysis: dict, metrics_analysis: dict, db_analysis: dict) -> list[Issue]:
        context = build_detection_context(error_analysis, metrics_analysis, db_analysis)
        issues = []
        for rule in self.rules:
            try:
                emitted = rule.evaluate(context)
            except Exception as e:
                self.errors.append({"step": f"detect_issues:{rule.name}", "message": str(e)})
                self.progress.warning(f"Detection rule {rule.name} failed: {e}")
                continue
            for fields in emitted:
                issues.append(
                    Issue(
                        id=f"ISSUE-{len(issues) + 1:03d}",
                        severity=fields["severity"],
                        title=fields["title"],
                        description=fields["description"],
                        evidence=tuple(e for e in fields.get("evidence", []) if e),
                        impact=fields["impact"],
                        affected_services=tuple(fields.get("affected_services", [])),
                        root_cause=fields["root_cause"],
                        action=fields["action"],
                    )
                )
        issues.sort(key=lambda issue: SEVERITY_RANK.get(issue.severity, len(SEVERITY_RANK)))
        return issues


CATEGORY_KEYWORDS = [
    ("infrastructure", re.compile(r"redis|kafka|db|database|connection", re.I)),
    ("configuration", re.compile(r"config|mysql2|timezone", re.I)),
    ("ml-model", re.compile(r"nlu|fallback|training", re.I)),
    ("resources", re.compile(r"cpu|memory|oom|scaling", re.I)),
    ("reliability", re.compile(r"5xx|timeout|crash", re.I)),
]

EFFORT_KEYWORDS = [
    ("low", re.compile(r"check|verify|review|investigate", re.I)),
    ("medium", re.compile(r"update|change|increase|add", re.I)),
    ("high", re.compile(r"redesign|migrate|refactor", re.I)),
]


def infer_category(title: str) -> str:
    for category, pattern in CATEGORY_KEYWORDS:
        if pattern.search(title or ""):
            return category
    return "general"


def infer_effort(action: str) -> str:
    for effort, pattern in EFFORT_KEYWORDS:
        if pattern.search(action or ""):
            return effort
    return "medium"


class RecommendationEngine:
    """Maps each issue to one recommendation, highest priority first."""

    def generate(self, issues: list[Issue]) -> list[Recommendation]:
        recommendations = []
        for issue in issues:
            if issue.severity in ("critical", "high"):
                impact = "high"
            elif issue.severity == "medium":
                impact = "medium"
            else:
                impact = "low"
            recommendations.append(
                Recommendation(
                    priority=SEVERITY_PRIORITY.get(issue.severity, 1),
                    category=infer_category(issue.title),
                    action=issue.action or f"Investigate: {issue.title}",
                    rationale=issue.impact or issue.description,
                    effort=infer_effort(issue.action),
                    impact=impact,
                    related_issue=issue.id,
                )
            )
        recommendations.sort(key=lambda r: r.priority, reverse=True)
        return recommendations


# === SECTION 8: ARCHIVE ANALYSIS ===


def scan_log_archive(root_path: str) -> dict:
    """
    Discover the log files of one archive.

    Error logs and metrics files are deduplicated by file name (the same
    capture copied into two folders counts once) and ordered by name, which
    encodes the capture time.

    Raises:
        ArchiveNotFoundError: If root_path is not a directory.
    """
    if not os.path.isdir(root_path):
        raise ArchiveNotFoundError(f"Directory not found: {root_path}")

    all_files = []
    for dirpath, dirnames, filenames in os.walk(root_path):
        dirnames.sort()
        for filename in sorted(filenames):
            all_files.append(os.path.join(dirpath, filename))

    def select(pattern):
        by_name = {}
        for path in all_files:
            name = os.path.basename(path)
            if pattern.search(name) and name not in by_name:
                by_name[name] = path
        return [by_name[name] for name in sorted(by_name)]

    def under(directory):
        return [
            path
            for path in all_files
            if directory in os.path.relpath(path, root_path).split(os.sep)[:-1] and path.lower().endswith(".log")
        ]

    db_debug_log = next((p for p in all_files if os.path.basename(p) == "db_debug.log"), None)
    manifest_file = next((p for p in all_files if os.path.basename(p) == "MANIFEST.txt"), None)

    manifest_data = {}
    if manifest_file:
        try:
            with open(manifest_file, "r", encoding="utf-8", errors="replace") as f:
                content = f.read().strip()
            match = MANIFEST_RE.search(content)
            manifest_data = {"source": match.group(1), "timestamp": match.group(2)} if match else {"raw": content}
        except OSError as e:
            logger.warning(f"Could not read {manifest_file}: {e}")

    return {
        "root_path": root_path,
        "manifest_data": manifest_data,
        "error_logs": select(ERROR_LOG_RE),
        "metrics_files": select(METRICS_FILE_RE),
        "db_debug_log": db_debug_log,
        "dashboard_logs": [p for p in all_files if DASHBOARD_LOG_RE.search(os.path.basename(p))],
        "slow_query_logs": under("slow_queries"),
        "pod_logs": under("pod_logs"),
        "total_files": len(all_files),
    }


class LogArchiveAnalyzer(DateFilterMixin):
    """
    Runs the whole pipeline over one archive.

    scan -> parse (error streams, metrics, DB debug, pod logs) -> classify ->
    analyze -> detect issues -> recommend. Files are processed one at a time;
    every step after the scan degrades to its empty result on failure.

    Attributes:
        archive_path: Root directory of the log archive.
        start_date: Optional start of the time filter (timezone-aware).
        end_date: Optional end of the time filter (timezone-aware).
        max_events: Global cap on retained error-stream events.
        errors: Non-fatal failures recorded during the run.

    Example:
        >>> analyzer = LogArchiveAnalyzer("./monitor-logs_20260211_204624")
        >>> results = analyzer.run_comprehensive_analysis()
    """

    TOTAL_STEPS = 10

    def __init__(self, archive_path, start_date=None, end_date=None, max_events=MAX_EVENTS, progress=None):
        if start_date and end_date and start_date >= end_date:
            raise DateValidationError(f"Start date ({start_date}) must be before end date ({end_date})")
        self.archive_path = os.path.abspath(archive_path)
        self.start_date = start_date
        self.end_date = end_date
        self.max_events = max_events
        self.progress = progress or ProgressTracker()
        self.errors: list[dict] = []
        self._perf_tracker = PerformanceTracker()

    def _run_step(self, name: str, func: Callable, default: Any, *args) -> Any:
        """Run one pipeline step, recording its duration; failures yield `default`."""
        start_time = time.time()
        try:
            return func(*args)
        except Exception as e:
            self.errors.append({"step": name, "message": str(e)})
            self.progress.warning(f"Step {name} failed: {e}")
            return default
        finally:
            self._perf_tracker.record(name, time.time() - start_time)

    def run_comprehensive_analysis(self) -> dict:
        """
        Analyze the archive and build the result object.

        Returns:
            dict: Analysis results containing:
                - metadata: archive, manifest, time filter, version
                - stats: run-level counters (lines, events, dropped, files, time span)
                - error_analysis: categories, timeline, top pods/bots
                - metrics_analysis: trends, scaling events, hot pods, node alerts
                - db_analysis: pool usage, long-running queries, alerts
                - pod_logs: raw pod log summaries
                - issues / recommendations: ranked lists
                - summary: issue counts by severity
                - errors: non-fatal failures

        Raises:
            ArchiveNotFoundError: If the archive directory does not exist.
        """
        self.progress.set_total_steps(self.TOTAL_STEPS)

        self.progress.step("Scanning log archive...")
        manifest = scan_log_archive(self.archive_path)
        self.progress.info(
            f"Found {len(manifest['error_logs'])} error logs, {len(manifest['metrics_files'])} metrics files"
            + (", DB debug log" if manifest["db_debug_log"] else "")
        )

        error_parser = ErrorStreamParser(
            self.start_date, self.end_date, progress=self.progress, perf_tracker=self._perf_tracker
        )
        snapshot_parser = SnapshotTextParser(progress=self.progress)
        processlist_parser = ProcesslistParser(progress=self.progress)
        pod_parser = PodStreamParser(progress=self.progress)

        self.progress.step("Parsing error logs...")
        events, stats = self._run_step(
            "parse_error_logs",
            error_parser.parse_files,
            ([], self._empty_error_stats(len(manifest["error_logs"]))),
            manifest["error_logs"],
            self.max_events,
        )
        self.progress.info(f"{stats['total_lines']:,} lines, {len(events):,} events parsed")

        self.progress.step("Parsing metrics snapshots...")
        snapshots, metrics_stats = self._run_step(
            "parse_metrics", snapshot_parser.parse_files, ([], {"snapshot_count": 0}), manifest["metrics_files"]
        )

        self.progress.step("Parsing database debug log...")
        db_snapshots, db_stats = self._run_step(
            "parse_db_debug", processlist_parser.parse_file, ([], {"snapshot_count": 0}), manifest["db_debug_log"]
        )

        self.progress.step("Summarizing pod logs...")
        pod_logs = self._run_step(
            "parse_pod_logs", pod_parser.parse_files, {"pods": [], "stats": {"pod_count": 0}}, manifest["pod_logs"]
        )

        self.progress.step("Classifying errors...")
        error_analysis = self._run_step(
            "classify_errors",
            classify_errors,
            {"categories": [], "timeline": [], "top_pods": [], "top_bots": [], "total_events": 0},
            events,
        )
        self.progress.info(f"{len(error_analysis['categories'])} error categories detected")

        self.progress.step("Analyzing metrics...")
        metrics_analysis = self._run_step(
            "analyze_metrics", MetricsAnalyzer().analyze, MetricsAnalyzer.empty_result(), snapshots
        )

        self.progress.step("Analyzing database connections...")
        db_analysis = self._run_step("analyze_db", DbAnalyzer().analyze, DbAnalyzer.empty_result(), db_snapshots)

        self.progress.step("Detecting issues...")
        detector = IssueDetector(progress=self.progress)
        issues = self._run_step("detect_issues", detector.detect, [], error_analysis, metrics_analysis, db_analysis)

        self.progress.step("Generating recommendations...")
        recommendations = self._run_step("generate_recommendations", RecommendationEngine().generate, [], issues)

        for component in (error_parser, snapshot_parser, processlist_parser, pod_parser, detector):
            self.errors.extend(component.errors)

        run_stats = {
            "total_lines": stats["total_lines"],
            "total_events": len(events),
            "events_parsed": stats.get("events_parsed", len(events)),
            "events_dropped": stats.get("events_dropped", 0),
            "error_count": stats["error_count"],
            "warning_count": stats["warning_count"],
            "file_count": stats.get("file_count", len(manifest["error_logs"])),
            "files": stats.get("files", []),
            "by_deployment": stats["by_deployment"],
            "first_timestamp": stats["first_timestamp"],
            "last_timestamp": stats["last_timestamp"],
            "metrics_snapshot_count": metrics_stats["snapshot_count"],
            "db_snapshot_count": db_stats["snapshot_count"],
        }

        return {
            "metadata": {
                "archive": self.archive_path,
                "manifest": manifest["manifest_data"],
                "archive_files": {
                    "total": manifest["total_files"],
                    "error_logs": len(manifest["error_logs"]),
                    "metrics_files": len(manifest["metrics_files"]),
                    "dashboard_logs": len(manifest["dashboard_logs"]),
                    "slow_query_logs": len(manifest["slow_query_logs"]),
                    "pod_logs": len(manifest["pod_logs"]),
                },
                "analysis_date": TimezoneManager.to_iso_string(TimezoneManager.now_utc()),
                "time_filter": {"start": self.start_date, "end": self.end_date},
                "max_events": self.max_events,
                "version": VERSION,
            },
            "stats": run_stats,
            "error_analysis": error_analysis,
            "metrics_analysis": metrics_analysis,
            "db_analysis": db_analysis,
            "pod_logs": pod_logs,
            "issues": issues,
            "recommendations": recommendations,
            "summary": self._generate_summary(issues),
            "errors": self.errors,
            "performance": {
                "slowest_steps": [
                    {"step": s, "total_time_seconds": round(t, 2)} for s, t in self._perf_tracker.get_slowest(10)
                ],
            },
        }

    @staticmethod
    def _empty_error_stats(file_count: int) -> dict:
        stats = ErrorStreamParser.new_stats()
        stats.update({"file_count": file_count, "files": [], "events_parsed": 0, "total_events": 0, "events_dropped": 0})
        return stats

    @staticmethod
    def _generate_summary(issues: list[Issue]) -> dict:
        summary = {"total_issues": len(issues)}
        for severity in SEVERITY_RANK:
            summary[severity] = sum(1 for issue in issues if issue.severity == severity)
        return summary


# === SECTION 9: OUTPUT FORMATTERS ===


class OutputFormatter:
    """Base class for output formatters"""

    def format(self, results):
        """Format results for output"""
        raise NotImplementedError


class JSONOutputFormatter(OutputFormatter):
    """Self-contained JSON document for the report renderer"""

    def format(self, results):
        return json.dumps(to_serializable(results), indent=2)


class ConsoleSummaryFormatter(OutputFormatter):
    """End-of-run summary block"""

    def format(self, results, elapsed_seconds: Optional[float] = None, report_path: Optional[str] = None):
        stats = results["stats"]
        summary = results["summary"]
        lines = [
            "============ SUMMARY ============",
            f"Lines analyzed:   {stats['total_lines']:,}",
            f"Events parsed:    {stats['total_events']:,}",
        ]
        if stats.get("events_dropped"):
            lines.append(f"Events dropped:   {stats['events_dropped']:,} (cap {results['metadata']['max_events']:,})")
        lines.append(f"Error categories: {len(results['error_analysis']['categories'])}")
        lines.append(f"Issues found:     {summary['total_issues']}")
        if summary.get("critical"):
            lines.append(f"Critical issues:  {summary['critical']}")
        if summary.get("high"):
            lines.append(f"High issues:      {summary['high']}")
        if results.get("errors"):
            lines.append(f"Warnings:         {len(results['errors'])} step(s) degraded")
        if elapsed_seconds is not None:
            lines.append(f"Time taken:       {format_duration(round_half_up(elapsed_seconds))}")
        if report_path:
            lines.append(f"Report:           {report_path}")
        lines.append("=================================")
        return "\n".join(lines)


def output_results(results: dict, output_path: str) -> str:
    """Write the JSON report; returns the path written."""
    output_dir = os.path.dirname(output_path)
    if output_dir:
        os.makedirs(output_dir, mode=0o755, exist_ok=True)
    content = JSONOutputFormatter().format(results)
    fd = os.open(output_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o644)
    with os.fdopen(fd, "w") as f:
        f.write(content)
    return output_path


def get_exit_code(results: dict) -> int:
    """
    0 = success, no issues
    1 = success, but issues found
    """
    return 1 if results["summary"]["total_issues"] > 0 else 0


# === SECTION 10: CLI HANDLING ===


def create_argument_parser():
    """Create argument parser with all CLI options"""
    parser = argparse.ArgumentParser(
        prog="k8s-log-analyzer",
        description="Analyze Kubernetes monitoring log archives into classified events, issues and recommendations",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  k8s-log-analyzer ./monitor-logs_20260211_204624/
  k8s-log-analyzer ./logs/ -o report.json
  k8s-log-analyzer ./logs/ --start 2026-02-11T14:00:00Z --end 2026-02-11T15:00:00Z
  k8s-log-analyzer ./logs/ --start -2h

Environment Variables:
  K8S_LOG_ANALYZER_OUTPUT      - Output file path
  K8S_LOG_ANALYZER_START       - Filter start
  K8S_LOG_ANALYZER_END         - Filter end
  K8S_LOG_ANALYZER_TIMEZONE    - Timezone for naive dates
  K8S_LOG_ANALYZER_MAX_EVENTS  - Global event cap
        """,
    )

    parser.add_argument("log_dir", help="Log archive directory")
    parser.add_argument("--config", help="Path to YAML/JSON config file")
    parser.add_argument("-o", "--output", help=f"Output JSON file (default: <log-dir>/{DEFAULT_REPORT_NAME})")
    parser.add_argument("-s", "--start", help='Filter logs from this time (ISO 8601, "YYYY-MM-DD", "-2h", "now")')
    parser.add_argument("-e", "--end", help="Filter logs until this time")
    parser.add_argument("--timezone", help="Timezone for dates without offset (default: UTC)")
    parser.add_argument("--max-events", type=int, help=f"Global event cap (default: {MAX_EVENTS})")

    verbosity_group = parser.add_mutually_exclusive_group()
    verbosity_group.add_argument("-v", "--verbose", action="store_true", help="Enable verbose/debug output")
    verbosity_group.add_argument("-q", "--quiet", action="store_true", help="Suppress progress messages")

    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")

    return parser


def parse_flexible_date(date_str, tz_name="UTC"):
    """
    Parse flexible date formats

    Supports:
    - ISO 8601: "2026-02-15T10:30:00Z"
    - Date only: "2026-02-15" (assumes 00:00:00)
    - Relative: "-2h", "-3d", "now"

    Returns timezone-aware datetime in UTC
    """
    if not date_str:
        return None

    try:
        tz = pytz.timezone(tz_name)
    except pytz.UnknownTimeZoneError:
        raise DateValidationError(f"Unknown timezone: {tz_name}")

    if date_str.lower() == "now":
        return datetime.now(timezone.utc)

    if date_str.startswith("-"):
        try:
            value = int(date_str[1:-1])
            unit = date_str[-1].lower()
            if unit == "h":
                return datetime.now(timezone.utc) - timedelta(hours=value)
            elif unit == "d":
                return datetime.now(timezone.utc) - timedelta(days=value)
            else:
                raise ValueError(f"Unknown time unit: {unit}")
        except (ValueError, IndexError):
            raise DateValidationError(f"Invalid relative date format: {date_str}. Use '-2h' or '-3d'")

    try:
        dt = date_parser.parse(date_str)
    except (ValueError, OverflowError):
        raise DateValidationError(f"Invalid date format: {date_str}. Use ISO 8601 (2026-02-15T10:00:00Z) or YYYY-MM-DD")

    if dt.tzinfo is None:
        dt = tz.localize(dt)
    return dt.astimezone(timezone.utc)


def resolve_settings(args) -> dict:
    """Merge config file, environment and CLI flags (CLI wins)."""
    settings = {
        "output": None,
        "start": None,
        "end": None,
        "timezone": "UTC",
        "max_events": MAX_EVENTS,
        "verbose": False,
        "quiet": False,
    }
    settings.update({k: v for k, v in ConfigLoader.load(args.config).items() if k in settings})
    for key in ("output", "start", "end", "timezone", "max_events"):
        value = getattr(args, key)
        if value is not None:
            settings[key] = value
    # YAML loads unquoted timestamps as date/datetime objects
    for key in ("start", "end"):
        if isinstance(settings[key], date):
            settings[key] = settings[key].isoformat()
    max_events = settings["max_events"]
    if isinstance(max_events, bool) or not isinstance(max_events, int) or max_events <= 0:
        raise ConfigError(f"max_events must be a positive integer, got {max_events!r}")
    if args.verbose:
        settings.update(verbose=True, quiet=False)
    elif args.quiet:
        settings.update(quiet=True, verbose=False)
    return settings


def validate_and_parse_dates(settings: dict) -> tuple[Optional[datetime], Optional[datetime]]:
    """
    Validate and parse the time filter

    Returns: (start_date, end_date) as timezone-aware UTC datetimes or None
    """
    start_date = parse_flexible_date(settings.get("start"), settings["timezone"])
    end_date = parse_flexible_date(settings.get("end"), settings["timezone"])
    if start_date and end_date and start_date >= end_date:
        raise DateValidationError(f"Start date ({start_date}) must be before end date ({end_date})")
    return start_date, end_date


# === SECTION 11: MAIN ENTRY POINT ===


def main(argv=None):
    """Main entry point"""
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    progress = ProgressTracker(verbose=args.verbose, quiet=args.quiet)
    started = time.time()

    try:
        settings = resolve_settings(args)
        progress = ProgressTracker(verbose=settings["verbose"], quiet=settings["quiet"])
        start_date, end_date = validate_and_parse_dates(settings)

        log_dir = os.path.abspath(args.log_dir)
        output_path = os.path.abspath(settings["output"] or os.path.join(log_dir, DEFAULT_REPORT_NAME))

        if not settings["quiet"]:
            print("=" * 70)
            print(f"K8S LOG ANALYZER v{VERSION}")
            print("=" * 70)
            print(f"Input:       {log_dir}")
            print(f"Output:      {output_path}")
            if start_date:
                print(f"Start:       {TimezoneManager.to_iso_string(start_date)}")
            if end_date:
                print(f"End:         {TimezoneManager.to_iso_string(end_date)}")
            print("=" * 70)
            print()

        analyzer = LogArchiveAnalyzer(
            log_dir,
            start_date=start_date,
            end_date=end_date,
            max_events=settings["max_events"],
            progress=progress,
        )
        results = analyzer.run_comprehensive_analysis()

        try:
            output_results(results, output_path)
        except OSError as e:
            progress.error(f"Failed to write report: {e}")
            sys.exit(2)

        if not settings["quiet"]:
            print()
            print(ConsoleSummaryFormatter().format(results, time.time() - started, output_path))
            print()

        sys.exit(get_exit_code(results))

    except ArchiveNotFoundError as e:
        progress.error(f"Error: {e}")
        sys.exit(2)
    except DateValidationError as e:
        progress.error(f"Date validation error: {e}")
        sys.exit(2)
    except ConfigError as e:
        progress.error(f"Config error: {e}")
        sys.exit(2)
    except KeyboardInterrupt:
        progress.error("\nAnalysis interrupted by user")
        sys.exit(130)
    except Exception as e:
        progress.error(f"Unexpected error: {e}")
        if args.verbose:
            import traceback

            traceback.print_exc()
        sys.exit(2)


if __name__ == "__main__":
    main()
