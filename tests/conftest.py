"""Shared fixtures for K8s Log Analyzer tests."""

import pytest
import sys
import os

# Add parent directory to path to import the main module
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


ERROR_LOG_LINES = [
    "[chat-api-7d9f8b6c5-x2k4p] 2026-02-11T14:00:01.123456789Z Error: connect ECONNREFUSED 127.0.0.1:6379",
    "    at TCPConnectWrapper.afterConnect [as oncomplete] (node:net:1494:16)",
    "[rasa-server-5c6d7e8f9-abcde] 2026-02-11T14:03:10.000Z "
    "Request timeout after 30s for bot 0a1b2c3d-4e5f-6a7b-8c9d-0e1f2a3b4c5d",
    "some banner line that is not a record",
    "[chat-api-7d9f8b6c5-x2k4p] 2026-02-11T14:07:00Z warning: slow response",
]

METRICS_SNAPSHOT = """\
==================================================
METRICS for namespace production at 2026-02-11 {time}
==================================================
--- NODES ---
NAME                                          CPU(cores)   CPU%   MEMORY(bytes)   MEMORY%
ip-10-0-1-23.ap-south-1.compute.internal      1850m        92%    6144Mi          71%
ip-10-0-2-45.ap-south-1.compute.internal      400m         20%    2Gi             30%
--- PODS (CPU / Memory) ---
NAME                                CPU(cores)   MEMORY(bytes)
chat-api-7d9f8b6c5-x2k4p            750m         512Mi
rasa-server-5c6d7e8f9-abcde         1200m        3Gi
--- DEPLOYMENTS ---
DEPLOYMENT      DESIRED   READY   CPU_REQ   CPU_LIM   MEM_REQ   MEM_LIM
chat-api        {replicas}         {replicas}       250m      1         256Mi     1Gi
--- POD STATUS ---
      4 Running
      1 Pending
--- DB CONNECTION POOL Summary ---
Threads_connected 42
--- DB CONNECTIONS (Per Pod) ---
POD_NAME                   TOTAL   IDLE   ACTIVE   MAX_SEC
chat-api-7d9f8b6c5-x2k4p   10      8      2        35
--- POD CONFIG ---
DEPLOYMENT   DB_POOL_MAX   DB_POOL_MIN   DB_MAX_CONN   ACQUIRE_MS   IDLE_MS
chat-api     20            2             100           30000        10000
"""

DB_DEBUG_LOG = (
    "Wed Feb 11 14:00:00 UTC 2026\n"
    "Id\tUser\tHost\tdb\tCommand\tTime\tState\tInfo\n"
    "11\tapp\t10.0.1.5:51234\tchatdb\tQuery\t120\texecuting\tSELECT * FROM messages\n"
    "12\tapp\t10.0.1.6:51235\tchatdb\tSleep\t120\t\tNULL\n"
    "13\tsystem user\tlocalhost\tNULL\tDaemon\t9000\twaiting\tNULL\n"
    "\n"
    "Wed Feb 11 14:05:00 UTC 2026\n"
    "Id\tUser\tHost\tdb\tCommand\tTime\tState\tInfo\n"
    "14\tapp\t10.0.1.5:51240\tanalytics\tQuery\t5\tsending data\tSELECT 1\n"
)


def write_metrics_file(directory, name, replicas, at="14:00:00"):
    path = directory / name
    path.write_text(METRICS_SNAPSHOT.replace("{replicas}", str(replicas)).replace("{time}", at))
    return path


@pytest.fixture
def error_log(tmp_path):
    """Error stream with one Redis failure, one Rasa timeout and one warning."""
    path = tmp_path / "errors_20260211_140000.log"
    path.write_text("\n".join(ERROR_LOG_LINES) + "\n")
    return path


@pytest.fixture
def db_debug_log(tmp_path):
    path = tmp_path / "db_debug.log"
    path.write_text(DB_DEBUG_LOG)
    return path


@pytest.fixture
def log_archive(tmp_path):
    """A small archive with every supported log type."""
    root = tmp_path / "monitor-logs_20260211_140000"
    (root / "metrics").mkdir(parents=True)
    (root / "pod_logs").mkdir()

    (root / "MANIFEST.txt").write_text("Logs collected from prod-cluster (2026-02-11 14:10:00 UTC)\n")
    (root / "errors_20260211_140000.log").write_text("\n".join(ERROR_LOG_LINES) + "\n")
    write_metrics_file(root / "metrics", "metrics_20260211_140000.txt", 2)
    write_metrics_file(root / "metrics", "metrics_20260211_140500.txt", 4, at="14:05:00")
    (root / "db_debug.log").write_text(DB_DEBUG_LOG)
    (root / "pod_logs" / "chat-api-7d9f8b6c5-x2k4p.log").write_text(
        '2026-02-11T14:00:00Z info: "GET /api/v1/messages?page=2 HTTP/1.1" 200 512\n'
        "2026-02-11T14:00:05Z error: upstream failed\n"
        '2026-02-11T14:00:06Z "GET /health HTTP/1.1" 200 2 ELB-HealthChecker/2.0\n'
    )
    return root
