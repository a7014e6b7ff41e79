"""Tests for metrics snapshot and DB processlist parsing."""

import pytest
from datetime import datetime, timezone
from k8s_log_analyzer import (
    DbPoolSummary,
    DbSnapshot,
    PodStatusCounts,
    ProcesslistParser,
    SnapshotTextParser,
)
from conftest import write_metrics_file


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
def snapshot(tmp_path):
    path = write_metrics_file(tmp_path, "metrics_20260211_140000.txt", 2)
    return SnapshotTextParser().parse_file(str(path))


class TestSnapshotTextParser:
    """Test cases for SnapshotTextParser.parse_file."""

    def test_timestamp_from_header(self, snapshot):
        assert snapshot.timestamp == utc(2026, 2, 11, 14, 0, 0)
        assert snapshot.file == "metrics_20260211_140000.txt"

    def test_nodes(self, snapshot):
        assert len(snapshot.nodes) == 2
        node = snapshot.nodes[0]
        assert node.name == "ip-10-0-1-23.ap-south-1.compute.internal"
        assert node.cpu_millicores == 1850
        assert node.cpu_percent == 92
        assert node.memory_mi == 6144
        assert node.memory_percent == 71
        assert snapshot.nodes[1].memory_mi == 2048

    def test_pods(self, snapshot):
        assert [(p.name, p.cpu_millicores, p.memory_mi) for p in snapshot.pods] == [
            ("chat-api-7d9f8b6c5-x2k4p", 750, 512),
            ("rasa-server-5c6d7e8f9-abcde", 1200, 3072),
        ]

    def test_deployments(self, snapshot):
        (deployment,) = snapshot.deployments
        assert deployment.name == "chat-api"
        assert deployment.desired == 2
        assert deployment.ready == 2
        assert deployment.cpu_request == 250
        assert deployment.cpu_limit == 1000
        assert deployment.memory_request == 256
        assert deployment.memory_limit == 1024

    def test_status_and_pool(self, snapshot):
        assert snapshot.pod_status == PodStatusCounts(running=4, pending=1, failed=0)
        assert snapshot.db_pool_summary == DbPoolSummary(available=True, error=None)

    def test_db_connections_and_config(self, snapshot):
        (conn,) = snapshot.db_connections
        assert (conn.pod, conn.total, conn.idle, conn.active, conn.max_seconds) == (
            "chat-api-7d9f8b6c5-x2k4p", 10, 8, 2, 35,
        )
        (config,) = snapshot.pod_config
        assert config.deployment == "chat-api"
        assert config.db_pool_max == 20
        assert config.idle_ms == 10000

    def test_rows_before_column_header_ignored(self, tmp_path):
        """Data rows only count after the section's column header."""
        path = tmp_path / "metrics_20260211_140000.txt"
        path.write_text(
            "--- NODES ---\n"
            "node-a 100m 10% 100Mi 10%\n"
            "NAME CPU CPU% MEM MEM%\n"
            "node-b 200m 20% 200Mi 20%\n"
        )

        snapshot = SnapshotTextParser().parse_file(str(path))

        assert [n.name for n in snapshot.nodes] == ["node-b"]

    def test_unknown_section_resets_state(self, tmp_path):
        path = tmp_path / "metrics_20260211_140000.txt"
        path.write_text(
            "--- NODES ---\n"
            "NAME CPU CPU% MEM MEM%\n"
            "node-a 100m 10% 100Mi 10%\n"
            "--- SOMETHING ELSE ---\n"
            "node-z 900m 90% 900Mi 90%\n"
        )

        snapshot = SnapshotTextParser().parse_file(str(path))

        assert [n.name for n in snapshot.nodes] == ["node-a"]

    def test_failed_pool_query(self, tmp_path):
        path = tmp_path / "metrics_20260211_140000.txt"
        path.write_text("--- DB CONNECTION POOL Summary ---\nDB query failed: access denied\n")

        snapshot = SnapshotTextParser().parse_file(str(path))

        assert snapshot.db_pool_summary == DbPoolSummary(available=False, error="DB query failed")

    def test_filename_timestamp_fallback(self, tmp_path):
        path = tmp_path / "metrics_20260211_141500.txt"
        path.write_text("--- NODES ---\n")

        assert SnapshotTextParser().parse_file(str(path)).timestamp == utc(2026, 2, 11, 14, 15, 0)


class TestSnapshotParseFiles:
    """Test cases for SnapshotTextParser.parse_files."""

    def test_sorted_with_stats(self, tmp_path):
        late = write_metrics_file(tmp_path, "metrics_20260211_140500.txt", 4, at="14:05:00")
        early = write_metrics_file(tmp_path, "metrics_20260211_140000.txt", 2)

        snapshots, stats = SnapshotTextParser().parse_files([str(late), str(early)])

        assert [s.file for s in snapshots] == ["metrics_20260211_140000.txt", "metrics_20260211_140500.txt"]
        assert stats["snapshot_count"] == 2
        assert stats["node_count"] == 2
        assert stats["pod_count"] == 2
        assert stats["time_range"]["end"] == utc(2026, 2, 11, 14, 5, 0)

    def test_missing_file_skipped(self, tmp_path):
        parser = SnapshotTextParser()
        snapshots, stats = parser.parse_files([str(tmp_path / "metrics_20260211_140000.txt")])

        assert snapshots == []
        assert stats["snapshot_count"] == 0
        assert parser.errors[0]["step"] == "parse_metrics"


class TestProcesslistParser:
    """Test cases for ProcesslistParser."""

    def test_snapshots(self, db_debug_log):
        snapshots, stats = ProcesslistParser().parse_file(str(db_debug_log))

        assert len(snapshots) == 2
        assert snapshots[0].timestamp == utc(2026, 2, 11, 14, 0, 0)
        assert snapshots[1].timestamp == utc(2026, 2, 11, 14, 5, 0)
        assert stats["snapshot_count"] == 2
        assert stats["avg_connections_per_snapshot"] == 2

    def test_connection_fields(self, db_debug_log):
        snapshots, _ = ProcesslistParser().parse_file(str(db_debug_log))

        query, sleeper, daemon = snapshots[0].connections
        assert query.id == 11
        assert query.database == "chatdb"
        assert query.command == "Query"
        assert query.time == 120
        assert query.info == "SELECT * FROM messages"
        assert sleeper.info is None
        assert daemon.user == "system user"
        assert daemon.database is None

    def test_snapshot_stats(self, db_debug_log):
        snapshots, _ = ProcesslistParser().parse_file(str(db_debug_log))

        assert snapshots[0].stats == {
            "total": 3,
            "sleeping": 1,
            "active": 2,
            "by_database": {"chatdb": 2},
            "longest_connection": 9000,
        }

    def test_missing_log(self, tmp_path):
        snapshots, stats = ProcesslistParser().parse_file(str(tmp_path / "db_debug.log"))
        assert snapshots == []
        assert stats["avg_connections_per_snapshot"] == 0

    def test_no_path(self):
        snapshots, _ = ProcesslistParser().parse_file(None)
        assert snapshots == []

    def test_iter_snapshots_is_lazy(self, db_debug_log):
        iterator = ProcesslistParser().iter_snapshots(str(db_debug_log))
        first = next(iterator)
        assert isinstance(first, DbSnapshot)
        assert first.stats["total"] == 3
