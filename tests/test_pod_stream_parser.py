"""Tests for raw pod log summaries."""

from datetime import datetime, timezone
from k8s_log_analyzer import PodStreamParser


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


POD_LOG = (
    '2026-02-11T14:00:00Z info: "GET /api/v1/messages?page=2 HTTP/1.1" 200 512\n'
    '2026-02-11T14:01:00Z info: "POST /api/v1/messages HTTP/1.1" 500 12\n'
    "2026-02-11T14:02:00Z error: upstream failed\n"
    "2026-02-11T14:02:30Z error: upstream failed\n"
    "    continuation without timestamp\n"
    '2026-02-11T14:06:00Z "GET /health HTTP/1.1" 200 2 ELB-HealthChecker/2.0\n'
    "2026-02-11T14:07:00Z warn: model cleanup models in progress\n"
    '{"timestamp": "2026-02-11T14:08:00Z", "service": "chat-api", "msg": "ok"}\n'
)


def parse(tmp_path, content=POD_LOG, name="chat-api-7d9f8b6c5-x2k4p.log"):
    path = tmp_path / name
    path.write_text(content)
    return PodStreamParser().parse_file(str(path))


class TestPodStreamParser:
    """Test cases for PodStreamParser.parse_file."""

    def test_identity(self, tmp_path):
        summary = parse(tmp_path)
        assert summary["pod_name"] == "chat-api-7d9f8b6c5-x2k4p"
        assert summary["deployment"] == "chat-api"
        assert summary["service_name"] == "chat-api"

    def test_line_counts(self, tmp_path):
        summary = parse(tmp_path)
        assert summary["total_lines"] == 8
        assert summary["error_lines"] == 2
        assert summary["warn_lines"] == 1
        assert summary["health_checks"] == 1

    def test_errors_deduplicated(self, tmp_path):
        """Repeated error text is sampled once, without its timestamp prefix."""
        summary = parse(tmp_path)
        assert summary["errors"] == [{"message": "error: upstream failed", "timestamp": utc(2026, 2, 11, 14, 2, 0)}]

    def test_http_and_endpoints(self, tmp_path):
        summary = parse(tmp_path)
        assert summary["http_codes"] == {"200": 2, "500": 1}
        assert summary["api_requests"] == 2
        assert summary["top_endpoints"] == [
            {"endpoint": "GET /api/v1/messages", "count": 1},
            {"endpoint": "POST /api/v1/messages", "count": 1},
        ]

    def test_time_range(self, tmp_path):
        summary = parse(tmp_path)
        assert summary["first_timestamp"] == utc(2026, 2, 11, 14, 0, 0)
        assert summary["last_timestamp"] == utc(2026, 2, 11, 14, 8, 0)

    def test_five_minute_buckets(self, tmp_path):
        """Untimestamped lines count toward the preceding timestamp's bucket."""
        buckets = parse(tmp_path)["time_buckets"]

        assert [b["timestamp"] for b in buckets] == [utc(2026, 2, 11, 14, 0), utc(2026, 2, 11, 14, 5)]
        assert buckets[0]["lines"] == 5
        assert buckets[0]["errors"] == 2
        assert buckets[0]["api_requests"] == 2
        assert buckets[1]["health_checks"] == 1

    def test_notable_events(self, tmp_path):
        events = parse(tmp_path)["notable_events"]
        assert [e["type"] for e in events] == ["model_lifecycle"]


class TestPodStreamParseFiles:
    """Test cases for PodStreamParser.parse_files."""

    def test_sorted_by_errors_with_stats(self, tmp_path):
        noisy = tmp_path / "chat-api-1-a.log"
        quiet = tmp_path / "rasa-server-1-b.log"
        noisy.write_text("error: a\nerror: b\n")
        quiet.write_text("all good\n")
        missing = tmp_path / "gone-1-c.log"

        parser = PodStreamParser()
        result = parser.parse_files([str(quiet), str(noisy), str(missing)])

        assert [p["pod_name"] for p in result["pods"]] == ["chat-api-1-a", "rasa-server-1-b"]
        assert result["stats"]["pod_count"] == 2
        assert result["stats"]["total_errors"] == 2
        assert len(parser.errors) == 1
