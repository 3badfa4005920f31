import pytest

from repograph.errors import GraphFormatError
from repograph.graph_db.history import HealthSnapshot, HistoryStore, create_snapshot, health_score


def _snapshot(timestamp: str, score: int = 90) -> HealthSnapshot:
    return HealthSnapshot(
        timestamp=timestamp,
        commit_hash=None,
        file_count=3,
        total_lines=30,
        avg_complexity=2.0,
        max_complexity=2,
        hotspot_count=0,
        health_score=score,
        distribution={"low": 3, "medium": 0, "high": 0, "veryHigh": 0},
    )


class TestHealthScore:
    def test_perfect_codebase(self):
        assert health_score(0, 0, 0) == 100

    def test_penalties(self):
        # 100 - 2*3 - 1*2 - 1*5
        assert health_score(2, 1, 1) == 87

    def test_clamped_to_zero(self):
        assert health_score(40, 10, 10) == 0


class TestCreateSnapshot:
    def test_metrics_from_graph(self, graph_builder):
        graph = (
            graph_builder.file("src/a.ts", complexity=19)
            .function("src/a.ts", "small", 2)
            .function("src/a.ts", "huge", 17)
            .build()
        )
        snapshot = create_snapshot(graph, commit_hash="abc")

        assert snapshot.commit_hash == "abc"
        assert snapshot.file_count == 1
        assert snapshot.avg_complexity == 9.5
        assert snapshot.max_complexity == 17
        assert snapshot.hotspot_count == 1
        assert snapshot.distribution == {"low": 1, "medium": 0, "high": 1, "veryHigh": 0}
        assert snapshot.health_score == health_score(9.5, 1, 0)

    def test_empty_graph(self, graph_builder):
        snapshot = create_snapshot(graph_builder.build())
        assert snapshot.avg_complexity == 0
        assert snapshot.health_score == 100

    def test_dict_round_trip(self):
        snapshot = _snapshot("2026-05-01T10:00:00+00:00")
        data = snapshot.to_dict()

        assert data["metrics"]["healthScore"] == 90
        assert HealthSnapshot.from_dict(data) == snapshot

    def test_malformed_snapshot(self):
        with pytest.raises(GraphFormatError):
            HealthSnapshot.from_dict({"timestamp": "2026-05-01T10:00:00+00:00"})


class TestHistoryStore:
    def test_file_names_and_order(self, tmp_path):
        store = HistoryStore(tmp_path)
        later = store.save_snapshot(_snapshot("2026-05-02T08:30:00+00:00", score=80))
        earlier = store.save_snapshot(_snapshot("2026-05-01T10:00:00+00:00", score=90))

        assert later.name == "2026-05-02T08-30-00.json"
        assert earlier.name == "2026-05-01T10-00-00.json"
        assert [s.health_score for s in store.load_snapshots()] == [90, 80]
        assert store.latest().health_score == 80

    def test_same_second_gets_suffix(self, tmp_path):
        store = HistoryStore(tmp_path)
        first = store.save_snapshot(_snapshot("2026-05-01T10:00:00+00:00"))
        second = store.save_snapshot(_snapshot("2026-05-01T10:00:00.500000+00:00"))

        assert first.name == "2026-05-01T10-00-00.json"
        assert second.name == "2026-05-01T10-00-00_2.json"

    def test_prunes_oldest(self, tmp_path):
        store = HistoryStore(tmp_path)
        for day in range(1, 6):
            store.save_snapshot(_snapshot(f"2026-05-0{day}T00:00:00+00:00", score=day), max_snapshots=3)

        assert [s.health_score for s in store.load_snapshots()] == [3, 4, 5]

    def test_unreadable_snapshot_is_skipped(self, tmp_path):
        store = HistoryStore(tmp_path)
        store.save_snapshot(_snapshot("2026-05-01T10:00:00+00:00"))
        (store.history_dir / "2026-05-02T00-00-00.json").write_text("garbage", encoding="utf-8")

        assert len(store.load_snapshots()) == 1

    def test_empty_history(self, tmp_path):
        assert HistoryStore(tmp_path).latest() is None
