"""
Tests for build record persistence.
"""

import json

import pytest

from reposcm.core.checkout import BuildResult, RevisionStore
from reposcm.core.manifest import ManifestSnapshot


@pytest.fixture
def store(tmp_path):
    return RevisionStore(tmp_path / ".reposcm", history_limit=5)


def snapshot(branch="main", **projects) -> ManifestSnapshot:
    return ManifestSnapshot(branch=branch, projects=projects or {"platform/foo": "abc"})


class TestRecord:
    """Test appending build records."""

    def test_first_record(self, store):
        record = store.record(snapshot())

        assert record.number == 1
        assert record.result is BuildResult.SUCCESS
        assert store.path.exists()
        assert store.load() == [record]

    def test_numbers_increase(self, store):
        numbers = [store.record(snapshot()).number for _ in range(3)]
        assert numbers == [1, 2, 3]

    def test_history_is_trimmed(self, store):
        for _ in range(7):
            store.record(snapshot())

        records = store.load()
        assert len(records) == 5
        assert [r.number for r in records] == [3, 4, 5, 6, 7]

    def test_numbering_continues_after_trim(self, store):
        for _ in range(6):
            store.record(snapshot())
        assert store.record(snapshot()).number == 7

    def test_snapshot_round_trips(self, store):
        original = ManifestSnapshot(
            manifest="<manifest/>", revision="0123abcd", branch="main", projects={"a": "1"}
        )
        store.record(original)

        (loaded,) = store.load()
        assert loaded.snapshot == original
        assert loaded.snapshot.revision == "0123abcd"
        assert loaded.snapshot.manifest == "<manifest/>"

    def test_no_temp_file_left(self, store):
        store.record(snapshot())
        assert [p.name for p in store.state_dir.iterdir()] == ["builds.json"]

    def test_get(self, store):
        store.record(snapshot())
        second = store.record(snapshot(platform__x="2"))
        assert store.get(2) == second
        assert store.get(99) is None


class TestLastState:
    """Test baseline lookup."""

    def test_empty_store(self, store):
        assert store.last_state("main") is None

    def test_newest_for_branch(self, store):
        store.record(snapshot("main", a="1"))
        store.record(snapshot("dev", a="2"))
        store.record(snapshot("main", a="3"))

        assert store.last_state("main").projects == {"a": "3"}
        assert store.last_state("dev").projects == {"a": "2"}

    def test_other_branch_counts_as_absent(self, store):
        """A snapshot recorded for another branch is not a baseline."""
        store.record(snapshot("main"))
        assert store.last_state("release") is None

    def test_none_branch_matches_only_none(self, store):
        store.record(snapshot(None, a="1"))
        assert store.last_state(None).projects == {"a": "1"}
        assert store.last_state("main") is None

    def test_failed_records_skipped(self, store):
        store.record(snapshot("main", a="1"))
        store.record(snapshot("main", a="2"), result=BuildResult.FAILURE)

        assert store.last_state("main").projects == {"a": "1"}


class TestCorruption:
    """Test that unreadable history behaves like an empty one."""

    def test_invalid_json(self, store):
        store.state_dir.mkdir(parents=True)
        store.path.write_text("{not json")

        assert store.load() == []
        assert store.last_state("main") is None
        assert store.record(snapshot()).number == 1

    def test_wrong_shape(self, store):
        store.state_dir.mkdir(parents=True)
        store.path.write_text(json.dumps({"records": [{"number": 0}]}))

        assert store.load() == []
