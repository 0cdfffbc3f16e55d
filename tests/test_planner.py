"""Tests for deletion/upload planning and directory inference."""

from __future__ import annotations

from ftpsync.exceptions import LocalIoError
from ftpsync.models import FileRecord, RecordedState, Timestamp
from ftpsync.planner import (
    directories_to_prune,
    directory_to_create,
    plan_deletions,
    plan_uploads,
)

HASH_A = "a" * 32
HASH_B = "b" * 32


def _state(*records: tuple[str, int, str]) -> RecordedState:
    state = RecordedState()
    for path, mtime, signature in records:
        state.set(FileRecord(path=path, timestamp=Timestamp.plain(mtime), signature=signature))
    return state


class _Local:
    """Stand-in for the local tree: path -> (mtime, signature, size)."""

    def __init__(self, files: dict[str, tuple[int, str, int]]):
        self.files = files
        self.hashed: list[str] = []

    def timestamp(self, path: str) -> Timestamp:
        return Timestamp.plain(self.files[path][0])

    def signature(self, path: str) -> str:
        self.hashed.append(path)
        return self.files[path][1]

    def size(self, path: str) -> int:
        return self.files[path][2]

    def plan(self, recorded: RecordedState):
        return plan_uploads(
            sorted(self.files),
            recorded,
            timestamp_fn=self.timestamp,
            signature_fn=self.signature,
            size_fn=self.size,
        )


class TestPlanDeletions:
    def test_recorded_paths_missing_locally_sorted(self):
        recorded = _state(("z.txt", 1, HASH_A), ("a/b.txt", 1, HASH_A), ("keep.txt", 1, HASH_A))

        assert plan_deletions({"keep.txt"}, recorded) == ["a/b.txt", "z.txt"]

    def test_nothing_to_delete(self):
        assert plan_deletions({"a.txt"}, _state(("a.txt", 1, HASH_A))) == []


class TestPlanUploads:
    def test_new_file_is_candidate_with_size(self):
        local = _Local({"index.html": (5, HASH_A, 10)})

        plan = local.plan(RecordedState())

        assert [(c.path, c.signature, c.size) for c in plan.candidates] == [("index.html", HASH_A, 10)]
        assert plan.total_bytes == 10

    def test_unchanged_timestamp_reuses_recorded_signature(self):
        local = _Local({"a.txt": (5, HASH_B, 1)})

        plan = local.plan(_state(("a.txt", 5, HASH_A)))

        assert local.hashed == []
        assert plan.candidates == []
        assert plan.touched == []

    def test_changed_timestamp_and_content_is_candidate(self):
        local = _Local({"a.txt": (6, HASH_B, 3)})

        plan = local.plan(_state(("a.txt", 5, HASH_A)))

        assert local.hashed == ["a.txt"]
        assert [c.path for c in plan.candidates] == ["a.txt"]

    def test_touched_but_unchanged_refreshes_timestamp(self, caplog):
        local = _Local({"a.txt": (6, HASH_A, 3)})

        plan = local.plan(_state(("a.txt", 5, HASH_A)))

        assert plan.candidates == []
        assert [(r.path, r.timestamp, r.signature) for r in plan.touched] == [
            ("a.txt", Timestamp.plain(6), HASH_A)
        ]
        assert "touched" in caplog.text

    def test_unknown_record_is_always_rehashed(self):
        """An interrupted transfer leaves FILE 0 unknown; the file must be re-verified."""
        local = _Local({"a.txt": (0, HASH_A, 3)})

        plan = local.plan(_state(("a.txt", 0, "unknown")))

        assert local.hashed == ["a.txt"]
        assert [c.path for c in plan.candidates] == ["a.txt"]

    def test_no_signature_record_is_rehashed_and_uploaded(self):
        local = _Local({"a.txt": (0, HASH_A, 3)})

        plan = local.plan(_state(("a.txt", 0, "-")))

        assert [c.path for c in plan.candidates] == ["a.txt"]

    def test_unreadable_file_is_reported_not_raised(self):
        def broken(path: str) -> str:
            raise LocalIoError(path, "Permission denied")

        plan = plan_uploads(
            ["secret.txt", "ok.txt"],
            RecordedState(),
            timestamp_fn=lambda path: Timestamp.plain(1),
            signature_fn=lambda path: broken(path) if path == "secret.txt" else HASH_A,
            size_fn=lambda path: 1,
        )

        assert plan.errors == [("secret.txt", "Permission denied")]
        assert [c.path for c in plan.candidates] == ["ok.txt"]


class TestDirectoryInference:
    def test_top_level_file_needs_no_directory(self):
        assert directory_to_create("index.html", RecordedState()) is None

    def test_first_file_in_new_tree_creates_full_parent(self):
        assert directory_to_create("a/b/c.txt", RecordedState()) == "a/b"

    def test_existing_directory_is_not_recreated(self):
        recorded = _state(("a/b/x.txt", 1, HASH_A))
        assert directory_to_create("a/b/c.txt", recorded) is None

    def test_sibling_under_parent_still_needs_leaf_directory(self):
        recorded = _state(("a/x.txt", 1, HASH_A))
        assert directory_to_create("a/b/c.txt", recorded) == "a/b"

    def test_prune_walks_up_innermost_first(self):
        assert directories_to_prune("a/b/c.txt", RecordedState()) == ["a/b", "a"]

    def test_prune_stops_at_first_directory_in_use(self):
        recorded = _state(("a/x.txt", 1, HASH_A))
        assert directories_to_prune("a/b/c.txt", recorded) == ["a/b"]

    def test_prune_nothing_for_top_level_file(self):
        assert directories_to_prune("old.txt", RecordedState()) == []
