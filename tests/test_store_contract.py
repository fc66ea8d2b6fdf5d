"""Contract tests run against every reference backend."""

from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from filestore import (
    TEXT,
    Author,
    Change,
    IllegalResourceName,
    NotFound,
    RepositoryExists,
    Resource,
    ResourceExists,
    SearchMatch,
    SearchQuery,
    TimeRange,
    Unchanged,
    UnknownError,
    default_search_query,
)
from filestore.backends.filesystem import FileSystemFileStore
from filestore.backends.memory import MemoryFileStore
from filestore.base import FileStore


class StepClock:
    """Clock that advances a fixed step on every call."""

    def __init__(
        self,
        start: datetime = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc),
        step: timedelta = timedelta(minutes=1),
    ) -> None:
        self.current = start
        self.step = step

    def __call__(self) -> datetime:
        value = self.current
        self.current += self.step
        return value


# =============================================================================
# Fixtures
# =============================================================================


def _make_store(kind: str, tmp_path: Path) -> FileStore:
    if kind == "memory":
        return MemoryFileStore(clock=StepClock())
    return FileSystemFileStore(
        base_path=str(tmp_path / "repo"),
        clock=StepClock(),
        sync_writes=False,
    )


@pytest.fixture(params=["memory", "filesystem"])
def store(request: pytest.FixtureRequest, tmp_path: Path) -> FileStore:
    """An initialized store of each backend."""
    s = _make_store(request.param, tmp_path)
    s.initialize()
    return s


@pytest.fixture(params=["memory", "filesystem"])
def fresh_store(request: pytest.FixtureRequest, tmp_path: Path) -> FileStore:
    """A store handle whose storage has not been initialized."""
    return _make_store(request.param, tmp_path)


@pytest.fixture
def ada() -> Author:
    return Author("Ada Lovelace", "ada@example.com")


# =============================================================================
# Lifecycle
# =============================================================================


class TestInitialize:
    """Tests for initialize."""

    def test_initialize_twice(self, store: FileStore) -> None:
        """Second initialize reports RepositoryExists."""
        with pytest.raises(RepositoryExists):
            store.initialize()

    def test_operations_require_initialize(self, fresh_store: FileStore, ada: Author) -> None:
        """Operations on uninitialized storage fail with UnknownError."""
        assert not fresh_store.is_initialized()
        with pytest.raises(UnknownError):
            fresh_store.save("a.txt", ada, "add", b"a")
        with pytest.raises(UnknownError):
            fresh_store.index()

    def test_new_store_is_empty(self, store: FileStore) -> None:
        assert store.is_initialized()
        assert store.index() == []
        assert store.history([]) == []
        assert store.directory("") == []


# =============================================================================
# Save / Retrieve
# =============================================================================


class TestSaveRetrieve:
    """Tests for save and retrieve."""

    def test_save_and_retrieve_bytes(self, store: FileStore, ada: Author) -> None:
        rev = store.save("data.bin", ada, "add data", b"\x00\x01\xff")
        assert store.retrieve("data.bin") == b"\x00\x01\xff"
        assert store.ids_match(store.latest("data.bin"), rev)

    def test_save_and_retrieve_text(self, store: FileStore, ada: Author) -> None:
        store.save("notes.txt", ada, "add notes", "héllo wörld")
        assert store.retrieve("notes.txt", contents=TEXT) == "héllo wörld"
        assert store.retrieve("notes.txt") == "héllo wörld".encode("utf-8")

    def test_first_save_records_added(self, store: FileStore, ada: Author) -> None:
        rev = store.save("a.txt", ada, "add a", "one")
        revision = store.revision(rev)
        assert revision.changes == (Change.added("a.txt"),)
        assert revision.author == ada
        assert revision.description == "add a"

    def test_second_save_records_modified(self, store: FileStore, ada: Author) -> None:
        store.save("a.txt", ada, "add a", "one")
        rev = store.save("a.txt", ada, "edit a", "two")
        assert store.revision(rev).changes == (Change.modified("a.txt"),)
        assert store.retrieve("a.txt", contents=TEXT) == "two"

    def test_unchanged_save(self, store: FileStore, ada: Author) -> None:
        """Saving identical content raises Unchanged and creates no revision."""
        store.save("a.txt", ada, "add a", "same")
        before = store.history([])

        with pytest.raises(Unchanged):
            store.save("a.txt", ada, "again", "same")

        assert store.history([]) == before

    def test_retrieve_old_revision(self, store: FileStore, ada: Author) -> None:
        first = store.save("a.txt", ada, "v1", "one")
        store.save("a.txt", ada, "v2", "two")
        assert store.retrieve("a.txt", first, contents=TEXT) == "one"
        assert store.retrieve("a.txt", contents=TEXT) == "two"

    def test_retrieve_missing_path(self, store: FileStore, ada: Author) -> None:
        with pytest.raises(NotFound):
            store.retrieve("missing.txt")
        rev = store.save("a.txt", ada, "add", "x")
        with pytest.raises(NotFound):
            store.retrieve("missing.txt", rev)

    def test_retrieve_unknown_revision(self, store: FileStore, ada: Author) -> None:
        store.save("a.txt", ada, "add", "x")
        with pytest.raises(NotFound):
            store.retrieve("a.txt", "0" * 40)
        with pytest.raises(NotFound):
            store.retrieve("a.txt", "not-a-revision")

    def test_retrieve_path_before_it_existed(self, store: FileStore, ada: Author) -> None:
        first = store.save("a.txt", ada, "add a", "x")
        store.save("b.txt", ada, "add b", "y")
        with pytest.raises(NotFound):
            store.retrieve("b.txt", first)

    def test_save_over_directory(self, store: FileStore, ada: Author) -> None:
        store.save("dir/a.txt", ada, "add", "x")
        with pytest.raises(ResourceExists):
            store.save("dir", ada, "clobber", "y")

    def test_save_below_file(self, store: FileStore, ada: Author) -> None:
        store.save("a.txt", ada, "add", "x")
        with pytest.raises(ResourceExists):
            store.save("a.txt/b.txt", ada, "nest", "y")

    @pytest.mark.parametrize(
        "name",
        ["", "/abs.txt", "../escape.txt", "a/../b.txt", "a//b.txt", "./a.txt", "a\\b.txt"],
    )
    def test_illegal_names(self, store: FileStore, ada: Author, name: str) -> None:
        with pytest.raises(IllegalResourceName):
            store.save(name, ada, "bad", "x")

    def test_trailing_slash_is_normalized(self, store: FileStore, ada: Author) -> None:
        store.save("a.txt", ada, "add", "x")
        assert store.retrieve("a.txt/", contents=TEXT) == "x"


# =============================================================================
# Delete / Rename
# =============================================================================


class TestDeleteRename:
    """Tests for delete and rename."""

    def test_delete_then_retrieve(self, store: FileStore, ada: Author) -> None:
        """History stays readable after a delete."""
        old = store.save("a.txt", ada, "add", "keep me")
        rev = store.delete("a.txt", ada, "remove")

        with pytest.raises(NotFound):
            store.retrieve("a.txt")
        assert store.retrieve("a.txt", old, contents=TEXT) == "keep me"
        assert store.revision(rev).changes == (Change.deleted("a.txt"),)
        assert "a.txt" not in store.index()

    def test_delete_missing(self, store: FileStore, ada: Author) -> None:
        with pytest.raises(NotFound):
            store.delete("missing.txt", ada, "remove")

    def test_delete_directory_is_not_found(self, store: FileStore, ada: Author) -> None:
        store.save("dir/a.txt", ada, "add", "x")
        with pytest.raises(NotFound):
            store.delete("dir", ada, "remove")

    def test_latest_after_delete(self, store: FileStore, ada: Author) -> None:
        store.save("a.txt", ada, "add", "x")
        store.delete("a.txt", ada, "remove")
        with pytest.raises(NotFound):
            store.latest("a.txt")

    def test_rename(self, store: FileStore, ada: Author) -> None:
        store.save("old.txt", ada, "add", "content")
        rev = store.rename("old.txt", "sub/new.txt", ada, "move")

        assert store.revision(rev).changes == (
            Change.deleted("old.txt"),
            Change.added("sub/new.txt"),
        )
        assert store.retrieve("sub/new.txt", contents=TEXT) == "content"
        with pytest.raises(NotFound):
            store.retrieve("old.txt")
        assert store.index() == ["sub/new.txt"]

    def test_rename_missing_source(self, store: FileStore, ada: Author) -> None:
        with pytest.raises(NotFound):
            store.rename("missing.txt", "new.txt", ada, "move")

    def test_rename_onto_existing(self, store: FileStore, ada: Author) -> None:
        store.save("a.txt", ada, "add a", "a")
        store.save("b.txt", ada, "add b", "b")
        with pytest.raises(ResourceExists):
            store.rename("a.txt", "b.txt", ada, "move")
        with pytest.raises(ResourceExists):
            store.rename("a.txt", "a.txt", ada, "move")

    def test_rename_onto_directory(self, store: FileStore, ada: Author) -> None:
        store.save("a.txt", ada, "add a", "a")
        store.save("dir/b.txt", ada, "add b", "b")
        with pytest.raises(ResourceExists):
            store.rename("a.txt", "dir", ada, "move")

    def test_rename_to_illegal_name(self, store: FileStore, ada: Author) -> None:
        store.save("a.txt", ada, "add a", "a")
        with pytest.raises(IllegalResourceName):
            store.rename("a.txt", "../a.txt", ada, "move")


# =============================================================================
# History / Revisions
# =============================================================================


class TestHistory:
    """Tests for history, latest, revision and ids_match."""

    def test_time_range_filter(self, store: FileStore, ada: Author) -> None:
        """history([], {from: t2}) returns revisions at or after t2, newest first."""
        r1 = store.save("a.txt", ada, "one", "1")
        r2 = store.save("a.txt", ada, "two", "2")
        r3 = store.save("a.txt", ada, "three", "3")
        t1, t2, t3 = (store.revision(r).timestamp for r in (r1, r2, r3))
        assert t1 < t2 < t3

        result = store.history([], TimeRange(start=t2))

        assert [r.id for r in result] == [r3, r2]

    def test_time_range_upper_bound(self, store: FileStore, ada: Author) -> None:
        r1 = store.save("a.txt", ada, "one", "1")
        r2 = store.save("a.txt", ada, "two", "2")
        store.save("a.txt", ada, "three", "3")
        t2 = store.revision(r2).timestamp

        result = store.history([], TimeRange(end=t2))

        assert [r.id for r in result] == [r2, r1]

    def test_history_filters_by_path(self, store: FileStore, ada: Author) -> None:
        ra = store.save("a.txt", ada, "add a", "a")
        rb = store.save("docs/b.txt", ada, "add b", "b")
        store.save("c.txt", ada, "add c", "c")

        assert [r.id for r in store.history(["a.txt"])] == [ra]
        assert [r.id for r in store.history(["docs"])] == [rb]
        assert [r.id for r in store.history(["a.txt", "docs/b.txt"])] == [rb, ra]
        assert store.history(["nothing.txt"]) == []

    def test_history_limit(self, store: FileStore, ada: Author) -> None:
        for i in range(5):
            store.save("a.txt", ada, f"rev {i}", str(i))

        result = store.history([], limit=2)

        assert [r.description for r in result] == ["rev 4", "rev 3"]
        assert store.history([], limit=0) == []

    def test_history_revisions_have_changes(self, store: FileStore, ada: Author) -> None:
        store.save("a.txt", ada, "add", "a")
        store.rename("a.txt", "b.txt", ada, "move")
        store.delete("b.txt", ada, "remove")
        assert all(r.changes for r in store.history([]))

    def test_latest(self, store: FileStore, ada: Author) -> None:
        ra = store.save("a.txt", ada, "add a", "a")
        store.save("b.txt", ada, "add b", "b")
        assert store.ids_match(store.latest("a.txt"), ra)
        with pytest.raises(NotFound):
            store.latest("missing.txt")

    def test_revision_metadata(self, store: FileStore, ada: Author) -> None:
        rev = store.save("a.txt", ada, "add a", "a")
        revision = store.revision(rev)
        assert revision.id == rev
        assert revision.timestamp.tzinfo is not None
        assert revision.author == ada

    def test_revision_not_found(self, store: FileStore) -> None:
        with pytest.raises(NotFound):
            store.revision("f" * 40)

    def test_abbreviated_revision_id(self, store: FileStore, ada: Author) -> None:
        rev = store.save("a.txt", ada, "add a", "a")
        short = rev[:8]
        assert store.revision(short).id == rev
        assert store.retrieve("a.txt", short, contents=TEXT) == "a"

    def test_ids_match(self, store: FileStore, ada: Author) -> None:
        r1 = store.save("a.txt", ada, "one", "1")
        r2 = store.save("a.txt", ada, "two", "2")
        latest = store.latest("a.txt")

        assert store.ids_match(latest, latest)
        assert store.ids_match(r1, r1)
        assert store.ids_match(r2[:7], r2) and store.ids_match(r2, r2[:7])
        assert store.ids_match(r1, r2) is False
        assert store.ids_match(r2, r1) is False
        assert store.ids_match(r1, "") is False


# =============================================================================
# Index / Directory
# =============================================================================


class TestIndexDirectory:
    """Tests for index and directory listings."""

    @pytest.fixture
    def populated(self, store: FileStore, ada: Author) -> FileStore:
        for name in ["b.txt", "a.txt", "docs/guide.md", "docs/api/ref.md"]:
            store.save(name, ada, f"add {name}", name)
        return store

    def test_index(self, populated: FileStore) -> None:
        assert populated.index() == ["a.txt", "b.txt", "docs/api/ref.md", "docs/guide.md"]

    def test_root_directory(self, populated: FileStore) -> None:
        assert populated.directory("") == [
            Resource.file("a.txt"),
            Resource.file("b.txt"),
            Resource.directory("docs"),
        ]

    def test_nested_directory(self, populated: FileStore) -> None:
        assert populated.directory("docs") == [
            Resource.directory("api"),
            Resource.file("guide.md"),
        ]
        assert populated.directory("docs/api/") == [Resource.file("ref.md")]

    def test_directory_not_found(self, populated: FileStore) -> None:
        with pytest.raises(NotFound):
            populated.directory("missing")
        with pytest.raises(NotFound):
            populated.directory("a.txt")


# =============================================================================
# Search
# =============================================================================


class TestSearch:
    """Tests for search."""

    @pytest.fixture
    def searchable(self, store: FileStore, ada: Author) -> FileStore:
        store.save("doc.txt", ada, "add doc", "foo bar\nbaz\n")
        return store

    def test_default_query(self, searchable: FileStore) -> None:
        result = searchable.search(default_search_query(patterns=["foo"]))
        assert result == [SearchMatch("doc.txt", 1, "foo bar")]

    def test_match_all(self, searchable: FileStore) -> None:
        query = SearchQuery(patterns=["foo", "qux"], match_all=True)
        assert searchable.search(query) == []

    def test_match_any(self, searchable: FileStore) -> None:
        query = SearchQuery(patterns=["foo", "qux"], match_all=False)
        assert searchable.search(query) == [SearchMatch("doc.txt", 1, "foo bar")]

    def test_hits_from_every_pattern(self, searchable: FileStore) -> None:
        query = SearchQuery(patterns=["foo", "baz"])
        assert searchable.search(query) == [
            SearchMatch("doc.txt", 1, "foo bar"),
            SearchMatch("doc.txt", 2, "baz"),
        ]

    def test_case_and_word_options(self, searchable: FileStore) -> None:
        assert searchable.search(SearchQuery(patterns=["FOO"])) != []
        assert searchable.search(SearchQuery(patterns=["FOO"], ignore_case=False)) == []
        assert searchable.search(SearchQuery(patterns=["fo"])) == []
        assert searchable.search(SearchQuery(patterns=["fo"], whole_words=False)) != []

    def test_search_spans_resources(self, searchable: FileStore, ada: Author) -> None:
        searchable.save("a.txt", ada, "add", "nothing\nmore foo\n")
        searchable.save("bin.dat", ada, "add", b"\xff\xfe foo")
        result = searchable.search(SearchQuery(patterns=["foo"]))
        assert result == [
            SearchMatch("a.txt", 2, "more foo"),
            SearchMatch("doc.txt", 1, "foo bar"),
        ]

    def test_search_ignores_deleted(self, searchable: FileStore, ada: Author) -> None:
        searchable.delete("doc.txt", ada, "remove")
        assert searchable.search(SearchQuery(patterns=["foo"])) == []


# =============================================================================
# Concurrency
# =============================================================================


class TestConcurrentWrites:
    """Concurrent writers must not lose revisions."""

    def test_parallel_saves(self, store: FileStore, ada: Author) -> None:
        errors: list[BaseException] = []

        def writer(n: int) -> None:
            try:
                for i in range(5):
                    store.save(f"w{n}.txt", ada, f"w{n} rev {i}", f"{n}:{i}")
            except BaseException as e:  # pragma: no cover - reported below
                errors.append(e)

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(6)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert len(store.history([])) == 30
        for n in range(6):
            assert store.retrieve(f"w{n}.txt", contents=TEXT) == f"{n}:4"
            assert len(store.history([f"w{n}.txt"])) == 5
