"""Tests for single inserts and storage-level mutations of the chunk store."""

import pytest

from chopper_core.errors import ChunkNotFoundError, DimensionMismatchError, StorageUnavailableError
from chopper_core.store import ChunkStore
from chopper_core.types import ChunkRecord

from conftest import DIM, make_record, unit


class TestInsertSingle:
    def test_returns_monotonic_ids(self, store: ChunkStore) -> None:
        ids = [store.insert_single(make_record(unit(i), name=f"f{i}")) for i in range(3)]

        assert ids == sorted(ids)
        assert len(set(ids)) == 3

    def test_assigns_id_to_record(self, store: ChunkStore) -> None:
        record = make_record(unit(0))
        chunk_id = store.insert_single(record)

        assert record.id == chunk_id

    def test_persists_all_fields(self, store: ChunkStore) -> None:
        record = ChunkRecord(
            file_name="geometry.py",
            file_path="pkg/geometry.py",
            chunk_text="def area(r):\n    return 3.14 * r * r",
            inline_document="Area of a circle.",
            parent_path="Shape",
            entity_name="area",
            embedding=[0.5] * DIM,
        )
        chunk_id = store.insert_single(record)

        stored = store.get(chunk_id)
        assert stored is not None
        assert stored.file_name == "geometry.py"
        assert stored.file_path == "pkg/geometry.py"
        assert stored.chunk_text.startswith("def area")
        assert stored.inline_document == "Area of a circle."
        assert stored.parent_path == "Shape"
        assert stored.entity_name == "area"
        assert stored.embedding == [0.5] * DIM

    def test_mirrors_into_index(self, store: ChunkStore) -> None:
        chunk_id = store.insert_single(make_record(unit(2)))

        assert store.index_ids() == [chunk_id]
        assert store.check_consistency().ok

    @pytest.mark.parametrize("length", [0, 1, DIM - 1, DIM + 1, 384])
    def test_rejects_wrong_dimension(self, store: ChunkStore, length: int) -> None:
        with pytest.raises(DimensionMismatchError):
            store.insert_single(make_record([0.1] * length))

        assert store.count() == 0
        assert store.index_count() == 0


class TestReplace:
    def test_replaces_fields_and_vector(self, store: ChunkStore) -> None:
        chunk_id = store.insert_single(make_record(unit(0), name="old"))

        store.replace(chunk_id, make_record(unit(5), name="new"))

        stored = store.get(chunk_id)
        assert stored.entity_name == "new"
        assert stored.embedding == unit(5)
        assert store.index_ids() == [chunk_id]
        hit = store.search(unit(5), 1)[0]
        assert hit.id == chunk_id
        assert hit.distance == pytest.approx(0.0, abs=1e-6)

    def test_unknown_id_raises(self, store: ChunkStore) -> None:
        with pytest.raises(ChunkNotFoundError):
            store.replace(999, make_record(unit(0)))
        assert store.count() == 0
        assert store.index_count() == 0

    def test_wrong_dimension_keeps_original(self, store: ChunkStore) -> None:
        chunk_id = store.insert_single(make_record(unit(0)))

        with pytest.raises(DimensionMismatchError):
            store.replace(chunk_id, make_record([1.0] * (DIM + 2)))

        assert store.get(chunk_id).embedding == unit(0)
        assert store.check_consistency().ok


class TestDelete:
    def test_removes_row_and_index_entry(self, store: ChunkStore) -> None:
        keep = store.insert_single(make_record(unit(0), name="keep"))
        gone = store.insert_single(make_record(unit(1), name="gone"))

        assert store.delete(gone) is True

        assert store.get(gone) is None
        assert store.index_ids() == [keep]
        assert all(r.id != gone for r in store.search(unit(1), 10))

    def test_missing_id_returns_false(self, store: ChunkStore) -> None:
        assert store.delete(12345) is False

    def test_ids_are_not_reused_after_delete(self, store: ChunkStore) -> None:
        first = store.insert_single(make_record(unit(0)))
        store.delete(first)

        second = store.insert_single(make_record(unit(0)))

        assert second > first


def test_check_consistency_reports_orphans(store: ChunkStore) -> None:
    a = store.insert_single(make_record(unit(0)))
    b = store.insert_single(make_record(unit(1)))
    # Bypass the store to simulate damage from an external writer.
    store.connection.execute("DELETE FROM code_chunks WHERE id = ?", (a,))
    store.connection.execute("DELETE FROM vec_index WHERE rowid = ?", (b,))

    report = store.check_consistency()

    assert not report.ok
    assert report.orphaned_index_ids == [a]
    assert report.unindexed_chunk_ids == [b]


def test_operations_after_close_fail(store: ChunkStore) -> None:
    store.close()

    assert store.closed
    with pytest.raises(StorageUnavailableError):
        store.insert_single(make_record(unit(0)))
    with pytest.raises(StorageUnavailableError):
        store.search(unit(0), 1)
