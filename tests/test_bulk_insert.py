"""Tests for batched bulk ingestion."""

import pytest

from chopper_core.errors import (
    DimensionMismatchError,
    InvalidArgumentError,
    PartialBatchFailure,
    StorageError,
)
from chopper_core.store import ChunkStore

from conftest import DIM, make_record, unit


def _records(n: int):
    return [make_record(unit(i % DIM, value=1.0 + i), name=f"chunk{i}") for i in range(n)]


def test_bulk_insert_keeps_bijection(store: ChunkStore) -> None:
    records = _records(7)

    result = store.bulk_insert(records, batch_size=3)

    assert result.inserted == 7
    assert result.batches_committed == 3
    assert store.count() == 7
    assert store.chunk_ids() == store.index_ids() == result.inserted_ids
    assert [r.id for r in records] == result.inserted_ids
    assert store.check_consistency().ok


def test_bulk_insert_default_batch_size(store: ChunkStore) -> None:
    result = store.bulk_insert(_records(3))

    assert result.batches_committed == 1
    assert store.index_count() == 3


def test_bulk_insert_consumes_generators(store: ChunkStore) -> None:
    result = store.bulk_insert((r for r in _records(5)), batch_size=2)

    assert result.inserted == 5
    assert result.batches_committed == 3


def test_bulk_insert_empty_input(store: ChunkStore) -> None:
    result = store.bulk_insert([])

    assert result.inserted == 0
    assert result.batches_committed == 0


def test_later_batch_failure_keeps_committed_prefix(store: ChunkStore) -> None:
    records = _records(5)
    records[4].embedding = [1.0] * (DIM - 1)

    with pytest.raises(PartialBatchFailure) as info:
        store.bulk_insert(records, batch_size=2)

    failure = info.value
    assert failure.failed_batch == 2
    assert failure.batches_committed == 2
    assert len(failure.committed_ids) == 4
    assert isinstance(failure.cause, DimensionMismatchError)
    assert isinstance(failure.__cause__, DimensionMismatchError)

    assert store.count() == 4
    assert store.index_count() == 4
    assert store.chunk_ids() == failure.committed_ids
    assert records[4].id is None
    stored_names = {store.get(i).entity_name for i in store.chunk_ids()}
    assert stored_names == {"chunk0", "chunk1", "chunk2", "chunk3"}

    # Committed chunks stay queryable.
    hits = store.search(unit(2), 1)
    assert hits[0].entity_name == "chunk2"


def test_invalid_record_rolls_back_whole_batch(store: ChunkStore) -> None:
    records = _records(4)
    records[3].embedding = []

    with pytest.raises(PartialBatchFailure):
        store.bulk_insert(records, batch_size=2)

    # Batch [2, 3] is validated before it is written, so chunk 2 is absent too.
    assert store.count() == 2
    assert store.index_count() == 2


def test_first_batch_failure_raises_cause(store: ChunkStore) -> None:
    records = _records(3)
    records[1].embedding = [0.0] * (DIM + 1)

    with pytest.raises(DimensionMismatchError):
        store.bulk_insert(records, batch_size=2)

    assert store.count() == 0
    assert store.index_count() == 0


@pytest.mark.parametrize("batch_size", [0, -1, True, 2.5])
def test_bulk_insert_rejects_bad_batch_size(store: ChunkStore, batch_size) -> None:
    with pytest.raises(InvalidArgumentError):
        store.bulk_insert(_records(1), batch_size=batch_size)
    assert store.count() == 0


def test_storage_error_inside_batch_rolls_back(store: ChunkStore) -> None:
    records = _records(2)
    records[1].chunk_text = None  # violates NOT NULL on write

    with pytest.raises(StorageError):
        store.bulk_insert(records, batch_size=2)

    assert store.count() == 0
    assert store.index_count() == 0


def _failing_after(records, n: int):
    for i, record in enumerate(records):
        if i == n:
            raise RuntimeError("source exhausted unexpectedly")
        yield record


def test_input_failure_after_commit_is_partial(store: ChunkStore) -> None:
    with pytest.raises(PartialBatchFailure) as info:
        store.bulk_insert(_failing_after(_records(6), 3), batch_size=2)

    failure = info.value
    assert failure.failed_batch == 1
    assert failure.batches_committed == 1
    assert failure.committed_ids == store.chunk_ids()
    assert len(failure.committed_ids) == 2
    assert isinstance(failure.cause, RuntimeError)
    assert store.index_count() == 2


def test_input_failure_in_first_batch_raises_cause(store: ChunkStore) -> None:
    with pytest.raises(RuntimeError, match="source exhausted"):
        store.bulk_insert(_failing_after(_records(6), 1), batch_size=2)

    assert store.count() == 0
