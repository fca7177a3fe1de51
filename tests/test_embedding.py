import importlib.util
from typing import List

import pytest

from chopper_core.embedding import (
    EmbeddingAdapter,
    EmbeddingOutcome,
    NoOpEmbeddingAdapter,
    resolve_embedder,
)


class FlakyAdapter(EmbeddingAdapter):
    """Fails for any text containing ``bad``; batches containing one fail as a whole."""

    def __init__(self, dimension: int = 4):
        super().__init__("flaky", dimension)
        self.calls: List[List[str]] = []

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        self.calls.append(list(texts))
        if any("bad" in t for t in texts):
            raise RuntimeError("provider rejected input")
        return [[float(len(t))] * self.dimension for t in texts]


class ShortAdapter(EmbeddingAdapter):
    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        return [[1.0] * (self.dimension - 1) for _ in texts]


def test_noop_is_deterministic() -> None:
    adapter = NoOpEmbeddingAdapter(dimension=16)

    a = adapter.embed_batch(["hello"])[0]
    b = adapter.embed_batch(["hello"])[0]
    c = adapter.embed_batch(["world"])[0]

    assert a == b
    assert a != c
    assert len(a) == 16
    assert all(-1.0 <= x <= 1.0 for x in a)


def test_adapter_rejects_bad_construction() -> None:
    with pytest.raises(ValueError):
        NoOpEmbeddingAdapter(model_name="", dimension=4)
    with pytest.raises(ValueError):
        NoOpEmbeddingAdapter(dimension=0)


def test_outcome_requires_exactly_one_field() -> None:
    with pytest.raises(ValueError):
        EmbeddingOutcome()
    with pytest.raises(ValueError):
        EmbeddingOutcome(vector=[1.0], error="both")

    assert EmbeddingOutcome.success([1.0]).ok
    assert not EmbeddingOutcome.failure("nope").ok


def test_embed_outcomes_isolates_failures() -> None:
    adapter = FlakyAdapter()

    outcomes = adapter.embed_outcomes(["ok", "bad one", "fine"])

    assert [o.ok for o in outcomes] == [True, False, True]
    assert outcomes[0].vector == [2.0] * 4
    assert "provider rejected input" in outcomes[1].error
    # One batch attempt, then one retry per text.
    assert adapter.calls[0] == ["ok", "bad one", "fine"]
    assert len(adapter.calls) == 4


def test_embed_outcomes_empty() -> None:
    assert FlakyAdapter().embed_outcomes([]) == []


def test_wrong_length_vector_is_failure() -> None:
    adapter = ShortAdapter("short", 4)

    (outcome,) = adapter.embed_outcomes(["text"])

    assert not outcome.ok
    assert "must have length 4, got 3" in outcome.error


def test_resolve_noop_uses_configured_dimension() -> None:
    adapter = resolve_embedder({"provider": "noop", "dimension": 12})

    assert isinstance(adapter, NoOpEmbeddingAdapter)
    assert adapter.dimension == 12
    assert adapter.model_name == "noop-embedding"


def test_resolve_unknown_provider() -> None:
    with pytest.raises(ValueError, match="Unknown embedding provider"):
        resolve_embedder({"provider": "carrier-pigeon"})


@pytest.mark.skipif(
    importlib.util.find_spec("sentence_transformers") is not None,
    reason="sentence-transformers is installed",
)
def test_resolve_sentence_transformers_without_library() -> None:
    with pytest.raises(ValueError, match="not available"):
        resolve_embedder({"provider": "sentence-transformers", "dimension": 384})


@pytest.mark.skipif(
    importlib.util.find_spec("sentence_transformers") is None,
    reason="sentence-transformers not installed",
)
def test_resolve_sentence_transformers_is_lazy() -> None:
    adapter = resolve_embedder(
        {"provider": "sentence-transformers", "dimension": 384, "options": {"batch_size": 8}}
    )

    assert adapter.dimension == 384
    assert adapter.model_name == "sentence-transformers/all-MiniLM-L6-v2"
    assert adapter._model is None
