"""Tests for batch planning."""

import pytest

from app.services.cluster_batching import DEFAULT_BATCH_SIZE, create_batches


class TestCreateBatches:
    """Tests for create_batches."""

    def test_empty_input_gives_no_batches(self) -> None:
        assert create_batches([], 10) == []

    @pytest.mark.parametrize("length", [1, 9, 10, 11, 25, 100])
    def test_partitions_without_loss_or_duplication(self, length) -> None:
        items = list(range(length))

        batches = create_batches(items, 10)

        assert [item for batch in batches for item in batch] == items
        assert all(1 <= len(batch) <= 10 for batch in batches)

    def test_batch_sizes(self) -> None:
        batches = create_batches(list(range(2500)), 1000)

        assert [len(b) for b in batches] == [1000, 1000, 500]

    def test_default_batch_size(self) -> None:
        assert DEFAULT_BATCH_SIZE == 1000
        assert len(create_batches(list(range(500)))) == 1

    def test_keeps_duplicate_values(self) -> None:
        assert create_batches(["a", "a", "b"], 2) == [["a", "a"], ["b"]]

    @pytest.mark.parametrize("batch_size", [0, -1])
    def test_rejects_non_positive_batch_size(self, batch_size) -> None:
        with pytest.raises(ValueError):
            create_batches([1, 2, 3], batch_size)
