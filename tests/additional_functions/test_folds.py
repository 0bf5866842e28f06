import numpy as np
import pytest

from sglcv.additional_functions.folds import check_foldid, fold_partition, make_foldid
from sglcv.errors import ConfigurationError


@pytest.mark.parametrize("nfolds,T", [(3, 3), (3, 10), (5, 23), (10, 100), (7, 50)])
def test_make_foldid_partitions_observations(nfolds, T) -> None:
    foldid = make_foldid(nfolds, T)

    assert foldid.shape == (T,)
    assert set(np.unique(foldid)) == set(range(1, nfolds + 1))
    # contiguous time blocks
    assert np.all(np.diff(foldid) >= 0)


def test_make_foldid_block_sizes() -> None:
    foldid = make_foldid(3, 10)
    assert list(foldid) == [1, 1, 1, 1, 2, 2, 2, 3, 3, 3]


def test_make_foldid_panel_repeats_time_blocks_across_units() -> None:
    T, nf = 12, 4
    foldid = make_foldid(5, T, nf)

    assert foldid.shape == (T * nf,)
    blocks = foldid.reshape(nf, T)
    for u in range(nf):
        assert np.array_equal(blocks[u], blocks[0])
    assert np.array_equal(blocks[0], make_foldid(5, T))


def test_make_foldid_rejects_fewer_than_three_folds() -> None:
    with pytest.raises(ConfigurationError, match="at least 3"):
        make_foldid(2, 100)


def test_make_foldid_rejects_more_folds_than_periods() -> None:
    with pytest.raises(ConfigurationError):
        make_foldid(10, 5)


def test_check_foldid_redefines_nfolds() -> None:
    foldid, nfolds = check_foldid([1, 2, 3, 4, 4, 1], 6)
    assert nfolds == 4
    assert foldid.dtype.kind == "i"


def test_check_foldid_rejects_two_folds() -> None:
    with pytest.raises(ConfigurationError, match="at least 3"):
        check_foldid([1, 2, 1, 2], 4)


def test_check_foldid_rejects_bad_labels() -> None:
    with pytest.raises(ConfigurationError):
        check_foldid([1, 2, 3], 4)
    with pytest.raises(ConfigurationError):
        check_foldid([0, 1, 2, 3], 4)
    with pytest.raises(ConfigurationError):
        check_foldid([1.5, 2, 3, 3], 4)


def test_fold_partition_covers_each_row_once() -> None:
    foldid = make_foldid(4, 9, nf=3)
    splits = fold_partition(foldid)

    assert [fold for fold, _, _ in splits] == [1, 2, 3, 4]
    tested = np.concatenate([test_idx for _, _, test_idx in splits])
    assert np.array_equal(np.sort(tested), np.arange(foldid.shape[0]))
    for fold, train_idx, test_idx in splits:
        assert np.all(foldid[test_idx] == fold)
        assert np.all(foldid[train_idx] != fold)
        assert len(train_idx) + len(test_idx) == foldid.shape[0]


def test_fold_partition_skips_missing_labels() -> None:
    splits = fold_partition(np.array([1, 2, 4, 4, 1, 2]))
    assert [fold for fold, _, _ in splits] == [1, 2, 4]
