"""Fold assignment for cross-validation of single-outcome and panel regressions.

Folds are 1-based labels. For panel data the rows are stacked by unit in
``nf`` blocks of length ``T``; the same time-position label is used in every
unit block, so a fold always removes the same time periods from all units.
"""

from __future__ import annotations

from typing import List, Tuple

import numpy as np
from sklearn.model_selection import PredefinedSplit

from sglcv.errors import ConfigurationError


MIN_FOLDS = 3


def make_foldid(nfolds: int, T: int, nf: int = 1) -> np.ndarray:
    """Build contiguous time-block folds, repeated for each of the ``nf`` units.

    The labels ``1..nfolds`` are repeated ``ceil(T / nfolds)`` times, cut to
    length ``T`` and sorted, then tiled ``nf`` times.
    """
    nfolds, T, nf = int(nfolds), int(T), int(nf)
    if nfolds < MIN_FOLDS:
        raise ConfigurationError(f"nfolds must be at least {MIN_FOLDS}; nfolds=10 recommended")
    if T < nfolds:
        raise ConfigurationError(f"nfolds={nfolds} is larger than the {T} time periods available")

    reps = int(np.ceil(T / nfolds))
    block = np.sort(np.tile(np.arange(1, nfolds + 1), reps)[:T])
    return np.tile(block, nf)


def check_foldid(foldid, n: int) -> Tuple[np.ndarray, int]:
    """Validate a user-supplied fold assignment; return it with the implied number of folds."""
    foldid = np.asarray(foldid).reshape(-1)
    if foldid.shape[0] != n:
        raise ConfigurationError(f"foldid has {foldid.shape[0]} entries but there are {n} observations")
    if not np.all(np.equal(np.mod(foldid, 1), 0)) or np.any(foldid < 1):
        raise ConfigurationError("foldid must contain positive integer fold labels")
    foldid = foldid.astype(int)

    nfolds = int(foldid.max())
    if nfolds < MIN_FOLDS:
        raise ConfigurationError(f"nfolds must be at least {MIN_FOLDS}; nfolds=10 recommended")
    return foldid, nfolds


def fold_partition(foldid: np.ndarray) -> List[Tuple[int, np.ndarray, np.ndarray]]:
    """Return ``(fold, train_idx, test_idx)`` for every fold label present, in label order."""
    foldid = np.asarray(foldid, dtype=int)
    splitter = PredefinedSplit(test_fold=foldid - 1)
    labels = np.unique(foldid)
    return [(int(lab), train_idx, test_idx) for lab, (train_idx, test_idx) in zip(labels, splitter.split())]
