"""Small helpers shared by the path solver and the model selection routines."""

from __future__ import annotations

import threading
import time
from typing import Dict, List, Sequence, Tuple

import numpy as np

from sglcv.errors import ConfigurationError


# indentation depth of nested time_it calls, one counter per thread
_STATE = threading.local()


def time_it(func):
    """Decorator printing execution time with indentation for nested calls."""
    def wrapper(*args, **kwargs):
        level = getattr(_STATE, "level", 0)
        _STATE.level = level + 1
        tabs = "\t" * level
        t0 = time.time()
        print(f"{tabs}Executing <{func.__name__}>")
        try:
            out = func(*args, **kwargs)
        finally:
            _STATE.level = level
        dt = time.time() - t0
        mins = int(dt // 60)
        secs = dt % 60
        print(f"{tabs}Function <{func.__name__}> execution time : {mins:.0f} minutes and {secs:.0f} seconds")
        return out
    wrapper.__name__ = func.__name__
    wrapper.__doc__ = func.__doc__
    return wrapper


def check_xy(x, y) -> Tuple[np.ndarray, np.ndarray]:
    """Return ``x`` as an N x p float matrix and ``y`` as a flat length-N vector."""
    x = np.asarray(x, dtype=float)
    if x.ndim == 1:
        x = x[:, None]
    if x.ndim != 2:
        raise ConfigurationError(f"x must be a 2-d matrix, got shape {x.shape}")

    # column vectors are dropped to 1-d, like R's drop()
    y = np.asarray(y, dtype=float).reshape(-1)
    if y.shape[0] != x.shape[0]:
        raise ConfigurationError(f"x has {x.shape[0]} rows but y has {y.shape[0]} entries")
    if not (np.all(np.isfinite(x)) and np.all(np.isfinite(y))):
        raise ConfigurationError("x and y must not contain missing or infinite values")
    return x, y


def check_gindex(gindex, p: int) -> np.ndarray:
    """Validate the group membership vector: ``p`` positive integer labels."""
    if gindex is None:
        raise ConfigurationError("gindex must be supplied: one group label per column of x")
    g = np.asarray(gindex).reshape(-1)
    if g.shape[0] != p:
        raise ConfigurationError(f"gindex has {g.shape[0]} entries but x has {p} columns")
    try:
        g_int = g.astype(int)
    except (TypeError, ValueError):
        raise ConfigurationError("gindex must contain integer group labels") from None
    if not np.array_equal(g_int, g.astype(float)) or np.any(g_int < 1):
        raise ConfigurationError("gindex must contain positive integer group labels")
    return g_int


def check_gamma(gamma) -> float:
    gamma = float(gamma)
    if not 0.0 <= gamma <= 1.0:
        raise ConfigurationError(f"gamma must lie in [0, 1], got {gamma}")
    return gamma


def group_indices(gindex: Sequence[int]) -> Dict[int, List[int]]:
    """Map each group label -> column indices of its members (groups may be non-contiguous)."""
    groups: Dict[int, List[int]] = {}
    for j, g in enumerate(np.asarray(gindex, dtype=int)):
        groups.setdefault(int(g), []).append(j)
    return dict(sorted(groups.items()))


def unit_dummies(n: int, nf: int) -> np.ndarray:
    """n x nf indicator matrix for rows stacked in nf equal blocks (one per unit)."""
    if n % nf:
        raise ConfigurationError(f"{n} rows cannot be split into nf={nf} equal unit blocks")
    return np.kron(np.eye(nf), np.ones((n // nf, 1)))
