import numpy as np
import pytest


@pytest.fixture
def single_data():
    rng = np.random.default_rng(1)
    x = rng.standard_normal((100, 20))
    beta = np.concatenate(([5.0, 4.0, 3.0, 2.0, 1.0], np.zeros(15)))
    y = x @ beta + rng.standard_normal(100)
    gindex = np.repeat(np.arange(1, 5), 5)
    return x, y, gindex


@pytest.fixture
def panel_data():
    """10 units x 10 periods stacked by unit, with unit effects -4.5, -3.5, ..., 4.5."""
    rng = np.random.default_rng(7)
    nf, T = 10, 10
    x = rng.standard_normal((nf * T, 20))
    beta = np.concatenate(([5.0, 4.0, 3.0, 2.0, 1.0], np.zeros(15)))
    effects = np.arange(nf) - 4.5
    y = x @ beta + np.repeat(effects, T) + 0.5 * rng.standard_normal(nf * T)
    gindex = np.repeat(np.arange(1, 5), 5)
    return x, y, gindex, nf, effects
