import numpy as np
import pytest

from sglcv.additional_functions.rules import cv_residuals, getmin, ic_pen
from sglcv.errors import ConfigurationError


def test_getmin_min_and_one_standard_error() -> None:
    lam = np.array([5.0, 4.0, 3.0, 2.0, 1.0])
    cvm = np.array([3.0, 2.0, 1.5, 1.0, 1.2])
    cvsd = np.array([0.1, 0.1, 0.1, 0.6, 0.1])

    out = getmin(lam, cvm, cvsd)
    assert out["lambda_min"] == 2.0
    # cvm within 1.0 + 0.6: lambdas 3, 2 and 1
    assert out["lambda_1se"] == 3.0


def test_getmin_ties_keep_largest_lambda() -> None:
    lam = np.array([3.0, 2.0, 1.0])
    cvm = np.array([2.0, 1.0, 1.0])
    out = getmin(lam, cvm, np.zeros(3))
    assert out["lambda_min"] == 2.0
    assert out["lambda_1se"] == 2.0


def test_getmin_ignores_missing_errors() -> None:
    lam = np.array([3.0, 2.0, 1.0])
    cvm = np.array([2.0, 1.0, np.nan])
    cvsd = np.array([0.5, np.nan, np.nan])
    out = getmin(lam, cvm, cvsd)
    assert out == {"lambda_min": 2.0, "lambda_1se": 2.0}


def test_cv_residuals_losses() -> None:
    y = np.array([1.0, 2.0])
    predmat = np.array([[2.0, np.nan], [1.0, 4.0]])

    signed = cv_residuals(y, predmat, "mean")
    assert signed[0, 0] == -1.0 and signed[1, 1] == -2.0
    assert np.isnan(signed[0, 1])
    assert np.array_equal(cv_residuals(y, predmat, "mse")[1], [1.0, 4.0])
    assert np.array_equal(cv_residuals(y, predmat, "mae")[1], [1.0, 2.0])


def test_cv_residuals_unknown_loss() -> None:
    with pytest.raises(ConfigurationError, match="Unsupported loss"):
        cv_residuals(np.zeros(2), np.zeros((2, 1)), "huber")


def test_ic_pen_formulas() -> None:
    df = np.array([0.0, 2.0, 5.0])
    n = 50
    assert np.allclose(ic_pen("bic", df, n), np.log(50) / 50 * df)
    assert np.allclose(ic_pen("aic", df, n), 2 / 50 * df)
    expected = 2 / 50 * df + 2 * df * (df + 1) / (50 * (50 - df - 1))
    assert np.allclose(ic_pen("aicc", df, n), expected)


def test_ic_pen_aicc_infinite_for_saturated_models() -> None:
    pen = ic_pen("aicc", np.array([1.0, 9.0, 10.0]), 10)
    assert np.isfinite(pen[0])
    assert np.all(np.isinf(pen[1:]))


def test_ic_pen_unknown_criterion() -> None:
    with pytest.raises(ConfigurationError, match="Unsupported criterion"):
        ic_pen("hqic", [1.0], 10)
