"""Selection rules used after the path is fitted.

- CV residual reductions (``cv_residuals``) for the cross-validated error curve.
- ``getmin``: lambda.min and the one-standard-error lambda.1se.
- ``ic_pen``: BIC / AIC / AICc penalty terms scaled by the sample size.
"""

from __future__ import annotations

from typing import Callable, Dict

import numpy as np

from sglcv.errors import ConfigurationError


# -----------------------------------------------------------------------------
# CV losses
# -----------------------------------------------------------------------------

# "mean" keeps the signed residual y - yhat, so cvm is the mean out-of-fold
# residual rather than a squared error
CV_LOSSES: Dict[str, Callable[[np.ndarray], np.ndarray]] = {
    "mean": lambda r: r,
    "mse": np.square,
    "mae": np.abs,
}


def check_loss(loss: str) -> str:
    if loss not in CV_LOSSES:
        raise ConfigurationError(f"Unsupported loss: {loss!r} (supported: {', '.join(CV_LOSSES)})")
    return loss


def cv_residuals(y: np.ndarray, predmat: np.ndarray, loss: str = "mean") -> np.ndarray:
    """Per-observation CV errors; NaN where the fold path never reached a lambda."""
    raw = np.asarray(y, dtype=float)[:, None] - predmat
    return CV_LOSSES[check_loss(loss)](raw)


# -----------------------------------------------------------------------------
# Lambda selection
# -----------------------------------------------------------------------------

def getmin(lambda_: np.ndarray, cvm: np.ndarray, cvsd: np.ndarray) -> Dict[str, float]:
    """Return ``lambda_min`` and ``lambda_1se`` from a CV error curve.

    ``lambda_min`` is the largest lambda attaining the minimal ``cvm``;
    ``lambda_1se`` is the largest lambda whose ``cvm`` does not exceed
    ``cvm + cvsd`` at ``lambda_min``. NaN entries of ``cvm`` are ignored.
    """
    lambda_ = np.asarray(lambda_, dtype=float)
    cvm = np.asarray(cvm, dtype=float)
    cvsd = np.asarray(cvsd, dtype=float)

    cvmin = np.nanmin(cvm)
    lambda_min = float(np.max(lambda_[cvm <= cvmin]))
    imin = int(np.flatnonzero(lambda_ == lambda_min)[0])

    semin = (cvm + cvsd)[imin]
    within = cvm <= semin
    # a NaN standard error at the minimum leaves lambda_min as its own 1-SE choice
    within[imin] = True
    lambda_1se = float(np.max(lambda_[within]))
    return {"lambda_min": lambda_min, "lambda_1se": lambda_1se}


# -----------------------------------------------------------------------------
# Information criteria
# -----------------------------------------------------------------------------

IC_CRITERIA = ("bic", "aic", "aicc")


def ic_pen(criterion: str, df, n: int) -> np.ndarray:
    """Penalty term of an information criterion, on the mse / sigma^2 scale.

    bic  : log(n) / n * df
    aic  : 2 / n * df
    aicc : 2 / n * df + 2 * df * (df + 1) / (n * (n - df - 1))

    AICc is infinite once df >= n - 1.
    """
    df = np.asarray(df, dtype=float)
    n = float(n)
    if criterion == "bic":
        return np.log(n) / n * df
    if criterion == "aic":
        return 2.0 / n * df
    if criterion == "aicc":
        denom = n * (n - df - 1.0)
        with np.errstate(divide="ignore", invalid="ignore"):
            correction = np.where(denom > 0, 2.0 * df * (df + 1.0) / denom, np.inf)
        return 2.0 / n * df + correction
    raise ConfigurationError(f"Unsupported criterion: {criterion!r} (supported: {', '.join(IC_CRITERIA)})")
