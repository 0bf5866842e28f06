"""
ic.py
=====

Information criteria (BIC, AIC, AICc) for the panel sg-LASSO path.

A single full-sample fit is scored at every lambda by

    mse / sigsqhat + ic_pen(criterion, df, N)

with ``sigsqhat`` the sample variance of the response. Each criterion picks
the lambda with the lowest score; when several lambdas share the minimum the
smallest of them (the densest model) is kept.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Optional

import numpy as np
import pandas as pd

from sglcv.additional_functions.helpers import check_gamma, check_gindex, check_xy, time_it
from sglcv.additional_functions.rules import IC_CRITERIA, ic_pen
from sglcv.errors import ConfigurationError
from sglcv.methods import FixedEffects, panel_method
from sglcv.path import Coefficients, SglPath, check_lambda, coef_at, predict_sglpath, sglfit, split_options


@dataclass(frozen=True)
class ICResult:
    """Information-criterion selection on one full-sample sg-LASSO path.

    ``scores`` has one row per lambda and the columns ``bic``, ``aic`` and
    ``aicc``; ``idx``/``lamin`` give the selected grid position and lambda per
    criterion.
    """

    lambda_: np.ndarray
    scores: pd.DataFrame
    idx: Dict[str, int]
    lamin: Dict[str, float]
    fit: SglPath
    bic_fit: Coefficients
    aic_fit: Coefficients
    aicc_fit: Coefficients


def ic_scores(
    lambda_: np.ndarray,
    y: np.ndarray,
    yhat: np.ndarray,
    df: np.ndarray,
    penalty: Callable = ic_pen,
) -> pd.DataFrame:
    """Score every lambda of the path under BIC, AIC and AICc."""
    y = np.asarray(y, dtype=float)
    n = y.shape[0]
    sigsqhat = np.sum((y - y.mean()) ** 2) / n
    if sigsqhat == 0.0:
        raise ConfigurationError("the response is constant: information criteria are undefined")

    mse = np.sum((y[:, None] - yhat) ** 2, axis=0) / n
    return pd.DataFrame(
        {crit: mse / sigsqhat + penalty(crit, df, n) for crit in IC_CRITERIA},
        index=pd.Index(lambda_, name="lambda"),
    )


def select_ic(lambda_: np.ndarray, score: np.ndarray) -> int:
    """Grid position of the minimal score; ties go to the smallest lambda."""
    lambda_ = np.asarray(lambda_, dtype=float)
    score = np.asarray(score, dtype=float)
    ties = np.flatnonzero(score == np.nanmin(score))
    return int(ties[np.argmin(lambda_[ties])])


@time_it
def ic_panel_sglfit(
    x,
    y,
    lambda_=None,
    gamma: float = 1.0,
    gindex=None,
    method="pooled",
    nf: Optional[int] = None,
    penalty: Callable = ic_pen,
    **solver_options,
) -> ICResult:
    """Select lambda for the panel sg-LASSO by BIC, AIC and AICc.

    Parameters
    ----------
    x, y:
        Panel data stacked by unit in ``nf`` blocks.
    lambda_:
        Optional user grid (sorted decreasing before fitting).
    gamma:
        sg-LASSO mixing weight.
    gindex:
        Group label of each column of ``x`` (required).
    method:
        ``"pooled"`` (``nf`` advisory) or ``"fe"`` (``nf`` required).
    penalty:
        ``penalty(criterion, df, n)`` returning the penalty term per lambda.
    **solver_options:
        Passed to ``sglfit`` (``nlambda``, ``lambda_factor``, ``dfmax``, ...).

    Returns
    -------
    ICResult
        Pooled selections carry ``b0`` and ``beta``; fixed effects selections
        carry the unit intercepts ``a0`` and ``beta``.
    """
    method = panel_method(method, nf)
    x, y = check_xy(x, y)
    n, p = x.shape
    gindex = check_gindex(gindex, p)
    gamma = check_gamma(gamma)
    path_cfg, solver_cfg = split_options(**solver_options)
    if lambda_ is not None:
        lambda_ = check_lambda(lambda_)
    if isinstance(method, FixedEffects) and n % method.nf:
        raise ConfigurationError(f"{n} rows cannot be split into nf={method.nf} equal unit blocks")
    if np.sum((y - y.mean()) ** 2) == 0.0:
        raise ConfigurationError("the response is constant: information criteria are undefined")

    fit = sglfit(x, y, gindex, lambda_=lambda_, gamma=gamma, method=method, path_cfg=path_cfg, solver_cfg=solver_cfg)
    lambda_ = fit.lambda_

    yhat = predict_sglpath(fit, x, method=method)
    scores = ic_scores(lambda_, y, yhat, fit.df, penalty=penalty)

    idx = {crit: select_ic(lambda_, scores[crit].to_numpy()) for crit in IC_CRITERIA}
    for crit in IC_CRITERIA:
        print(f"{crit.upper()} selects lambda = {lambda_[idx[crit]]:.6g} ({int(fit.df[idx[crit]])} nonzero coefficients)")

    return ICResult(
        lambda_=lambda_,
        scores=scores,
        idx=idx,
        lamin={crit: float(lambda_[i]) for crit, i in idx.items()},
        fit=fit,
        bic_fit=coef_at(fit, idx["bic"]),
        aic_fit=coef_at(fit, idx["aic"]),
        aicc_fit=coef_at(fit, idx["aicc"]),
    )
