"""
cv.py
=====

k-fold cross-validation of the sg-LASSO path.

``cv_sglfit`` (single outcome) and ``cv_panel_sglfit`` (pooled or fixed
effects panel) run ``sglfit`` ``nfolds + 1`` times: once on the full sample
to obtain the lambda grid, then once per fold with that fold left out.
Out-of-fold predictions are collected into an N x nlambda matrix, reduced to
a CV error curve (``cvm``/``cvsd``) and turned into ``lambda_min`` and
``lambda_1se``, whose coefficients are taken from the full-sample fit.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

import numpy as np
import pandas as pd

from sglcv.additional_functions.folds import check_foldid, fold_partition, make_foldid
from sglcv.additional_functions.helpers import check_gamma, check_gindex, check_xy, time_it
from sglcv.additional_functions.rules import check_loss, cv_residuals, getmin
from sglcv.errors import ConfigurationError
from sglcv.methods import FixedEffects, Method, Single, panel_method
from sglcv.path import (
    Coefficients,
    PathConfig,
    SglPath,
    SolverConfig,
    check_lambda,
    coef_at,
    nonzero_count,
    predict_sglpath,
    sglfit,
    split_options,
)


@dataclass(frozen=True)
class LambdaChoice:
    lambda_min: float
    lambda_1se: float


@dataclass(frozen=True)
class CVResult:
    """Cross-validated sg-LASSO fit.

    ``cvm``/``cvsd``/``cvupper``/``cvlower``/``nzero`` are aligned with
    ``lambda_``. ``fit`` is the full-sample path and ``lam_min``/``lam_1se``
    its coefficients at the selected lambdas.
    """

    lambda_: np.ndarray
    cvm: np.ndarray
    cvsd: np.ndarray
    cvupper: np.ndarray
    cvlower: np.ndarray
    nzero: np.ndarray
    name: str
    lamin: LambdaChoice
    fit: SglPath
    lam_min: Coefficients
    lam_1se: Coefficients
    foldid: np.ndarray

    def to_frame(self) -> pd.DataFrame:
        """CV error curve as a DataFrame indexed by lambda."""
        return pd.DataFrame(
            {
                "cvm": self.cvm,
                "cvsd": self.cvsd,
                "cvupper": self.cvupper,
                "cvlower": self.cvlower,
                "nzero": self.nzero,
            },
            index=pd.Index(self.lambda_, name="lambda"),
        )


# -----------------------------------------------------------------------------
# Fold fits and aggregation
# -----------------------------------------------------------------------------

def fit_folds(
    x: np.ndarray,
    y: np.ndarray,
    foldid: np.ndarray,
    lambda_: np.ndarray,
    gamma: float,
    gindex: np.ndarray,
    method: Method,
    path_cfg: PathConfig,
    solver_cfg: SolverConfig,
    n_jobs: int = 1,
) -> Dict[int, SglPath]:
    """Fit the path on every training split, keyed by the left-out fold label.

    With ``n_jobs > 1`` the folds are solved in a thread pool; each fold builds
    its own CVXPy problem and the shared inputs are only read.
    """

    def _solve_one_fold(fold: int, train_idx: np.ndarray) -> Tuple[int, SglPath]:
        fit = sglfit(
            x[train_idx],
            y[train_idx],
            gindex,
            lambda_=lambda_,
            gamma=gamma,
            method=method,
            path_cfg=path_cfg,
            solver_cfg=solver_cfg,
        )
        print(f"Fold {fold} left out: path with {fit.nlambda} of {len(lambda_)} lambdas")
        return fold, fit

    splits = fold_partition(foldid)
    if n_jobs and n_jobs > 1:
        with ThreadPoolExecutor(max_workers=n_jobs) as ex:
            futs = [ex.submit(_solve_one_fold, fold, train_idx) for fold, train_idx, _ in splits]
            out = [f.result() for f in futs]
    else:
        out = [_solve_one_fold(fold, train_idx) for fold, train_idx, _ in splits]

    # Keep ordering stable by fold label
    out.sort(key=lambda t: t[0])
    return dict(out)


def cv_sglpath(
    outlist: Dict[int, SglPath],
    lambda_: np.ndarray,
    x: np.ndarray,
    foldid: np.ndarray,
    method: Optional[Method] = None,
) -> np.ndarray:
    """Out-of-fold prediction matrix (N x len(lambda_)).

    Rows of fold ``i`` are predicted by the fit that left fold ``i`` out, on
    the first ``outlist[i].nlambda`` columns; columns past a shorter fold
    path stay NaN.
    """
    predmat = np.full((x.shape[0], len(lambda_)), np.nan)
    for fold, fit in outlist.items():
        whichfold = np.flatnonzero(foldid == fold)
        preds = predict_sglpath(fit, x[whichfold], method=method)
        predmat[whichfold, : fit.nlambda] = preds
    return predmat


def cv_statistics(y: np.ndarray, predmat: np.ndarray, loss: str = "mean") -> Tuple[np.ndarray, np.ndarray]:
    """Column-wise CV mean error and its standard error, ignoring missing predictions."""
    cvraw = cv_residuals(y, predmat, loss)
    missing = np.isnan(cvraw)
    n_eff = cvraw.shape[0] - missing.sum(axis=0)

    with np.errstate(divide="ignore", invalid="ignore"):
        cvm = np.where(missing, 0.0, cvraw).sum(axis=0) / n_eff
        sq = np.where(missing, 0.0, (cvraw - cvm) ** 2)
        cvsd = np.sqrt(sq.sum(axis=0) / n_eff / (n_eff - 1))
    return cvm, cvsd


# -----------------------------------------------------------------------------
# Orchestration
# -----------------------------------------------------------------------------

def _grid_index(lambda_: np.ndarray, value: float) -> int:
    return int(np.flatnonzero(lambda_ == value)[0])


def _prepare_foldid(foldid, nfolds: int, n: int, T: int, method: Method) -> Tuple[np.ndarray, int]:
    if foldid is None:
        return make_foldid(nfolds, T, method.units), int(nfolds)

    foldid, nfolds = check_foldid(foldid, n)
    # unit intercepts need every training set to keep equal-length unit blocks
    if isinstance(method, FixedEffects) and np.any(foldid.reshape(method.nf, T) != foldid[:T]):
        raise ConfigurationError("for fe method foldid must be identical across the nf unit blocks")
    return foldid, nfolds


def _run_cv(
    x,
    y,
    lambda_,
    gamma: float,
    gindex,
    nfolds: int,
    foldid,
    method: Method,
    loss: str,
    n_jobs: int,
    solver_options: dict,
    name: str,
    selector: Callable = getmin,
) -> CVResult:
    # Validate everything before the first fit
    x, y = check_xy(x, y)
    n, p = x.shape
    gindex = check_gindex(gindex, p)
    gamma = check_gamma(gamma)
    loss = check_loss(loss)
    path_cfg, solver_cfg = split_options(**solver_options)
    if lambda_ is not None:
        lambda_ = check_lambda(lambda_)

    nf = method.units
    # pooled fits only need nf to lay out synthesized folds
    if n % nf and (foldid is None or isinstance(method, FixedEffects)):
        raise ConfigurationError(f"{n} rows cannot be split into nf={nf} equal unit blocks")
    foldid, nfolds = _prepare_foldid(foldid, nfolds, n, n // nf, method)

    full_fit = sglfit(x, y, gindex, lambda_=lambda_, gamma=gamma, method=method, path_cfg=path_cfg, solver_cfg=solver_cfg)
    lambda_ = full_fit.lambda_
    nz = nonzero_count(full_fit)

    print(f"Cross-validating {name} over {nfolds} folds and {len(lambda_)} lambdas")
    outlist = fit_folds(x, y, foldid, lambda_, gamma, gindex, method, path_cfg, solver_cfg, n_jobs=n_jobs)
    predmat = cv_sglpath(outlist, lambda_, x, foldid, method=method)
    cvm, cvsd = cv_statistics(y, predmat, loss)

    lamin = selector(lambda_, cvm, cvsd)
    idxmin = _grid_index(lambda_, lamin["lambda_min"])
    idx1se = _grid_index(lambda_, lamin["lambda_1se"])

    return CVResult(
        lambda_=lambda_,
        cvm=cvm,
        cvsd=cvsd,
        cvupper=cvm + cvsd,
        cvlower=cvm - cvsd,
        nzero=nz,
        name=name,
        lamin=LambdaChoice(lambda_min=lamin["lambda_min"], lambda_1se=lamin["lambda_1se"]),
        fit=full_fit,
        lam_min=coef_at(full_fit, idxmin),
        lam_1se=coef_at(full_fit, idx1se),
        foldid=foldid,
    )


@time_it
def cv_sglfit(
    x,
    y,
    lambda_=None,
    gamma: float = 1.0,
    gindex=None,
    nfolds: int = 10,
    foldid=None,
    loss: str = "mean",
    n_jobs: int = 1,
    selector: Callable = getmin,
    **solver_options,
) -> CVResult:
    """Cross-validate the sg-LASSO path for a single outcome.

    Parameters
    ----------
    x, y:
        N x p design and length-N response.
    lambda_:
        Optional user lambda grid (sorted decreasing). By default ``sglfit``
        builds its own grid from ``nlambda`` and ``lambda_factor``.
    gamma:
        sg-LASSO mixing weight: 1 is the LASSO, 0 the group LASSO.
    gindex:
        Group label of each column of ``x`` (required).
    nfolds:
        Number of contiguous folds; ignored when ``foldid`` is given.
    foldid:
        Explicit 1-based fold labels; ``nfolds`` becomes ``max(foldid)``.
    loss:
        Reduction of the out-of-fold residuals: ``"mean"`` (signed
        residuals), ``"mse"`` or ``"mae"``.
    n_jobs:
        Number of threads used for the fold fits.
    selector:
        Rule mapping (lambda, cvm, cvsd) to a dict with ``lambda_min`` and
        ``lambda_1se``; both must be values of the grid.
    **solver_options:
        ``nlambda``, ``lambda_factor``, ``dfmax``, ``pmax``, ``solver``,
        ``warm_start``, ``verbose``, ``tol``.
    """
    return _run_cv(
        x, y, lambda_, gamma, gindex, nfolds, foldid, Single(), loss, n_jobs, solver_options,
        name="Single outcome sg-LASSO", selector=selector,
    )


@time_it
def cv_panel_sglfit(
    x,
    y,
    lambda_=None,
    gamma: float = 1.0,
    gindex=None,
    nfolds: int = 10,
    foldid=None,
    method="pooled",
    nf: Optional[int] = None,
    loss: str = "mean",
    n_jobs: int = 1,
    selector: Callable = getmin,
    **solver_options,
) -> CVResult:
    """Cross-validate the sg-LASSO path for panel data.

    Rows of ``x``/``y`` are stacked by unit in ``nf`` blocks of ``T`` periods.
    Folds are built over the time dimension and shared by all units, so a
    fold removes the same periods from every unit.

    ``method="pooled"`` fits one intercept; ``nf`` is recommended (a
    ``ConfigurationWarning`` is issued without it and every row is then one
    period). ``method="fe"`` fits one intercept per unit and requires ``nf``.
    Other arguments are as in ``cv_sglfit``.
    """
    method = panel_method(method, nf)
    return _run_cv(
        x, y, lambda_, gamma, gindex, nfolds, foldid, method, loss, n_jobs, solver_options,
        name="Panel data sg-LASSO", selector=selector,
    )
