"""
path.py
=======

sg-LASSO regularization path for single-outcome and panel regressions.

The objective solved at every lambda of a decreasing grid is

    RSS(alpha, beta) / N + 2 * lambda * Omega(beta)
    Omega(beta) = gamma * |beta|_1 + (1 - gamma) * sum_g sqrt(|g|) * ||beta_g||_2

with ``alpha`` a scalar intercept (single / pooled) or one intercept per unit
(fixed effects). The problem is built once with lambda as a CVXPy
``Parameter`` and re-solved along the grid with ``warm_start=True``.

Besides the solver this module holds the helpers working on a fitted path:
prediction, nonzero counts and coefficient extraction at one lambda.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import cvxpy as cp
import numpy as np
from scipy.optimize import brentq

from sglcv.additional_functions.helpers import check_gamma, check_gindex, check_xy, group_indices, time_it, unit_dummies
from sglcv.errors import ConfigurationError, SolverFailure
from sglcv.methods import FixedEffects, Method, Single


# -----------------------------------------------------------------------------
# Configuration
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class SolverConfig:
    solver: str = "CLARABEL"
    warm_start: bool = True
    verbose: bool = False
    # coefficients below tol in absolute value are set to exactly zero
    tol: float = 1e-6

    def __post_init__(self):
        if self.solver not in cp.installed_solvers():
            raise ConfigurationError(f"Solver {self.solver!r} is not installed (available: {cp.installed_solvers()})")


@dataclass(frozen=True)
class PathConfig:
    """Lambda grid and early stopping options.

    ``lambda_factor`` defaults to 1e-2 when there are fewer observations than
    covariates and 1e-4 otherwise. ``dfmax`` caps the number of active groups
    and ``pmax`` the number of nonzero coefficients; the path stops at the
    first lambda exceeding either cap.
    """

    nlambda: int = 100
    lambda_factor: Optional[float] = None
    dfmax: Optional[int] = None
    pmax: Optional[int] = None

    def __post_init__(self):
        if int(self.nlambda) < 1:
            raise ConfigurationError(f"nlambda must be at least 1, got {self.nlambda}")
        if self.lambda_factor is not None and not 0.0 < self.lambda_factor < 1.0:
            raise ConfigurationError(f"lambda_factor must lie in (0, 1), got {self.lambda_factor}")
        for name in ("dfmax", "pmax"):
            value = getattr(self, name)
            if value is not None and int(value) < 0:
                raise ConfigurationError(f"{name} must be non-negative, got {value}")


def split_options(
    nlambda: int = 100,
    lambda_factor: Optional[float] = None,
    dfmax: Optional[int] = None,
    pmax: Optional[int] = None,
    solver: str = "CLARABEL",
    warm_start: bool = True,
    verbose: bool = False,
    tol: float = 1e-6,
) -> Tuple[PathConfig, SolverConfig]:
    """Gather keyword solver options into (PathConfig, SolverConfig)."""
    return (
        PathConfig(nlambda=nlambda, lambda_factor=lambda_factor, dfmax=dfmax, pmax=pmax),
        SolverConfig(solver=solver, warm_start=warm_start, verbose=verbose, tol=tol),
    )


# -----------------------------------------------------------------------------
# Fitted path
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class SglPath:
    """sg-LASSO solutions along a lambda grid.

    ``b0`` holds the scalar intercepts (single / pooled), ``a0`` the nf x nlam
    matrix of unit intercepts (fixed effects); the other one is None. The
    path may be shorter than the requested grid when ``dfmax``/``pmax`` stop it.
    """

    lambda_: np.ndarray
    beta: np.ndarray
    df: np.ndarray
    method: Method
    b0: Optional[np.ndarray] = None
    a0: Optional[np.ndarray] = None

    @property
    def nlambda(self) -> int:
        return int(self.lambda_.shape[0])


@dataclass(frozen=True)
class Coefficients:
    """Coefficients at one lambda: ``b0`` scalar intercept or ``a0`` unit intercepts, and ``beta``."""

    beta: np.ndarray
    b0: Optional[float] = None
    a0: Optional[np.ndarray] = None


# -----------------------------------------------------------------------------
# Problem construction
# -----------------------------------------------------------------------------

def _intercept_design(n: int, method: Method) -> Optional[np.ndarray]:
    if isinstance(method, FixedEffects):
        return unit_dummies(n, method.nf)
    return None


def build_sgl_problem(
    x: np.ndarray,
    y: np.ndarray,
    groups: Dict[int, List[int]],
    gamma: float,
    method: Method,
) -> Tuple[cp.Problem, cp.Variable, cp.Variable, cp.Parameter]:
    """Build the sg-LASSO least-squares problem with lambda as a Parameter (for reuse)."""
    n, p = x.shape
    beta = cp.Variable(p)
    lam = cp.Parameter(nonneg=True, name="lambda")

    dummies = _intercept_design(n, method)
    if dummies is None:
        intercept = cp.Variable()
        fitted = x @ beta + intercept
    else:
        intercept = cp.Variable(dummies.shape[1])
        fitted = x @ beta + dummies @ intercept

    group_pen = 0
    for idxs in groups.values():
        group_pen += np.sqrt(len(idxs)) * cp.norm(beta[np.asarray(idxs)], 2)
    penalty = gamma * cp.norm1(beta) + (1.0 - gamma) * group_pen

    prob = cp.Problem(cp.Minimize(cp.sum_squares(y - fitted) / n + 2 * lam * penalty))
    return prob, beta, intercept, lam


def solve_problem(prob: cp.Problem, cfg: SolverConfig) -> None:
    """Solve a CVXPy problem with the configured solver; raise SolverFailure if it does not converge."""
    try:
        prob.solve(solver=getattr(cp, cfg.solver), warm_start=cfg.warm_start, verbose=cfg.verbose)
    except cp.error.SolverError as exc:
        raise SolverFailure(f"{cfg.solver} failed: {exc}") from exc
    if prob.status not in (cp.OPTIMAL, cp.OPTIMAL_INACCURATE):
        raise SolverFailure(f"{cfg.solver} returned status {prob.status!r}")


# -----------------------------------------------------------------------------
# Lambda grid
# -----------------------------------------------------------------------------

def _null_residuals(y: np.ndarray, method: Method) -> np.ndarray:
    """Residuals of the intercept-only model (unit means for fixed effects)."""
    if isinstance(method, FixedEffects):
        blocks = y.reshape(method.nf, -1)
        return (blocks - blocks.mean(axis=1, keepdims=True)).reshape(-1)
    return y - y.mean()


def _group_lambda_max(c: np.ndarray, gamma: float, weight: float) -> float:
    """Smallest lambda for which beta_g = 0 satisfies the group KKT condition.

    Root in lambda of ||S(c, lambda * gamma)||_2 = lambda * (1 - gamma) * weight,
    with S the soft-thresholding operator.
    """
    cmax = float(np.max(np.abs(c)))
    if cmax == 0.0:
        return 0.0
    if gamma == 0.0:
        return float(np.linalg.norm(c)) / weight
    if gamma == 1.0:
        return cmax

    def kkt_gap(lam: float) -> float:
        soft = np.maximum(np.abs(c) - lam * gamma, 0.0)
        return float(np.linalg.norm(soft)) - lam * (1.0 - gamma) * weight

    return float(brentq(kkt_gap, 0.0, cmax / gamma))


def lambda_max(x, y, gindex: Sequence[int], gamma: float = 1.0, method: Optional[Method] = None) -> float:
    """Smallest lambda at which every coefficient of the sg-LASSO path is zero."""
    method = Single() if method is None else method
    x, y = check_xy(x, y)
    gindex = check_gindex(gindex, x.shape[1])
    gamma = check_gamma(gamma)

    c = x.T @ _null_residuals(y, method) / x.shape[0]
    return max(_group_lambda_max(c[idxs], gamma, np.sqrt(len(idxs))) for idxs in group_indices(gindex).values())


def lambda_grid(lam_max: float, nlambda: int, lambda_factor: float) -> np.ndarray:
    """``nlambda`` log-spaced values from ``lam_max`` down to ``lam_max * lambda_factor``."""
    if nlambda == 1:
        return np.array([lam_max])
    return lam_max * lambda_factor ** (np.arange(nlambda) / (nlambda - 1))


def check_lambda(lambda_) -> np.ndarray:
    """Sort a user-supplied grid in decreasing order; values must be positive and distinct."""
    lam = np.asarray(lambda_, dtype=float).reshape(-1)
    if lam.size == 0 or np.any(~np.isfinite(lam)) or np.any(lam <= 0):
        raise ConfigurationError("lambda must be a non-empty sequence of positive values")
    lam = np.sort(lam)[::-1]
    if np.any(np.diff(lam) == 0):
        raise ConfigurationError("lambda values must be distinct")
    return lam


# -----------------------------------------------------------------------------
# Path solver
# -----------------------------------------------------------------------------

@time_it
def sglfit(
    x,
    y,
    gindex: Sequence[int],
    lambda_=None,
    gamma: float = 1.0,
    method: Optional[Method] = None,
    path_cfg: Optional[PathConfig] = None,
    solver_cfg: Optional[SolverConfig] = None,
) -> SglPath:
    """Fit the sg-LASSO path over a decreasing lambda grid.

    Parameters
    ----------
    x, y:
        N x p design and length-N response. For panel methods the rows are
        stacked by unit in equal blocks.
    gindex:
        Group label of each column of ``x``.
    lambda_:
        Optional user grid (sorted decreasing before fitting). When None the
        grid is generated from ``lambda_max`` with ``path_cfg``.
    gamma:
        Mixing weight: 1 gives the LASSO, 0 the group LASSO.
    method:
        ``Single()``, ``Pooled(nf)`` or ``FixedEffects(nf)``.

    Returns
    -------
    SglPath
        Solutions for the lambdas reached before ``dfmax``/``pmax`` stopped the path.
    """
    method = Single() if method is None else method
    path_cfg = PathConfig() if path_cfg is None else path_cfg
    solver_cfg = SolverConfig() if solver_cfg is None else solver_cfg

    x, y = check_xy(x, y)
    n, p = x.shape
    gindex = check_gindex(gindex, p)
    gamma = check_gamma(gamma)
    groups = group_indices(gindex)
    if isinstance(method, FixedEffects) and n % method.nf:
        raise ConfigurationError(f"{n} rows cannot be split into nf={method.nf} equal unit blocks")

    if lambda_ is None:
        factor = path_cfg.lambda_factor
        if factor is None:
            factor = 1e-2 if n < p else 1e-4
        lam_max = lambda_max(x, y, gindex, gamma, method)
        if lam_max <= 0.0:
            raise ConfigurationError("lambda_max is zero: x is uncorrelated with the centred response")
        grid = lambda_grid(lam_max, int(path_cfg.nlambda), factor)
    else:
        grid = check_lambda(lambda_)

    prob, beta, intercept, lam = build_sgl_problem(x, y, groups, gamma, method)

    betas, intercepts, dfs = [], [], []
    for lam_value in grid:
        lam.value = float(lam_value)
        solve_problem(prob, solver_cfg)

        b = np.asarray(beta.value, dtype=float).copy()
        b[np.abs(b) < solver_cfg.tol] = 0.0
        nonzero = int(np.count_nonzero(b))
        active_groups = sum(1 for idxs in groups.values() if np.any(b[idxs] != 0.0))
        if path_cfg.dfmax is not None and active_groups > path_cfg.dfmax:
            break
        if path_cfg.pmax is not None and nonzero > path_cfg.pmax:
            break

        betas.append(b)
        intercepts.append(np.atleast_1d(np.asarray(intercept.value, dtype=float)).copy())
        dfs.append(nonzero)

    if not betas:
        raise SolverFailure("no lambda value on the grid satisfied the dfmax/pmax limits")

    nlam = len(betas)
    coefs = np.column_stack(intercepts)
    return SglPath(
        lambda_=grid[:nlam].copy(),
        beta=np.column_stack(betas),
        df=np.asarray(dfs, dtype=float),
        method=method,
        b0=None if isinstance(method, FixedEffects) else coefs[0],
        a0=coefs if isinstance(method, FixedEffects) else None,
    )


# -----------------------------------------------------------------------------
# Working with a fitted path
# -----------------------------------------------------------------------------

def predict_sglpath(fit: SglPath, newx, method: Optional[Method] = None) -> np.ndarray:
    """Predictions for ``newx`` at every lambda of the path (rows(newx) x nlam).

    For fixed effects ``newx`` must be stacked by unit like the training
    data; each unit intercept is repeated over its ``rows(newx) / nf`` rows.
    """
    method = fit.method if method is None else method
    newx = np.asarray(newx, dtype=float)
    if newx.ndim == 1:
        newx = newx[:, None]
    nfit = newx @ fit.beta

    if isinstance(method, FixedEffects):
        if fit.a0 is None:
            raise ConfigurationError("fixed effects prediction needs a path fitted with method='fe'")
        nf = fit.a0.shape[0]
        if newx.shape[0] % nf:
            raise ConfigurationError(f"{newx.shape[0]} rows cannot be split into nf={nf} unit blocks")
        return nfit + np.repeat(fit.a0, newx.shape[0] // nf, axis=0)

    if fit.b0 is None:
        raise ConfigurationError(f"a path fitted with fixed effects cannot predict with method={method.name!r}")
    return nfit + fit.b0


def nonzero_count(fit: SglPath) -> np.ndarray:
    """Number of nonzero slope coefficients at every lambda of the path."""
    return np.count_nonzero(fit.beta, axis=0)


def coef_at(fit: SglPath, idx: int) -> Coefficients:
    """Coefficients of the path at grid position ``idx``."""
    beta = fit.beta[:, idx].copy()
    if fit.a0 is not None:
        return Coefficients(beta=beta, a0=fit.a0[:, idx].copy())
    return Coefficients(beta=beta, b0=float(fit.b0[idx]))
