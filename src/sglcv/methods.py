"""Estimation methods for the sg-LASSO path.

Three variants are supported:

- ``Single``: one outcome series, scalar intercept.
- ``Pooled``: panel data stacked by unit, one shared intercept. ``nf`` is
  optional and only used to build folds over the time dimension.
- ``FixedEffects``: panel data stacked by unit, one intercept per unit.
  ``nf`` is mandatory.
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass
from typing import ClassVar, Optional, Union

from sglcv.errors import ConfigurationError, ConfigurationWarning


def _check_nf(nf: object) -> int:
    try:
        valid = not isinstance(nf, bool) and float(nf).is_integer() and int(nf) >= 1
    except (TypeError, ValueError):
        valid = False
    if not valid:
        raise ConfigurationError(f"nf must be a positive integer, got {nf!r}")
    return int(nf)


@dataclass(frozen=True)
class Single:
    name: ClassVar[str] = "single"

    @property
    def units(self) -> int:
        return 1


@dataclass(frozen=True)
class Pooled:
    nf: Optional[int] = None
    name: ClassVar[str] = "pooled"

    def __post_init__(self):
        if self.nf is not None:
            object.__setattr__(self, "nf", _check_nf(self.nf))

    @property
    def units(self) -> int:
        return 1 if self.nf is None else self.nf


@dataclass(frozen=True)
class FixedEffects:
    nf: int
    name: ClassVar[str] = "fe"

    def __post_init__(self):
        if self.nf is None:
            raise ConfigurationError("for fe method nf must be supplied.")
        object.__setattr__(self, "nf", _check_nf(self.nf))

    @property
    def units(self) -> int:
        return self.nf


Method = Union[Single, Pooled, FixedEffects]


def panel_method(method: Union[str, Pooled, FixedEffects] = "pooled", nf: Optional[int] = None) -> Union[Pooled, FixedEffects]:
    """Turn the public ``method``/``nf`` pair into a validated method variant.

    Raises ``ConfigurationError`` for ``fe`` without ``nf`` and warns with
    ``ConfigurationWarning`` for ``pooled`` without ``nf`` (folds then ignore
    the time blocks and every row is treated as one unit).
    """
    if isinstance(method, (Pooled, FixedEffects)):
        if nf is not None and method.nf is not None and _check_nf(nf) != method.nf:
            raise ConfigurationError(f"nf={nf!r} conflicts with {method!r}")
        if nf is not None and method.nf is None:
            method = Pooled(nf=nf)
    elif method == "fe":
        method = FixedEffects(nf=nf)
    elif method == "pooled":
        method = Pooled(nf=nf)
    else:
        raise ConfigurationError(f"Unsupported method: {method!r} (supported: 'pooled', 'fe')")

    if isinstance(method, Pooled) and method.nf is None:
        warnings.warn(
            "'nf' is not supplied. it is recommended to supply 'nf' for pooled panel data "
            "regression to create folds over time dimension.",
            ConfigurationWarning,
            stacklevel=3,
        )
    return method
