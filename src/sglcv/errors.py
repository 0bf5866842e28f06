"""Exceptions and warnings raised by the sg-LASSO model selection routines."""


class ConfigurationError(ValueError):
    """Invalid call configuration, detected before any model is fitted."""


class ConfigurationWarning(UserWarning):
    """Advisory about a configuration that runs but degrades the fold layout."""


class SolverFailure(RuntimeError):
    """The penalized least-squares solver failed on one of the lambda values."""
