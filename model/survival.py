"""
Cumulative distribution functions for severity families.

The registry maps a family name to ``cdf(x, p_1, ..., p_k)`` written in
Bambi's parameterisation of that family, with the parameters in the order
of ``FamilySpec.params``. The deductible adjustment evaluates survival as
``1 - cdf(deductible, ...)``.

Lookups for unregistered names return ``None``; callers decide whether a
user-supplied function can stand in.
"""
from typing import Callable, Dict, Optional, Sequence

import numpy as np
from scipy import special, stats

from model.constants import MAX_SEVERITY_PARAMS, MIN_SEVERITY_PARAMS
from model.exceptions import ConfigurationError, UnsupportedArityError
from model.families import FamilySpec
from utils.logging_utils import get_logger

logger = get_logger()

CDF = Callable[..., np.ndarray]


def _gaussian_cdf(x, mu, sigma):
    return stats.norm.cdf(x, loc=mu, scale=sigma)


def _lognormal_cdf(x, mu, sigma):
    return stats.lognorm.cdf(x, s=sigma, scale=np.exp(mu))


def _gamma_cdf(x, mu, alpha):
    return stats.gamma.cdf(x, a=alpha, scale=mu / alpha)


def _weibull_cdf(x, mu, alpha):
    # Bambi's weibull is parameterised by its mean
    beta = mu / special.gamma(1.0 + 1.0 / alpha)
    return stats.weibull_min.cdf(x, c=alpha, scale=beta)


def _exponential_cdf(x, mu):
    return stats.expon.cdf(x, scale=mu)


def _wald_cdf(x, mu, lam):
    return stats.invgauss.cdf(x, mu / lam, scale=lam)


def _student_t_cdf(x, mu, sigma, nu):
    return stats.t.cdf(x, df=nu, loc=mu, scale=sigma)


def _asymmetric_laplace_cdf(x, mu, b, kappa):
    # PyMC's b is a rate
    return stats.laplace_asymmetric.cdf(x, kappa, loc=mu, scale=1.0 / b)


_CDF_REGISTRY: Dict[str, CDF] = {
    "gaussian": _gaussian_cdf,
    "lognormal": _lognormal_cdf,
    "gamma": _gamma_cdf,
    "weibull": _weibull_cdf,
    "exponential": _exponential_cdf,
    "wald": _wald_cdf,
    "t": _student_t_cdf,
    "asymmetriclaplace": _asymmetric_laplace_cdf,
}


def lookup_cdf(name: str) -> Optional[CDF]:
    """Registered CDF for a family name, or None when there is none."""
    return _CDF_REGISTRY.get(name)


def register_cdf(name: str, cdf: CDF) -> None:
    """
    Register the CDF of a custom severity family.

    Args:
        name: Family name, matching ``FamilySpec.name``
        cdf: ``cdf(x, p_1, ..., p_k)`` vectorised over NumPy arrays
    """
    if name in _CDF_REGISTRY:
        logger.warning(f"Replacing registered CDF for family '{name}'")
    _CDF_REGISTRY[name] = cdf


def registered_families() -> Sequence[str]:
    return sorted(_CDF_REGISTRY)


def resolve_cdf(family: FamilySpec, custom_cdf: Optional[CDF] = None) -> CDF:
    """
    Pick the CDF used for a severity family.

    A custom family prefers the caller's function and falls back to the
    registry; a built-in family prefers the registry and falls back to the
    caller's function.

    Args:
        family: Severity family
        custom_cdf: Caller-supplied CDF

    Returns:
        The CDF to evaluate

    Raises:
        ConfigurationError: If neither source provides one
    """
    registered = lookup_cdf(family.name)

    if family.custom:
        cdf = custom_cdf if custom_cdf is not None else registered
    else:
        cdf = registered if registered is not None else custom_cdf

    if cdf is None:
        raise ConfigurationError(
            "Must specify custom_survival_fn for custom families",
            details=f"no CDF registered for severity family '{family.name}'; "
                    f"registered: {registered_families()}"
        )
    return cdf


def check_arity(n_params: int) -> None:
    """
    Raises:
        UnsupportedArityError: Unless 1 <= n_params <= 5
    """
    if not MIN_SEVERITY_PARAMS <= n_params <= MAX_SEVERITY_PARAMS:
        raise UnsupportedArityError(
            f"Only {MIN_SEVERITY_PARAMS}-{MAX_SEVERITY_PARAMS} severity parameters supported",
            details=f"family has {n_params}"
        )


def deductible_survival(cdf: CDF, deductible, params: Sequence) -> np.ndarray:
    """
    Probability that a loss exceeds the deductible.

    Args:
        cdf: Family CDF
        deductible: Deductible values
        params: Parameter values in family order; passed positionally, one
            argument per parameter

    Returns:
        ``1 - cdf(deductible, *params)``

    Raises:
        UnsupportedArityError: If ``params`` has fewer than 1 or more than 5 entries
    """
    check_arity(len(params))
    return 1.0 - np.asarray(cdf(deductible, *params), dtype=float)
