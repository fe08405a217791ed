"""
Distribution families for frequency and severity sub-models.

A ``FamilySpec`` describes a response family the way Bambi needs it (family
name, link per parameter) and carries the ordered distribution-parameter
names that the deductible adjustment feeds to a family's CDF. Built-in
Bambi families are passed to ``bmb.Model`` by name; custom families (for
example the lognormal, which Bambi does not ship) are assembled from a PyMC
likelihood with ``bmb.Family``.

Parameter names and their order follow Bambi's parameterisation, e.g.
gamma is (mu, alpha) with mu the mean.
"""
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Tuple

import numpy as np
from scipy import special, stats

from model.exceptions import ConfigurationError

# Prior given as (PyMC distribution name, keyword arguments)
PriorArgs = Tuple[str, Dict[str, float]]


#########################################################################
#                          LINK FUNCTIONS                               #
#########################################################################

def _cloglog(p: np.ndarray) -> np.ndarray:
    return np.log(-np.log1p(-p))


LINK_FUNCTIONS: Dict[str, Callable[[np.ndarray], np.ndarray]] = {
    "identity": lambda x: x,
    "log": np.log,
    "logit": special.logit,
    "probit": stats.norm.ppf,
    "cloglog": _cloglog,
    "inverse": lambda x: 1.0 / x,
    "sqrt": np.sqrt,
}


def get_link_function(name: str) -> Callable[[np.ndarray], np.ndarray]:
    """
    Look up a link function by name.

    Raises:
        ConfigurationError: If the link is unknown
    """
    try:
        return LINK_FUNCTIONS[name]
    except KeyError:
        raise ConfigurationError(
            f"Unknown link function '{name}'",
            details=f"supported links: {sorted(LINK_FUNCTIONS)}"
        )


#########################################################################
#                          FAMILY SPECIFICATION                         #
#########################################################################

@dataclass(frozen=True)
class FamilySpec:
    """
    Description of a response family.

    Attributes:
        name: Family name; built-in families use Bambi's name, custom families
            use the name the CDF registry knows them by
        params: Ordered distribution parameter names, parent parameter first
        links: Link name per parameter
        custom: True for families Bambi does not ship
        likelihood: PyMC distribution name backing a custom family
        default_priors: Priors for auxiliary parameters of a custom family,
            which Bambi cannot choose on its own
    """
    name: str
    params: Tuple[str, ...]
    links: Dict[str, str] = field(default_factory=dict)
    custom: bool = False
    likelihood: Optional[str] = None
    default_priors: Dict[str, PriorArgs] = field(default_factory=dict)

    @property
    def parent(self) -> str:
        """Name of the parameter the linear predictor models."""
        return self.params[0]

    @property
    def link(self) -> str:
        """Link name of the parent parameter."""
        return self.links.get(self.parent, "identity")

    @property
    def link_function(self) -> Callable[[np.ndarray], np.ndarray]:
        return get_link_function(self.link)

    def to_bambi(self):
        """Family argument for ``bmb.Model``."""
        if not self.custom:
            return self.name

        import bambi as bmb

        likelihood = bmb.Likelihood(self.likelihood, params=list(self.params), parent=self.parent)
        links = {param: self.links.get(param, "identity") for param in self.params}
        return bmb.Family(self.name, likelihood, links)

    def bambi_link(self) -> Optional[Dict[str, str]]:
        """Link argument for ``bmb.Model``; custom families carry their own."""
        if self.custom:
            return None
        return dict(self.links)


#########################################################################
#                          SEVERITY FAMILIES                            #
#########################################################################

def gaussian() -> FamilySpec:
    return FamilySpec("gaussian", ("mu", "sigma"), {"mu": "identity", "sigma": "log"})


def lognormal() -> FamilySpec:
    """Lognormal severity; mu and sigma are on the log scale."""
    return FamilySpec(
        "lognormal",
        ("mu", "sigma"),
        {"mu": "identity", "sigma": "log"},
        custom=True,
        likelihood="LogNormal",
        default_priors={"sigma": ("HalfNormal", {"sigma": 2.5})},
    )


def gamma() -> FamilySpec:
    return FamilySpec("gamma", ("mu", "alpha"), {"mu": "log", "alpha": "log"})


def weibull() -> FamilySpec:
    return FamilySpec("weibull", ("mu", "alpha"), {"mu": "log", "alpha": "log"})


def exponential() -> FamilySpec:
    return FamilySpec("exponential", ("mu",), {"mu": "log"})


def wald() -> FamilySpec:
    return FamilySpec("wald", ("mu", "lam"), {"mu": "log", "lam": "log"})


def student_t() -> FamilySpec:
    return FamilySpec("t", ("mu", "sigma", "nu"), {"mu": "identity", "sigma": "log", "nu": "log"})


def asymmetric_laplace() -> FamilySpec:
    return FamilySpec(
        "asymmetriclaplace", ("mu", "b", "kappa"), {"mu": "identity", "b": "log", "kappa": "log"}
    )


#########################################################################
#                          FREQUENCY FAMILIES                           #
#########################################################################

def poisson() -> FamilySpec:
    return FamilySpec("poisson", ("mu",), {"mu": "log"})


def negative_binomial() -> FamilySpec:
    return FamilySpec("negativebinomial", ("mu", "alpha"), {"mu": "log", "alpha": "log"})


def binomial() -> FamilySpec:
    return FamilySpec("binomial", ("p",), {"p": "logit"})


def custom_family(
    name: str,
    likelihood: str,
    params: Tuple[str, ...],
    links: Optional[Dict[str, str]] = None,
    default_priors: Optional[Dict[str, PriorArgs]] = None,
) -> FamilySpec:
    """
    Describe a user-defined family backed by a PyMC distribution.

    Cross-validating the frequency response of a model with a custom severity
    family needs a CDF, either registered with ``model.survival.register_cdf``
    under ``name`` or passed as ``custom_survival_fn``.

    Args:
        name: Family name
        likelihood: PyMC distribution class name, e.g. "Pareto"
        params: Ordered PyMC parameter names, parent first
        links: Link per parameter (identity when omitted)
        default_priors: Priors for the auxiliary parameters

    Returns:
        FamilySpec marked as custom
    """
    return FamilySpec(
        name,
        tuple(params),
        dict(links or {}),
        custom=True,
        likelihood=likelihood,
        default_priors=dict(default_priors or {}),
    )


FAMILIES: Dict[str, Callable[[], FamilySpec]] = {
    "gaussian": gaussian,
    "lognormal": lognormal,
    "gamma": gamma,
    "weibull": weibull,
    "exponential": exponential,
    "wald": wald,
    "t": student_t,
    "asymmetriclaplace": asymmetric_laplace,
    "poisson": poisson,
    "negativebinomial": negative_binomial,
    "binomial": binomial,
}


def get_family(family) -> FamilySpec:
    """
    Resolve a family given by name or as a ``FamilySpec``.

    Raises:
        ConfigurationError: If a family name is unknown
    """
    if isinstance(family, FamilySpec):
        return family
    try:
        return FAMILIES[str(family).lower()]()
    except KeyError:
        raise ConfigurationError(
            f"Unknown family '{family}'",
            details=f"supported families: {sorted(FAMILIES)}; use custom_family() for others"
        )
