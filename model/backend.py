"""
Bayesian model fitting backend.

Thin seam over Bambi and PyMC. Everything numerically heavy (MCMC sampling,
posterior prediction, log-likelihood evaluation) is delegated; this module
only shapes arguments and results:

- ``fit_model``: build a ``bmb.Model`` and sample it
- ``posterior_expectation``: draws x rows matrix of one distribution
  parameter at new data
- ``log_likelihood``: draws x rows matrix of pointwise log-likelihood

Draw indices are 1-based positions in the chain-major pool of post-warmup
draws (chain 0 first), so ``total_draws = chains * draws``.

Errors raised by Bambi or PyMC propagate unchanged.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence

import numpy as np
import pandas as pd
import xarray as xr

from model.constants import (
    DEFAULT_BACKEND,
    DEFAULT_CHAINS,
    DEFAULT_DRAWS,
    DEFAULT_MAX_TREEDEPTH,
    DEFAULT_TARGET_ACCEPT,
    DEFAULT_TUNE,
    EXTERNAL_BACKENDS,
    SUPPORTED_BACKENDS,
)
from model.exceptions import ConfigurationError, SamplingError
from model.families import FamilySpec, get_family
from model.formula import ModelFormula
from model.priors import to_bambi_priors
from utils.decorators import log_errors
from utils.dependencies import get_dependency_manager
from utils.logging_utils import get_logger

logger = get_logger()

SAMPLE_DIM = "__sample__"


#########################################################################
#                          SAMPLER SETTINGS                             #
#########################################################################

@dataclass
class SamplerSettings:
    """
    MCMC configuration shared by every fit of a joint model.

    Attributes:
        n_chains: Number of chains
        n_draws: Post-warmup draws per chain
        n_tune: Warmup (tuning) iterations per chain
        target_accept: NUTS target acceptance rate (adapt delta)
        max_treedepth: NUTS maximum tree depth
        backend: "pymc" or an external NUTS sampler ("numpyro", "nutpie", "blackjax")
        control: Sampler-specific keyword arguments for external backends;
            when empty the tree depth is translated for the backend
        random_seed: Seed passed to the sampler
    """
    n_chains: int = DEFAULT_CHAINS
    n_draws: int = DEFAULT_DRAWS
    n_tune: int = DEFAULT_TUNE
    target_accept: float = DEFAULT_TARGET_ACCEPT
    max_treedepth: int = DEFAULT_MAX_TREEDEPTH
    backend: str = DEFAULT_BACKEND
    control: Dict[str, Any] = field(default_factory=dict)
    random_seed: Optional[int] = None

    def __post_init__(self):
        if self.backend not in SUPPORTED_BACKENDS:
            raise ConfigurationError(
                f"Unsupported sampler backend '{self.backend}'",
                details=f"supported: {list(SUPPORTED_BACKENDS)}"
            )
        if self.n_chains < 1 or self.n_draws < 1 or self.n_tune < 0:
            raise ConfigurationError(
                "Sampler needs at least one chain and one draw",
                details=f"chains={self.n_chains}, draws={self.n_draws}, tune={self.n_tune}"
            )

    @property
    def n_iter(self) -> int:
        """Iterations per chain including warmup."""
        return self.n_tune + self.n_draws

    @property
    def total_draws(self) -> int:
        return self.n_chains * self.n_draws

    def fit_kwargs(self) -> Dict[str, Any]:
        """
        Keyword arguments for ``bmb.Model.fit`` (forwarded to ``pm.sample``).

        PyMC's own NUTS takes adapt delta and tree depth as plain keywords.
        External samplers are selected with ``nuts_sampler`` and take their
        remaining settings as the structured ``nuts_sampler_kwargs`` dict.
        """
        kwargs: Dict[str, Any] = {
            "draws": self.n_draws,
            "tune": self.n_tune,
            "chains": self.n_chains,
            "random_seed": self.random_seed,
        }

        if self.backend in EXTERNAL_BACKENDS:
            kwargs["nuts_sampler"] = self.backend
            kwargs["target_accept"] = self.target_accept
            kwargs["nuts_sampler_kwargs"] = dict(self.control) or self._external_treedepth()
        else:
            kwargs["target_accept"] = self.target_accept
            kwargs["max_treedepth"] = self.max_treedepth
        return kwargs

    def _external_treedepth(self) -> Dict[str, Any]:
        if self.backend == "numpyro":
            return {"nuts_kwargs": {"max_tree_depth": self.max_treedepth}}
        if self.backend == "blackjax":
            return {"nuts_kwargs": {"max_num_doublings": self.max_treedepth}}
        return {"maxdepth": self.max_treedepth}


#########################################################################
#                          FITTED MODEL                                 #
#########################################################################

@dataclass
class FittedModel:
    """
    One fitted Bambi model and everything needed to refit it.

    Attributes:
        formula: Model formula
        family: Response family
        data: Training data
        priors: Untagged prior table (may be empty)
        sampler: Sampler settings used
        model: The ``bmb.Model``
        idata: Posterior as ArviZ ``InferenceData``
    """
    formula: ModelFormula
    family: FamilySpec
    data: pd.DataFrame
    priors: Optional[pd.DataFrame]
    sampler: SamplerSettings
    model: Any = None
    idata: Any = None

    @property
    def response(self) -> str:
        return self.formula.response_name

    @property
    def total_draws(self) -> int:
        """Size of the post-warmup draw pool across all chains."""
        if self.idata is not None and hasattr(self.idata, "posterior"):
            sizes = self.idata.posterior.sizes
            return int(sizes["chain"] * sizes["draw"])
        return self.sampler.total_draws


#########################################################################
#                          BACKEND OPERATIONS                           #
#########################################################################

@log_errors(msg="Model fit failed")
def fit_model(
    formula,
    family,
    data: pd.DataFrame,
    priors: Optional[pd.DataFrame] = None,
    sampler: Optional[SamplerSettings] = None,
) -> FittedModel:
    """
    Build and sample a Bambi model.

    Args:
        formula: ``ModelFormula`` or a formula string
        family: ``FamilySpec`` or family name
        data: Training data
        priors: Untagged prior table
        sampler: Sampler settings (defaults when omitted)

    Returns:
        FittedModel

    Raises:
        ConfigurationError: If the backend's sampler is not installed
    """
    import bambi as bmb

    formula = ModelFormula.parse(formula)
    family = get_family(family)
    sampler = sampler or SamplerSettings()

    if not get_dependency_manager().has_sampler(sampler.backend):
        raise ConfigurationError(f"Sampler backend '{sampler.backend}' is not installed")

    model_kwargs: Dict[str, Any] = {"family": family.to_bambi()}
    link = family.bambi_link()
    if link:
        model_kwargs["link"] = link
    bambi_priors = to_bambi_priors(priors, family)
    if bambi_priors:
        model_kwargs["priors"] = bambi_priors

    logger.info(f"Fitting {family.name} model '{formula}' to {len(data)} rows "
                f"(backend={sampler.backend}, chains={sampler.n_chains}, "
                f"draws={sampler.n_draws}, tune={sampler.n_tune})")

    model = bmb.Model(formula.to_bambi(), data, **model_kwargs)
    idata = model.fit(**sampler.fit_kwargs())

    return FittedModel(
        formula=formula,
        family=family,
        data=data,
        priors=priors,
        sampler=sampler,
        model=model,
        idata=idata,
    )


def validate_draw_ids(draw_ids: Sequence[int], total_draws: int) -> np.ndarray:
    """
    Check 1-based draw indices against the draw pool.

    Returns:
        The indices as an integer array

    Raises:
        ConfigurationError: If empty, out of range or repeated
    """
    ids = np.asarray(draw_ids, dtype=int).ravel()
    if ids.size == 0:
        raise ConfigurationError("At least one draw id is required")
    if ids.min() < 1 or ids.max() > total_draws:
        raise ConfigurationError(
            "Draw ids out of range",
            details=f"valid ids are 1..{total_draws}, got {ids.min()}..{ids.max()}"
        )
    if len(np.unique(ids)) != ids.size:
        raise ConfigurationError("Draw ids must not repeat")
    return ids


def subset_draws(idata, draw_ids: Sequence[int]):
    """
    Posterior restricted to the given draws, as a single chain.

    The selected draws keep the order of ``draw_ids``.
    """
    import arviz as az

    posterior = idata.posterior
    n_per_chain = posterior.sizes["draw"]
    ids = validate_draw_ids(draw_ids, posterior.sizes["chain"] * n_per_chain) - 1

    chain_idx = xr.DataArray(ids // n_per_chain, dims=SAMPLE_DIM)
    draw_idx = xr.DataArray(ids % n_per_chain, dims=SAMPLE_DIM)
    selected = (
        posterior.isel(chain=chain_idx, draw=draw_idx)
        .drop_vars(["chain", "draw"])
        .rename({SAMPLE_DIM: "draw"})
        .assign_coords(draw=np.arange(len(ids)))
        .expand_dims(chain=[0])
    )
    return az.InferenceData(posterior=selected)


def _to_matrix(values: xr.DataArray, n_rows: int) -> np.ndarray:
    """Flatten chain/draw into rows; broadcast parameters without an observation dim."""
    stacked = values.stack({SAMPLE_DIM: ("chain", "draw")}).transpose(SAMPLE_DIM, ...)
    matrix = np.asarray(stacked.values, dtype=float)
    if matrix.ndim == 1:
        return np.repeat(matrix[:, None], n_rows, axis=1)
    return matrix.reshape(matrix.shape[0], -1)


def _find_parameter(posterior, parameter: str, fit: FittedModel) -> xr.DataArray:
    # Bambi has named response parameters "mu", "<response>_mu" and "<response>_mean"
    response = fit.response
    candidates = [parameter, f"{response}_{parameter}"]
    if parameter == fit.family.parent:
        candidates.append(f"{response}_mean")

    for name in candidates:
        if name in posterior:
            return posterior[name]
    raise SamplingError(
        f"Parameter '{parameter}' not found in posterior",
        details=f"looked for {candidates}"
    )


def posterior_expectation(
    fit: FittedModel,
    parameter: str,
    newdata: pd.DataFrame,
    draw_ids: Optional[Sequence[int]] = None,
) -> np.ndarray:
    """
    Posterior expectation of a distribution parameter at new data.

    Args:
        fit: Fitted model
        parameter: Distribution parameter name, e.g. "mu" or "sigma"
        newdata: Rows to predict for; must carry the model's covariates
        draw_ids: 1-based draws to use (all draws when omitted)

    Returns:
        Array of shape (draws, rows)

    Raises:
        SamplingError: If the parameter is absent from the prediction
    """
    idata = fit.idata if draw_ids is None else subset_draws(fit.idata, draw_ids)

    predicted = fit.model.predict(idata, kind="response_params", data=newdata, inplace=False)

    values = _find_parameter(predicted.posterior, parameter, fit)
    return _to_matrix(values, len(newdata))


def log_likelihood(fit: FittedModel, newdata: Optional[pd.DataFrame] = None) -> np.ndarray:
    """
    Pointwise log-likelihood of the response.

    Args:
        fit: Fitted model
        newdata: Rows to evaluate, including the response (training data when omitted)

    Returns:
        Array of shape (draws, rows)
    """
    data = fit.data if newdata is None else newdata
    evaluated = fit.model.compute_log_likelihood(fit.idata, data=data, inplace=False)
    group = evaluated.log_likelihood
    name = list(group.data_vars)[0]
    return _to_matrix(group[name], len(data))
