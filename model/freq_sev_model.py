#!/usr/bin/env python3
"""
Joint frequency-severity model with a deductible offset.

MODEL:
- Severity: loss ~ family(theta(x)), left-truncated at the policy deductible
- Frequency: count ~ family(mu), with
      link(mu) = eta(x) + log-link(P(loss > deductible | theta(x)))
  so the frequency model describes ground-up claims while observing only
  claims above the deductible

The fit is two-stage: the severity model is fit first, the offset is
estimated from its posterior draws at every policy, and the frequency model
is fit with that offset as a fixed term.
"""
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np
import pandas as pd

from data.data_preparation import JointDataPreparation, frequency_rows, severity_rows
from model.backend import FittedModel, SamplerSettings, fit_model
from model.constants import DEFAULT_DED_ADJ_MIN, DEFAULT_DRAW_SAMPLE_CEILING, OFFSET_COL
from model.exceptions import ConfigurationError, DataValidationError
from model.families import FamilySpec, get_family
from model.formula import ModelFormula
from model.offset import compute_deductible_offset, sample_draw_ids
from model.priors import prior_table, priors_for_response
from model.survival import check_arity, resolve_cdf
from utils.logging_utils import get_logger, log_step

logger = get_logger()

FREQUENCY = "frequency"
SEVERITY = "severity"


@dataclass
class FrequencySeverityFit:
    """
    A fitted joint frequency-severity model.

    Attributes:
        freq_formula: Frequency formula without the deductible offset
        sev_formula: Severity formula without truncation
        freq_family: Frequency family
        sev_family: Severity family
        ded_name: Deductible column
        ded_adj_min: Floor for survival probabilities before the link
        sampler: Sampler settings shared by both sub-models
        priors: Combined prior table, tagged by response
        data: Tagged joint training data
        sev_fit: Fitted severity model
        freq_fit: Fitted frequency model (with offset)
    """
    freq_formula: ModelFormula
    sev_formula: ModelFormula
    freq_family: FamilySpec
    sev_family: FamilySpec
    ded_name: str
    ded_adj_min: float
    sampler: SamplerSettings
    priors: pd.DataFrame
    data: pd.DataFrame
    sev_fit: FittedModel
    freq_fit: FittedModel

    @property
    def sev_response(self) -> str:
        return self.sev_formula.response_name

    @property
    def freq_response(self) -> str:
        return self.freq_formula.response_name

    @property
    def sev_params(self):
        return self.sev_family.params

    @property
    def freq_link(self) -> Callable[[np.ndarray], np.ndarray]:
        return self.freq_family.link_function

    @property
    def backend(self) -> str:
        return self.sampler.backend

    @property
    def total_draws(self) -> int:
        """Posterior draws available from the severity fit."""
        return self.sev_fit.total_draws

    def frequency_data(self) -> pd.DataFrame:
        return frequency_rows(self.data)

    def severity_data(self) -> pd.DataFrame:
        return severity_rows(self.data)

    def response_role(self, response: str) -> str:
        """
        "severity" or "frequency" for a response of this model.

        Raises:
            ConfigurationError: If the response belongs to neither sub-model
        """
        if response == self.sev_response:
            return SEVERITY
        if response == self.freq_response:
            return FREQUENCY
        raise ConfigurationError(
            f"Response '{response}' is not part of this model",
            details=f"severity response '{self.sev_response}', frequency response '{self.freq_response}'"
        )


def is_frequency_severity_fit(model) -> bool:
    return isinstance(model, FrequencySeverityFit)


def fit_frequency_with_offset(
    freq_formula: ModelFormula,
    freq_family: FamilySpec,
    freq_data: pd.DataFrame,
    offsets: np.ndarray,
    priors: Optional[pd.DataFrame],
    sampler: SamplerSettings,
) -> FittedModel:
    """
    Fit the frequency model with ``offset(ded_offset)`` in its linear predictor.

    Args:
        freq_formula: Frequency formula without the deductible offset
        freq_family: Frequency family
        freq_data: Frequency rows
        offsets: One offset per row of ``freq_data``
        priors: Untagged frequency priors
        sampler: Sampler settings

    Raises:
        DataValidationError: If the offsets do not line up with the rows
    """
    if len(offsets) != len(freq_data):
        raise DataValidationError(
            "Offset length does not match the frequency rows",
            details=f"{len(offsets)} offsets for {len(freq_data)} rows"
        )
    data = freq_data.reset_index(drop=True).assign(**{OFFSET_COL: np.asarray(offsets, dtype=float)})
    return fit_model(freq_formula.add_offset(OFFSET_COL), freq_family, data, priors, sampler)


@log_step("Fitting frequency-severity model")
def fit_frequency_severity(
    freq_formula,
    sev_formula,
    freq_data: pd.DataFrame,
    sev_data: pd.DataFrame,
    ded_name: str,
    freq_family="poisson",
    sev_family="lognormal",
    priors: Optional[pd.DataFrame] = None,
    sampler: Optional[SamplerSettings] = None,
    ded_adj_min: float = DEFAULT_DED_ADJ_MIN,
    draw_sample_ceiling: float = DEFAULT_DRAW_SAMPLE_CEILING,
    custom_survival_fn: Optional[Callable[..., np.ndarray]] = None,
) -> FrequencySeverityFit:
    """
    Fit a joint frequency-severity model.

    Args:
        freq_formula: Frequency formula, e.g. "claims ~ age + offset(log_exposure)"
        sev_formula: Severity formula, e.g. "loss ~ age"
        freq_data: One row per policy
        sev_data: One row per reported claim
        ded_name: Deductible column present in both frames
        freq_family: Frequency family
        sev_family: Severity family
        priors: Prior table; rows tagged with ``resp`` go to that sub-model
        sampler: Sampler settings for both fits
        ded_adj_min: Floor for survival probabilities
        draw_sample_ceiling: Bound on draws x rows for the offset estimate
        custom_survival_fn: CDF of a custom severity family

    Returns:
        FrequencySeverityFit

    Raises:
        ConfigurationError: On an unusable family, prior table or CDF
        DataValidationError: On invalid input data
    """
    freq_formula = ModelFormula.parse(freq_formula)
    sev_formula = ModelFormula.parse(sev_formula)
    freq_family = get_family(freq_family)
    sev_family = get_family(sev_family)
    sampler = sampler or SamplerSettings()

    if not 0 < ded_adj_min < 1:
        raise ConfigurationError(f"ded_adj_min must be in (0, 1), got {ded_adj_min}")
    if freq_formula.response_name == sev_formula.response_name:
        raise ConfigurationError("Frequency and severity responses must differ")

    # Fail before sampling if the offset cannot be computed
    check_arity(len(sev_family.params))
    cdf = resolve_cdf(sev_family, custom_survival_fn)

    preparation = JointDataPreparation(
        freq_formula.response_name,
        sev_formula.response_name,
        ded_name,
        freq_covariates=freq_formula.variables(),
        sev_covariates=sev_formula.variables(),
    )
    joint = preparation.prepare(freq_data, sev_data)
    if priors is None:
        priors = prior_table()

    logger.info(f"Fitting severity model ({sev_family.name}) truncated at '{ded_name}'")
    sev_fit = fit_model(
        sev_formula.truncated(ded_name),
        sev_family,
        severity_rows(joint),
        priors_for_response(priors, sev_formula.response_name),
        sampler,
    )

    freq_rows = frequency_rows(joint)
    draw_ids = sample_draw_ids(len(freq_rows), sev_fit.total_draws, draw_sample_ceiling)
    offsets = compute_deductible_offset(
        sev_fit, sev_family.params, freq_rows, ded_name, cdf,
        freq_family.link_function, draw_ids, ded_adj_min,
    )

    logger.info(f"Fitting frequency model ({freq_family.name}) with deductible offset")
    freq_fit = fit_frequency_with_offset(
        freq_formula, freq_family, freq_rows, offsets,
        priors_for_response(priors, freq_formula.response_name), sampler,
    )

    return FrequencySeverityFit(
        freq_formula=freq_formula,
        sev_formula=sev_formula,
        freq_family=freq_family,
        sev_family=sev_family,
        ded_name=ded_name,
        ded_adj_min=ded_adj_min,
        sampler=sampler,
        priors=priors,
        data=joint,
        sev_fit=sev_fit,
        freq_fit=freq_fit,
    )
