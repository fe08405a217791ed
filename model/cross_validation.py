"""
K-fold cross-validation of joint frequency-severity models.

The severity response is cross-validated like any single model, on the
severity rows. The frequency response needs its deductible offset
re-estimated first: the offset depends on the severity posterior, so it is
recomputed from a subsample of severity draws, the frequency model is refit
with it, and that refit is handed to the generic routine.
"""
from typing import Callable, Optional, Sequence

import numpy as np
import pandas as pd

from model.backend import validate_draw_ids
from model.constants import DEFAULT_DRAW_SAMPLE_CEILING
from model.exceptions import ConfigurationError
from model.freq_sev_model import SEVERITY, fit_frequency_with_offset, is_frequency_severity_fit
from model.kfold import KFoldResult, kfold
from model.offset import compute_deductible_offset, sample_draw_ids
from model.priors import priors_for_response
from model.survival import check_arity, resolve_cdf
from utils.logging_utils import get_logger

logger = get_logger()


def cross_validate(
    model,
    response: Optional[str] = None,
    newdata: Optional[pd.DataFrame] = None,
    severity_draw_ids: Optional[Sequence[int]] = None,
    draw_sample_ceiling: float = DEFAULT_DRAW_SAMPLE_CEILING,
    custom_survival_fn: Optional[Callable[..., np.ndarray]] = None,
    **kwargs,
) -> KFoldResult:
    """
    K-fold cross-validation of one response of a joint model.

    Models that are not joint frequency-severity fits go straight to
    ``kfold``.

    Args:
        model: ``FrequencySeverityFit`` or any ``FittedModel``
        response: Response to cross-validate; required for joint models
        newdata: Passed to ``kfold`` for non-joint models; ignored for the
            frequency response, whose data comes from the joint model
        severity_draw_ids: 1-based severity draws for the offset; sampled
            when omitted
        draw_sample_ceiling: Bound on draws x rows for the offset estimate
        custom_survival_fn: CDF of a custom severity family
        **kwargs: Passed to ``kfold`` (K, folds, group, random_seed, save_fits)

    Returns:
        KFoldResult

    Raises:
        ConfigurationError: Missing or unknown response, or no CDF for the
            severity family
        UnsupportedArityError: Severity family without 1-5 parameters
    """
    if not is_frequency_severity_fit(model):
        return kfold(model, resp=response, newdata=newdata, **kwargs)

    if response is None:
        raise ConfigurationError("Response Variable Required")

    if model.response_role(response) == SEVERITY:
        return kfold(model.sev_fit, resp=response, newdata=model.severity_data(), **kwargs)

    freq_data = model.frequency_data()
    cdf = resolve_cdf(model.sev_family, custom_survival_fn)
    check_arity(len(model.sev_params))

    if severity_draw_ids is None:
        draw_ids = sample_draw_ids(len(freq_data), model.total_draws, draw_sample_ceiling)
    else:
        draw_ids = validate_draw_ids(severity_draw_ids, model.total_draws)

    offsets = compute_deductible_offset(
        model.sev_fit,
        model.sev_params,
        freq_data,
        model.ded_name,
        cdf,
        model.freq_link,
        draw_ids,
        model.ded_adj_min,
    )
    freq_priors = priors_for_response(model.priors, model.freq_response)

    logger.info("Recompiling frequency model")
    refit = fit_frequency_with_offset(
        model.freq_formula, model.freq_family, freq_data, offsets, freq_priors, model.sampler
    )

    logger.info("Running K-Fold Function...")
    return kfold(refit, **kwargs)
