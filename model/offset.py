"""
Deductible offset estimation.

Losses below a policy's deductible are never reported, so the observed claim
frequency is the ground-up frequency thinned by the probability that a loss
exceeds the deductible. On the link scale that thinning is an additive
offset:

    offset_i = mean over draws s of link(max(floor, 1 - F(ded_i | theta_is)))

where ``theta_is`` are the severity distribution parameters of frequency row
``i`` under posterior draw ``s``.
"""
import math
from typing import Callable, Sequence

import numpy as np
import pandas as pd

from model.backend import FittedModel, posterior_expectation, validate_draw_ids
from model.constants import (
    DEFAULT_DED_ADJ_MIN,
    DEFAULT_DRAW_SAMPLE_CEILING,
    DRAW_COL,
    OFFSET_COL,
    ROW_ID_COL,
)
from model.exceptions import ConfigurationError, DataValidationError
from model.survival import check_arity, deductible_survival
from utils.logging_utils import get_logger

logger = get_logger()


def subsample_size(n_rows: int, total_draws: int,
                   draw_sample_ceiling: float = DEFAULT_DRAW_SAMPLE_CEILING) -> int:
    """
    Number of posterior draws to use so that draws x rows stays under the ceiling.

    Returns:
        ``min(ceil(draw_sample_ceiling / n_rows), total_draws)``

    Raises:
        DataValidationError: If there are no rows
        ConfigurationError: If the ceiling or the draw pool is not positive
    """
    if n_rows < 1:
        raise DataValidationError("No frequency rows to compute an offset for")
    if draw_sample_ceiling <= 0:
        raise ConfigurationError(f"draw_sample_ceiling must be positive, got {draw_sample_ceiling}")
    if total_draws < 1:
        raise ConfigurationError("The severity fit has no posterior draws")
    return int(min(math.ceil(draw_sample_ceiling / n_rows), total_draws))


def sample_draw_ids(n_rows: int, total_draws: int,
                    draw_sample_ceiling: float = DEFAULT_DRAW_SAMPLE_CEILING) -> np.ndarray:
    """
    Sample 1-based draw ids without replacement from ``1..total_draws``.

    Uses NumPy's global random state, so seeding it with ``np.random.seed``
    makes the subsample reproducible.
    """
    size = subsample_size(n_rows, total_draws, draw_sample_ceiling)
    logger.debug(f"Sampling {size} of {total_draws} posterior draws for {n_rows} rows")
    return np.random.choice(np.arange(1, total_draws + 1), size=size, replace=False)


def expectation_table(
    fit: FittedModel,
    params: Sequence[str],
    newdata: pd.DataFrame,
    draw_ids: Sequence[int],
) -> pd.DataFrame:
    """
    Posterior expectations of several parameters in long format.

    Args:
        fit: Fitted severity model
        params: Distribution parameter names
        newdata: Rows to predict for; must carry a ``data_row_id`` column
        draw_ids: 1-based draw ids

    Returns:
        One row per (draw, row) pair with columns ``iter_number``,
        ``data_row_id`` and one column per parameter
    """
    row_ids = newdata[ROW_ID_COL].to_numpy()
    draw_ids = np.asarray(draw_ids)

    # Draw-major: every row for the first draw, then every row for the next
    long = pd.DataFrame({
        DRAW_COL: np.repeat(draw_ids, len(row_ids)),
        ROW_ID_COL: np.tile(row_ids, len(draw_ids)),
    })
    for param in params:
        matrix = posterior_expectation(fit, param, newdata, draw_ids=draw_ids)
        long[param] = np.asarray(matrix, dtype=float).reshape(-1)
    return long


def aggregate_offsets(
    long: pd.DataFrame,
    cdf: Callable[..., np.ndarray],
    params: Sequence[str],
    ded_name: str,
    link: Callable[[np.ndarray], np.ndarray],
    ded_adj_min: float = DEFAULT_DED_ADJ_MIN,
) -> pd.Series:
    """
    Collapse per-draw survival probabilities to one offset per row.

    Args:
        long: Expectation table joined with the row covariates
        cdf: Severity CDF
        params: Parameter columns, in the CDF's argument order
        ded_name: Deductible column
        link: Frequency link function
        ded_adj_min: Floor applied to survival before the link

    Returns:
        Offsets indexed by ``data_row_id``
    """
    survival = deductible_survival(
        cdf,
        long[ded_name].to_numpy(dtype=float),
        [long[p].to_numpy(dtype=float) for p in params],
    )
    n_floored = int(np.sum(survival <= ded_adj_min))
    if n_floored:
        logger.debug(f"{n_floored} of {len(survival)} survival values floored at {ded_adj_min}")

    adjusted = long[[ROW_ID_COL]].assign(**{OFFSET_COL: link(np.maximum(survival, ded_adj_min))})
    return adjusted.groupby(ROW_ID_COL, sort=True)[OFFSET_COL].mean()


def compute_deductible_offset(
    sev_fit: FittedModel,
    sev_params: Sequence[str],
    freq_data: pd.DataFrame,
    ded_name: str,
    cdf: Callable[..., np.ndarray],
    link: Callable[[np.ndarray], np.ndarray],
    draw_ids: Sequence[int],
    ded_adj_min: float = DEFAULT_DED_ADJ_MIN,
) -> np.ndarray:
    """
    Deductible offset for every frequency row.

    Args:
        sev_fit: Fitted severity model
        sev_params: Severity distribution parameter names, in CDF order
        freq_data: Frequency rows; must carry the severity covariates and the deductible
        ded_name: Deductible column
        cdf: Severity CDF
        link: Frequency link function
        draw_ids: 1-based severity draw ids to average over
        ded_adj_min: Survival floor

    Returns:
        Array of offsets aligned with the rows of ``freq_data``

    Raises:
        UnsupportedArityError: If the family does not have 1-5 parameters
        DataValidationError: If the deductible column is missing
        ConfigurationError: If a draw id is invalid
    """
    check_arity(len(sev_params))
    if ded_name not in freq_data.columns:
        raise DataValidationError(f"Deductible column '{ded_name}' not found in frequency data")
    draw_ids = validate_draw_ids(draw_ids, sev_fit.total_draws)

    rows = freq_data.reset_index(drop=True)
    rows[ROW_ID_COL] = np.arange(1, len(rows) + 1)

    logger.info(f"Estimating deductible offset for {len(rows)} rows "
                f"from {len(draw_ids)} severity draws")

    long = expectation_table(sev_fit, sev_params, rows, draw_ids)
    covariates = rows.drop(columns=[c for c in sev_params if c in rows.columns])
    long = long.merge(covariates, on=ROW_ID_COL, how="left", validate="many_to_one")

    offsets = aggregate_offsets(long, cdf, sev_params, ded_name, link, ded_adj_min)
    return offsets.reindex(rows[ROW_ID_COL]).to_numpy()
