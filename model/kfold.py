"""
Generic k-fold cross-validation for a fitted Bambi model.

The model is refit K times, each time leaving one fold out, and the
held-out pointwise log predictive density is estimated from the refit's
posterior draws:

    elpd_i = log( 1/S * sum_s p(y_i | theta_s) )

Summing over observations gives ``elpd_kfold``; ``p_kfold`` is the full-data
lpd minus elpd, and ``kfoldic = -2 * elpd_kfold``.
"""
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Union

import numpy as np
import pandas as pd
from scipy.special import logsumexp
from sklearn.model_selection import GroupKFold, KFold, StratifiedKFold

from model.backend import FittedModel, fit_model, log_likelihood
from model.constants import DEFAULT_K, FOLD_TYPES
from model.exceptions import ConfigurationError, CrossValidationError
from utils.logging_utils import get_logger, log_step

logger = get_logger()

ESTIMATE_NAMES = ["elpd_kfold", "p_kfold", "kfoldic"]


@dataclass
class KFoldResult:
    """
    Result of a k-fold cross-validation.

    Attributes:
        estimates: Estimate and SE for elpd_kfold, p_kfold and kfoldic
        pointwise: Per-observation contributions and the fold of each row
        folds: 1-based fold id per row
        response: Cross-validated response
        K: Number of folds
        fits: Refit models per fold when requested
    """
    estimates: pd.DataFrame
    pointwise: pd.DataFrame
    folds: np.ndarray
    response: str
    K: int
    fits: List[FittedModel] = field(default_factory=list)

    @property
    def elpd_kfold(self) -> float:
        return float(self.estimates.loc["elpd_kfold", "Estimate"])

    @property
    def se_elpd_kfold(self) -> float:
        return float(self.estimates.loc["elpd_kfold", "SE"])

    @property
    def p_kfold(self) -> float:
        return float(self.estimates.loc["p_kfold", "Estimate"])

    @property
    def kfoldic(self) -> float:
        return float(self.estimates.loc["kfoldic", "Estimate"])

    def summary(self) -> str:
        lines = [f"Based on {self.K}-fold cross-validation of '{self.response}' "
                 f"({len(self.folds)} observations)", ""]
        lines.append(self.estimates.to_string(float_format=lambda x: f"{x:.1f}"))
        return "\n".join(lines)


def pointwise_lpd(ll: np.ndarray) -> np.ndarray:
    """Log mean density per observation from a (draws x rows) log-likelihood matrix."""
    ll = np.asarray(ll, dtype=float)
    return logsumexp(ll, axis=0) - np.log(ll.shape[0])


def _estimates(pointwise: pd.DataFrame) -> pd.DataFrame:
    n = len(pointwise)
    rows = {}
    for name in ESTIMATE_NAMES:
        values = pointwise[name].to_numpy()
        se = np.sqrt(n * np.var(values, ddof=1)) if n > 1 else np.nan
        rows[name] = {"Estimate": values.sum(), "SE": se}
    return pd.DataFrame.from_dict(rows, orient="index")[["Estimate", "SE"]]


def assign_folds(
    data: pd.DataFrame,
    K: int = DEFAULT_K,
    folds: Optional[Union[str, Sequence[int]]] = None,
    group: Optional[str] = None,
    response: Optional[str] = None,
    random_seed: Optional[int] = None,
) -> np.ndarray:
    """
    Assign every row a 1-based fold id.

    Args:
        data: Rows to split
        K: Number of folds (ignored for explicit fold vectors)
        folds: None or "random", "stratified", "grouped", or an explicit fold vector
        group: Grouping column for "grouped" folds
        response: Response column for "stratified" folds
        random_seed: Seed for the shuffling splitters

    Returns:
        Integer array of fold ids in ``1..K``

    Raises:
        ConfigurationError: On an unknown fold type, a missing group column or
            an explicit vector of the wrong length
    """
    n = len(data)

    if folds is not None and not isinstance(folds, str):
        ids = np.asarray(folds)
        if len(ids) != n:
            raise ConfigurationError(
                "Fold vector length does not match the data",
                details=f"{len(ids)} fold ids for {n} rows"
            )
        # Relabel to 1..K in order of first appearance
        _, first = np.unique(ids, return_index=True)
        order = ids[np.sort(first)]
        mapping = {label: i + 1 for i, label in enumerate(order)}
        return np.array([mapping[label] for label in ids], dtype=int)

    fold_type = folds or "random"
    if fold_type not in FOLD_TYPES:
        raise ConfigurationError(f"Unknown fold type '{fold_type}'", details=f"expected one of {FOLD_TYPES}")
    if K < 2 or K > n:
        raise ConfigurationError(f"K must be between 2 and the number of rows ({n}), got {K}")

    index = np.arange(n)
    if fold_type == "random":
        splits = KFold(n_splits=K, shuffle=True, random_state=random_seed).split(index)
    elif fold_type == "stratified":
        if response is None or response not in data.columns:
            raise ConfigurationError("Stratified folds need the response column")
        splits = StratifiedKFold(n_splits=K, shuffle=True, random_state=random_seed).split(
            index, data[response]
        )
    else:
        if group is None or group not in data.columns:
            raise ConfigurationError("Grouped folds need a 'group' column", details=f"group={group}")
        splits = GroupKFold(n_splits=K).split(index, groups=data[group])

    ids = np.zeros(n, dtype=int)
    for k, (_, test) in enumerate(splits, start=1):
        ids[test] = k
    return ids


@log_step("K-fold cross-validation")
def kfold(
    fit: FittedModel,
    K: int = DEFAULT_K,
    folds: Optional[Union[str, Sequence[int]]] = None,
    group: Optional[str] = None,
    resp: Optional[str] = None,
    newdata: Optional[pd.DataFrame] = None,
    random_seed: Optional[int] = None,
    save_fits: bool = False,
) -> KFoldResult:
    """
    K-fold cross-validation of a fitted model.

    Args:
        fit: Fitted model
        K: Number of folds
        folds: Fold type or explicit fold vector (see ``assign_folds``)
        group: Grouping column for grouped folds
        resp: Response to cross-validate; must be the fit's response when given
        newdata: Data to split instead of the training data
        random_seed: Seed for fold assignment
        save_fits: Keep the per-fold refits in the result

    Returns:
        KFoldResult

    Raises:
        ConfigurationError: If ``resp`` is not the fit's response
        CrossValidationError: If a fold leaves no training rows
    """
    if resp is not None and resp != fit.response:
        raise ConfigurationError(
            f"Response '{resp}' is not modeled by this fit",
            details=f"the fit's response is '{fit.response}'"
        )

    data = fit.data if newdata is None else newdata
    data = data.reset_index(drop=True)
    fold_ids = assign_folds(data, K=K, folds=folds, group=group,
                            response=fit.response, random_seed=random_seed)
    n_folds = int(fold_ids.max())

    elpd = np.empty(len(data))
    fits = []
    for k in range(1, n_folds + 1):
        held_out = fold_ids == k
        if held_out.all():
            raise CrossValidationError(f"Fold {k} leaves no rows to train on")

        logger.info(f"Fitting model {k} out of {n_folds}")
        refit = fit_model(fit.formula, fit.family, data.loc[~held_out].reset_index(drop=True),
                          fit.priors, fit.sampler)
        ll = log_likelihood(refit, data.loc[held_out].reset_index(drop=True))
        elpd[held_out] = pointwise_lpd(ll)
        if save_fits:
            fits.append(refit)

    lpd = pointwise_lpd(log_likelihood(fit, data))
    pointwise = pd.DataFrame({
        "elpd_kfold": elpd,
        "p_kfold": lpd - elpd,
        "kfoldic": -2.0 * elpd,
        "fold": fold_ids,
    })

    result = KFoldResult(
        estimates=_estimates(pointwise),
        pointwise=pointwise,
        folds=fold_ids,
        response=fit.response,
        K=n_folds,
        fits=fits,
    )
    logger.info(f"elpd_kfold = {result.elpd_kfold:.1f} (SE {result.se_elpd_kfold:.1f})")
    return result
