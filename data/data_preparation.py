"""
Joint Data Preparation for Frequency-Severity Models.

Stacks policy-level frequency data and claim-level severity data into one
tagged frame, and splits such a frame back into its two parts.

PURPOSE:
- Keep both sub-models' training data in one table, as the joint fit and
  its cross-validation expect
- Validate the columns each sub-model needs before any sampling starts

LAYOUT:
- Column ``freq`` is 1 on frequency rows and 0 on severity rows
- Frequency rows carry the claim count and a missing loss; severity rows
  carry the loss and a missing claim count
- Both kinds of rows carry the deductible, which truncates the severity
  likelihood and drives the frequency offset

ASSUMPTIONS:
- Covariates used by the severity model are present on frequency rows too,
  since the offset evaluates the severity model at every policy
- Losses are strictly positive and exceed their row's deductible

EDGE CASES:
- A frame that already has a ``freq`` column is rejected rather than
  silently re-tagged
- Severity losses at or below the deductible raise, since the truncated
  likelihood is undefined there
"""
from typing import List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from model.constants import FREQUENCY_ROW, ROW_TYPE_COL, SEVERITY_ROW
from model.exceptions import DataValidationError
from utils.logging_utils import LoggingManager, logger, log_step


class JointDataPreparation:
    """
    Builds and validates the tagged frequency-severity training frame.

    Args:
        freq_response: Claim count column
        sev_response: Loss amount column
        ded_name: Deductible column
        freq_covariates: Columns the frequency formula uses
        sev_covariates: Columns the severity formula uses
    """

    def __init__(
        self,
        freq_response: str,
        sev_response: str,
        ded_name: str,
        freq_covariates: Optional[Sequence[str]] = None,
        sev_covariates: Optional[Sequence[str]] = None,
    ):
        self.freq_response = freq_response
        self.sev_response = sev_response
        self.ded_name = ded_name
        self.freq_covariates = list(freq_covariates or [])
        self.sev_covariates = list(sev_covariates or [])

    def validate_frequency_data(self, freq_data: pd.DataFrame) -> None:
        """
        Raises:
            DataValidationError: If columns are missing or counts are invalid
        """
        required = [self.freq_response, self.ded_name] + self.freq_covariates + self.sev_covariates
        _require_columns(freq_data, required, "frequency data")

        counts = freq_data[self.freq_response]
        if counts.isna().any():
            raise DataValidationError(f"Missing values in claim count column '{self.freq_response}'")
        if (counts < 0).any() or not np.allclose(counts, np.round(counts)):
            raise DataValidationError(
                f"Claim counts in '{self.freq_response}' must be non-negative integers"
            )
        if (freq_data[self.ded_name] < 0).any():
            raise DataValidationError(f"Negative deductibles in '{self.ded_name}'")

    def validate_severity_data(self, sev_data: pd.DataFrame) -> None:
        """
        Raises:
            DataValidationError: If columns are missing or losses are not above the deductible
        """
        _require_columns(sev_data, [self.sev_response, self.ded_name] + self.sev_covariates, "severity data")

        losses = sev_data[self.sev_response]
        if losses.isna().any():
            raise DataValidationError(f"Missing values in loss column '{self.sev_response}'")
        if (losses <= 0).any():
            raise DataValidationError(f"Losses in '{self.sev_response}' must be positive")

        below = int((losses <= sev_data[self.ded_name]).sum())
        if below:
            raise DataValidationError(
                "Losses must exceed the deductible",
                details=f"{below} severity rows at or below '{self.ded_name}'"
            )

    @log_step("Preparing joint frequency-severity data")
    def prepare(self, freq_data: pd.DataFrame, sev_data: pd.DataFrame) -> pd.DataFrame:
        """
        Validate both inputs and stack them into one tagged frame.

        Returns:
            Frequency rows first, then severity rows, each in input order
        """
        for name, df in (("frequency", freq_data), ("severity", sev_data)):
            if ROW_TYPE_COL in df.columns:
                raise DataValidationError(f"The {name} data already has a '{ROW_TYPE_COL}' column")

        self.validate_frequency_data(freq_data)
        self.validate_severity_data(sev_data)

        joint = build_joint_data(freq_data, sev_data)
        LoggingManager.log_dataframe_info(logger, "joint", joint)
        return joint


def _require_columns(df: pd.DataFrame, columns: Sequence[str], label: str) -> None:
    missing = [c for c in dict.fromkeys(columns) if c not in df.columns]
    if missing:
        raise DataValidationError(f"Missing columns in {label}", details=f"{missing}")


def build_joint_data(freq_data: pd.DataFrame, sev_data: pd.DataFrame) -> pd.DataFrame:
    """Stack frequency and severity rows with the ``freq`` tag column."""
    freq_part = freq_data.assign(**{ROW_TYPE_COL: FREQUENCY_ROW})
    sev_part = sev_data.assign(**{ROW_TYPE_COL: SEVERITY_ROW})
    return pd.concat([freq_part, sev_part], ignore_index=True, sort=False)


def frequency_rows(joint: pd.DataFrame) -> pd.DataFrame:
    """Frequency-tagged rows in their original order, with a fresh index."""
    return joint.loc[joint[ROW_TYPE_COL] == FREQUENCY_ROW].reset_index(drop=True)


def severity_rows(joint: pd.DataFrame) -> pd.DataFrame:
    """Severity-tagged rows in their original order, with a fresh index."""
    return joint.loc[joint[ROW_TYPE_COL] == SEVERITY_ROW].reset_index(drop=True)


def split_joint_data(joint: pd.DataFrame,
                     drop_empty: bool = True) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Split a tagged frame into (frequency rows, severity rows).

    Args:
        joint: Tagged frame
        drop_empty: Drop the tag column and columns that are entirely missing in a part

    Raises:
        DataValidationError: If the tag column is missing or holds other values
    """
    if ROW_TYPE_COL not in joint.columns:
        raise DataValidationError(f"Joint data has no '{ROW_TYPE_COL}' column")
    unknown = set(joint[ROW_TYPE_COL].unique()) - {FREQUENCY_ROW, SEVERITY_ROW}
    if unknown:
        raise DataValidationError(f"Unexpected values in '{ROW_TYPE_COL}'", details=f"{sorted(unknown)}")

    parts: List[pd.DataFrame] = [frequency_rows(joint), severity_rows(joint)]
    if drop_empty:
        parts = [p.drop(columns=[ROW_TYPE_COL]).dropna(axis=1, how="all") for p in parts]
    return parts[0], parts[1]
