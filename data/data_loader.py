#!/usr/bin/env python3
"""
Insurance Data Loader Module for Frequency-Severity Modeling.

This module provides a DataLoader class for policy and claim tables.

PURPOSE:
- Standardize loading across file formats (CSV, Parquet, Excel)
- Check that the columns a model needs are present before fitting
- Map source column names onto the names the model formulas use

ASSUMPTIONS:
- Policy tables carry one row per policy, claim tables one row per reported claim
- Data can fit in memory for processing

EDGE CASES:
- Missing required columns raise DataLoaderError
- Column names matching a required column up to case are renamed
- Empty tables are allowed but trigger warnings
- Files with unsupported extensions raise DataLoaderError
"""
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import pandas as pd

from model.exceptions import DataError
from utils.logging_utils import logger

SUPPORTED_EXTENSIONS = ['.csv', '.parquet', '.xlsx', '.xls']


class DataLoaderError(DataError):
    """Exception raised for errors in the data loading process."""
    pass


class DataLoader:
    """
    Loader for policy and claim tables.

    Parameters
    ----------
    data_path : str
        Path to the data file. Supports CSV, Parquet, and Excel formats.
    required_columns : sequence of str, optional
        Columns that must be present after renaming.
    """

    def __init__(
        self,
        data_path: Union[str, Path],
        required_columns: Optional[Sequence[str]] = None
    ):
        """Initialize the DataLoader with configuration parameters."""
        self.data_path = Path(data_path)
        self.required_columns: List[str] = list(required_columns or [])
        self.column_mapping: Dict[str, str] = {}

        if not self.data_path.exists():
            raise DataLoaderError(f"Data file not found: {self.data_path}")

        if self.data_path.suffix.lower() not in SUPPORTED_EXTENSIONS:
            raise DataLoaderError(f"Unsupported file format: {self.data_path.suffix}")

        logger.info(f"Initialized DataLoader with data path: {self.data_path}")

    def set_column_mapping(self, mapping: Dict[str, str]) -> None:
        """
        Set mapping from actual column names to expected column names.

        Example
        -------
        loader.set_column_mapping({'ded': 'deductible', 'n_claims': 'claims'})
        """
        self.column_mapping = dict(mapping)
        logger.info(f"Set column mapping: {mapping}")

    def _read(self) -> pd.DataFrame:
        file_ext = self.data_path.suffix.lower()
        if file_ext == '.csv':
            return pd.read_csv(self.data_path)
        if file_ext == '.parquet':
            return pd.read_parquet(self.data_path)
        return pd.read_excel(self.data_path)

    def _rename_columns(self, data: pd.DataFrame) -> pd.DataFrame:
        rename_dict = {}
        for col in data.columns:
            for req_col in self.required_columns:
                if str(col).lower() == req_col.lower() and col != req_col:
                    rename_dict[col] = req_col
        rename_dict.update({k: v for k, v in self.column_mapping.items() if k in data.columns})

        if rename_dict:
            logger.info(f"Renaming columns: {rename_dict}")
            return data.rename(columns=rename_dict)
        return data

    def load_data(
        self,
        filter_conditions: Optional[Dict[str, Any]] = None,
        dropna: bool = True
    ) -> pd.DataFrame:
        """
        Load the table, rename columns and check required ones.

        Parameters
        ----------
        filter_conditions : dict, optional
            Column-value pairs to filter on; list values keep any listed value.
        dropna : bool, optional
            Drop rows with missing values in required columns.

        Returns
        -------
        pd.DataFrame
            Loaded data.

        Raises
        ------
        DataLoaderError
            If the file cannot be read or required columns are missing.
        """
        try:
            data = self._rename_columns(self._read())
        except Exception as e:
            error_msg = f"Error loading data from {self.data_path}: {str(e)}"
            logger.error(error_msg)
            raise DataLoaderError(error_msg) from e

        missing_cols = [col for col in self.required_columns if col not in data.columns]
        if missing_cols:
            raise DataLoaderError(f"Missing required columns: {missing_cols}")

        if dropna and self.required_columns:
            before = len(data)
            data = data.dropna(subset=self.required_columns)
            if len(data) < before:
                logger.warning(f"Dropped {before - len(data)} rows with missing required values")

        for col, value in (filter_conditions or {}).items():
            if col not in data.columns:
                logger.warning(f"Filter column not found: {col}")
            elif isinstance(value, (list, tuple)):
                data = data[data[col].isin(value)]
            else:
                data = data[data[col] == value]

        if data.empty:
            logger.warning(f"No rows loaded from {self.data_path}")

        data = data.reset_index(drop=True)
        logger.info(f"Loaded data with {len(data)} rows and {len(data.columns)} columns")
        return data

    @staticmethod
    def get_data_info(data: pd.DataFrame) -> Dict[str, Any]:
        """Row count, columns and missing-value counts of a table."""
        return {
            "n_rows": len(data),
            "columns": list(data.columns),
            "missing": {c: int(n) for c, n in data.isna().sum().items() if n > 0},
        }


def load_policy_and_claims(
    policy_path: Union[str, Path],
    claims_path: Union[str, Path],
    policy_columns: Sequence[str],
    claim_columns: Sequence[str],
    column_mapping: Optional[Dict[str, str]] = None,
):
    """Load the policy and claim tables of a joint model."""
    tables = []
    for path, columns in ((policy_path, policy_columns), (claims_path, claim_columns)):
        loader = DataLoader(path, columns)
        if column_mapping:
            loader.set_column_mapping(column_mapping)
        tables.append(loader.load_data())
    return tables[0], tables[1]
