#!/usr/bin/env python3
"""
File utility functions for bayesact.

Directory handling plus JSON and tabular writers used by the CLI when it
persists simulated data, diagnostics and cross-validation estimates.
"""

import os
import json
from pathlib import Path
from typing import Dict, Any, Union

import pandas as pd

from utils.logging_utils import logger

PathLike = Union[str, Path]


def ensure_dir_exists(directory: PathLike) -> None:
    """
    Ensure a directory exists, creating it if necessary.

    Args:
        directory: Path to directory
    """
    if directory:
        os.makedirs(directory, exist_ok=True)
        logger.debug(f"Ensuring directory exists: {directory}")


def save_json(data: Dict[str, Any], filepath: PathLike) -> None:
    """
    Save dictionary to JSON file.

    Args:
        data: Dictionary to save
        filepath: Path to save JSON file
    """
    ensure_dir_exists(os.path.dirname(str(filepath)))

    with open(filepath, 'w') as f:
        json.dump(data, f, indent=2)

    logger.debug(f"Saved JSON data to {filepath}")


def get_file_extension(filepath: PathLike) -> str:
    """
    Get file extension from filepath, lower-cased and without the dot.
    """
    return os.path.splitext(str(filepath))[1][1:].lower()


def write_table(df: pd.DataFrame, filepath: PathLike) -> Path:
    """
    Write a DataFrame as CSV or Parquet depending on the file extension.

    Args:
        df: Table to write
        filepath: Destination; ``.parquet`` writes Parquet, anything else CSV

    Returns:
        The path written to
    """
    filepath = Path(filepath)
    ensure_dir_exists(str(filepath.parent))

    if get_file_extension(filepath) == "parquet":
        df.to_parquet(filepath, index=False)
    else:
        df.to_csv(filepath, index=False)

    logger.info(f"Wrote {len(df)} rows to {filepath}")
    return filepath
