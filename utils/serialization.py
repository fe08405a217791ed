#!/usr/bin/env python3
"""
Serialization utilities for bayesact.

Converts NumPy scalars and arrays, pandas objects and result dataclasses to
JSON-friendly structures.
"""

import dataclasses
from typing import Any

import numpy as np
import pandas as pd

from utils.logging_utils import logger


def to_serializable(obj: Any) -> Any:
    """
    Convert object to JSON-serializable format.

    Args:
        obj: Object to convert

    Returns:
        JSON-serializable representation of object
    """
    if isinstance(obj, np.integer):
        return int(obj)
    elif isinstance(obj, np.floating):
        return float(obj)
    elif isinstance(obj, np.bool_):
        return bool(obj)
    elif isinstance(obj, (np.ndarray, list, tuple)):
        return [to_serializable(x) for x in obj]
    elif isinstance(obj, dict):
        return {str(k): to_serializable(v) for k, v in obj.items()}
    elif isinstance(obj, pd.DataFrame):
        return {
            'columns': [str(c) for c in obj.columns],
            'index': to_serializable(list(obj.index)),
            'data': to_serializable(obj.values.tolist())
        }
    elif isinstance(obj, pd.Series):
        return {
            'name': obj.name,
            'index': to_serializable(list(obj.index)),
            'data': to_serializable(obj.values.tolist())
        }
    elif dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: to_serializable(getattr(obj, f.name)) for f in dataclasses.fields(obj)}
    elif obj is None or isinstance(obj, (str, int, float, bool)):
        return obj
    else:
        try:
            return str(obj)
        except Exception:
            logger.warning(f"Cannot serialize object of type {type(obj)}")
            return None
