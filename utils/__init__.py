"""
Utility package for bayesact.

This package provides logging, decorators, dependency checks and file
helpers.
"""

from utils.logging_utils import logger, LoggingManager
from utils.file_utils import ensure_dir_exists
from utils.decorators import log_step, timed, log_errors

__all__ = [
    'logger', 'LoggingManager', 'ensure_dir_exists',
    'log_step', 'timed', 'log_errors'
]
