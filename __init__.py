"""
bayesact: Bayesian frequency-severity modeling with deductibles

This package provides tools for fitting joint claim frequency and claim
severity models in Bambi and for cross-validating them. The package
includes components for:

- Data simulation, loading and preparation
- Joint model fitting with a deductible offset
- K-fold cross-validation of either response
- Diagnostics and visualization

Main components:
- model: Families, fitting backend, offset estimation and cross-validation
- data: Data loading, preparation and simulation
- config: Configuration management
- utils: Utility functions for logging, timing, etc.
"""

__version__ = '0.1.0'

from model.freq_sev_model import fit_frequency_severity, FrequencySeverityFit
from model.cross_validation import cross_validate
from model.kfold import kfold
from data.data_loader import DataLoader
from config.config_manager import ConfigManager

__all__ = [
    'fit_frequency_severity',
    'FrequencySeverityFit',
    'cross_validate',
    'kfold',
    'DataLoader',
    'ConfigManager',
]
