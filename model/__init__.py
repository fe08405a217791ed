"""
Model package for bayesact.

This package provides the response families, the Bambi fitting backend,
deductible offset estimation, the joint frequency-severity fit and its
cross-validation.
"""

from model.exceptions import (
    BayesactError, ConfigurationError, DataError, ModelError,
    ModelBuildError, SamplingError, UnsupportedArityError,
)
from model.families import FamilySpec, custom_family, get_family
from model.formula import ModelFormula
from model.priors import prior, prior_table
from model.survival import register_cdf
from model.backend import SamplerSettings, FittedModel, fit_model
from model.kfold import KFoldResult, kfold
from model.freq_sev_model import FrequencySeverityFit, fit_frequency_severity
from model.cross_validation import cross_validate

__all__ = [
    'BayesactError', 'ConfigurationError', 'DataError', 'ModelError',
    'ModelBuildError', 'SamplingError', 'UnsupportedArityError',
    'FamilySpec', 'custom_family', 'get_family',
    'ModelFormula', 'prior', 'prior_table', 'register_cdf',
    'SamplerSettings', 'FittedModel', 'fit_model',
    'KFoldResult', 'kfold',
    'FrequencySeverityFit', 'fit_frequency_severity',
    'cross_validate',
]
