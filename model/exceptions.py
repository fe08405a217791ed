#!/usr/bin/env python3
"""
Custom exceptions for bayesact.

This module provides a hierarchy of exception classes for the error
scenarios of joint frequency-severity fitting and cross-validation.
Failures raised by PyMC or Bambi themselves are not wrapped; they reach the
caller unchanged.
"""


class BayesactError(Exception):
    """Base exception class for all bayesact errors."""
    def __init__(self, message, details=None):
        self.message = message
        self.details = details
        super().__init__(message)

    def __str__(self):
        if self.details:
            return f"{self.message} - Details: {self.details}"
        return self.message


# Data-related errors
class DataError(BayesactError):
    """Error related to data loading, validation, or preparation."""
    pass


class DataValidationError(DataError):
    """Error related to data validation."""
    pass


# Model-related errors
class ModelError(BayesactError):
    """Base class for model-related errors."""
    pass


class ModelBuildError(ModelError):
    """Error related to building a model (formula, family or priors)."""
    pass


class SamplingError(ModelError):
    """Error related to reading posterior draws."""
    pass


class UnsupportedArityError(ModelError):
    """A severity family has a number of distribution parameters outside 1-5."""
    pass


class CrossValidationError(ModelError):
    """Error related to fold assignment or held-out evaluation."""
    pass


# Configuration-related errors
class ConfigurationError(BayesactError):
    """Error related to configuration or call arguments."""
    pass


# Results-related errors
class ResultsError(BayesactError):
    """Error related to results handling."""
    pass


# Visualization-related errors
class VisualizationError(BayesactError):
    """Error related to diagnostics or plotting."""
    pass
