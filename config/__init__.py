"""
Configuration package for bayesact.

This package provides configuration management for fitting and
cross-validation runs.
"""

from config.config_manager import ConfigManager, AppConfig, get_config

__all__ = ['ConfigManager', 'AppConfig', 'get_config']
