"""
Configuration manager for bayesact.

This module provides a centralized configuration management system with
a structured configuration class using dataclasses. Values come from the
defaults below, then an optional JSON file, then ``BAYESACT_*`` environment
variables.
"""
import json
import os
from typing import Dict, Any, Optional, Union
from pathlib import Path
from dataclasses import dataclass, asdict, field, fields

from model.backend import SamplerSettings
from model.constants import (
    DEFAULT_BACKEND,
    DEFAULT_CHAINS,
    DEFAULT_DED_ADJ_MIN,
    DEFAULT_DRAW_SAMPLE_CEILING,
    DEFAULT_DRAWS,
    DEFAULT_K,
    DEFAULT_MAX_TREEDEPTH,
    DEFAULT_TARGET_ACCEPT,
    DEFAULT_TUNE,
    FOLD_TYPES,
    SUPPORTED_BACKENDS,
)
from model.exceptions import ConfigurationError
from utils.logging_utils import get_logger

# Get logger for this module
logger = get_logger()

# Singleton config manager instance
_config_manager = None


def get_config() -> 'ConfigManager':
    """Get the singleton ConfigManager instance."""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager


@dataclass
class AppConfig:
    """Unified application configuration parameters with prefixed attributes"""
    # App settings
    results_dir: str = "results"
    create_plots: bool = True
    log_level: str = "INFO"
    log_to_file: bool = False
    log_file: str = "logs/bayesact.log"

    # Model settings (with model_ prefix)
    model_freq_formula: str = "claims ~ age_std + offset(log_exposure)"
    model_sev_formula: str = "loss ~ age_std"
    model_freq_family: str = "poisson"
    model_sev_family: str = "lognormal"
    model_n_draws: int = DEFAULT_DRAWS
    model_n_tune: int = DEFAULT_TUNE
    model_n_chains: int = DEFAULT_CHAINS
    model_target_accept: float = DEFAULT_TARGET_ACCEPT
    model_max_treedepth: int = DEFAULT_MAX_TREEDEPTH
    model_backend: str = DEFAULT_BACKEND
    model_control: Dict[str, Any] = field(default_factory=dict)
    model_random_seed: int = 42
    model_ded_adj_min: float = DEFAULT_DED_ADJ_MIN
    model_draw_sample_ceiling: float = DEFAULT_DRAW_SAMPLE_CEILING

    # Data settings (with data_ prefix)
    data_dir: str = "data_output"
    data_policy_path: str = "data_output/policies.csv"
    data_claims_path: str = "data_output/claims.csv"
    data_ded_col: str = "deductible"
    data_n_policies: int = 2000
    data_seed: int = 42
    data_column_mappings: Dict[str, str] = field(default_factory=dict)

    # Cross-validation settings (with cv_ prefix)
    cv_response: str = "claims"
    cv_k: int = DEFAULT_K
    cv_folds: str = "random"
    cv_group: str = ""
    cv_save_fits: bool = False

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value with fallback to default.

        Args:
            key: Configuration key to look up
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        return getattr(self, key, default)

    def sampler_settings(self) -> SamplerSettings:
        """Sampler settings described by the ``model_*`` fields."""
        return SamplerSettings(
            n_chains=self.model_n_chains,
            n_draws=self.model_n_draws,
            n_tune=self.model_n_tune,
            target_accept=self.model_target_accept,
            max_treedepth=self.model_max_treedepth,
            backend=self.model_backend,
            control=dict(self.model_control),
            random_seed=self.model_random_seed,
        )


class ConfigManager:
    """
    Unified configuration manager with a typed configuration object.
    """

    # Environment variable prefix for overrides
    ENV_PREFIX = "BAYESACT_"

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        """
        Initialize the configuration manager.

        Args:
            config_path: Path to a JSON configuration file.
        """
        self.app_config = AppConfig()

        if config_path:
            self.load_config(config_path)

        self._apply_env_overrides()
        self.validate()

    def load_config(self, config_path: Union[str, Path]) -> None:
        """
        Load configuration from a JSON file.

        Unknown keys are ignored with a warning.

        Args:
            config_path: Path to a JSON configuration file.

        Raises:
            ConfigurationError: If the file is not valid JSON
        """
        config_path = Path(config_path)
        if not config_path.exists():
            logger.warning(f"Configuration file not found: {config_path}")
            return

        try:
            with open(config_path, 'r') as f:
                config_dict = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid configuration file {config_path}", details=str(e))

        app_fields = {f.name for f in fields(AppConfig)}
        for key, value in config_dict.items():
            if key in app_fields:
                setattr(self.app_config, key, value)
            else:
                logger.warning(f"Ignoring unknown configuration key: {key}")

        logger.info(f"Loaded configuration from {config_path}")

    @staticmethod
    def _convert(raw: str, current: Any) -> Any:
        field_type = type(current)
        if field_type == bool:
            return raw.lower() in ('true', 'yes', '1')
        if field_type == dict:
            return json.loads(raw)
        return field_type(raw)

    def _apply_env_overrides(self) -> None:
        """Apply configuration overrides from environment variables."""
        for field_info in fields(AppConfig):
            env_name = f"{self.ENV_PREFIX}{field_info.name.upper()}"
            if env_name not in os.environ:
                continue
            try:
                value = self._convert(os.environ[env_name], getattr(self.app_config, field_info.name))
                setattr(self.app_config, field_info.name, value)
                logger.debug(f"Applied env override for {field_info.name}: {value}")
            except (ValueError, TypeError) as e:
                logger.warning(f"Invalid env value for {field_info.name}: {str(e)}")

    def save_config(self, filepath: Union[str, Path]) -> None:
        """
        Save the current configuration to a JSON file.

        Args:
            filepath: Path to save the configuration to.
        """
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)

        with open(filepath, 'w') as f:
            json.dump(asdict(self.app_config), f, indent=4)

        logger.info(f"Saved configuration to {filepath}")

    def validate(self) -> bool:
        """
        Validate the current configuration and fix common issues.

        Returns:
            True if configuration was valid as given, False if values were reset
        """
        cfg = self.app_config
        valid = True

        if cfg.model_backend not in SUPPORTED_BACKENDS:
            logger.warning(f"Unsupported backend: {cfg.model_backend}. Using default '{DEFAULT_BACKEND}'.")
            cfg.model_backend = DEFAULT_BACKEND
            valid = False

        if cfg.model_n_draws < 100:
            logger.warning(f"n_draws too small: {cfg.model_n_draws}. Setting to 100.")
            cfg.model_n_draws = 100
            valid = False

        if cfg.model_n_tune < 50:
            logger.warning(f"n_tune too small: {cfg.model_n_tune}. Setting to 50.")
            cfg.model_n_tune = 50
            valid = False

        if cfg.model_n_chains < 1:
            logger.warning(f"n_chains too small: {cfg.model_n_chains}. Setting to 1.")
            cfg.model_n_chains = 1
            valid = False

        if not 0 < cfg.model_target_accept < 1:
            logger.warning(f"target_accept out of range: {cfg.model_target_accept}. "
                           f"Setting to {DEFAULT_TARGET_ACCEPT}.")
            cfg.model_target_accept = DEFAULT_TARGET_ACCEPT
            valid = False

        if not 0 < cfg.model_ded_adj_min < 1:
            logger.warning(f"ded_adj_min out of range: {cfg.model_ded_adj_min}. "
                           f"Setting to {DEFAULT_DED_ADJ_MIN}.")
            cfg.model_ded_adj_min = DEFAULT_DED_ADJ_MIN
            valid = False

        if cfg.cv_k < 2:
            logger.warning(f"cv_k too small: {cfg.cv_k}. Setting to 2.")
            cfg.cv_k = 2
            valid = False

        if cfg.cv_folds not in FOLD_TYPES:
            logger.warning(f"Unknown fold type: {cfg.cv_folds}. Using 'random'.")
            cfg.cv_folds = "random"
            valid = False

        if not cfg.results_dir:
            logger.warning("No results directory specified. Using default 'results'.")
            cfg.results_dir = "results"
            valid = False

        return valid
