#!/usr/bin/env python3
"""
Model Runner for bayesact.

This orchestration module runs the end-to-end workflows behind the command
line: simulating a portfolio, fitting the joint frequency-severity model and
cross-validating one of its responses.

EXECUTION FLOW:
1. Initialize with configuration (or use defaults)
2. Load policy and claim tables (or simulate them)
3. Fit the severity model, estimate the deductible offset, fit the frequency model
4. Compute diagnostics, optionally cross-validate
5. Save outputs and generate visualizations

EDGE CASES:
- Data loading failures raise DataError with the failing path
- Convergence problems are logged as warnings, not raised
- Backend failures propagate unchanged
"""
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import pandas as pd

from config.config_manager import ConfigManager
from data.data_loader import load_policy_and_claims
from data.simulation import generate_portfolio, save_portfolio
from model.constants import OFFSET_COL
from model.cross_validation import cross_validate
from model.diagnostics import BayesianDiagnostics
from model.exceptions import DataError
from model.formula import ModelFormula
from model.freq_sev_model import FrequencySeverityFit, fit_frequency_severity
from model.kfold import KFoldResult
from model.visualization import BayesianVisualizer
from utils.decorators import log_errors, log_step
from utils.file_utils import ensure_dir_exists, save_json, write_table
from utils.logging_utils import get_logger
from utils.serialization import to_serializable

logger = get_logger()


class ModelRunner:
    """
    Runs simulation, fitting and cross-validation from one configuration.

    Args:
        config_manager: Configuration (defaults when None)
        results_dir: Overrides the configured results directory
    """

    def __init__(
        self,
        config_manager: Optional[ConfigManager] = None,
        results_dir: Optional[str] = None
    ):
        self.config_manager = config_manager or ConfigManager()
        self.config = self.config_manager.app_config
        self.results_dir = Path(results_dir or self.config.results_dir)
        ensure_dir_exists(str(self.results_dir))

        self.fit: Optional[FrequencySeverityFit] = None
        self.kfold_result: Optional[KFoldResult] = None
        self.results: Dict[str, Any] = {}

    @log_step("Simulating portfolio")
    def run_simulation(self) -> Tuple[str, str]:
        """Simulate a portfolio and write it to the configured data directory."""
        portfolio = generate_portfolio(
            n_policies=self.config.data_n_policies,
            seed=self.config.data_seed,
        )
        paths = save_portfolio(portfolio, self.config.data_dir)
        self.results["simulation"] = {
            "n_policies": len(portfolio.policies),
            "n_claims": len(portfolio.claims),
            "reporting_rate": portfolio.reporting_rate,
        }
        return paths

    @log_step("Loading data")
    @log_errors(DataError, msg="Error loading data")
    def load_data(self) -> Tuple[pd.DataFrame, pd.DataFrame]:
        """Load the policy and claim tables named in the configuration."""
        freq_formula = ModelFormula.parse(self.config.model_freq_formula)
        sev_formula = ModelFormula.parse(self.config.model_sev_formula)
        ded = self.config.data_ded_col

        policy_columns = [freq_formula.response_name, ded] + freq_formula.variables() + sev_formula.variables()
        claim_columns = [sev_formula.response_name, ded] + sev_formula.variables()

        policies, claims = load_policy_and_claims(
            self.config.data_policy_path,
            self.config.data_claims_path,
            list(dict.fromkeys(policy_columns)),
            list(dict.fromkeys(claim_columns)),
            column_mapping=self.config.data_column_mappings,
        )
        return policies, claims

    def run_fit(
        self,
        policies: Optional[pd.DataFrame] = None,
        claims: Optional[pd.DataFrame] = None
    ) -> FrequencySeverityFit:
        """
        Fit the joint model and save diagnostics.

        Args:
            policies: Policy table (loaded from the configured path when None)
            claims: Claim table (loaded from the configured path when None)
        """
        if policies is None or claims is None:
            policies, claims = self.load_data()

        self.fit = fit_frequency_severity(
            self.config.model_freq_formula,
            self.config.model_sev_formula,
            policies,
            claims,
            ded_name=self.config.data_ded_col,
            freq_family=self.config.model_freq_family,
            sev_family=self.config.model_sev_family,
            sampler=self.config_manager.app_config.sampler_settings(),
            ded_adj_min=self.config.model_ded_adj_min,
            draw_sample_ceiling=self.config.model_draw_sample_ceiling,
        )

        diagnostics = BayesianDiagnostics(self.results_dir).diagnose(self.fit)
        self.results["diagnostics"] = diagnostics

        freq_data = self.fit.freq_fit.data
        self.results["offset"] = {
            "mean": float(freq_data[OFFSET_COL].mean()),
            "min": float(freq_data[OFFSET_COL].min()),
            "max": float(freq_data[OFFSET_COL].max()),
        }
        write_table(freq_data, self.results_dir / "frequency_data_with_offset.csv")

        if self.config.create_plots:
            BayesianVisualizer(self.results_dir).plot_offsets(freq_data, self.config.data_ded_col)

        self.save_results()
        return self.fit

    def run_kfold(self, response: Optional[str] = None) -> KFoldResult:
        """
        Cross-validate one response of the joint model, fitting it first if needed.

        Args:
            response: Response to cross-validate (configured response when None)
        """
        if self.fit is None:
            self.run_fit()

        self.kfold_result = cross_validate(
            self.fit,
            response=response or self.config.cv_response,
            draw_sample_ceiling=self.config.model_draw_sample_ceiling,
            K=self.config.cv_k,
            folds=self.config.cv_folds,
            group=self.config.cv_group or None,
            random_seed=self.config.data_seed,
            save_fits=self.config.cv_save_fits,
        )
        logger.info("\n" + self.kfold_result.summary())

        write_table(self.kfold_result.estimates.reset_index().rename(columns={"index": "estimate"}),
                    self.results_dir / "kfold_estimates.csv")
        write_table(self.kfold_result.pointwise, self.results_dir / "kfold_pointwise.csv")
        self.results["kfold"] = {
            "response": self.kfold_result.response,
            "K": self.kfold_result.K,
            "estimates": self.kfold_result.estimates.to_dict(orient="index"),
        }

        if self.config.create_plots:
            BayesianVisualizer(self.results_dir).plot_kfold_pointwise(self.kfold_result)

        self.save_results()
        return self.kfold_result

    def save_results(self) -> Path:
        """Write the collected results to ``results.json``."""
        path = self.results_dir / "results.json"
        save_json(to_serializable(self.results), path)
        logger.info(f"Saved results to {path}")
        return path
