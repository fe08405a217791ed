"""
Diagnostics module for joint frequency-severity models.

This module provides convergence diagnostics for the severity and frequency
sub-fits and trace plots of their parameters.
"""
from typing import Any, Dict, List, Optional
from pathlib import Path

import arviz as az
import matplotlib.pyplot as plt

from utils.logging_utils import logger, log_step
from model.constants import MIN_ESS_BULK, RHAT_THRESHOLD
from model.exceptions import VisualizationError


class BayesianDiagnostics:
    """
    Provides diagnostics for fitted Bambi models.

    Responsibilities:
    - Computing convergence diagnostics (R-hat, bulk ESS, divergences)
    - Flagging sub-fits that have not converged
    - Producing trace plots
    """

    def __init__(
        self,
        results_dir: Optional[Path] = None,
        rhat_threshold: float = RHAT_THRESHOLD,
        min_ess_bulk: float = MIN_ESS_BULK
    ):
        """
        Initialize the diagnostics component.

        Args:
            results_dir: Directory to save summaries and plots
            rhat_threshold: Largest acceptable R-hat
            min_ess_bulk: Smallest acceptable bulk effective sample size
        """
        self.rhat_threshold = rhat_threshold
        self.min_ess_bulk = min_ess_bulk
        self.results_dir = Path(results_dir) if results_dir is not None else None
        if self.results_dir is not None:
            self.diagnostics_dir = self.results_dir / "diagnostics"
            self.diagnostics_dir.mkdir(parents=True, exist_ok=True)
        else:
            self.diagnostics_dir = None

    def compute_diagnostics(self, idata: "az.InferenceData", label: str = "model") -> Dict[str, Any]:
        """
        Compute diagnostic metrics for one posterior.

        Args:
            idata: ArviZ InferenceData with a posterior group
            label: Name used in logs and file names

        Returns:
            Dictionary of diagnostic metrics

        Raises:
            VisualizationError: If computation fails
        """
        try:
            summary = az.summary(idata, kind="diagnostics", round_to=3)

            n_divergent = 0
            if hasattr(idata, "sample_stats") and "diverging" in idata.sample_stats:
                n_divergent = int(idata.sample_stats["diverging"].sum().item())

            rhat_max = float(summary["r_hat"].max())
            ess_min = float(summary["ess_bulk"].min())
            diagnostics = {
                "rhat_max": rhat_max,
                "ess_bulk_min": ess_min,
                "n_divergent": n_divergent,
                "n_parameters": len(summary),
                "converged": bool(rhat_max < self.rhat_threshold
                                  and ess_min >= self.min_ess_bulk
                                  and n_divergent == 0),
            }
        except Exception as e:
            raise VisualizationError(f"Diagnostic computation failed for {label}: {str(e)}")

        logger.info(f"{label}: max Rhat = {diagnostics['rhat_max']:.3f}, "
                    f"min ESS = {diagnostics['ess_bulk_min']:.1f}, "
                    f"n_divergent = {diagnostics['n_divergent']}")
        if not diagnostics["converged"]:
            logger.warning(f"{label} shows convergence problems; consider more tuning "
                           f"steps or a higher target_accept")

        if self.diagnostics_dir is not None:
            summary_path = self.diagnostics_dir / f"{label}_summary.csv"
            summary.to_csv(summary_path)
            logger.info(f"Saved summary table to {summary_path}")

        return diagnostics

    @log_step("Computing convergence diagnostics")
    def diagnose(self, fit) -> Dict[str, Dict[str, Any]]:
        """
        Diagnostics for both sub-fits of a joint model.

        Args:
            fit: FrequencySeverityFit

        Returns:
            {"severity": {...}, "frequency": {...}}
        """
        return {
            "severity": self.compute_diagnostics(fit.sev_fit.idata, label="severity"),
            "frequency": self.compute_diagnostics(fit.freq_fit.idata, label="frequency"),
        }

    def plot_trace(self,
                   idata: "az.InferenceData",
                   variables: Optional[List[str]] = None,
                   filename: str = "trace_plot.png") -> Optional[Path]:
        """
        Generate trace plots for model parameters.

        Args:
            idata: ArviZ InferenceData with posterior samples
            variables: Variables to plot (all when None)
            filename: Name of the file to save the plot to

        Returns:
            Path to the saved plot or None if no directory is set

        Raises:
            VisualizationError: If plotting fails
        """
        if self.diagnostics_dir is None:
            logger.warning("No diagnostics directory specified")
            return None

        try:
            axes = az.plot_trace(idata, var_names=variables, compact=True)
            fig = axes.ravel()[0].figure
            fig.tight_layout()

            output_path = self.diagnostics_dir / filename
            fig.savefig(output_path, dpi=150, bbox_inches="tight")
            plt.close(fig)
        except Exception as e:
            raise VisualizationError(f"Trace plotting failed: {str(e)}")

        logger.info(f"Saved trace plot to {output_path}")
        return output_path
