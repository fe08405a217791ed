"""
Visualization module for joint frequency-severity models.

This module plots the estimated deductible offsets and k-fold
cross-validation results.
"""
from typing import Optional
from pathlib import Path

import numpy as np
import pandas as pd
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import seaborn as sns

from utils.logging_utils import logger
from model.constants import OFFSET_COL
from model.exceptions import VisualizationError


class BayesianVisualizer:
    """
    Visualization tools for joint frequency-severity models.

    Responsibilities:
    - Showing how strongly deductibles thin the observed claim frequency
    - Showing which observations drive the k-fold elpd
    """

    def __init__(
        self,
        results_dir: Optional[Path] = None
    ):
        """
        Initialize the visualizer.

        Args:
            results_dir: Directory to save visualization outputs
        """
        self.results_dir = Path(results_dir) if results_dir is not None else None

        if self.results_dir is not None:
            self.viz_dir = self.results_dir / "visualizations"
            self.viz_dir.mkdir(parents=True, exist_ok=True)
        else:
            self.viz_dir = None

        sns.set_style("whitegrid")

    def _save(self, fig, filename: str) -> Path:
        output_path = self.viz_dir / filename
        fig.savefig(output_path, dpi=150, bbox_inches="tight")
        plt.close(fig)
        logger.info(f"Saved plot to {output_path}")
        return output_path

    def plot_offsets(
        self,
        freq_data: pd.DataFrame,
        ded_name: str,
        filename: str = "deductible_offsets.png"
    ) -> Optional[Path]:
        """
        Plot the deductible offsets: their distribution and their relation to
        the deductible.

        Args:
            freq_data: Frequency rows carrying the ``ded_offset`` column
            ded_name: Deductible column
            filename: Name of the file to save the plot to

        Returns:
            Path to the saved plot or None if no directory is set

        Raises:
            VisualizationError: If plotting fails
        """
        if self.viz_dir is None:
            logger.warning("No visualization directory specified")
            return None

        if OFFSET_COL not in freq_data.columns:
            raise VisualizationError(f"Column '{OFFSET_COL}' not found; fit the model first")

        try:
            fig, axes = plt.subplots(1, 2, figsize=(12, 5))

            sns.histplot(freq_data[OFFSET_COL], bins=30, color="steelblue", ax=axes[0])
            axes[0].axvline(freq_data[OFFSET_COL].mean(), color="green", linestyle="-.",
                            label=f"Mean: {freq_data[OFFSET_COL].mean():.3f}")
            axes[0].set_xlabel("Deductible offset (link scale)")
            axes[0].set_title("Distribution of Deductible Offsets")
            axes[0].legend()

            axes[1].scatter(freq_data[ded_name], freq_data[OFFSET_COL], s=8, alpha=0.5)
            axes[1].set_xlabel("Deductible")
            axes[1].set_ylabel("Offset")
            axes[1].set_title("Offset by Deductible")

            fig.tight_layout()
            return self._save(fig, filename)
        except Exception as e:
            raise VisualizationError(f"Offset plotting failed: {str(e)}")

    def plot_kfold_pointwise(
        self,
        result,
        filename: str = "kfold_pointwise.png"
    ) -> Optional[Path]:
        """
        Plot pointwise held-out elpd, coloured by fold.

        Args:
            result: KFoldResult
            filename: Name of the file to save the plot to

        Returns:
            Path to the saved plot or None if no directory is set

        Raises:
            VisualizationError: If plotting fails
        """
        if self.viz_dir is None:
            logger.warning("No visualization directory specified")
            return None

        try:
            pointwise = result.pointwise
            fig, ax = plt.subplots(figsize=(10, 5))
            sns.scatterplot(
                x=np.arange(len(pointwise)),
                y=pointwise["elpd_kfold"],
                hue=pointwise["fold"].astype(str),
                s=12,
                ax=ax,
                legend=result.K <= 10
            )
            ax.set_xlabel("Observation")
            ax.set_ylabel("elpd_i")
            ax.set_title(f"Pointwise elpd, {result.K}-fold CV of '{result.response}' "
                         f"(total {result.elpd_kfold:.1f})")
            fig.tight_layout()
            return self._save(fig, filename)
        except Exception as e:
            raise VisualizationError(f"K-fold plotting failed: {str(e)}")
