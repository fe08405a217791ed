#!/usr/bin/env python3
"""
Tests for convergence diagnostics and plots.
"""
import unittest
from unittest.mock import Mock, patch
import os
import sys
import tempfile
from pathlib import Path

import arviz as az
import numpy as np
import pandas as pd

sys.path.insert(0, os.path.abspath(os.path.dirname(os.path.dirname(__file__))))

from model.diagnostics import BayesianDiagnostics
from model.exceptions import VisualizationError
from model.kfold import KFoldResult
from model.visualization import BayesianVisualizer


def well_mixed_idata(seed=0):
    rng = np.random.default_rng(seed)
    return az.from_dict(
        posterior={"Intercept": rng.normal(size=(4, 500)), "age_std": rng.normal(size=(4, 500))},
        sample_stats={"diverging": np.zeros((4, 500), dtype=bool)},
    )


def stuck_idata():
    # Chains centred far apart give a large R-hat
    draws = np.repeat(np.arange(4.0)[:, None] * 10, 200, axis=1)
    draws += np.random.default_rng(1).normal(scale=0.1, size=draws.shape)
    return az.from_dict(posterior={"Intercept": draws})


class TestBayesianDiagnostics(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.diagnostics = BayesianDiagnostics(self.tmp.name)

    def tearDown(self):
        self.tmp.cleanup()

    def test_converged_posterior(self):
        result = self.diagnostics.compute_diagnostics(well_mixed_idata(), label="severity")

        self.assertTrue(result["converged"])
        self.assertEqual(result["n_parameters"], 2)
        self.assertEqual(result["n_divergent"], 0)
        self.assertTrue(Path(self.tmp.name, "diagnostics", "severity_summary.csv").exists())

    @patch("model.diagnostics.logger")
    def test_unconverged_posterior_warns(self, mock_logger):
        result = self.diagnostics.compute_diagnostics(stuck_idata(), label="frequency")

        self.assertFalse(result["converged"])
        self.assertGreater(result["rhat_max"], 1.01)
        mock_logger.warning.assert_called_once()

    def test_invalid_input(self):
        with self.assertRaises(VisualizationError):
            self.diagnostics.compute_diagnostics(None)

    def test_diagnose_joint_fit(self):
        fit = Mock()
        fit.sev_fit.idata = well_mixed_idata(0)
        fit.freq_fit.idata = well_mixed_idata(1)

        result = BayesianDiagnostics().diagnose(fit)

        self.assertEqual(set(result), {"severity", "frequency"})

    def test_plot_trace(self):
        path = self.diagnostics.plot_trace(well_mixed_idata())
        self.assertTrue(path.exists())
        self.assertIsNone(BayesianDiagnostics().plot_trace(well_mixed_idata()))


class TestBayesianVisualizer(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.visualizer = BayesianVisualizer(self.tmp.name)

    def tearDown(self):
        self.tmp.cleanup()

    def test_plot_offsets(self):
        freq_data = pd.DataFrame({
            "deductible": [250.0, 500.0, 1000.0, 2500.0],
            "ded_offset": [-0.05, -0.1, -0.3, -0.9],
        })
        path = self.visualizer.plot_offsets(freq_data, "deductible")
        self.assertTrue(path.exists())

    def test_plot_offsets_needs_offset_column(self):
        with self.assertRaises(VisualizationError):
            self.visualizer.plot_offsets(pd.DataFrame({"deductible": [1.0]}), "deductible")

    def test_plot_kfold_pointwise(self):
        pointwise = pd.DataFrame({
            "elpd_kfold": [-1.0, -2.0, -1.5, -0.5],
            "p_kfold": [0.1, 0.2, 0.1, 0.0],
            "kfoldic": [2.0, 4.0, 3.0, 1.0],
            "fold": [1, 2, 1, 2],
        })
        estimates = pd.DataFrame({"Estimate": [-5.0, 0.4, 10.0], "SE": [0.5, 0.1, 1.0]},
                                 index=["elpd_kfold", "p_kfold", "kfoldic"])
        result = KFoldResult(estimates, pointwise, np.array([1, 2, 1, 2]), "claims", 2)

        path = self.visualizer.plot_kfold_pointwise(result)
        self.assertTrue(path.exists())

    def test_no_directory(self):
        self.assertIsNone(BayesianVisualizer().plot_offsets(pd.DataFrame(), "deductible"))


if __name__ == "__main__":
    unittest.main()
