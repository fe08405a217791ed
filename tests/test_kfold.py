#!/usr/bin/env python3
"""
Tests for fold assignment and the generic k-fold routine.
"""
import unittest
from unittest.mock import Mock, patch
import os
import sys

import numpy as np
import pandas as pd

sys.path.insert(0, os.path.abspath(os.path.dirname(os.path.dirname(__file__))))

from model.backend import FittedModel, SamplerSettings
from model.exceptions import ConfigurationError, CrossValidationError
from model.families import get_family
from model.formula import ModelFormula
from model.kfold import KFoldResult, assign_folds, kfold, pointwise_lpd


def make_fit(n=6):
    data = pd.DataFrame({
        "y": np.arange(n, dtype=float),
        "x": np.repeat(np.arange(1, n // 2 + 1), 2).astype(float),
    })
    return FittedModel(
        formula=ModelFormula.parse("y ~ x"),
        family=get_family("gaussian"),
        data=data,
        priors=None,
        sampler=SamplerSettings(n_chains=1, n_draws=10),
        model=Mock(),
    )


def covariate_log_likelihood(fit, newdata=None):
    """Log-likelihood of -x for every draw."""
    data = fit.data if newdata is None else newdata
    return np.tile(-data["x"].to_numpy(), (10, 1))


class TestAssignFolds(unittest.TestCase):
    """Tests for fold assignment."""

    def setUp(self):
        self.data = pd.DataFrame({
            "y": [0, 1] * 10,
            "region": np.repeat(list("abcde"), 4),
        })

    def test_random_folds_balanced(self):
        folds = assign_folds(self.data, K=5, random_seed=0)
        self.assertEqual(sorted(np.unique(folds)), [1, 2, 3, 4, 5])
        np.testing.assert_array_equal(np.bincount(folds)[1:], [4, 4, 4, 4, 4])

    def test_random_folds_reproducible(self):
        np.testing.assert_array_equal(assign_folds(self.data, K=4, random_seed=3),
                                      assign_folds(self.data, K=4, random_seed=3))

    def test_stratified_folds(self):
        folds = assign_folds(self.data, K=2, folds="stratified", response="y", random_seed=0)
        for k in (1, 2):
            self.assertEqual(self.data.loc[folds == k, "y"].sum(), 5)

    def test_stratified_needs_response(self):
        with self.assertRaises(ConfigurationError):
            assign_folds(self.data, K=2, folds="stratified")

    def test_grouped_folds_keep_groups_together(self):
        folds = assign_folds(self.data, K=5, folds="grouped", group="region")
        per_group = pd.Series(folds).groupby(self.data["region"]).nunique()
        self.assertTrue((per_group == 1).all())
        self.assertEqual(len(np.unique(folds)), 5)

    def test_grouped_needs_group_column(self):
        with self.assertRaises(ConfigurationError):
            assign_folds(self.data, K=2, folds="grouped", group="state")

    def test_explicit_vector_relabelled(self):
        folds = assign_folds(self.data.head(4), folds=["b", "a", "b", "c"])
        np.testing.assert_array_equal(folds, [1, 2, 1, 3])

    def test_explicit_vector_length_mismatch(self):
        with self.assertRaises(ConfigurationError):
            assign_folds(self.data, folds=[1, 2, 3])

    def test_invalid_k_or_type(self):
        with self.assertRaises(ConfigurationError):
            assign_folds(self.data, K=1)
        with self.assertRaises(ConfigurationError):
            assign_folds(self.data, K=21)
        with self.assertRaises(ConfigurationError):
            assign_folds(self.data, folds="leave-one-out")


class TestPointwiseLpd(unittest.TestCase):

    def test_log_mean_density(self):
        ll = np.log(np.array([[0.2, 0.5], [0.4, 0.5]]))
        np.testing.assert_allclose(pointwise_lpd(ll), np.log([0.3, 0.5]))

    def test_stable_for_very_negative_values(self):
        ll = np.full((4, 2), -1000.0)
        np.testing.assert_allclose(pointwise_lpd(ll), [-1000.0, -1000.0])


class TestKFold(unittest.TestCase):
    """Tests for the refit loop with the backend mocked out."""

    def setUp(self):
        self.fit = make_fit()

    @patch("model.kfold.log_likelihood", side_effect=covariate_log_likelihood)
    @patch("model.kfold.fit_model")
    def test_refits_each_fold(self, mock_fit_model, _):
        mock_fit_model.side_effect = lambda formula, family, data, priors, sampler: FittedModel(
            formula, family, data, priors, sampler, model=Mock()
        )

        result = kfold(self.fit, folds=[1, 1, 2, 2, 3, 3], save_fits=True)

        self.assertIsInstance(result, KFoldResult)
        self.assertEqual(result.K, 3)
        self.assertEqual(result.response, "y")
        self.assertEqual(mock_fit_model.call_count, 3)
        for call in mock_fit_model.call_args_list:
            self.assertEqual(len(call[0][2]), 4)
            self.assertIs(call[0][4], self.fit.sampler)
        self.assertEqual(len(result.fits), 3)

        np.testing.assert_allclose(result.pointwise["elpd_kfold"], [-1, -1, -2, -2, -3, -3])
        np.testing.assert_allclose(result.pointwise["p_kfold"], 0.0)
        np.testing.assert_array_equal(result.pointwise["fold"], [1, 1, 2, 2, 3, 3])

        values = np.array([-1, -1, -2, -2, -3, -3], dtype=float)
        self.assertAlmostEqual(result.elpd_kfold, -12.0)
        self.assertAlmostEqual(result.kfoldic, 24.0)
        self.assertAlmostEqual(result.p_kfold, 0.0)
        self.assertAlmostEqual(result.se_elpd_kfold, np.sqrt(6 * np.var(values, ddof=1)))

    @patch("model.kfold.log_likelihood", side_effect=covariate_log_likelihood)
    @patch("model.kfold.fit_model")
    def test_held_out_rows_not_in_training(self, mock_fit_model, mock_ll):
        kfold(self.fit, folds=[1, 2, 1, 2, 1, 2])

        first_train = mock_fit_model.call_args_list[0][0][2]
        np.testing.assert_array_equal(first_train["y"], [1.0, 3.0, 5.0])
        held_out = mock_ll.call_args_list[0][0][1]
        np.testing.assert_array_equal(held_out["y"], [0.0, 2.0, 4.0])

    @patch("model.kfold.log_likelihood", side_effect=covariate_log_likelihood)
    @patch("model.kfold.fit_model")
    def test_fits_not_kept_by_default(self, mock_fit_model, _):
        result = kfold(self.fit, K=2, random_seed=0)
        self.assertEqual(result.fits, [])
        self.assertEqual(len(result.folds), 6)

    @patch("model.kfold.log_likelihood", side_effect=covariate_log_likelihood)
    @patch("model.kfold.fit_model")
    def test_newdata_is_split(self, mock_fit_model, _):
        newdata = pd.DataFrame({"y": [1.0, 2.0, 3.0, 4.0], "x": [1.0, 1.0, 1.0, 1.0]})
        result = kfold(self.fit, K=2, newdata=newdata, random_seed=0)
        self.assertEqual(len(result.pointwise), 4)
        self.assertAlmostEqual(result.elpd_kfold, -4.0)

    @patch("model.kfold.fit_model")
    def test_response_mismatch(self, mock_fit_model):
        with self.assertRaises(ConfigurationError):
            kfold(self.fit, resp="claims")
        mock_fit_model.assert_not_called()

    @patch("model.kfold.log_likelihood", side_effect=covariate_log_likelihood)
    @patch("model.kfold.fit_model")
    def test_single_fold_has_no_training_rows(self, mock_fit_model, _):
        with self.assertRaises(CrossValidationError):
            kfold(self.fit, folds=[1] * 6)
        mock_fit_model.assert_not_called()

    @patch("model.kfold.log_likelihood", side_effect=covariate_log_likelihood)
    @patch("model.kfold.fit_model")
    def test_progress_messages_and_summary(self, mock_fit_model, _):
        with self.assertLogs("Bayesact", level="INFO") as logs:
            result = kfold(self.fit, K=3, random_seed=1)

        output = "\n".join(logs.output)
        for k in (1, 2, 3):
            self.assertIn(f"Fitting model {k} out of 3", output)
        summary = result.summary()
        self.assertIn("Based on 3-fold cross-validation of 'y'", summary)
        self.assertIn("kfoldic", summary)


if __name__ == "__main__":
    unittest.main()
