#!/usr/bin/env python3
"""
Tests for sampler settings and the Bambi/ArviZ seam.
"""
import unittest
from unittest.mock import MagicMock, Mock, patch
import os
import sys

import arviz as az
import numpy as np
import pandas as pd

sys.path.insert(0, os.path.abspath(os.path.dirname(os.path.dirname(__file__))))

from model.backend import (
    FittedModel, SamplerSettings, fit_model, log_likelihood,
    posterior_expectation, subset_draws, validate_draw_ids
)
from model.exceptions import ConfigurationError, SamplingError
from model.families import get_family
from model.formula import ModelFormula


def make_fit(idata=None, response="loss", family="lognormal"):
    return FittedModel(
        formula=ModelFormula.parse(f"{response} ~ age_std"),
        family=get_family(family),
        data=pd.DataFrame({response: [1.0, 2.0], "age_std": [0.0, 1.0]}),
        priors=None,
        sampler=SamplerSettings(n_chains=2, n_draws=3),
        model=Mock(),
        idata=idata,
    )


class TestSamplerSettings(unittest.TestCase):
    """Tests for translating sampler settings into fit arguments."""

    def test_pymc_kwargs(self):
        kwargs = SamplerSettings(n_chains=2, n_draws=500, n_tune=300, target_accept=0.95,
                                 max_treedepth=12, random_seed=1).fit_kwargs()
        self.assertEqual(kwargs, {
            "draws": 500, "tune": 300, "chains": 2, "random_seed": 1,
            "target_accept": 0.95, "max_treedepth": 12,
        })

    def test_numpyro_tree_depth(self):
        kwargs = SamplerSettings(backend="numpyro", max_treedepth=12).fit_kwargs()
        self.assertEqual(kwargs["nuts_sampler"], "numpyro")
        self.assertEqual(kwargs["nuts_sampler_kwargs"], {"nuts_kwargs": {"max_tree_depth": 12}})
        self.assertNotIn("max_treedepth", kwargs)

    def test_blackjax_and_nutpie_tree_depth(self):
        blackjax = SamplerSettings(backend="blackjax", max_treedepth=8).fit_kwargs()
        self.assertEqual(blackjax["nuts_sampler_kwargs"], {"nuts_kwargs": {"max_num_doublings": 8}})
        nutpie = SamplerSettings(backend="nutpie").fit_kwargs()
        self.assertEqual(nutpie["nuts_sampler_kwargs"], {"maxdepth": 10})

    def test_control_passed_to_external_backend(self):
        control = {"chain_method": "vectorized"}
        kwargs = SamplerSettings(backend="numpyro", control=control, target_accept=0.9).fit_kwargs()
        self.assertEqual(kwargs["nuts_sampler_kwargs"], control)
        self.assertEqual(kwargs["target_accept"], 0.9)

    def test_draw_pool(self):
        settings = SamplerSettings(n_chains=4, n_draws=1000, n_tune=500)
        self.assertEqual(settings.total_draws, 4000)
        self.assertEqual(settings.n_iter, 1500)

    def test_invalid_settings(self):
        with self.assertRaises(ConfigurationError):
            SamplerSettings(backend="stan")
        with self.assertRaises(ConfigurationError):
            SamplerSettings(n_chains=0)
        with self.assertRaises(ConfigurationError):
            SamplerSettings(n_tune=-1)


class TestDrawIds(unittest.TestCase):

    def test_valid_ids(self):
        np.testing.assert_array_equal(validate_draw_ids([3, 1, 4000], 4000), [3, 1, 4000])

    def test_invalid_ids(self):
        for ids in ([], [0, 1], [4001], [2, 2]):
            with self.assertRaises(ConfigurationError):
                validate_draw_ids(ids, 4000)

    def test_subset_is_chain_major_and_ordered(self):
        idata = az.from_dict(posterior={"mu": np.arange(6, dtype=float).reshape(2, 3)})
        subset = subset_draws(idata, [4, 1, 6])

        self.assertEqual(subset.posterior.sizes["chain"], 1)
        self.assertEqual(subset.posterior.sizes["draw"], 3)
        np.testing.assert_array_equal(subset.posterior["mu"].values[0], [3.0, 0.0, 5.0])

    def test_total_draws_from_posterior(self):
        idata = az.from_dict(posterior={"mu": np.zeros((3, 7))})
        self.assertEqual(make_fit(idata).total_draws, 21)
        self.assertEqual(make_fit().total_draws, 6)


class TestPosteriorExpectation(unittest.TestCase):
    """Tests for reading distribution parameters at new data."""

    def setUp(self):
        self.idata = az.from_dict(posterior={"mu": np.zeros((2, 3, 2))})
        self.newdata = pd.DataFrame({"age_std": [0.0, 1.0]})

    def predicted(self, **variables):
        return az.from_dict(posterior=variables)

    def test_parent_parameter(self):
        fit = make_fit(self.idata)
        mu = np.arange(6, dtype=float).reshape(1, 3, 2)
        fit.model.predict.return_value = self.predicted(mu=mu)

        matrix = posterior_expectation(fit, "mu", self.newdata, draw_ids=[1, 2, 6])

        np.testing.assert_array_equal(matrix, mu[0])
        args, kwargs = fit.model.predict.call_args
        self.assertEqual(args[0].posterior.sizes["draw"], 3)
        self.assertEqual(kwargs["kind"], "response_params")
        self.assertFalse(kwargs["inplace"])
        self.assertIs(kwargs["data"], self.newdata)

    def test_response_prefixed_names(self):
        fit = make_fit(self.idata)
        fit.model.predict.return_value = self.predicted(
            loss_mean=np.full((1, 2, 2), 8.0), loss_sigma=np.full((1, 2), 1.5)
        )

        mu = posterior_expectation(fit, "mu", self.newdata, draw_ids=[1, 2])
        sigma = posterior_expectation(fit, "sigma", self.newdata, draw_ids=[1, 2])

        np.testing.assert_array_equal(mu, np.full((2, 2), 8.0))
        # Parameters without an observation dimension are broadcast to every row
        np.testing.assert_array_equal(sigma, np.full((2, 2), 1.5))

    def test_predicts_response_params_once(self):
        fit = make_fit(self.idata)
        fit.model.predict.return_value = self.predicted(mu=np.ones((2, 3, 2)))

        matrix = posterior_expectation(fit, "mu", self.newdata)

        self.assertEqual(matrix.shape, (6, 2))
        fit.model.predict.assert_called_once()
        self.assertEqual(fit.model.predict.call_args[1]["kind"], "response_params")

    def test_backend_error_propagates(self):
        fit = make_fit(self.idata)
        error = ValueError("Column 'age_std' missing from data")
        fit.model.predict.side_effect = [error, KeyError("mu")]

        with self.assertRaises(ValueError) as ctx:
            posterior_expectation(fit, "mu", self.newdata)

        self.assertIs(ctx.exception, error)
        self.assertEqual(fit.model.predict.call_count, 1)

    def test_missing_parameter(self):
        fit = make_fit(self.idata)
        fit.model.predict.return_value = self.predicted(mu=np.ones((1, 1, 2)))
        with self.assertRaises(SamplingError):
            posterior_expectation(fit, "alpha", self.newdata, draw_ids=[1])


class TestLogLikelihood(unittest.TestCase):

    def test_matrix_of_draws_by_rows(self):
        fit = make_fit(az.from_dict(posterior={"mu": np.zeros((2, 3))}))
        ll = np.arange(12, dtype=float).reshape(2, 3, 2)
        fit.model.compute_log_likelihood.return_value = az.from_dict(
            posterior={"mu": np.zeros((2, 3))}, log_likelihood={"loss": ll}
        )

        matrix = log_likelihood(fit)

        self.assertEqual(matrix.shape, (6, 2))
        np.testing.assert_array_equal(matrix, ll.reshape(6, 2))
        kwargs = fit.model.compute_log_likelihood.call_args[1]
        self.assertIs(kwargs["data"], fit.data)
        self.assertFalse(kwargs["inplace"])


class TestFitModel(unittest.TestCase):
    """Tests for building and sampling a Bambi model."""

    @patch("model.backend.get_dependency_manager")
    @patch("bambi.Model")
    def test_model_built_and_sampled(self, mock_model_cls, mock_deps):
        mock_deps.return_value.has_sampler.return_value = True
        data = pd.DataFrame({"y": [1.0, 2.0, 3.0], "x": [0.0, 1.0, 2.0]})
        sampler = SamplerSettings(n_chains=1, n_draws=50, n_tune=50, random_seed=3)

        fit = fit_model("y ~ x", "gaussian", data, sampler=sampler)

        args, kwargs = mock_model_cls.call_args
        self.assertIs(args[1], data)
        self.assertEqual(kwargs["family"], "gaussian")
        self.assertEqual(kwargs["link"], {"mu": "identity", "sigma": "log"})
        self.assertNotIn("priors", kwargs)
        mock_model_cls.return_value.fit.assert_called_once_with(**sampler.fit_kwargs())
        self.assertIs(fit.idata, mock_model_cls.return_value.fit.return_value)
        self.assertEqual(fit.response, "y")

    @patch("model.backend.get_dependency_manager")
    @patch("bambi.Model")
    def test_missing_backend(self, mock_model_cls, mock_deps):
        mock_deps.return_value.has_sampler.return_value = False
        with self.assertRaises(ConfigurationError):
            fit_model("y ~ x", "gaussian", pd.DataFrame({"y": [1.0], "x": [0.0]}),
                      sampler=SamplerSettings(backend="nutpie"))
        mock_model_cls.assert_not_called()


if __name__ == "__main__":
    unittest.main()
