#!/usr/bin/env python3
"""
Tests for the configuration manager and the command line.
"""
import unittest
from unittest.mock import patch
import json
import os
import sys
import tempfile

sys.path.insert(0, os.path.abspath(os.path.dirname(os.path.dirname(__file__))))

from config.config_manager import AppConfig, ConfigManager
from main import parse_arguments, setup_config
from model.exceptions import ConfigurationError


class TestConfigManager(unittest.TestCase):
    """Tests for defaults, files, environment overrides and validation."""

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()

    def tearDown(self):
        self.tmp.cleanup()

    def write_config(self, content):
        path = os.path.join(self.tmp.name, "config.json")
        with open(path, "w") as f:
            f.write(content if isinstance(content, str) else json.dumps(content))
        return path

    def test_defaults(self):
        config = ConfigManager().app_config
        self.assertEqual(config.model_sev_family, "lognormal")
        self.assertEqual(config.model_backend, "pymc")
        self.assertEqual(config.model_ded_adj_min, 1e-6)
        self.assertEqual(config.get("cv_k"), 10)
        self.assertEqual(config.get("missing", "fallback"), "fallback")

    def test_load_file_and_ignore_unknown_keys(self):
        path = self.write_config({"model_n_draws": 500, "cv_response": "loss", "colour": "red"})
        with patch("config.config_manager.logger") as mock_logger:
            config = ConfigManager(path).app_config

        self.assertEqual(config.model_n_draws, 500)
        self.assertEqual(config.cv_response, "loss")
        self.assertFalse(hasattr(config, "colour"))
        mock_logger.warning.assert_called_once()

    def test_invalid_json(self):
        with self.assertRaises(ConfigurationError):
            ConfigManager(self.write_config("{not json"))

    def test_env_overrides(self):
        env = {
            "BAYESACT_MODEL_N_CHAINS": "2",
            "BAYESACT_CREATE_PLOTS": "false",
            "BAYESACT_MODEL_TARGET_ACCEPT": "0.95",
            "BAYESACT_MODEL_CONTROL": '{"chain_method": "vectorized"}',
        }
        with patch.dict(os.environ, env):
            config = ConfigManager().app_config

        self.assertEqual(config.model_n_chains, 2)
        self.assertFalse(config.create_plots)
        self.assertEqual(config.model_target_accept, 0.95)
        self.assertEqual(config.model_control, {"chain_method": "vectorized"})

    def test_invalid_env_value_ignored(self):
        with patch.dict(os.environ, {"BAYESACT_CV_K": "ten"}):
            config = ConfigManager().app_config
        self.assertEqual(config.cv_k, 10)

    def test_validate_resets_bad_values(self):
        manager = ConfigManager()
        manager.app_config.model_backend = "stan"
        manager.app_config.model_ded_adj_min = 2.0
        manager.app_config.cv_folds = "leave-one-out"

        self.assertFalse(manager.validate())
        self.assertEqual(manager.app_config.model_backend, "pymc")
        self.assertEqual(manager.app_config.model_ded_adj_min, 1e-6)
        self.assertEqual(manager.app_config.cv_folds, "random")
        self.assertTrue(manager.validate())

    def test_save_config(self):
        manager = ConfigManager()
        path = os.path.join(self.tmp.name, "out", "config.json")
        manager.save_config(path)
        with open(path) as f:
            saved = json.load(f)
        self.assertEqual(saved["data_ded_col"], "deductible")

    def test_sampler_settings(self):
        config = AppConfig(model_n_chains=2, model_n_draws=300, model_backend="numpyro")
        settings = config.sampler_settings()
        self.assertEqual(settings.total_draws, 600)
        self.assertEqual(settings.fit_kwargs()["nuts_sampler"], "numpyro")


class TestCommandLine(unittest.TestCase):
    """Tests for turning arguments into configuration."""

    def test_defaults(self):
        args = parse_arguments([])
        self.assertEqual(args.run, "fit")
        self.assertFalse(args.test_mode)

    def test_overrides(self):
        args = parse_arguments(["--run", "kfold", "--response", "loss", "--k", "5",
                                "--draws", "400", "--backend", "nutpie", "--no-plots"])
        config = setup_config(args).app_config

        self.assertEqual(args.response, "loss")
        self.assertEqual(config.cv_k, 5)
        self.assertEqual(config.model_n_draws, 400)
        self.assertEqual(config.model_backend, "nutpie")
        self.assertFalse(config.create_plots)

    def test_test_mode(self):
        config = setup_config(parse_arguments(["--test-mode", "--n-policies", "5000"])).app_config
        self.assertEqual(config.data_n_policies, 300)
        self.assertEqual(config.model_n_chains, 1)
        self.assertEqual(config.cv_k, 2)

    def test_invalid_choice(self):
        with self.assertRaises(SystemExit):
            with patch("sys.stderr"):
                parse_arguments(["--backend", "stan"])


if __name__ == "__main__":
    unittest.main()
