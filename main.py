#!/usr/bin/env python3
"""
Main entry point for bayesact.

This script provides a unified interface to the frequency-severity workflows:
1. Simulate a policy and claim portfolio with known parameters
2. Fit the joint frequency-severity model with a deductible offset
3. K-fold cross-validate the frequency or severity response

Usage:
    bayesact --run simulate           # Write simulated policies and claims
    bayesact --run fit                # Fit the joint model and save diagnostics
    bayesact --run kfold --response claims   # Cross-validate a response
"""
import sys
import argparse
from pathlib import Path

from config.config_manager import ConfigManager
from model.exceptions import BayesactError
from model.model_runner import ModelRunner
from utils.dependencies import check_dependencies
from utils.logging_utils import get_logger, LoggingManager

# Get logger for this module
logger = get_logger()


def main():
    """Main entry point for bayesact."""
    args = parse_arguments()

    config_manager = setup_config(args)
    setup_logging(config_manager)

    if args.check_dependencies:
        check_dependencies()

    results_config_path = Path(config_manager.app_config.results_dir) / "config.json"
    config_manager.save_config(results_config_path)

    runner = ModelRunner(config_manager=config_manager)

    try:
        if args.run == "simulate":
            policy_path, claims_path = runner.run_simulation()
            logger.info(f"Simulated data written to {policy_path} and {claims_path}")
        elif args.run == "fit":
            runner.run_fit()
        elif args.run == "kfold":
            runner.run_kfold(args.response)
        else:
            logger.error(f"Unknown run type: {args.run}")
            return 1
    except BayesactError as e:
        logger.error(f"Error running {args.run}: {str(e)}")
        return 1

    logger.info(f"Run '{args.run}' completed; results in {runner.results_dir}")
    return 0


def setup_config(args):
    """
    Set up configuration from the config file and command line.

    Args:
        args: Command line arguments

    Returns:
        ConfigManager instance
    """
    config_manager = ConfigManager(args.config)
    cfg = config_manager.app_config

    if args.results_dir:
        cfg.results_dir = args.results_dir
    if args.log_level:
        cfg.log_level = args.log_level
    if args.policy_path:
        cfg.data_policy_path = args.policy_path
    if args.claims_path:
        cfg.data_claims_path = args.claims_path
    if args.n_policies is not None:
        cfg.data_n_policies = args.n_policies

    if args.draws is not None:
        cfg.model_n_draws = args.draws
    if args.tune is not None:
        cfg.model_n_tune = args.tune
    if args.chains is not None:
        cfg.model_n_chains = args.chains
    if args.target_accept is not None:
        cfg.model_target_accept = args.target_accept
    if args.backend:
        cfg.model_backend = args.backend

    if args.k is not None:
        cfg.cv_k = args.k
    if args.no_plots:
        cfg.create_plots = False

    if args.test_mode:
        logger.info("Running in test mode with reduced sampling")
        cfg.data_n_policies = min(cfg.data_n_policies, 300)
        cfg.model_n_draws = 100
        cfg.model_n_tune = 100
        cfg.model_n_chains = 1
        cfg.cv_k = 2

    config_manager.validate()
    return config_manager


def parse_arguments(argv=None):
    """
    Parse command line arguments.

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(description="Bayesian frequency-severity modeling with deductibles")

    # General options
    parser.add_argument("--config", type=str, help="Path to configuration file")
    parser.add_argument("--results-dir", type=str, help="Directory to store results")
    parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Log level")
    parser.add_argument("--run", choices=["simulate", "fit", "kfold"], default="fit",
                        help="Operation to perform")
    parser.add_argument("--check-dependencies", action="store_true",
                        help="Report which optional sampler backends are installed")
    parser.add_argument("--test-mode", action="store_true",
                        help="Small data and short chains for a quick end-to-end run")

    # Data options
    parser.add_argument("--policy-path", type=str, help="Path to the policy table")
    parser.add_argument("--claims-path", type=str, help="Path to the claim table")
    parser.add_argument("--n-policies", type=int, help="Number of policies to simulate")

    # Model options
    parser.add_argument("--draws", type=int, help="Number of draws per chain")
    parser.add_argument("--tune", type=int, help="Number of tuning steps per chain")
    parser.add_argument("--chains", type=int, help="Number of chains")
    parser.add_argument("--target-accept", type=float, help="NUTS target acceptance rate")
    parser.add_argument("--backend", choices=["pymc", "numpyro", "nutpie", "blackjax"],
                        help="NUTS sampler backend")

    # Cross-validation options
    parser.add_argument("--response", type=str, help="Response to cross-validate")
    parser.add_argument("--k", type=int, help="Number of folds")
    parser.add_argument("--no-plots", action="store_true", help="Skip plots")

    return parser.parse_args(argv)


def setup_logging(config_manager):
    """
    Set up logging from the configuration.

    Args:
        config_manager: ConfigManager instance
    """
    cfg = config_manager.app_config
    LoggingManager.setup_logging(
        log_level=cfg.log_level,
        log_file=cfg.log_file if cfg.log_to_file else None,
        suppress_warnings=cfg.log_level != "DEBUG"
    )


if __name__ == "__main__":
    sys.exit(main())
