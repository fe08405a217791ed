"""
Insurance Data Simulation Module for Validation and Testing.

This module generates synthetic policy and claim data with known frequency
and severity parameters, so fitted joint models can be checked against the
ground truth.

PURPOSE:
- Create controlled test data with known claim rates and loss distributions
- Reproduce the deductible effect: ground-up losses below the deductible
  are never reported
- Provide reproducible datasets for examples and the command line

DATA GENERATION MODEL:
    log(lambda_i) = freq_intercept + freq_age_coef * age_std_i + log(exposure_i)
    n_i ~ Poisson(lambda_i)                       ground-up claims per policy
    log(loss_ij) ~ Normal(sev_intercept + sev_age_coef * age_std_i, sev_sigma)
    reported claims: loss_ij > deductible_i

ASSUMPTIONS:
- Claim counts are Poisson given covariates and exposure
- Ground-up losses are lognormal and independent of the claim count
- Deductibles are drawn from a small menu of policy options

EDGE CASES:
- High deductibles relative to the loss scale can leave very few reported
  claims; a warning is logged when fewer than 30 survive
"""
from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from utils.file_utils import save_json, write_table
from utils.logging_utils import logger

DEFAULT_DEDUCTIBLES = (250.0, 500.0, 1000.0, 2500.0)


@dataclass
class SimulationParameters:
    """True parameters of a simulated portfolio."""
    freq_intercept: float = -1.5
    freq_age_coef: float = 0.2
    sev_intercept: float = 8.0
    sev_age_coef: float = -0.1
    sev_sigma: float = 1.0
    deductibles: Sequence[float] = DEFAULT_DEDUCTIBLES
    deductible_probs: Optional[Sequence[float]] = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "freq_intercept": self.freq_intercept,
            "freq_age_coef": self.freq_age_coef,
            "sev_intercept": self.sev_intercept,
            "sev_age_coef": self.sev_age_coef,
            "sev_sigma": self.sev_sigma,
            "deductibles": list(self.deductibles),
        }


@dataclass
class SimulatedPortfolio:
    """
    Simulated data in the layout the joint model expects.

    Attributes:
        policies: One row per policy with claims, exposure and deductible
        claims: One row per reported claim with its loss
        ground_up: Every simulated loss, reported or not, with a ``reported`` flag
        parameters: True parameters used
    """
    policies: pd.DataFrame
    claims: pd.DataFrame
    ground_up: pd.DataFrame
    parameters: SimulationParameters = field(default_factory=SimulationParameters)

    @property
    def reporting_rate(self) -> float:
        if len(self.ground_up) == 0:
            return float("nan")
        return float(self.ground_up["reported"].mean())


def simulate_policies(
    n_policies: int,
    params: SimulationParameters,
    rng: np.random.Generator
) -> pd.DataFrame:
    """Policies with covariates, exposure, deductible and ground-up claim counts."""
    age = rng.integers(18, 80, size=n_policies)
    age_std = (age - 45.0) / 15.0
    exposure = rng.uniform(0.25, 1.0, size=n_policies)

    probs = params.deductible_probs
    deductible = rng.choice(np.asarray(params.deductibles, dtype=float), size=n_policies, p=probs)

    rate = np.exp(params.freq_intercept + params.freq_age_coef * age_std + np.log(exposure))
    ground_up_claims = rng.poisson(rate)

    return pd.DataFrame({
        "policy_id": np.arange(1, n_policies + 1),
        "age": age,
        "age_std": age_std,
        "exposure": exposure,
        "log_exposure": np.log(exposure),
        "deductible": deductible,
        "ground_up_claims": ground_up_claims,
    })


def simulate_losses(
    policies: pd.DataFrame,
    params: SimulationParameters,
    rng: np.random.Generator
) -> pd.DataFrame:
    """One row per ground-up claim, with a lognormal loss and a ``reported`` flag."""
    repeated = policies.loc[policies.index.repeat(policies["ground_up_claims"])].reset_index(drop=True)
    log_mu = params.sev_intercept + params.sev_age_coef * repeated["age_std"].to_numpy()
    repeated["loss"] = np.exp(rng.normal(log_mu, params.sev_sigma))
    repeated["reported"] = repeated["loss"] > repeated["deductible"]
    return repeated


def generate_portfolio(
    n_policies: int = 2000,
    params: Optional[SimulationParameters] = None,
    seed: Optional[int] = None,
) -> SimulatedPortfolio:
    """
    Simulate a portfolio of policies and its reported claims.

    Args:
        n_policies: Number of policies
        params: True parameters (defaults when None)
        seed: Seed for NumPy's random generator

    Returns:
        SimulatedPortfolio; ``policies.claims`` counts reported claims only
    """
    params = params or SimulationParameters()
    rng = np.random.default_rng(seed)

    logger.info(f"Simulating {n_policies} policies")
    policies = simulate_policies(n_policies, params, rng)
    ground_up = simulate_losses(policies, params, rng)

    reported = ground_up.loc[ground_up["reported"]].reset_index(drop=True)
    counts = reported.groupby("policy_id").size()
    policies["claims"] = policies["policy_id"].map(counts).fillna(0).astype(int)

    claims = reported[["policy_id", "age", "age_std", "deductible", "loss"]]

    logger.info(f"Simulated {len(ground_up)} ground-up losses, {len(claims)} above the deductible "
                f"({len(claims) / max(len(ground_up), 1):.1%})")
    if len(claims) < 30:
        logger.warning("Fewer than 30 reported claims; the severity fit will be weak")

    return SimulatedPortfolio(policies=policies, claims=claims, ground_up=ground_up, parameters=params)


def save_portfolio(portfolio: SimulatedPortfolio, output_dir: str,
                   file_format: str = "csv") -> Tuple[str, str]:
    """
    Write policies, claims and the true parameters to ``output_dir``.

    Returns:
        Paths of the policy and claim tables
    """
    policy_path = write_table(portfolio.policies.drop(columns=["ground_up_claims"]),
                              f"{output_dir}/policies.{file_format}")
    claim_path = write_table(portfolio.claims, f"{output_dir}/claims.{file_format}")
    save_json(portfolio.parameters.to_dict(), f"{output_dir}/true_parameters.json")
    return str(policy_path), str(claim_path)
