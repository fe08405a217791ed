"""
Prior tables for joint frequency-severity models.

Priors for both sub-models live in one ``pandas.DataFrame`` with a row per
prior:

    term    Bambi term name ("Intercept", "age", "1|region", or an auxiliary
            parameter such as "alpha")
    dist    PyMC distribution name
    params  dict of distribution arguments
    resp    response the prior belongs to ("" when untagged)
    dpar    distributional parameter the term sits in ("" for the parent)

The ``resp`` tag is how a joint model keeps the two sub-models' priors
apart; a sub-model is fit with its rows and the tag cleared.
"""
from typing import Any, Dict, Iterable, Optional

import pandas as pd

from model.exceptions import ConfigurationError
from model.families import FamilySpec

PRIOR_COLUMNS = ["term", "dist", "params", "resp", "dpar"]


def prior(term: str, dist: str, resp: str = "", dpar: str = "", **params: Any) -> Dict[str, Any]:
    """
    One prior row.

    Example:
        prior("Intercept", "Normal", resp="claims", mu=-2, sigma=1)
    """
    return {"term": term, "dist": dist, "params": dict(params), "resp": resp, "dpar": dpar}


def prior_table(rows: Optional[Iterable[Dict[str, Any]]] = None) -> pd.DataFrame:
    """
    Build a prior table from rows made with ``prior``.

    Raises:
        ConfigurationError: If a row lacks a term or distribution
    """
    table = pd.DataFrame(list(rows or []), columns=PRIOR_COLUMNS)
    if table[["term", "dist"]].isna().any().any():
        raise ConfigurationError("Every prior needs a term and a distribution")
    table["resp"] = table["resp"].fillna("")
    table["dpar"] = table["dpar"].fillna("")
    table["params"] = [p if isinstance(p, dict) else {} for p in table["params"]]
    return table.reset_index(drop=True)


def combine_priors(*tables: Optional[pd.DataFrame]) -> pd.DataFrame:
    """Stack prior tables, skipping missing ones."""
    present = [t for t in tables if t is not None and len(t)]
    if not present:
        return prior_table()
    return pd.concat(present, ignore_index=True)[PRIOR_COLUMNS]


def tag_response(table: Optional[pd.DataFrame], response: str) -> pd.DataFrame:
    """Copy of ``table`` with untagged rows tagged for ``response``."""
    table = prior_table() if table is None else table.copy()
    table.loc[table["resp"] == "", "resp"] = response
    return table


def priors_for_response(table: Optional[pd.DataFrame], response: str) -> pd.DataFrame:
    """
    Rows tagged for ``response`` with the tag cleared, ready for fitting that
    sub-model on its own.
    """
    if table is None or not len(table):
        return prior_table()
    subset = table[table["resp"] == response].copy()
    subset["resp"] = ""
    return subset.reset_index(drop=True)


def to_bambi_priors(table: Optional[pd.DataFrame], family: Optional[FamilySpec] = None) -> Dict[str, Any]:
    """
    Convert untagged prior rows into Bambi's ``priors`` argument.

    Parent-parameter terms map to ``{term: Prior}``; terms of a modeled
    distributional parameter map to ``{dpar: {term: Prior}}``. Default priors
    of a custom family fill in auxiliary parameters the table leaves open.

    Raises:
        ConfigurationError: If a row is still tagged with a response
    """
    import bambi as bmb

    priors: Dict[str, Any] = {}
    if family is not None:
        for term, (dist, params) in family.default_priors.items():
            priors[term] = bmb.Prior(dist, **params)

    if table is None:
        return priors

    tagged = table[table["resp"] != ""]
    if len(tagged):
        raise ConfigurationError(
            "Prior table still carries response tags",
            details=f"responses: {sorted(set(tagged['resp']))}"
        )

    for row in table.itertuples(index=False):
        bambi_prior = bmb.Prior(row.dist, **row.params)
        if row.dpar:
            # A modeled parameter replaces the family's scalar default
            if not isinstance(priors.get(row.dpar), dict):
                priors[row.dpar] = {}
            priors[row.dpar][row.term] = bambi_prior
        else:
            priors[row.term] = bambi_prior
    return priors
