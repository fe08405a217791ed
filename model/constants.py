"""
Constants for the bayesact models.

This module centralizes constants and default configuration values used
throughout the codebase.
"""

# =======================================================
# Joint data layout
# =======================================================

# Tag column marking frequency rows (1) and severity rows (0) in joint data
ROW_TYPE_COL = "freq"
FREQUENCY_ROW = 1
SEVERITY_ROW = 0

# Helper columns created while estimating the deductible offset
ROW_ID_COL = "data_row_id"
DRAW_COL = "iter_number"
OFFSET_COL = "ded_offset"

# =======================================================
# Deductible adjustment
# =======================================================

# Survival probabilities are floored here before the link transform,
# so a log or logit link never sees zero
DEFAULT_DED_ADJ_MIN = 1e-6

# Upper bound on (sampled draws x frequency rows) for one offset estimate
DEFAULT_DRAW_SAMPLE_CEILING = 1e6

# Severity families may have between 1 and 5 distribution parameters
MIN_SEVERITY_PARAMS = 1
MAX_SEVERITY_PARAMS = 5

# =======================================================
# MCMC sampling parameters
# =======================================================

DEFAULT_DRAWS = 1000
DEFAULT_TUNE = 1000
DEFAULT_CHAINS = 4
DEFAULT_TARGET_ACCEPT = 0.8
DEFAULT_MAX_TREEDEPTH = 10
DEFAULT_BACKEND = "pymc"

# Backends that PyMC hands NUTS sampling off to
EXTERNAL_BACKENDS = ("numpyro", "nutpie", "blackjax")
SUPPORTED_BACKENDS = (DEFAULT_BACKEND,) + EXTERNAL_BACKENDS

# =======================================================
# Cross-validation
# =======================================================

DEFAULT_K = 10
FOLD_TYPES = ("random", "stratified", "grouped")

# =======================================================
# Diagnostics thresholds
# =======================================================

RHAT_THRESHOLD = 1.01
MIN_ESS_BULK = 400
