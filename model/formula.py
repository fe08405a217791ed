"""
Model formulas for the frequency and severity sub-models.

Formulas use Bambi's syntax. A ``ModelFormula`` keeps the primary equation
split into response and linear predictor so terms such as an offset can be
appended, plus any distributional-parameter equations (``sigma ~ x``).
"""
import re
from dataclasses import dataclass, field, replace
from typing import Dict, List, Union

from model.exceptions import ModelBuildError

# Matches wrapped responses such as "truncated(loss, lb=ded)" or "censored(y, c)"
_WRAPPED_RESPONSE = re.compile(r"^\s*\w+\(\s*([A-Za-z_][\w.]*)\s*(?:,.*)?\)\s*$")

# Identifiers not directly followed by "(" (function names are skipped)
_VARIABLE = re.compile(r"(?<![\w.])([A-Za-z_][\w.]*)(?![\w.]*\s*\()")


@dataclass(frozen=True)
class ModelFormula:
    """
    Bambi formula split into its parts.

    Attributes:
        response: Left-hand side of the primary equation, as written
        predictor: Right-hand side of the primary equation
        dpars: Right-hand side per modeled distributional parameter
    """
    response: str
    predictor: str
    dpars: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def parse(cls, formula: Union[str, "ModelFormula"], *dpar_formulas: str) -> "ModelFormula":
        """
        Parse ``"y ~ x1 + x2"`` and optional ``"sigma ~ x1"`` equations.

        Raises:
            ModelBuildError: If an equation has no single ``~``
        """
        if isinstance(formula, ModelFormula):
            return formula

        response, predictor = _split(formula)
        dpars = {}
        for dpar_formula in dpar_formulas:
            name, rhs = _split(dpar_formula)
            dpars[name] = rhs
        return cls(response, predictor, dpars)

    @property
    def response_name(self) -> str:
        """Name of the response column, without wrappers like ``truncated()``."""
        match = _WRAPPED_RESPONSE.match(self.response)
        return match.group(1) if match else self.response.strip()

    def add_offset(self, column: str) -> "ModelFormula":
        """Copy with ``offset(column)`` appended to the primary predictor."""
        return replace(self, predictor=f"{self.predictor} + offset({column})")

    def with_response(self, response: str) -> "ModelFormula":
        return replace(self, response=response)

    def truncated(self, lower: str) -> "ModelFormula":
        """Copy with the response left-truncated at column ``lower``."""
        return self.with_response(f"truncated({self.response_name}, lb={lower})")

    def variables(self) -> List[str]:
        """Data columns referenced on the right-hand sides, in order of appearance."""
        names: List[str] = []
        for rhs in [self.predictor] + list(self.dpars.values()):
            for name in _VARIABLE.findall(rhs):
                if name not in names:
                    names.append(name)
        return names

    def equations(self) -> List[str]:
        main = f"{self.response} ~ {self.predictor}"
        return [main] + [f"{name} ~ {rhs}" for name, rhs in self.dpars.items()]

    def to_bambi(self):
        """Formula argument for ``bmb.Model``."""
        import bambi as bmb

        return bmb.Formula(*self.equations())

    def __str__(self) -> str:
        return "; ".join(self.equations())


def _split(equation: str):
    parts = equation.split("~")
    if len(parts) != 2 or not parts[0].strip() or not parts[1].strip():
        raise ModelBuildError(f"Invalid formula: '{equation}'", details="expected 'lhs ~ rhs'")
    return parts[0].strip(), parts[1].strip()
