"""Formula evaluation: aggregates, expression parsing and evaluation.

Public API::

    from gridcalc.formulas import evaluate, parse_expression
"""

from gridcalc.errors import (
    ENGINE_ERRORS,
    FormulaError,
    FormulaFunctionError,
    FormulaParseError,
    InvalidReference,
)
from gridcalc.formulas.aggregates import (
    AGGREGATES,
    calc_average,
    calc_count,
    calc_max,
    calc_min,
    calc_sum,
)
from gridcalc.formulas.evaluator import (
    CIRCULAR,
    ERROR,
    SUPPORTED_FUNCTIONS,
    evaluate,
    evaluate_detailed,
    evaluate_tree,
)
from gridcalc.formulas.parser import parse_expression, parse_formula

__all__ = [
    "AGGREGATES",
    "CIRCULAR",
    "ENGINE_ERRORS",
    "ERROR",
    "FormulaError",
    "FormulaFunctionError",
    "FormulaParseError",
    "InvalidReference",
    "SUPPORTED_FUNCTIONS",
    "calc_average",
    "calc_count",
    "calc_max",
    "calc_min",
    "calc_sum",
    "evaluate",
    "evaluate_detailed",
    "evaluate_tree",
    "parse_expression",
    "parse_formula",
]
