"""Payroll formula calculators."""

from payroll_formulas.calculators.expression import (
    FormulaDivisionByZeroError,
    FormulaError,
    FormulaEvaluationError,
    FormulaSyntaxError,
    UnknownVariableError,
    parse_formula,
)
from payroll_formulas.calculators.formula_engine import PayrollFormulaEngine
from payroll_formulas.calculators.summary import build_payroll_summary
from payroll_formulas.calculators.types import (
    FormulaEvaluationContext,
    FormulaType,
    FormulaVariable,
    PayrollCalculationResult,
    PayrollFormula,
)

__all__ = [
    "PayrollFormulaEngine",
    "FormulaEvaluationContext",
    "FormulaType",
    "FormulaVariable",
    "PayrollCalculationResult",
    "PayrollFormula",
    "build_payroll_summary",
    "parse_formula",
    "FormulaError",
    "FormulaSyntaxError",
    "FormulaEvaluationError",
    "FormulaDivisionByZeroError",
    "UnknownVariableError",
]
