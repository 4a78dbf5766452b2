"""Categorized payroll totals from formula results."""

from __future__ import annotations

from decimal import Decimal
from typing import Mapping, Sequence

from payroll_formulas.calculators.expression import to_decimal
from payroll_formulas.calculators.types import (
    FormulaEvaluationContext,
    FormulaType,
    PayrollCalculationResult,
    PayrollFormula,
)

EARNING_TYPES = frozenset({FormulaType.ALLOWANCE, FormulaType.BONUS, FormulaType.OVERTIME})
DEDUCTION_TYPES = frozenset({FormulaType.DEDUCTION, FormulaType.TAX})


def build_payroll_summary(
    context: FormulaEvaluationContext,
    formulas: Sequence[PayrollFormula],
    results: Mapping[str, Decimal],
    overtime_amount: Decimal = Decimal("0"),
) -> PayrollCalculationResult:
    """Split formula results into allowances, deductions and custom values.

    gross = basic salary + allowances + overtime
    net   = gross - deductions
    """
    # Same-name formulas: the last one evaluated produced the final result
    types_by_name = {
        f.name: f.type
        for f in sorted(formulas, key=lambda f: f.priority)
        if f.is_active and f.applies_to(context)
    }

    summary = PayrollCalculationResult(
        basic_salary=to_decimal(context.basic_salary),
        overtime_amount=overtime_amount,
    )

    for name, value in results.items():
        formula_type = types_by_name.get(name, FormulaType.CUSTOM)
        if formula_type in EARNING_TYPES:
            summary.allowance_breakdown[name] = value
            summary.total_allowances += value
        elif formula_type in DEDUCTION_TYPES:
            summary.deduction_breakdown[name] = value
            summary.total_deductions += value
        else:
            summary.custom_calculations[name] = value

    summary.gross_salary = (
        summary.basic_salary + summary.total_allowances + summary.overtime_amount
    )
    summary.net_salary = summary.gross_salary - summary.total_deductions
    return summary
