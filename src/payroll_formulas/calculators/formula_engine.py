"""Payroll formula engine - evaluation, validation and batch chaining."""

from __future__ import annotations

import logging
import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable, Mapping, Sequence

from payroll_formulas.calculators.expression import (
    FormulaDivisionByZeroError,
    FormulaEvaluationError,
    FormulaSyntaxError,
    evaluate,
    extract_identifiers,
    parse_formula,
    to_decimal,
)
from payroll_formulas.calculators.summary import build_payroll_summary
from payroll_formulas.calculators.types import (
    FormulaEvaluationContext,
    FormulaVariable,
    PayrollCalculationResult,
    PayrollFormula,
)
from payroll_formulas.config import Settings, get_settings
from payroll_formulas.metrics import FallbackReason, FormulaMetrics, get_metrics

logger = logging.getLogger(__name__)


class PayrollFormulaEngine:
    """Evaluates payroll formulas over named Decimal variables.

    Zero-fallback policy (a broken formula must not halt a payroll run):
    - Empty or missing formula -> 0
    - Division by zero anywhere in the formula -> 0
    - Unparseable formula -> 0
    - Unknown variable -> treated as 0 within the formula

    Every fallback is logged and counted in the metrics registry; the
    computed amount is never altered by observability.

    Batch evaluation order:
    1) Merge fixed context fields, then ad hoc variables, then custom values
       (later sources override earlier ones on name collision)
    2) Stable sort formulas by priority
    3) Skip inactive and out-of-scope formulas
    4) Evaluate each formula; its result becomes a variable for later ones
    """

    NORMAL_HOURS_PER_DAY = Decimal("8")
    DAYS_PER_MONTH = Decimal("30")
    OUTPUT_PRECISION = Decimal("0.01")

    VALIDATION_PATTERN = re.compile(r"^[A-Za-z0-9_.+\-*/()\s]+$", re.ASCII)

    FIXED_VARIABLES = (
        ("BasicSalary", "basic_salary", "Employee's basic salary"),
        ("OvertimeHours", "overtime_hours", "Total overtime hours worked"),
        ("WorkingDays", "working_days", "Total working days in period"),
        ("ActualWorkingDays", "actual_working_days", "Actual days worked"),
        ("AbsentDays", "absent_days", "Number of absent days"),
        ("LeaveDays", "leave_days", "Number of leave days"),
        ("DaysInMonth", "days_in_month", "Total days in the month"),
    )

    def __init__(
        self,
        metrics: FormulaMetrics | None = None,
        settings: Settings | None = None,
    ):
        self.settings = settings or get_settings()
        if metrics is None and self.settings.metrics_enabled:
            metrics = get_metrics()
        self.metrics = metrics

    # ------------------------------------------------------------------
    # Single formula
    # ------------------------------------------------------------------

    def evaluate_formula(
        self,
        formula: str | None,
        variables: Mapping[str, Any] | None = None,
    ) -> Decimal:
        """Evaluate one formula, falling back to zero on any failure."""
        if self.metrics is not None:
            self.metrics.record_evaluation()

        if formula is None or (isinstance(formula, str) and not formula.strip()):
            logger.debug("Empty formula evaluated as 0")
            self._fallback(FallbackReason.EMPTY_FORMULA)
            return Decimal("0")

        if not isinstance(formula, str):
            logger.warning("Formula is not text: %r", formula)
            self._fallback(FallbackReason.SYNTAX_ERROR)
            return Decimal("0")

        try:
            node = parse_formula(formula)
        except FormulaSyntaxError as e:
            logger.warning("Invalid formula %r: %s", formula, e)
            self._fallback(FallbackReason.SYNTAX_ERROR)
            return Decimal("0")

        missing: set[str] = set()
        try:
            result = evaluate(node, variables or {}, missing=missing)
        except FormulaDivisionByZeroError:
            logger.warning("Division by zero in formula %r; result is 0", formula)
            self._fallback(FallbackReason.DIVISION_BY_ZERO)
            return Decimal("0")
        except FormulaEvaluationError as e:
            logger.warning("Error evaluating formula %r: %s", formula, e)
            self._fallback(FallbackReason.ARITHMETIC_ERROR)
            return Decimal("0")

        if missing:
            logger.warning(
                "Formula %r references unresolved variables %s; treated as 0",
                formula,
                sorted(missing),
            )
            self._fallback(FallbackReason.UNKNOWN_VARIABLE)

        return result

    def evaluate_formula_strict(
        self,
        formula: str,
        variables: Mapping[str, Any],
    ) -> Decimal:
        """Evaluate one formula, raising instead of falling back.

        Raises:
            FormulaSyntaxError: If the formula does not parse
            UnknownVariableError: If a referenced variable is unbound
            FormulaDivisionByZeroError: If a divisor evaluates to zero
            FormulaEvaluationError: If Decimal arithmetic fails
        """
        return evaluate(parse_formula(formula), variables, strict=True)

    def extract_variables(self, formula: str | None) -> list[str]:
        """Distinct variable names referenced by a formula, in order."""
        if not isinstance(formula, str) or not formula.strip():
            return []
        return extract_identifiers(formula)

    def validate_formula(
        self,
        formula: str | None,
        known_variables: Iterable[str],
    ) -> bool:
        """Check that a formula is well-formed and only uses known variables."""
        passed = self._validate(formula, set(known_variables))
        if self.metrics is not None:
            self.metrics.record_validation(passed)
        return passed

    def _validate(self, formula: str | None, known: set[str]) -> bool:
        if not isinstance(formula, str) or not formula.strip():
            return False

        if not self.VALIDATION_PATTERN.match(formula):
            logger.debug("Formula %r contains disallowed characters", formula)
            return False

        for variable in self.extract_variables(formula):
            if variable not in known:
                logger.warning(
                    "Variable %s not found in provided variables list", variable
                )
                return False

        try:
            parse_formula(formula)
        except FormulaSyntaxError as e:
            logger.debug("Formula %r does not parse: %s", formula, e)
            return False

        return True

    # ------------------------------------------------------------------
    # Context
    # ------------------------------------------------------------------

    def get_available_variables(
        self, context: FormulaEvaluationContext
    ) -> list[FormulaVariable]:
        """List every variable a formula can reference for this context."""
        variables: list[FormulaVariable] = []

        for name, attr, description in self.FIXED_VARIABLES:
            value = self._coerce(name, getattr(context, attr))
            if value is not None:
                variables.append(FormulaVariable(name, value, description))

        for name, raw in context.variables.items():
            value = self._coerce(name, raw)
            if value is not None:
                variables.append(
                    FormulaVariable(name, value, f"Custom variable: {name}")
                )

        for name, raw in context.custom_values.items():
            value = self._coerce(name, raw)
            if value is not None:
                variables.append(FormulaVariable(name, value, f"Custom value: {name}"))

        return variables

    def build_variable_map(self, context: FormulaEvaluationContext) -> dict[str, Decimal]:
        """Merge context sources into one mapping (last source wins)."""
        return {v.name: v.value for v in self.get_available_variables(context)}

    @staticmethod
    def is_formula_applicable(
        formula: PayrollFormula, context: FormulaEvaluationContext
    ) -> bool:
        """Check organization, branch, department and designation scope.

        Conditions are recorded on the formula but not interpreted.
        """
        return formula.applies_to(context)

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    def evaluate_all_formulas(
        self,
        context: FormulaEvaluationContext,
        formulas: Sequence[PayrollFormula],
    ) -> dict[str, Decimal]:
        """Evaluate formulas in priority order, chaining results by name."""
        if self.metrics is not None:
            self.metrics.record_batch()

        variables = self.build_variable_map(context)
        results: dict[str, Decimal] = {}

        for formula in sorted(formulas, key=lambda f: f.priority):
            if not formula.is_active:
                continue

            try:
                if not self.is_formula_applicable(formula, context):
                    logger.debug("Formula %s not applicable; skipped", formula.name)
                    continue

                result = self.evaluate_formula(formula.formula, variables)
            except Exception:
                logger.exception("Error evaluating formula %s", formula.name)
                self._fallback(FallbackReason.UNEXPECTED_ERROR)
                result = Decimal("0")

            results[formula.name] = result
            variables[formula.name] = result

            logger.debug("Evaluated formula %s: %s", formula.name, result)

        return results

    # ------------------------------------------------------------------
    # Derived helpers
    # ------------------------------------------------------------------

    def calculate_overtime_amount(
        self,
        overtime_hours: Decimal,
        basic_salary: Decimal,
        overtime_rate: Decimal,
    ) -> Decimal:
        """Overtime pay from a monthly salary (8 hours x 30 days divisor)."""
        overtime_hours = to_decimal(overtime_hours)
        basic_salary = to_decimal(basic_salary)
        overtime_rate = to_decimal(overtime_rate)

        if overtime_hours <= 0 or basic_salary <= 0:
            return Decimal("0")

        hourly_rate = basic_salary / (self.NORMAL_HOURS_PER_DAY * self.DAYS_PER_MONTH)
        amount = overtime_hours * hourly_rate * overtime_rate
        return amount.quantize(self.OUTPUT_PRECISION, rounding=ROUND_HALF_UP)

    def calculate_payroll(
        self,
        context: FormulaEvaluationContext,
        formulas: Sequence[PayrollFormula],
        overtime_rate: Decimal,
    ) -> PayrollCalculationResult:
        """Overtime, formula batch and categorized totals for one employee."""
        overtime_amount = self.calculate_overtime_amount(
            context.overtime_hours, context.basic_salary, overtime_rate
        )
        results = self.evaluate_all_formulas(context, formulas)
        summary = build_payroll_summary(context, formulas, results, overtime_amount)

        logger.info(
            "Payroll calculated for employee %s: net salary %s",
            context.employee_id,
            summary.net_salary,
        )
        return summary

    # ------------------------------------------------------------------

    def _coerce(self, name: str, raw: Any) -> Decimal | None:
        try:
            return to_decimal(raw)
        except (TypeError, ValueError, InvalidOperation):
            logger.warning("Variable %s has non-numeric value %r; ignored", name, raw)
            return None

    def _fallback(self, reason: str) -> None:
        if self.metrics is not None:
            self.metrics.record_fallback(reason)
