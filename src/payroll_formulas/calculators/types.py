"""Type definitions for formula evaluation."""

from __future__ import annotations

import calendar
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum


class FormulaType(str, Enum):
    """Payroll formula categories."""

    ALLOWANCE = "Allowance"
    DEDUCTION = "Deduction"
    TAX = "Tax"
    BONUS = "Bonus"
    OVERTIME = "Overtime"
    CUSTOM = "Custom"


@dataclass(frozen=True)
class PayrollFormula:
    """A named, prioritized payroll formula read from configuration."""

    name: str
    formula: str
    type: FormulaType = FormulaType.CUSTOM
    priority: int = 0
    is_active: bool = True

    # Scoping (None = applies everywhere)
    organization_id: int | None = None
    branch_id: int | None = None
    department: str | None = None
    designation: str | None = None

    # Free-text conditions, stored but not interpreted
    conditions: str | None = None
    description: str | None = None

    def applies_to(self, context: FormulaEvaluationContext) -> bool:
        """Check organization, branch, department and designation scope."""
        if self.organization_id is not None and self.organization_id != context.organization_id:
            return False

        if self.branch_id is not None and self.branch_id != context.branch_id:
            return False

        if self.department and (
            not context.department
            or self.department.casefold() != context.department.casefold()
        ):
            return False

        if self.designation and (
            not context.designation
            or self.designation.casefold() != context.designation.casefold()
        ):
            return False

        return True


@dataclass
class FormulaVariable:
    """A variable exposed to formula authors."""

    name: str
    value: Decimal
    description: str = ""


@dataclass
class FormulaEvaluationContext:
    """Per-employee, per-period values available to formulas."""

    basic_salary: Decimal = Decimal("0")
    overtime_hours: Decimal = Decimal("0")
    working_days: Decimal = Decimal("0")
    actual_working_days: Decimal = Decimal("0")
    absent_days: Decimal = Decimal("0")
    leave_days: Decimal = Decimal("0")

    payroll_period_start: date | None = None
    payroll_period_end: date | None = None

    # Employee scoping data
    employee_id: int | None = None
    organization_id: int | None = None
    branch_id: int | None = None
    department: str | None = None
    designation: str | None = None

    # Open extension maps (name -> value)
    variables: dict[str, Decimal] = field(default_factory=dict)
    custom_values: dict[str, Decimal] = field(default_factory=dict)

    @property
    def days_in_month(self) -> Decimal:
        """Calendar days in the month containing the period start."""
        if self.payroll_period_start is None:
            return Decimal("30")
        start = self.payroll_period_start
        return Decimal(calendar.monthrange(start.year, start.month)[1])


@dataclass
class PayrollCalculationResult:
    """Categorized outcome of a formula run for one employee."""

    basic_salary: Decimal
    overtime_amount: Decimal = Decimal("0")

    allowance_breakdown: dict[str, Decimal] = field(default_factory=dict)
    deduction_breakdown: dict[str, Decimal] = field(default_factory=dict)
    custom_calculations: dict[str, Decimal] = field(default_factory=dict)

    total_allowances: Decimal = Decimal("0")
    total_deductions: Decimal = Decimal("0")
    gross_salary: Decimal = Decimal("0")
    net_salary: Decimal = Decimal("0")
