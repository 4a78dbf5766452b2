"""Pydantic schemas for formula engine input payloads.

Payloads accept snake_case or camelCase keys, so JSON produced by the
StrideHR payroll service (``basicSalary``, ``isActive``) validates as-is.
"""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from payroll_formulas.calculators.types import (
    FormulaEvaluationContext,
    FormulaType,
    PayrollFormula,
)


class PayloadBase(BaseModel):
    """Base payload schema."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================================
# Formula schemas
# ============================================================================


class FormulaSchema(PayloadBase):
    """Schema for one configured payroll formula."""

    name: str = Field(min_length=1)
    formula: str
    type: FormulaType = FormulaType.CUSTOM
    priority: int = 0
    is_active: bool = True
    organization_id: int | None = None
    branch_id: int | None = None
    department: str | None = None
    designation: str | None = None
    conditions: str | None = None
    description: str | None = None

    def to_formula(self) -> PayrollFormula:
        return PayrollFormula(**self.model_dump())


# ============================================================================
# Context schemas
# ============================================================================


class EvaluationContextSchema(PayloadBase):
    """Schema for the per-employee evaluation context."""

    basic_salary: Decimal = Decimal("0")
    overtime_hours: Decimal = Decimal("0")
    working_days: Decimal = Decimal("0")
    actual_working_days: Decimal = Decimal("0")
    absent_days: Decimal = Decimal("0")
    leave_days: Decimal = Decimal("0")
    payroll_period_start: date | None = None
    payroll_period_end: date | None = None
    employee_id: int | None = None
    organization_id: int | None = None
    branch_id: int | None = None
    department: str | None = None
    designation: str | None = None
    variables: dict[str, Decimal] = Field(default_factory=dict)
    custom_values: dict[str, Decimal] = Field(default_factory=dict)

    def to_context(self) -> FormulaEvaluationContext:
        return FormulaEvaluationContext(**self.model_dump())


# ============================================================================
# Batch schemas
# ============================================================================


class BatchRequest(PayloadBase):
    """Schema for evaluating a set of formulas against one context."""

    context: EvaluationContextSchema = Field(default_factory=EvaluationContextSchema)
    formulas: list[FormulaSchema] = Field(default_factory=list)
    overtime_rate: Decimal | None = None


class BatchResponse(PayloadBase):
    """Schema for batch results."""

    results: dict[str, Decimal]


class PayrollSummaryResponse(PayloadBase):
    """Schema for a categorized payroll calculation."""

    basic_salary: Decimal
    overtime_amount: Decimal
    allowance_breakdown: dict[str, Decimal]
    deduction_breakdown: dict[str, Decimal]
    custom_calculations: dict[str, Decimal]
    total_allowances: Decimal
    total_deductions: Decimal
    gross_salary: Decimal
    net_salary: Decimal
