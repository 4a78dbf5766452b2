"""Pytest fixtures for payroll formula engine tests."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from payroll_formulas.calculators.formula_engine import PayrollFormulaEngine
from payroll_formulas.calculators.types import (
    FormulaEvaluationContext,
    FormulaType,
    PayrollFormula,
)
from payroll_formulas.config import Settings
from payroll_formulas.metrics import FormulaMetrics


@pytest.fixture
def settings() -> Settings:
    """Settings independent of the process environment."""
    return Settings(
        engine_version="test",
        log_level="DEBUG",
        debug=False,
        metrics_enabled=True,
    )


@pytest.fixture
def metrics() -> FormulaMetrics:
    """Fresh metrics registry for each test."""
    return FormulaMetrics()


@pytest.fixture
def engine(metrics, settings) -> PayrollFormulaEngine:
    """Formula engine wired to the per-test metrics registry."""
    return PayrollFormulaEngine(metrics=metrics, settings=settings)


@pytest.fixture
def context() -> FormulaEvaluationContext:
    """Evaluation context for a January 2024 payroll run."""
    return FormulaEvaluationContext(
        employee_id=1,
        organization_id=1,
        branch_id=1,
        department="IT",
        designation="Developer",
        payroll_period_start=date(2024, 1, 1),
        payroll_period_end=date(2024, 1, 31),
        basic_salary=Decimal("10000"),
        overtime_hours=Decimal("20"),
        working_days=Decimal("22"),
        actual_working_days=Decimal("20"),
        absent_days=Decimal("2"),
        leave_days=Decimal("0"),
    )


@pytest.fixture
def standard_formulas() -> list[PayrollFormula]:
    """HRA and PF from basic salary, Bonus chained from HRA."""
    return [
        PayrollFormula(
            name="HRA",
            formula="BasicSalary * 0.4",
            type=FormulaType.ALLOWANCE,
            priority=1,
        ),
        PayrollFormula(
            name="PF",
            formula="BasicSalary * 0.12",
            type=FormulaType.DEDUCTION,
            priority=2,
        ),
        PayrollFormula(
            name="Bonus",
            formula="HRA * 0.1",
            type=FormulaType.ALLOWANCE,
            priority=3,
        ),
    ]
