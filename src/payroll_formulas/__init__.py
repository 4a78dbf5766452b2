"""StrideHR payroll formula engine."""

__version__ = "1.0.0"
