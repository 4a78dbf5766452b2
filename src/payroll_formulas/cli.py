"""Formula Engine Command Line Interface.

Provides tools for formula authors and payroll operators:
- Formula evaluation and validation
- Variable extraction
- Batch evaluation of a configured formula set
- Overtime calculation

Usage:
    python -m payroll_formulas evaluate "BasicSalary * 0.4" --var BasicSalary=10000
    python -m payroll_formulas validate "HRA * 0.1" --known BasicSalary,HRA
    python -m payroll_formulas extract "(BasicSalary + HRA) * TaxRate"
    python -m payroll_formulas batch --payload '{"context": {...}, "formulas": [...]}'
    python -m payroll_formulas overtime --hours 10 --salary 12000 --rate 1.5
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict
from decimal import Decimal, InvalidOperation
from typing import Callable

from pydantic import ValidationError

from payroll_formulas.calculators.expression import FormulaError
from payroll_formulas.calculators.formula_engine import PayrollFormulaEngine
from payroll_formulas.config import get_settings
from payroll_formulas.schemas import (
    BatchRequest,
    BatchResponse,
    EvaluationContextSchema,
    PayrollSummaryResponse,
)


def parse_decimal(s: str) -> Decimal:
    """Parse a decimal argument."""
    try:
        value = Decimal(s)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"not a decimal number: {s!r}") from None
    if not value.is_finite():
        raise argparse.ArgumentTypeError(f"not a finite number: {s!r}")
    return value


def parse_variable(s: str) -> tuple[str, Decimal]:
    """Parse NAME=VALUE."""
    name, sep, value = s.partition("=")
    if not sep or not name.strip():
        raise argparse.ArgumentTypeError(f"expected NAME=VALUE, got {s!r}")
    return name.strip(), parse_decimal(value.strip())


def read_payload(s: str) -> str:
    """Payload text, or stdin when given '-'."""
    if s == "-":
        return sys.stdin.read()
    return s


class FormulaCli:
    """Formula engine Command Line Interface."""

    def __init__(self, engine: PayrollFormulaEngine | None = None) -> None:
        self.engine = engine or PayrollFormulaEngine()
        self.parser = self._build_parser()

    def _build_parser(self) -> argparse.ArgumentParser:
        """Build argument parser."""
        parser = argparse.ArgumentParser(
            prog="python -m payroll_formulas",
            description="Payroll formula engine tools",
        )
        parser.add_argument(
            "--version",
            action="version",
            version=f"%(prog)s {get_settings().engine_version}",
        )
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        # evaluate command
        evaluate = subparsers.add_parser(
            "evaluate",
            help="Evaluate a single formula",
        )
        evaluate.add_argument("formula", help="Formula text")
        evaluate.add_argument(
            "--var",
            type=parse_variable,
            action="append",
            default=[],
            metavar="NAME=VALUE",
            help="Variable binding (repeatable)",
        )
        evaluate.add_argument(
            "--strict",
            action="store_true",
            help="Fail instead of falling back to zero",
        )

        # validate command
        validate = subparsers.add_parser(
            "validate",
            help="Validate a formula against known variable names",
        )
        validate.add_argument("formula", help="Formula text")
        validate.add_argument(
            "--known",
            type=str,
            action="append",
            default=[],
            help="Comma-separated known variable names (repeatable)",
        )

        # extract command
        extract = subparsers.add_parser(
            "extract",
            help="List variables referenced by a formula",
        )
        extract.add_argument("formula", help="Formula text")

        # variables command
        variables = subparsers.add_parser(
            "variables",
            help="List variables available for an evaluation context",
        )
        variables.add_argument(
            "--payload",
            type=read_payload,
            default="{}",
            help="Context JSON ('-' for stdin)",
        )

        # batch command
        batch = subparsers.add_parser(
            "batch",
            help="Evaluate a formula set in priority order",
        )
        batch.add_argument(
            "--payload",
            type=read_payload,
            required=True,
            help="Batch JSON with context, formulas, optional overtimeRate ('-' for stdin)",
        )

        # overtime command
        overtime = subparsers.add_parser(
            "overtime",
            help="Calculate overtime pay",
        )
        overtime.add_argument("--hours", type=parse_decimal, required=True)
        overtime.add_argument("--salary", type=parse_decimal, required=True)
        overtime.add_argument("--rate", type=parse_decimal, required=True)

        return parser

    def run(self, args: list[str] | None = None) -> int:
        """Run the CLI with given arguments."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 1

        handlers: dict[str, Callable[..., int]] = {
            "evaluate": self._cmd_evaluate,
            "validate": self._cmd_validate,
            "extract": self._cmd_extract,
            "variables": self._cmd_variables,
            "batch": self._cmd_batch,
            "overtime": self._cmd_overtime,
        }

        handler = handlers.get(parsed.command)
        if handler:
            return handler(parsed)

        print(f"Unknown command: {parsed.command}", file=sys.stderr)
        return 1

    def _cmd_evaluate(self, args: argparse.Namespace) -> int:
        """Evaluate one formula."""
        variables = dict(args.var)

        if args.strict:
            try:
                result = self.engine.evaluate_formula_strict(args.formula, variables)
            except FormulaError as e:
                print(f"ERROR: {e}", file=sys.stderr)
                return 1
        else:
            result = self.engine.evaluate_formula(args.formula, variables)

        print(result)
        return 0

    def _cmd_validate(self, args: argparse.Namespace) -> int:
        """Validate a formula."""
        known = [
            name.strip()
            for group in args.known
            for name in group.split(",")
            if name.strip()
        ]

        if self.engine.validate_formula(args.formula, known):
            print("valid")
            return 0

        print("invalid")
        unknown = [v for v in self.engine.extract_variables(args.formula) if v not in known]
        if unknown:
            print(f"  Unknown variables: {', '.join(unknown)}")
        return 1

    def _cmd_extract(self, args: argparse.Namespace) -> int:
        """List formula variables."""
        for name in self.engine.extract_variables(args.formula):
            print(name)
        return 0

    def _cmd_variables(self, args: argparse.Namespace) -> int:
        """List available context variables."""
        try:
            context = EvaluationContextSchema.model_validate_json(args.payload).to_context()
        except ValidationError as e:
            print(f"ERROR: invalid context payload\n{e}", file=sys.stderr)
            return 1

        variables = self.engine.get_available_variables(context)
        width = max((len(v.name) for v in variables), default=0)
        for variable in variables:
            print(f"{variable.name:<{width}}  {variable.value:>12}  {variable.description}")
        return 0

    def _cmd_batch(self, args: argparse.Namespace) -> int:
        """Evaluate a formula batch."""
        try:
            request = BatchRequest.model_validate_json(args.payload)
        except ValidationError as e:
            print(f"ERROR: invalid batch payload\n{e}", file=sys.stderr)
            return 1

        context = request.context.to_context()
        formulas = [f.to_formula() for f in request.formulas]

        if request.overtime_rate is not None:
            summary = self.engine.calculate_payroll(context, formulas, request.overtime_rate)
            response = PayrollSummaryResponse(**asdict(summary))
        else:
            response = BatchResponse(results=self.engine.evaluate_all_formulas(context, formulas))

        print(json.dumps(response.model_dump(mode="json", by_alias=True), indent=2))
        return 0

    def _cmd_overtime(self, args: argparse.Namespace) -> int:
        """Calculate overtime pay."""
        print(self.engine.calculate_overtime_amount(args.hours, args.salary, args.rate))
        return 0


def main() -> int:
    """CLI entry point."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    cli = FormulaCli()
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())
