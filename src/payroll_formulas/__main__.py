"""Entry point for running the formula engine command line interface."""

import sys

from payroll_formulas.cli import main

if __name__ == "__main__":
    sys.exit(main())
