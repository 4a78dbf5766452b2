"""Tests for expression tokenizing, parsing and AST evaluation."""

from decimal import Decimal

import pytest

from payroll_formulas.calculators.expression import (
    BinaryOp,
    FormulaDivisionByZeroError,
    FormulaSyntaxError,
    Literal,
    Negate,
    UnknownVariableError,
    Variable,
    evaluate,
    extract_identifiers,
    parse_formula,
    to_decimal,
    tokenize,
)


class TestTokenizer:
    """Test formula tokenization."""

    def test_tokens_skip_whitespace(self):
        """Whitespace separates tokens but is not emitted."""
        tokens = list(tokenize(" BasicSalary *\t0.4 "))
        assert [(t.kind, t.text) for t in tokens] == [
            ("IDENTIFIER", "BasicSalary"),
            ("OPERATOR", "*"),
            ("NUMBER", "0.4"),
        ]

    def test_number_forms(self):
        """Integers, fractions and bare leading/trailing dots are numbers."""
        tokens = list(tokenize("12 0.5 .25 5."))
        assert [t.text for t in tokens] == ["12", "0.5", ".25", "5."]
        assert all(t.kind == "NUMBER" for t in tokens)

    def test_illegal_character_reports_position(self):
        """Characters outside the grammar raise with their offset."""
        with pytest.raises(FormulaSyntaxError) as exc_info:
            list(tokenize("a + $b"))

        assert exc_info.value.position == 4
        assert exc_info.value.formula == "a + $b"


class TestParser:
    """Test AST construction."""

    def test_multiplication_binds_tighter_than_addition(self):
        """1 + 2 * 3 parses as 1 + (2 * 3)."""
        assert parse_formula("1 + 2 * 3") == BinaryOp(
            "+",
            Literal(Decimal("1")),
            BinaryOp("*", Literal(Decimal("2")), Literal(Decimal("3"))),
        )

    def test_parentheses_override_precedence(self):
        """(1 + 2) * 3 groups the addition."""
        assert parse_formula("(1 + 2) * 3") == BinaryOp(
            "*",
            BinaryOp("+", Literal(Decimal("1")), Literal(Decimal("2"))),
            Literal(Decimal("3")),
        )

    def test_subtraction_is_left_associative(self):
        """a - b - c parses as (a - b) - c."""
        assert parse_formula("a - b - c") == BinaryOp(
            "-",
            BinaryOp("-", Variable("a"), Variable("b")),
            Variable("c"),
        )

    def test_unary_minus(self):
        """Unary minus produces a Negate node."""
        assert parse_formula("-PreviousDeduction") == Negate(Variable("PreviousDeduction"))
        assert parse_formula("2 * -x") == BinaryOp(
            "*", Literal(Decimal("2")), Negate(Variable("x"))
        )

    def test_unary_plus_is_dropped(self):
        """Unary plus leaves the operand unchanged."""
        assert parse_formula("+5") == Literal(Decimal("5"))

    @pytest.mark.parametrize(
        "formula",
        [
            "",
            "   ",
            "(a + b",
            "a + b)",
            "a +",
            "* a",
            "a b",
            "()",
            "1e5",
            "max(a)",
            "5.5.5",
            "BasicSalary * min",
            "true + 1",
            "-Round",
        ],
    )
    def test_malformed_formulas_raise(self, formula):
        """Malformed formulas raise FormulaSyntaxError."""
        with pytest.raises(FormulaSyntaxError):
            parse_formula(formula)

    def test_unbalanced_paren_reports_end_position(self):
        """A missing closing paren is reported at the end of input."""
        with pytest.raises(FormulaSyntaxError) as exc_info:
            parse_formula("(a + b")

        assert exc_info.value.position == len("(a + b")

    def test_deep_nesting_is_a_syntax_error(self):
        """Nesting beyond the recursion limit is rejected, not crashed on."""
        formula = "(" * 5000 + "1" + ")" * 5000
        with pytest.raises(FormulaSyntaxError, match="nested too deeply"):
            parse_formula(formula)

    def test_reserved_word_reports_position(self):
        """A reserved word used as a variable is rejected where it appears."""
        with pytest.raises(FormulaSyntaxError, match="Reserved word 'min'") as exc_info:
            parse_formula("BasicSalary * min")

        assert exc_info.value.position == len("BasicSalary * ")

    def test_parse_is_cached(self):
        """The same text returns the same AST object."""
        assert parse_formula("a * 2") is parse_formula("a * 2")


class TestEvaluate:
    """Test AST evaluation."""

    def test_decimal_arithmetic_has_no_float_drift(self):
        """0.1 + 0.2 is exactly 0.3 in Decimal."""
        assert evaluate(parse_formula("0.1 + 0.2"), {}) == Decimal("0.3")

    def test_left_associative_division(self):
        """100 / 10 / 5 = 2."""
        assert evaluate(parse_formula("100 / 10 / 5"), {}) == Decimal("2")

    def test_double_negation(self):
        """--5 = 5."""
        assert evaluate(parse_formula("--5"), {}) == Decimal("5")

    def test_long_addition_chain(self):
        """A 3000-term chain evaluates without exhausting the stack."""
        formula = " + ".join(["1"] * 3000)

        assert evaluate(parse_formula(formula), {}) == Decimal("3000")

    def test_long_subtraction_chain_keeps_left_to_right_order(self):
        """100 - 1 - 1 ... subtracts every 1 from 100."""
        formula = " - ".join(["100"] + ["1"] * 2999)

        assert evaluate(parse_formula(formula), {}) == Decimal("-2899")

    def test_mixed_operators_in_long_chain(self):
        """Precedence holds across a long chain of terms."""
        formula = " + ".join(["a * 2 - b / 4"] * 1500)

        assert evaluate(parse_formula(formula), {"a": 3, "b": 8}) == Decimal("6000")

    def test_missing_variables_collected(self):
        """Unbound names evaluate as zero and are reported."""
        missing: set[str] = set()
        result = evaluate(parse_formula("a + b"), {"a": Decimal("5")}, missing=missing)

        assert result == Decimal("5")
        assert missing == {"b"}

    def test_non_numeric_variable_treated_as_missing(self):
        """Garbage values resolve like unbound names."""
        missing: set[str] = set()
        result = evaluate(parse_formula("a + 1"), {"a": "abc"}, missing=missing)

        assert result == Decimal("1")
        assert missing == {"a"}

    def test_strict_mode_raises_on_missing_variable(self):
        """Strict evaluation names the unbound variable."""
        with pytest.raises(UnknownVariableError) as exc_info:
            evaluate(parse_formula("a + b"), {"a": 1}, strict=True)

        assert exc_info.value.name == "b"

    def test_division_by_zero_raises(self):
        """Division by zero raises for the engine to handle."""
        with pytest.raises(FormulaDivisionByZeroError):
            evaluate(parse_formula("a / (b - b)"), {"a": 1, "b": 2})


class TestToDecimal:
    """Test numeric conversion of variable values."""

    def test_float_converted_through_str(self):
        """Floats convert by their repr, not their binary value."""
        assert to_decimal(0.1) == Decimal("0.1")

    def test_int_and_str(self):
        assert to_decimal(22) == Decimal("22")
        assert to_decimal("12.50") == Decimal("12.50")

    @pytest.mark.parametrize("value", [True, float("nan"), float("inf"), "NaN"])
    def test_rejects_non_numeric(self, value):
        """Booleans and non-finite values are not formula values."""
        with pytest.raises((TypeError, ValueError)):
            to_decimal(value)


class TestExtractIdentifiers:
    """Test identifier extraction."""

    def test_first_appearance_order_without_duplicates(self):
        assert extract_identifiers("b + a * b - c") == ["b", "a", "c"]

    def test_reserved_words_excluded_case_insensitively(self):
        """Function and logical keywords are not variables."""
        assert extract_identifiers("MAX(a, b) + round(c) and TRUE") == ["a", "b", "c"]

    def test_numbers_are_not_identifiers(self):
        assert extract_identifiers("100 + 200 * 0.5") == []
