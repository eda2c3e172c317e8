"""Tests for applicability expression parsing and evaluation."""

import pytest

from tokenops.core.errors import ExpressionError
from tokenops.policy.expressions import (
    ApplicabilityExpression,
    compile_expression,
    evaluate_expression,
)

CTX = {
    "assetClass": "ART",
    "ledger": "XRPL",
    "investorAudience": "retail",
    "isCaspInvolved": True,
    "transferType": "CASP_TO_CASP",
    "targetMarkets": ["EU", "CH"],
    "issuerCountry": "DE",
}


class TestEvaluate:
    @pytest.mark.parametrize(
        "expr,expected",
        [
            ("assetClass == 'ART'", True),
            ("assetClass === 'ART'", True),
            ("assetClass !== 'ART'", False),
            ("assetClass == 'ART' || assetClass == 'EMT'", True),
            ("assetClass == 'EMT' || assetClass == 'OTHER'", False),
            ("assetClass == 'ART' && investorAudience == 'retail'", True),
            ("assetClass == 'ART' && investorAudience == 'professional'", False),
            ("isCaspInvolved == true && transferType == 'CASP_TO_CASP'", True),
            ("!isCaspInvolved", False),
            ("!(ledger == 'ETHEREUM')", True),
            ("'EU' in targetMarkets", True),
            ("'US' not in targetMarkets", True),
            ("issuerCountry in ['DE', 'FR']", True),
            ("ledger == \"XRPL\"", True),
        ],
    )
    def test_expressions(self, expr, expected):
        assert evaluate_expression(expr, CTX) is expected

    def test_operators_inside_string_literals_are_untouched(self):
        ctx = {"note": "a && b || !c"}
        assert evaluate_expression("note == 'a && b || !c'", ctx) is True

    def test_true_inside_literal_is_not_rewritten(self):
        assert evaluate_expression("x == 'true'", {"x": "true"}) is True

    def test_null_literal(self):
        assert evaluate_expression("x == null", {"x": None}) is True

    def test_unknown_name_raises(self):
        with pytest.raises(ExpressionError, match="Unknown fact"):
            evaluate_expression("jurisdiction == 'EU'", CTX)

    def test_type_mismatch_raises(self):
        with pytest.raises(ExpressionError, match="Type mismatch"):
            evaluate_expression("targetMarkets > 3", CTX)

    def test_names_collected(self):
        expr = ApplicabilityExpression("assetClass == 'ART' && !isCaspInvolved")
        assert expr.names == frozenset({"assetClass", "isCaspInvolved"})


class TestRejectsUnsafeSyntax:
    @pytest.mark.parametrize(
        "expr",
        [
            "__import__('os').system('echo')",
            "assetClass.lower() == 'art'",
            "targetMarkets[0] == 'EU'",
            "lambda: 1",
            "1 + 1 == 2",
            "-1 < 0",
            "{'a': 1}",
            "[x for x in targetMarkets]",
        ],
    )
    def test_rejected(self, expr):
        with pytest.raises(ExpressionError):
            ApplicabilityExpression(expr)

    def test_empty_rejected(self):
        with pytest.raises(ExpressionError, match="Empty"):
            ApplicabilityExpression("   ")

    def test_syntax_error(self):
        with pytest.raises(ExpressionError, match="Cannot parse"):
            ApplicabilityExpression("assetClass == ")


class TestCompileCache:
    def test_same_source_returns_cached_instance(self):
        assert compile_expression("ledger == 'XRPL'") is compile_expression("ledger == 'XRPL'")
