import pytest

from saleready.core.exceptions import CalculationError
from saleready.services.valuation_impact import (
    AdjustmentFactors,
    apply_valuation_adjustments,
    build_valuation_snapshot,
    calculate_adjustment_factors,
)


def _assessment(impact):
    return {"score": 50, "value_impact": {"impact_percent": impact}}


@pytest.fixture
def analysis():
    return {
        "quantitative_assessments": {
            "financial": _assessment(-10),
            "legal": _assessment(-5),
            "customer_concentration": _assessment(-20),
            "personnel": _assessment(0),
            "operations": _assessment(5),
            "documentation": _assessment(-10),
            "strategic": _assessment(0),
            "contract_structure": _assessment(-10),
        },
        "category_weights": {
            "financial": 0.2,
            "legal": 0.1,
            "customer_concentration": 0.2,
            "personnel": 0.1,
            "operations": 0.1,
            "documentation": 0.1,
            "strategic": 0.1,
            "contract_structure": 0.1,
        },
    }


def test_adjustment_factors_from_weighted_impacts(analysis):
    factors = calculate_adjustment_factors(analysis)

    assert factors.overall_multiple_factor == pytest.approx(0.92)
    assert factors.revenue_multiple_factor == pytest.approx(0.89)
    assert factors.ebit_multiple_factor == pytest.approx(0.97)
    assert factors.ebitda_multiple_factor == pytest.approx(0.9775)
    assert factors.pe_multiple_factor == pytest.approx(0.9425)
    assert factors.customer_concentration_factor == pytest.approx(0.8)
    assert factors.operational_factor == pytest.approx(1.05)


@pytest.mark.parametrize("broken", [None, {}, {"quantitative_assessments": {"financial": _assessment(-10)}}])
def test_missing_inputs_give_neutral_factors(broken):
    assert calculate_adjustment_factors(broken) == AdjustmentFactors()


def test_non_numeric_weights_are_ignored(analysis):
    analysis["category_weights"] = {"financial": "0.3", "legal": 0.1, "operations": True}

    factors = calculate_adjustment_factors(analysis)

    assert factors.overall_multiple_factor == pytest.approx(0.95)


@pytest.mark.parametrize(
    "malformed",
    [
        {"category_weights": ["financial", 0.3], "quantitative_assessments": {"financial": _assessment(-10)}},
        {"category_weights": {"financial": 1.0}, "quantitative_assessments": "n/a"},
        {"category_weights": {"financial": 1.0}, "quantitative_assessments": {"financial": {"value_impact": "-10%"}}},
    ],
)
def test_malformed_analysis_gives_neutral_factors(malformed):
    assert calculate_adjustment_factors(malformed) == AdjustmentFactors()


def test_method_values_scaled_by_adjusted_multiples(analysis):
    snapshot = {
        "average_valuation": 400_000,
        "valuation_range": {"low": 320_000, "high": 480_000},
        "multiples_used": {"revenue": 0.5, "ebit": 6, "ebitda": 5, "pe": 8},
        "original_method_values": {
            "book_value": 100_000,
            "equity_value_from_revenue": 400_000,
            "equity_value_from_ebit": 600_000,
        },
        "methods_used_in_average": ["book_value", "revenue", "ebit"],
    }
    result = apply_valuation_adjustments(snapshot, calculate_adjustment_factors(analysis), period={})

    assert result["adjusted_multiples"]["revenue"] == pytest.approx(0.445)
    assert result["average_valuation"] == pytest.approx(346_000)
    assert result["valuation_range"]["low"] == pytest.approx(276_800)
    assert result["valuation_range"]["high"] == pytest.approx(415_200)
    assert result["methods_in_average"] == 3


def test_recalculates_from_period_with_default_range():
    snapshot = {"multiples_used": {"revenue": 0.5, "ebit": 6, "ebitda": 5, "pe": 8}}
    period = {
        "income_statement": {"revenue": 1_000_000, "ebit": 100_000, "depreciation": 20_000, "net_income": 80_000},
        "balance_sheet": {"assets_total": 500_000, "liabilities_total": 300_000},
        "dcf_items": {"interest_bearing_debt": 150_000, "cash": 50_000},
    }
    result = apply_valuation_adjustments(snapshot, AdjustmentFactors(), period)

    assert result["average_valuation"] == pytest.approx(448_000)
    assert result["valuation_range"]["low"] == pytest.approx(358_400)
    assert result["valuation_range"]["high"] == pytest.approx(537_600)


def test_missing_period_raises():
    with pytest.raises(CalculationError):
        apply_valuation_adjustments({}, AdjustmentFactors(), None)


def test_build_snapshot_prefers_weighted_period_and_ai_multiples():
    valuation = {
        "id": "v1",
        "created_at": "2024-05-01",
        "results": {
            "valuationReport": {"valuation_numbers": {"most_likely_value": 900_000, "range": {"low": 700_000, "high": 1_100_000}}},
            "financialAnalysis": {
                "documents": [{
                    "financial_periods": [
                        {"income_statement": {"revenue": 1}},
                        {
                            "weighted_financials": {"revenue": 2_000_000},
                            "valuation_multiples": {"revenue_multiple": {"multiple": 0.7}, "ev_ebit": {"multiple": 7}},
                            "valuation_metrics": {
                                "book_value": 300_000,
                                "equity_value_from_revenue": 1_200_000,
                                "revenue_valuation_method": "business_based",
                                "equity_value_from_ebit": 800_000,
                                "ebit_valuation_method": "asset_based",
                            },
                        },
                    ]
                }]
            },
        },
    }
    snapshot, period = build_valuation_snapshot(valuation)

    assert period["weighted_financials"]["revenue"] == 2_000_000
    assert snapshot["average_valuation"] == 900_000
    assert snapshot["multiples_used"] == {"revenue": 0.7, "ebit": 7.0, "ebitda": 8.0, "pe": 12.0}
    assert snapshot["methods_used_in_average"] == ["book_value", "revenue"]


def test_build_snapshot_without_financial_analysis():
    snapshot, period = build_valuation_snapshot({"id": "v1", "results": {}})

    assert period is None
    assert snapshot["average_valuation"] == 0
