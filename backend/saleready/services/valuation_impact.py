"""
Valuation impact of sales readiness

Converts the per-category value impacts of a sales-readiness analysis into
multiple adjustment factors and re-prices the original valuation with them.
"""

import logging
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional, Tuple

from saleready.core.exceptions import CalculationError

logger = logging.getLogger(__name__)

# analysis category key -> short impact key
CATEGORIES = {
    "financial": "financial",
    "legal": "legal",
    "customer_concentration": "customer",
    "personnel": "personnel",
    "operations": "operations",
    "documentation": "documentation",
    "strategic": "strategic",
    "contract_structure": "contract",
}

METHOD_WEIGHTS = {
    "revenue": {"customer": 0.35, "contract": 0.30, "strategic": 0.25, "documentation": 0.10},
    "ebit": {"operations": 0.30, "financial": 0.30, "personnel": 0.25, "documentation": 0.15},
    "ebitda": {"operations": 0.35, "financial": 0.25, "personnel": 0.25, "documentation": 0.15},
    "pe": {"financial": 0.40, "legal": 0.25, "operations": 0.20, "documentation": 0.15},
}

DEFAULT_RANGE_LOW = 0.8
DEFAULT_RANGE_HIGH = 1.2

# used when the stored valuation names no multiple for a method
DEFAULT_MULTIPLES = {"revenue": 0.5, "ebit": 10.0, "ebitda": 8.0, "pe": 12.0}

ORIGINAL_VALUE_KEYS = (
    "book_value",
    "asset_based_value",
    "equity_value_from_revenue",
    "equity_value_from_ebit",
    "equity_value_from_ebitda",
    "equity_value_from_pe",
)


@dataclass
class AdjustmentFactors:
    customer_concentration_factor: float = 1.0
    key_person_dependency_factor: float = 1.0
    contract_structure_factor: float = 1.0
    financial_factor: float = 1.0
    legal_factor: float = 1.0
    operational_factor: float = 1.0
    strategic_factor: float = 1.0
    documentation_factor: float = 1.0
    overall_multiple_factor: float = 1.0
    revenue_multiple_factor: float = 1.0
    ebit_multiple_factor: float = 1.0
    ebitda_multiple_factor: float = 1.0
    pe_multiple_factor: float = 1.0

    def for_method(self, method: str) -> float:
        factor = getattr(self, f"{method}_multiple_factor", None)
        return factor or self.overall_multiple_factor

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


def _number(value: Any) -> Optional[float]:
    """Model output is untrusted: only real numbers count, bools and strings do not."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _impact_percent(entry: Any) -> Optional[float]:
    if not isinstance(entry, dict):
        return None
    impact = entry.get("value_impact")
    if not isinstance(impact, dict):
        return None
    return _number(impact.get("impact_percent"))


def category_impacts(analysis: Dict[str, Any]) -> Dict[str, float]:
    assessments = analysis.get("quantitative_assessments")
    if not isinstance(assessments, dict):
        return {}
    impacts = {}
    for category, short in CATEGORIES.items():
        value = _impact_percent(assessments.get(category))
        if value is not None:
            impacts[short] = value
    return impacts


def calculate_adjustment_factors(analysis: Optional[Dict[str, Any]]) -> AdjustmentFactors:
    """Turn category impacts (percent) into multiplicative factors around 1.0."""
    weights = analysis.get("category_weights") if isinstance(analysis, dict) else None
    if not isinstance(weights, dict) or not isinstance(analysis.get("quantitative_assessments"), dict):
        logger.warning("Sales readiness analysis lacks impacts or weights, using neutral factors")
        return AdjustmentFactors()

    weights = {category: _number(w) for category, w in weights.items()}
    impacts = category_impacts(analysis)

    total_weight = sum(w for w in weights.values() if w is not None)
    if abs(total_weight - 1.0) > 0.05:
        logger.warning(f"Category weights sum to {total_weight:.2f}, normalizing")

    weighted = 0.0
    used_weight = 0.0
    for category, short in CATEGORIES.items():
        weight = weights.get(category)
        if weight and weight > 0 and short in impacts:
            weighted += impacts[short] * weight
            used_weight += weight

    overall_impact = weighted / used_weight if used_weight > 0 else 0.0
    overall = 1 + overall_impact / 100
    logger.info(f"Weighted impact {overall_impact:.2f}% -> overall factor {overall:.3f}")

    def method_factor(method: str) -> float:
        return 1 + sum(impacts.get(k, 0.0) * w for k, w in METHOD_WEIGHTS[method].items()) / 100

    def single(short: str) -> float:
        return 1 + impacts.get(short, 0.0) / 100

    return AdjustmentFactors(
        customer_concentration_factor=single("customer"),
        key_person_dependency_factor=single("personnel"),
        contract_structure_factor=single("contract"),
        financial_factor=single("financial"),
        legal_factor=single("legal"),
        operational_factor=single("operations"),
        strategic_factor=single("strategic"),
        documentation_factor=single("documentation"),
        overall_multiple_factor=overall,
        revenue_multiple_factor=method_factor("revenue"),
        ebit_multiple_factor=method_factor("ebit"),
        ebitda_multiple_factor=method_factor("ebitda"),
        pe_multiple_factor=method_factor("pe"),
    )


def _num(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def period_equity_values(period: Dict[str, Any], multiples: Dict[str, float]) -> List[float]:
    """Positive equity values one financial period supports at the given multiples."""
    balance = period.get("balance_sheet") or {}
    income = period.get("income_statement") or {}
    dcf_items = period.get("dcf_items") or {}
    weighted = period.get("weighted_financials") or {}

    revenue = _num(weighted.get("revenue") or income.get("revenue"))
    ebit = _num(weighted.get("ebit") or income.get("ebit"))
    ebitda = _num(weighted.get("ebitda") or income.get("ebitda"))
    net_income = _num(weighted.get("net_income") or income.get("net_income"))
    if ebitda == 0 and ebit != 0 and income.get("depreciation"):
        ebitda = ebit + _num(income.get("depreciation"))

    book_value = _num(balance.get("assets_total")) - _num(balance.get("liabilities_total"))
    net_debt = _num(dcf_items.get("interest_bearing_debt")) - _num(dcf_items.get("cash"))

    candidates = [book_value, max(0.0, -net_debt)]
    if revenue * multiples.get("revenue", 0) > 0:
        candidates.append(max(0.0, revenue * multiples["revenue"] - net_debt))
    if ebit > 0:
        candidates.append(max(0.0, ebit * multiples.get("ebit", 0) - net_debt))
    if ebitda > 0:
        candidates.append(max(0.0, ebitda * multiples.get("ebitda", 0) - net_debt))
    if net_income > 0 and multiples.get("pe", 0) > 0:
        candidates.append(net_income * multiples["pe"])

    values = [v for v in candidates if v > 0]
    if not values and book_value > 0:
        values = [book_value]
    return values


def scaled_method_values(snapshot: Dict[str, Any], multiples: Dict[str, float]) -> List[float]:
    """Scale stored per-method values by new/original multiple."""
    original_values = snapshot.get("original_method_values") or {}
    original_multiples = snapshot.get("multiples_used") or {}
    values = []
    for method in snapshot.get("methods_used_in_average") or []:
        if method in ("book_value", "asset_based_value"):
            value = _num(original_values.get(method))
        else:
            base = _num(original_multiples.get(method))
            value = 0.0
            if base > 0:
                value = _num(original_values.get(f"equity_value_from_{method}")) * multiples.get(method, 0) / base
        if value > 0:
            values.append(value)
    return values


def apply_valuation_adjustments(
    snapshot: Dict[str, Any],
    factors: AdjustmentFactors,
    period: Optional[Dict[str, Any]],
) -> Dict[str, Any]:
    """Re-price the original valuation with adjusted multiples."""
    if period is None:
        raise CalculationError("valuation_adjustment", "Original financial period data is required for recalculation")

    original_multiples = snapshot.get("multiples_used") or {}
    adjusted_multiples = {
        method: _num(original_multiples.get(method)) * factors.for_method(method)
        for method in ("revenue", "ebit", "ebitda", "pe")
    }

    if snapshot.get("original_method_values") and snapshot.get("methods_used_in_average"):
        values = scaled_method_values(snapshot, adjusted_multiples)
    else:
        values = period_equity_values(period, adjusted_multiples)
    average = sum(values) / len(values) if values else 0.0

    low_factor, high_factor = DEFAULT_RANGE_LOW, DEFAULT_RANGE_HIGH
    original_average = _num(snapshot.get("average_valuation"))
    original_range = snapshot.get("valuation_range") or {}
    if original_average > 0 and original_range:
        low_factor = _num(original_range.get("low")) / original_average
        high_factor = _num(original_range.get("high")) / original_average

    low = average * low_factor
    high = average * high_factor
    result = {
        "average_valuation": average if average < 0 else max(0.0, average),
        "valuation_range": {
            "low": low if average < 0 else max(0.0, low),
            "high": max(0.0, high),
        },
        "adjusted_multiples": adjusted_multiples,
        "methods_in_average": len(values),
    }
    logger.info(
        f"Adjusted valuation: avg={result['average_valuation']:.0f}, "
        f"range={result['valuation_range']['low']:.0f}-{result['valuation_range']['high']:.0f}"
    )
    return result


def latest_period(results: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """First financial period with weighted financials, else the first period."""
    documents = (results.get("financialAnalysis") or {}).get("documents") or []
    periods = (documents[0].get("financial_periods") or []) if documents else []
    if not periods:
        return None
    for period in periods:
        if period.get("weighted_financials"):
            return period
    return periods[0]


def _multiple(block: Dict[str, Any], *paths) -> Optional[float]:
    for key, name in paths:
        value = (block.get(key) or {}).get(name)
        if value:
            return _num(value)
    return None


def build_valuation_snapshot(valuation: Dict[str, Any]) -> Tuple[Dict[str, Any], Optional[Dict[str, Any]]]:
    """Snapshot of a stored valuation row plus the financial period it was based on."""
    results = valuation.get("results") or {}
    numbers = (results.get("valuationReport") or {}).get("valuation_numbers") or {}
    value_range = numbers.get("range") or {}
    period = latest_period(results)

    snapshot: Dict[str, Any] = {
        "valuation_id": valuation.get("id"),
        "calculation_date": valuation.get("created_at"),
        "average_valuation": _num(numbers.get("most_likely_value")),
        "valuation_range": {"low": _num(value_range.get("low")), "high": _num(value_range.get("high"))},
        "multiples_used": dict(DEFAULT_MULTIPLES),
    }
    if not period:
        return snapshot, None

    if period.get("valuation_multiples"):
        vm = period["valuation_multiples"]
        found = {
            "revenue": _multiple(vm, ("revenue_multiple", "multiple"), ("revenue", "multiple")),
            "ebit": _multiple(vm, ("ev_ebit", "multiple")),
            "ebitda": _multiple(vm, ("ev_ebitda", "multiple")),
            "pe": _multiple(vm, ("p_e", "multiple")),
        }
    else:
        vm = period.get("valuation_metrics") or {}
        found = {
            "revenue": _multiple(vm, ("used_revenue_multiple", "value")),
            "ebit": _multiple(vm, ("used_ev_ebit_multiple", "value")),
            "ebitda": _multiple(vm, ("used_ev_ebitda_multiple", "value")),
            "pe": _multiple(vm, ("used_p_e_multiple", "value")),
        }
    snapshot["multiples_used"].update({k: v for k, v in found.items() if v is not None})

    metrics = period.get("valuation_metrics")
    if metrics:
        values = {key: _num(metrics.get(key)) for key in ORIGINAL_VALUE_KEYS}
        used = [key for key in ("book_value", "asset_based_value") if values[key] > 0]
        for method in ("revenue", "ebit", "ebitda", "pe"):
            business_based = metrics.get(f"{method}_valuation_method", "business_based") == "business_based"
            if values[f"equity_value_from_{method}"] > 0 and business_based:
                used.append(method)
        snapshot["original_method_values"] = values
        snapshot["methods_used_in_average"] = used
    return snapshot, period
