"""
Valuation simulator
Recomputes equity value from user-chosen multiples, optionally on a
projected year. Book value (substanssi) is always part of the range.
"""

import logging
from dataclasses import dataclass, field, asdict, replace
from typing import Dict, List, Optional, Any

from saleready.core.exceptions import CalculationError

logger = logging.getLogger(__name__)

MULTIPLE_METHODS = ("revenue", "ebit", "ebitda")


@dataclass
class Financials:
    revenue: float = 0.0
    ebit: float = 0.0
    ebitda: float = 0.0
    equity: float = 0.0
    net_debt: float = 0.0
    depreciation: float = 0.0
    current_value: float = 0.0


@dataclass
class Multipliers:
    revenue: float = 0.0
    ebit: float = 0.0
    ebitda: float = 0.0


@dataclass
class SelectedMethods:
    revenue: bool = True
    ebit: bool = True
    ebitda: bool = True


@dataclass
class FutureScenario:
    enabled: bool = False
    revenue_growth: float = 0.0
    target_ebit_margin: float = 0.0


@dataclass
class MethodValuations:
    book_value: float
    revenue: Optional[float] = None
    ebit: Optional[float] = None
    ebitda: Optional[float] = None


@dataclass
class ValuationRange:
    low: float
    high: float
    average: float


@dataclass
class ValueChange:
    absolute: float
    percentage: float


@dataclass
class SimulationResult:
    adjusted_financials: Financials
    valuations: MethodValuations
    range: ValuationRange
    change: ValueChange
    valid_method_count: int
    included_values: List[float] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        f = self.adjusted_financials
        return {
            "adjustedFinancials": {
                "revenue": f.revenue,
                "ebit": f.ebit,
                "ebitda": f.ebitda,
                "equity": f.equity,
                "netDebt": f.net_debt,
                "depreciation": f.depreciation,
                "currentValue": f.current_value,
            },
            "valuations": {
                "substanssi": self.valuations.book_value,
                "revenue": self.valuations.revenue,
                "ebit": self.valuations.ebit,
                "ebitda": self.valuations.ebitda,
            },
            "range": asdict(self.range),
            "change": asdict(self.change),
            "validMethodCount": self.valid_method_count,
        }


def apply_future_scenario(financials: Financials, scenario: Optional[FutureScenario]) -> Financials:
    """Project revenue, EBIT and EBITDA one step ahead when the scenario is on."""
    if not scenario or not scenario.enabled:
        return replace(financials)

    revenue = financials.revenue * (1 + scenario.revenue_growth)
    ebit = revenue * scenario.target_ebit_margin
    adjusted = replace(
        financials,
        revenue=revenue,
        ebit=ebit,
        ebitda=ebit + financials.depreciation,
    )
    logger.info(
        f"Applied future scenario: revenue {financials.revenue} -> {adjusted.revenue}, "
        f"ebit {financials.ebit} -> {adjusted.ebit}"
    )
    return adjusted


def equity_value(metric: float, multiple: float, net_debt: float) -> float:
    """Enterprise value from a multiple, less net debt."""
    return metric * multiple - net_debt


def method_valuations(
    financials: Financials,
    multipliers: Multipliers,
    selected: SelectedMethods,
) -> MethodValuations:
    values = {}
    for method in MULTIPLE_METHODS:
        metric = getattr(financials, method)
        if getattr(selected, method) and metric > 0:
            values[method] = equity_value(metric, getattr(multipliers, method), financials.net_debt)
        else:
            values[method] = None
    return MethodValuations(book_value=financials.equity, **values)


def simulate_valuation(
    financials: Financials,
    multipliers: Multipliers,
    selected: Optional[SelectedMethods] = None,
    scenario: Optional[FutureScenario] = None,
) -> SimulationResult:
    """Run one simulation; see module docstring for the rules."""
    adjusted = apply_future_scenario(financials, scenario)
    valuations = method_valuations(adjusted, multipliers, selected or SelectedMethods())

    included = [valuations.book_value]
    for method in MULTIPLE_METHODS:
        value = getattr(valuations, method)
        if value is not None and value > 0:
            included.append(value)

    if not included:
        raise CalculationError("simulate_valuation", "No valuation methods available")

    average = sum(included) / len(included)
    value_range = ValuationRange(low=min(included), high=max(included), average=average)

    absolute = average - financials.current_value
    percentage = (absolute / financials.current_value) * 100 if financials.current_value > 0 else 0
    logger.info(f"Simulation used {len(included)} values, average {average:.0f}")

    return SimulationResult(
        adjusted_financials=adjusted,
        valuations=valuations,
        range=value_range,
        change=ValueChange(absolute=absolute, percentage=percentage),
        valid_method_count=len(included),
        included_values=included,
    )
