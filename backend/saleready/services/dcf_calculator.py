"""
DCF scenario calculator for small and medium-sized private companies

Three variants:
- full_dcf: enough history for CAGR, margin and capex rate
- simplified_dcf: short history, industry benchmarks fill the gaps
- forward_looking_dcf: early-stage, venture-style assumptions

Each variant is valued under pessimistic / base / optimistic scenarios.
"""

import math
import logging
from dataclasses import dataclass, field, asdict
from datetime import date
from enum import Enum
from typing import Dict, List, Optional

from saleready.core.exceptions import CalculationError

logger = logging.getLogger(__name__)


class DCFVariant(str, Enum):
    FULL = "full_dcf"
    SIMPLIFIED = "simplified_dcf"
    FORWARD_LOOKING = "forward_looking_dcf"


class Scenario(str, Enum):
    PESSIMISTIC = "pessimistic"
    BASE = "base"
    OPTIMISTIC = "optimistic"


SCENARIOS = (Scenario.PESSIMISTIC, Scenario.BASE, Scenario.OPTIMISTIC)

DEFAULT_REVENUE = 1_000_000
STARTUP_REVENUE = 100_000

# working capital need as share of revenue, matched by substring of industry name
INDUSTRY_WC_RATES = {
    "retail": 0.08,
    "software": 0.03,
    "saas": 0.02,
    "manufacturing": 0.12,
    "industrial": 0.10,
    "services": 0.04,
    "wholesale": 0.10,
    "construction": 0.15,
    "restaurant": 0.06,
    "technology": 0.05,
}


@dataclass
class DCFInputs:
    """Model inputs; which fields matter depends on the variant"""
    revenue_history: List[float] = field(default_factory=list)
    ebitda_history: List[float] = field(default_factory=list)
    capex_history: List[float] = field(default_factory=list)
    wacc: Optional[float] = None
    tax_rate: float = 0.25
    industry: Optional[str] = None
    industry_growth_rate: float = 0.05
    industry_ebitda_margin: float = 0.12
    industry_capex_percent: float = 0.03


@dataclass
class ProjectionYear:
    year: int
    revenue: float
    revenue_growth: float
    ebitda: float
    ebitda_margin: float
    ebit: float
    tax: float
    nopat: float
    capex: float
    working_capital_change: float
    free_cash_flow: float
    discount_factor: float
    present_value: float


@dataclass
class ScenarioResult:
    scenario: str
    projections: List[ProjectionYear]
    terminal_value: float
    npv: float
    equity_value: float


@dataclass
class DCFResult:
    variant: str
    wacc: float
    marketability_discount: float
    scenarios: Dict[str, ScenarioResult]

    @property
    def valuations(self) -> Dict[str, float]:
        return {name: s.equity_value for name, s in self.scenarios.items()}

    def to_dict(self) -> Dict:
        return {
            "variant": self.variant,
            "wacc": self.wacc,
            "marketability_discount": self.marketability_discount,
            "valuations": self.valuations,
            "scenarios": {name: asdict(s) for name, s in self.scenarios.items()},
        }


def _pick(scenario: Scenario, pessimistic, base, optimistic):
    return {Scenario.PESSIMISTIC: pessimistic, Scenario.BASE: base, Scenario.OPTIMISTIC: optimistic}[scenario]


def select_variant(inputs: DCFInputs) -> DCFVariant:
    """Pick the richest variant the data supports."""
    revenues = [r for r in inputs.revenue_history if r and r > 0]
    if len(revenues) >= 3 and len(inputs.ebitda_history) >= 3 and inputs.wacc:
        return DCFVariant.FULL
    if revenues:
        return DCFVariant.SIMPLIFIED
    return DCFVariant.FORWARD_LOOKING


class DCFCalculator:
    """Discounted cash flow valuation across scenarios"""

    def __init__(self, inputs: DCFInputs, variant: DCFVariant, start_year: Optional[int] = None):
        if inputs is None:
            raise CalculationError("dcf", "DCF inputs are required")
        self.inputs = inputs
        self.variant = DCFVariant(variant)
        self.start_year = start_year or date.today().year

    @property
    def projection_years(self) -> int:
        return 7 if self.variant == DCFVariant.FORWARD_LOOKING else 5

    @property
    def marketability_discount(self) -> float:
        return 0.30 if self.variant == DCFVariant.FORWARD_LOOKING else 0.20

    def calculate(self) -> DCFResult:
        wacc = self.wacc()
        results = {}
        for scenario in SCENARIOS:
            try:
                projections = self.project(scenario, wacc)
                terminal = self.terminal_value(projections[-1], scenario, wacc)
                npv = self.npv(projections, terminal, wacc)
            except (ValueError, ZeroDivisionError, OverflowError) as e:
                raise CalculationError("dcf", f"Calculation failed for {scenario.value} scenario: {e}")
            equity = npv * (1 - self.marketability_discount)
            if not math.isfinite(equity):
                raise CalculationError("dcf", f"Invalid NPV for {scenario.value}: {equity}")
            logger.info(f"DCF {self.variant.value}/{scenario.value}: NPV {npv:.0f}, after discount {equity:.0f}")
            results[scenario.value] = ScenarioResult(
                scenario=scenario.value,
                projections=projections,
                terminal_value=terminal,
                npv=npv,
                equity_value=equity,
            )
        return DCFResult(
            variant=self.variant.value,
            wacc=wacc,
            marketability_discount=self.marketability_discount,
            scenarios=results,
        )

    def project(self, scenario: Scenario, wacc: float) -> List[ProjectionYear]:
        previous_revenue = self.current_revenue()
        if previous_revenue <= 0 or not math.isfinite(previous_revenue):
            raise CalculationError("dcf", f"Invalid starting revenue: {previous_revenue}")
        previous_wc = previous_revenue * (0.08 if self.variant == DCFVariant.FORWARD_LOOKING else 0.05)

        projections = []
        for i in range(self.projection_years):
            revenue = previous_revenue * (1 + self.growth_rate(i, scenario))
            if revenue <= 0 or not math.isfinite(revenue):
                raise CalculationError("dcf", f"Invalid revenue for year {i + 1}: {revenue}")

            margin = self.ebitda_margin(i, scenario)
            ebitda = revenue * margin
            depreciation = revenue * 0.02
            ebit = ebitda - depreciation
            tax = ebit * self.inputs.tax_rate if ebit > 0 else 0.0
            nopat = ebit - tax
            capex = revenue * self.capex_rate()
            working_capital = revenue * self.working_capital_rate(scenario)
            wc_change = working_capital - previous_wc
            fcf = nopat + depreciation - capex - wc_change
            discount = (1 + wacc) ** (i + 1)

            projections.append(ProjectionYear(
                year=self.start_year + i + 1,
                revenue=revenue,
                revenue_growth=revenue / previous_revenue - 1,
                ebitda=ebitda,
                ebitda_margin=margin,
                ebit=ebit,
                tax=tax,
                nopat=nopat,
                capex=capex,
                working_capital_change=wc_change,
                free_cash_flow=fcf,
                discount_factor=discount,
                present_value=fcf / discount,
            ))
            previous_revenue = revenue
            previous_wc = working_capital
        return projections

    def growth_rate(self, year_index: int, scenario: Scenario) -> float:
        if self.variant == DCFVariant.FULL:
            rate = self.historical_cagr()
            if rate is None:
                rate = _pick(scenario, 0.14, 0.20, 0.26)
            else:
                rate *= _pick(scenario, 0.8, 1.0, 1.2)
        elif self.variant == DCFVariant.SIMPLIFIED:
            rate = self.inputs.industry_growth_rate * (0.9 ** year_index)
            rate *= _pick(scenario, 0.7, 1.0, 1.3)
        else:
            rate = 0.25 * (0.85 ** year_index) + _pick(scenario, -0.05, 0.0, 0.05)
        return max(-0.50, min(rate, 1.0))

    def ebitda_margin(self, year_index: int, scenario: Scenario) -> float:
        base = self.current_ebitda_margin()
        target = self.target_ebitda_margin()

        if base < 0 and year_index < 3:
            # linear path to breakeven, reached in the third projection year
            return base * (2 - year_index) / 3

        progress = year_index / self.projection_years
        s_curve = 1 / (1 + math.exp(-10 * (progress - 0.5)))
        margin = max(base, 0) + (target - max(base, 0)) * s_curve + _pick(scenario, -0.02, 0.0, 0.02)
        return min(max(margin, -0.20), 0.50)

    def terminal_value(self, last: ProjectionYear, scenario: Scenario, wacc: float) -> float:
        growth = min(0.02 + _pick(scenario, -0.005, 0.0, 0.005), 0.025)
        if growth >= wacc - 0.02:
            growth = wacc - 0.02

        fcf = last.free_cash_flow
        if fcf < 0:
            # maintenance capex and minimal working capital growth
            fcf = last.nopat - last.revenue * 0.03 - last.revenue * 0.01 * growth
        value = fcf * (1 + growth) / (wacc - growth)
        if not math.isfinite(value):
            raise CalculationError("dcf", f"Non-finite terminal value: FCF={fcf}, growth={growth}, WACC={wacc}")
        if value < 0:
            logger.warning("Negative terminal value, company is structurally unprofitable")
        return value

    def npv(self, projections: List[ProjectionYear], terminal: float, wacc: float) -> float:
        pv_fcf = sum(p.present_value for p in projections)
        pv_terminal = terminal / (1 + wacc) ** len(projections)
        return pv_fcf + pv_terminal

    def current_revenue(self) -> float:
        if self.variant == DCFVariant.FORWARD_LOOKING:
            return STARTUP_REVENUE
        history = self.inputs.revenue_history
        return history[-1] if history and history[-1] else DEFAULT_REVENUE

    def current_ebitda_margin(self) -> float:
        if self.variant == DCFVariant.FULL:
            revenues, ebitdas = self.inputs.revenue_history, self.inputs.ebitda_history
            if revenues and ebitdas:
                if revenues[-1] <= 0:
                    return 0.20
                return ebitdas[-1] / revenues[-1]
            return 0.20
        if self.variant == DCFVariant.SIMPLIFIED:
            return self.inputs.industry_ebitda_margin
        return -0.10

    def target_ebitda_margin(self) -> float:
        if self.variant == DCFVariant.SIMPLIFIED:
            return self.inputs.industry_ebitda_margin * 1.2
        return 0.30

    def wacc(self) -> float:
        if self.variant == DCFVariant.FORWARD_LOOKING:
            wacc = self.inputs.wacc or 0.25
        else:
            wacc = (self.inputs.wacc or 0.10) + self.size_premium(self.current_revenue())
        if not math.isfinite(wacc) or wacc <= 0 or wacc > 0.50:
            raise CalculationError("dcf", f"Invalid WACC value: {wacc}")
        return wacc

    @staticmethod
    def size_premium(revenue: float) -> float:
        if revenue < 5_000_000:
            return 0.05
        if revenue < 10_000_000:
            return 0.04
        if revenue < 50_000_000:
            return 0.025
        if revenue < 100_000_000:
            return 0.01
        return 0.0

    def capex_rate(self) -> float:
        if self.variant == DCFVariant.FULL:
            revenues, capex = self.inputs.revenue_history, self.inputs.capex_history
            if revenues and len(capex) == len(revenues):
                periods = min(3, len(revenues))
                rates = [capex[i] / revenues[i] for i in range(len(revenues) - periods, len(revenues)) if revenues[i] > 0]
                return sum(rates) / periods
            return 0.03
        if self.variant == DCFVariant.SIMPLIFIED:
            return self.inputs.industry_capex_percent
        return 0.05

    def working_capital_rate(self, scenario: Scenario) -> float:
        rate = 0.05
        if self.variant == DCFVariant.FORWARD_LOOKING:
            rate = 0.08
        elif self.variant == DCFVariant.SIMPLIFIED and self.inputs.industry:
            industry = self.inputs.industry.lower()
            for key, value in INDUSTRY_WC_RATES.items():
                if key in industry:
                    rate = value
                    break
        return rate * _pick(scenario, 1.2, 1.0, 0.8)

    def historical_cagr(self) -> Optional[float]:
        revenues = self.inputs.revenue_history
        if len(revenues) < 2:
            return None
        start, end = revenues[0], revenues[-1]
        if start <= 0 or end <= 0:
            return None
        cagr = (end / start) ** (1 / (len(revenues) - 1)) - 1
        return cagr if math.isfinite(cagr) else None
