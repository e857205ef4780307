from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from saleready.services.valuation_simulator import (
    Financials,
    FutureScenario,
    Multipliers,
    SelectedMethods,
)


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class FinancialsIn(CamelModel):
    revenue: float = 0
    ebit: float = 0
    ebitda: float = 0
    equity: float = 0
    net_debt: float = Field(0, alias="netDebt")
    depreciation: float = 0
    current_value: float = Field(0, alias="currentValue")

    def to_domain(self) -> Financials:
        return Financials(**self.model_dump())


class MultipliersIn(CamelModel):
    revenue: float = 0
    ebit: float = 0
    ebitda: float = 0

    def to_domain(self) -> Multipliers:
        return Multipliers(**self.model_dump())


class SelectedMethodsIn(CamelModel):
    revenue: bool = True
    ebit: bool = True
    ebitda: bool = True

    def to_domain(self) -> SelectedMethods:
        return SelectedMethods(**self.model_dump())


class FutureScenarioIn(CamelModel):
    enabled: bool = False
    revenue_growth: float = Field(0, alias="revenueGrowth")
    target_ebit_margin: float = Field(0, alias="targetEbitMargin")

    def to_domain(self) -> FutureScenario:
        return FutureScenario(**self.model_dump())


class SimulationRequest(CamelModel):
    current_financials: Optional[FinancialsIn] = Field(None, alias="currentFinancials")
    multipliers: Optional[MultipliersIn] = None
    selected_methods: Optional[SelectedMethodsIn] = Field(None, alias="selectedMethods")
    future_scenario: Optional[FutureScenarioIn] = Field(None, alias="futureScenario")
