from fastapi import APIRouter
import logging

from saleready.core.exceptions import ValidationError
from saleready.schemas.valuation import SimulationRequest
from saleready.services.valuation_simulator import simulate_valuation

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/simulate-valuation")
def simulate(request: SimulationRequest):
    """
    Recompute the valuation range from user-chosen multiples.
    Pure arithmetic, nothing is stored.
    """
    if request.current_financials is None or request.multipliers is None:
        raise ValidationError("Missing required data: currentFinancials and multipliers are required")

    result = simulate_valuation(
        financials=request.current_financials.to_domain(),
        multipliers=request.multipliers.to_domain(),
        selected=request.selected_methods.to_domain() if request.selected_methods else None,
        scenario=request.future_scenario.to_domain() if request.future_scenario else None,
    )
    return result.to_dict()
