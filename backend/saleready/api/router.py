"""
Main API router
"""
from fastapi import APIRouter

from saleready.api.endpoints import analysis, billing, companies, nda, simulator, tasks

api_router = APIRouter()

api_router.include_router(analysis.router, tags=["analysis"])
api_router.include_router(simulator.router, tags=["valuation"])
api_router.include_router(billing.router, tags=["billing"])
api_router.include_router(nda.router, tags=["nda"])
api_router.include_router(companies.router, prefix="/companies", tags=["companies"])
api_router.include_router(tasks.router, prefix="/tasks", tags=["tasks"])
