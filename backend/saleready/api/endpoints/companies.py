from fastapi import APIRouter, Depends, Query
from typing import List
import logging

from saleready.core.auth import get_current_user_id
from saleready.schemas.company import Company, CompanyCreate, CompanyUpdate
from saleready.services.business_registry import ytj_client
from saleready.services.company_service import company_service

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/", response_model=List[Company])
def get_companies(
    limit: int = Query(100, ge=1, le=500, description="Maximum number of companies to return"),
    offset: int = Query(0, ge=0, description="Number of companies to skip"),
    user_id: str = Depends(get_current_user_id),
):
    """
    List the caller's companies.
    """
    return company_service.list_companies(user_id, limit=limit, offset=offset)


@router.get("/lookup/{business_id}")
async def lookup_company(business_id: str):
    """
    Fetch public registry data (YTJ) for a Finnish business ID.
    """
    company = await ytj_client.fetch_company(business_id)
    return company.to_dict()


@router.get("/{company_id}", response_model=Company)
def get_company(company_id: str, user_id: str = Depends(get_current_user_id)):
    return company_service.get_company(company_id, user_id)


@router.post("/", response_model=Company, status_code=201)
def create_company(company: CompanyCreate, user_id: str = Depends(get_current_user_id)):
    return company_service.create_company(company.model_dump(exclude_none=True), user_id)


@router.patch("/{company_id}", response_model=Company)
def update_company(company_id: str, company_update: CompanyUpdate, user_id: str = Depends(get_current_user_id)):
    return company_service.update_company(company_id, company_update.model_dump(exclude_unset=True), user_id)


@router.delete("/{company_id}")
def delete_company(company_id: str, user_id: str = Depends(get_current_user_id)):
    company_service.delete_company(company_id, user_id)
    return {"success": True, "message": "Company deleted successfully"}
