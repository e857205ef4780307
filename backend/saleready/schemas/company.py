from pydantic import BaseModel, field_validator
from typing import Optional, Dict, Any
from datetime import datetime


def _non_empty_name(v):
    v = str(v if v is not None else "").strip()
    if not v:
        raise ValueError("Company name is required")
    return v


class CompanyBase(BaseModel):
    name: str
    business_id: Optional[str] = None
    industry: Optional[str] = None
    description: Optional[str] = None
    founded: Optional[str] = None
    employees: Optional[str] = None
    company_type: Optional[str] = None
    ownership_type: Optional[str] = None
    website: Optional[str] = None
    revenue: Optional[float] = None

    @field_validator("name", mode="before")
    @classmethod
    def check_name(cls, v):
        return _non_empty_name(v)

    class Config:
        from_attributes = True


class CompanyCreate(CompanyBase):
    pass


class CompanyUpdate(BaseModel):
    name: Optional[str] = None
    business_id: Optional[str] = None
    industry: Optional[str] = None
    description: Optional[str] = None
    founded: Optional[str] = None
    employees: Optional[str] = None
    company_type: Optional[str] = None
    ownership_type: Optional[str] = None
    website: Optional[str] = None
    revenue: Optional[float] = None

    @field_validator("name", mode="before")
    @classmethod
    def check_name(cls, v):
        return _non_empty_name(v)


class Company(CompanyBase):
    id: str
    user_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
