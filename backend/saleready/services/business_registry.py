"""
Finnish business registry (YTJ) lookups and business ID checks
"""

import logging
import re
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional

import httpx

from saleready.core.config import settings
from saleready.core.exceptions import ExternalAPIError, ResourceNotFoundError, ValidationError

logger = logging.getLogger(__name__)

CHECK_WEIGHTS = (7, 9, 10, 5, 8, 4, 2)


def clean_business_id(value: str) -> str:
    return re.sub(r"[\s-]", "", value or "")


def is_valid_business_id(value: str) -> bool:
    """Modulus-11 check of a Finnish business ID (Y-tunnus), e.g. 0112038-9."""
    cleaned = clean_business_id(value)
    if not re.fullmatch(r"[0-9]{8}", cleaned):
        return False
    digits, check = cleaned[:7], cleaned[7]
    remainder = sum(int(d) * w for d, w in zip(digits, CHECK_WEIGHTS)) % 11
    if remainder == 1:
        # no valid check digit exists for these
        return False
    expected = 0 if remainder == 0 else 11 - remainder
    return int(check) == expected


def format_business_id(value: str) -> str:
    cleaned = clean_business_id(value)
    if len(cleaned) != 8:
        raise ValidationError(f"Invalid business ID: {value}", field="business_id")
    return f"{cleaned[:7]}-{cleaned[7]}"


@dataclass
class RegistryCompany:
    business_id: str
    name: str
    industry_code: str = ""
    industry_name: str = ""
    registration_date: str = ""
    company_form: str = ""
    street_address: str = ""
    postal_code: str = ""
    city: str = ""
    website: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _first_description(items: Optional[List[Dict[str, Any]]]) -> str:
    for item in items or []:
        descriptions = item.get("descriptions") or []
        if descriptions:
            return descriptions[0].get("description") or ""
    return ""


def parse_company(data: Dict[str, Any]) -> RegistryCompany:
    """Map one company from the YTJ v3 response."""
    names = data.get("names") or []
    registered = next((n for n in names if str(n.get("type")) == "1" and n.get("version") == 1), None)
    business_line = data.get("mainBusinessLine") or {}
    addresses = data.get("addresses") or []
    address = next((a for a in addresses if a.get("type") == 1), None) or \
        next((a for a in addresses if a.get("type") == 2), None) or {}
    post_offices = address.get("postOffices") or []

    return RegistryCompany(
        business_id=(data.get("businessId") or {}).get("value", ""),
        name=(registered or {}).get("name", ""),
        industry_code=business_line.get("type", "") or "",
        industry_name=_first_description([business_line]),
        registration_date=data.get("registrationDate") or "",
        company_form=_first_description(data.get("companyForms")),
        street_address=address.get("street") or "",
        postal_code=address.get("postCode") or "",
        city=post_offices[0].get("city", "") if post_offices else "",
        website=(data.get("website") or {}).get("url") or "",
    )


class YTJClient:
    """Client for the PRH open data YTJ API"""

    def __init__(self, base_url: Optional[str] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = (base_url or settings.YTJ_API_BASE_URL).rstrip("/")
        self.transport = transport

    async def fetch_company(self, business_id: str) -> RegistryCompany:
        if not is_valid_business_id(business_id):
            raise ValidationError(f"Invalid business ID: {business_id}", field="business_id")
        formatted = format_business_id(business_id)

        logger.info(f"Fetching YTJ data for {formatted}")
        try:
            async with httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS, transport=self.transport) as client:
                response = await client.get(f"{self.base_url}/companies", params={"businessId": formatted})
        except httpx.HTTPError as e:
            logger.error(f"YTJ request failed: {e}")
            raise ExternalAPIError("ytj", str(e))

        if response.status_code == 404:
            raise ResourceNotFoundError("Company", formatted)
        if response.status_code >= 400:
            detail = f"status {response.status_code}"
            try:
                body = response.json()
            except ValueError:
                body = None
            if isinstance(body, dict) and body.get("message"):
                detail = body["message"]
            raise ExternalAPIError("ytj", detail, upstream_status=response.status_code)

        companies = (response.json() or {}).get("companies") or []
        if not companies:
            raise ResourceNotFoundError("Company", formatted)
        return parse_company(companies[0])


ytj_client = YTJClient()
