import httpx
import pytest

from saleready.core.exceptions import ExternalAPIError, ResourceNotFoundError, ValidationError
from saleready.services.business_registry import (
    YTJClient,
    format_business_id,
    is_valid_business_id,
)


@pytest.mark.parametrize("value", ["0112038-9", "01120389", " 0112038 - 9 ", "2617416-4"])
def test_valid_business_ids(value):
    assert is_valid_business_id(value)


@pytest.mark.parametrize(
    "value",
    [
        "0112038-8",   # wrong check digit
        "112038-9",    # too short
        "01120389-1",  # too long
        "A112038-9",
        "",
        "0000030-0",   # remainder 1, never valid
        "011203²-9",   # superscript digit
        "٠١١٢٠٣٨-٩",  # Arabic-Indic digits
    ],
)
def test_invalid_business_ids(value):
    assert not is_valid_business_id(value)


def test_format_business_id():
    assert format_business_id("01120389") == "0112038-9"
    with pytest.raises(ValidationError):
        format_business_id("123")


YTJ_COMPANY = {
    "businessId": {"value": "0112038-9"},
    "names": [
        {"name": "Old Name Oy", "type": "1", "version": 2},
        {"name": "Example Oy", "type": "1", "version": 1},
    ],
    "mainBusinessLine": {"type": "62010", "descriptions": [{"description": "Software development"}]},
    "companyForms": [{"descriptions": [{"description": "Limited company"}]}],
    "registrationDate": "1978-03-15",
    "addresses": [
        {"type": 2, "street": "PL 1", "postCode": "00101", "postOffices": [{"city": "HELSINKI"}]},
        {"type": 1, "street": "Mannerheimintie 1", "postCode": "00100", "postOffices": [{"city": "HELSINKI"}]},
    ],
    "website": {"url": "www.example.fi"},
}


def _client(handler):
    return YTJClient(base_url="https://ytj.test/v3", transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_fetch_company_maps_registry_fields():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        return httpx.Response(200, json={"companies": [YTJ_COMPANY]})

    company = await _client(handler).fetch_company("01120389")

    assert "businessId=0112038-9" in seen["url"]
    assert company.name == "Example Oy"
    assert company.industry_code == "62010"
    assert company.industry_name == "Software development"
    assert company.company_form == "Limited company"
    assert company.street_address == "Mannerheimintie 1"
    assert company.city == "HELSINKI"
    assert company.website == "www.example.fi"


@pytest.mark.asyncio
async def test_fetch_company_empty_result_is_not_found():
    client = _client(lambda request: httpx.Response(200, json={"companies": []}))
    with pytest.raises(ResourceNotFoundError):
        await client.fetch_company("0112038-9")


@pytest.mark.asyncio
async def test_fetch_company_upstream_error():
    client = _client(lambda request: httpx.Response(500, json={"message": "maintenance"}))
    with pytest.raises(ExternalAPIError) as exc_info:
        await client.fetch_company("0112038-9")
    assert exc_info.value.upstream_status == 500
    assert "maintenance" in exc_info.value.message


@pytest.mark.asyncio
async def test_fetch_company_rejects_invalid_id_without_request():
    def handler(request):
        raise AssertionError("no request expected")

    with pytest.raises(ValidationError):
        await _client(handler).fetch_company("0112038-8")
