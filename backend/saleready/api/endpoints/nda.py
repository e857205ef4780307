from fastapi import APIRouter, Request
import logging

from saleready.schemas.nda import AcceptNDARequest
from saleready.services.nda_service import nda_service

router = APIRouter()
logger = logging.getLogger(__name__)


def client_ip(request: Request) -> str:
    for header in ("x-forwarded-for", "cf-connecting-ip", "x-real-ip"):
        value = request.headers.get(header)
        if value:
            return value.split(",")[0].strip()
    return "unknown"


@router.post("/accept-nda")
def accept_nda(body: AcceptNDARequest, request: Request):
    """Record NDA acceptance for a company share"""
    return nda_service.accept_nda(
        share_id=body.share_id,
        signer_raw=body.signer_info,
        ip=client_ip(request),
        user_agent=request.headers.get("user-agent", "unknown"),
    )
