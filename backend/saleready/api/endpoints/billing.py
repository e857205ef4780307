from fastapi import APIRouter, Depends, Header, Request
from typing import Any, Dict, Optional
import logging

from saleready.core.auth import get_optional_claims
from saleready.schemas.billing import CheckoutRequest, CheckoutResponse
from saleready.services.billing_service import billing_service

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/create-checkout", response_model=CheckoutResponse)
def create_checkout(
    request: CheckoutRequest,
    claims: Optional[Dict[str, Any]] = Depends(get_optional_claims),
):
    """Create a Stripe subscription checkout session"""
    claims = claims or {}
    return billing_service.create_checkout_session(
        price_id=request.price_id,
        success_url=request.success_url,
        cancel_url=request.cancel_url,
        email=request.email,
        user_id=claims.get("sub"),
        user_email=claims.get("email"),
    )


@router.post("/stripe-webhook")
async def stripe_webhook(request: Request, stripe_signature: Optional[str] = Header(None)):
    """Handle Stripe webhooks"""
    payload = await request.body()
    return billing_service.handle_webhook(payload, stripe_signature)
