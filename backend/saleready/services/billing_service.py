"""
Stripe billing: subscription checkout and webhook handling
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import stripe

from saleready.core.config import settings
from saleready.core.database import supabase_service
from saleready.core.exceptions import ExternalAPIError, ValidationError

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _timestamp(value: Optional[int]) -> Optional[str]:
    if not value:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc).isoformat()


def _field(obj: Any, key: str, default: Any = None) -> Any:
    """Read a key from a plain dict or a StripeObject."""
    try:
        value = obj[key]
    except (KeyError, TypeError, AttributeError):
        return default
    return default if value is None else value


class BillingService:
    """Checkout sessions and subscription bookkeeping"""

    def __init__(self, client=None):
        self._client = client

    @property
    def client(self):
        return self._client or supabase_service.get_client()

    def _configure(self) -> None:
        if not settings.STRIPE_SECRET_KEY:
            raise ExternalAPIError("stripe", "Stripe API key not configured")
        stripe.api_key = settings.STRIPE_SECRET_KEY

    def find_customer_id(self, user_id: str) -> Optional[str]:
        response = (
            self.client.table("stripe_customers")
            .select("stripe_customer_id")
            .eq("user_id", user_id)
            .limit(1)
            .execute()
        )
        return response.data[0].get("stripe_customer_id") if response.data else None

    def create_checkout_session(
        self,
        price_id: Optional[str],
        success_url: Optional[str] = None,
        cancel_url: Optional[str] = None,
        email: Optional[str] = None,
        user_id: Optional[str] = None,
        user_email: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Create a subscription checkout; a known Stripe customer replaces the email."""
        if not price_id:
            raise ValidationError("Price ID is required", field="priceId")
        self._configure()

        site_url = settings.SITE_URL or ""
        params: Dict[str, Any] = {
            "line_items": [{"price": price_id, "quantity": 1}],
            "mode": "subscription",
            "success_url": success_url or f"{site_url}/dashboard?success=true&session_id={{CHECKOUT_SESSION_ID}}",
            "cancel_url": cancel_url or f"{site_url}/?canceled=true",
            "allow_promotion_codes": True,
            "billing_address_collection": "required",
            "metadata": {"user_id": user_id} if user_id else {},
        }
        customer_email = user_email or email
        if customer_email:
            params["customer_email"] = customer_email

        if user_id:
            customer_id = self.find_customer_id(user_id)
            if customer_id:
                params["customer"] = customer_id
                params.pop("customer_email", None)

        try:
            session = stripe.checkout.Session.create(**params)
        except stripe.StripeError as e:
            logger.error(f"Error creating checkout session: {e}")
            raise ExternalAPIError("stripe", str(e), upstream_status=getattr(e, "http_status", None))

        logger.info(f"Created checkout session {session.id} for price {price_id}")
        return {"checkoutUrl": session.url, "sessionId": session.id}

    def construct_event(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """Verify the Stripe signature and return the event as plain dicts."""
        if not signature:
            raise ValidationError("No signature")
        if not settings.STRIPE_WEBHOOK_SECRET:
            raise ExternalAPIError("stripe", "Stripe webhook secret not configured")
        self._configure()
        try:
            stripe.Webhook.construct_event(payload, signature, settings.STRIPE_WEBHOOK_SECRET)
        except ValueError as e:
            raise ValidationError(f"Invalid payload: {e}")
        except stripe.SignatureVerificationError as e:
            raise ValidationError(f"Invalid signature: {e}")
        return json.loads(payload)

    def handle_webhook(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        event = self.construct_event(payload, signature)
        event_type = event.get("type")
        data = (event.get("data") or {}).get("object") or {}
        logger.info(f"Processing webhook event: {event_type}")

        if event_type == "checkout.session.completed":
            self.on_checkout_completed(data)
        elif event_type == "customer.subscription.updated":
            self.on_subscription_updated(data)
        elif event_type == "customer.subscription.deleted":
            self.on_subscription_deleted(data)
        elif event_type == "invoice.payment_succeeded":
            logger.info(f"Payment succeeded for invoice: {data.get('id')}")
        elif event_type == "invoice.payment_failed":
            logger.error(f"Payment failed for invoice: {data.get('id')}")
        else:
            logger.info(f"Unhandled event type: {event_type}")

        return {"received": True}

    def resolve_user(self, session: Dict[str, Any]) -> Optional[str]:
        """User from session metadata, an existing profile, or a newly created account."""
        user_id = (session.get("metadata") or {}).get("user_id")
        if user_id:
            return user_id

        details = session.get("customer_details") or {}
        email = details.get("email")
        if not email:
            return None

        response = self.client.table("profiles").select("id").eq("email", email).limit(1).execute()
        if response.data:
            return response.data[0]["id"]

        created = self.client.auth.admin.create_user({
            "email": email,
            "email_confirm": True,
            "user_metadata": {"full_name": details.get("name")},
        })
        user = getattr(created, "user", None)
        if not user:
            return None
        logger.info(f"Created user {user.id} for checkout email")
        # password set-up link for the new account
        self.client.auth.admin.generate_link({"type": "recovery", "email": email})
        return user.id

    def on_checkout_completed(self, session: Dict[str, Any]) -> None:
        subscription = stripe.Subscription.retrieve(session.get("subscription"))
        user_id = self.resolve_user(session)
        if not user_id:
            logger.warning(f"Checkout {session.get('id')} has no resolvable user")
            return

        customer_id = session.get("customer")
        now = _now()
        item = (_field(_field(subscription, "items", {}), "data") or [{}])[0]
        self.client.table("stripe_customers").upsert({
            "user_id": user_id,
            "stripe_customer_id": customer_id,
            "email": (session.get("customer_details") or {}).get("email"),
            "created_at": now,
            "updated_at": now,
        }).execute()
        self.client.table("subscriptions").upsert({
            "user_id": user_id,
            "stripe_subscription_id": _field(subscription, "id"),
            "stripe_customer_id": customer_id,
            "status": _field(subscription, "status"),
            "price_id": _field(_field(item, "price", {}), "id"),
            "current_period_start": _timestamp(_field(subscription, "current_period_start", _field(item, "current_period_start"))),
            "current_period_end": _timestamp(_field(subscription, "current_period_end", _field(item, "current_period_end"))),
            "cancel_at_period_end": _field(subscription, "cancel_at_period_end", False),
            "created_at": now,
            "updated_at": now,
        }).execute()
        logger.info("Subscription created/updated successfully")

    def on_subscription_updated(self, subscription: Dict[str, Any]) -> None:
        item = ((subscription.get("items") or {}).get("data") or [{}])[0]
        self.client.table("subscriptions").update({
            "status": subscription.get("status"),
            "current_period_start": _timestamp(subscription.get("current_period_start") or item.get("current_period_start")),
            "current_period_end": _timestamp(subscription.get("current_period_end") or item.get("current_period_end")),
            "cancel_at_period_end": subscription.get("cancel_at_period_end", False),
            "updated_at": _now(),
        }).eq("stripe_subscription_id", subscription.get("id")).execute()
        logger.info("Subscription updated successfully")

    def on_subscription_deleted(self, subscription: Dict[str, Any]) -> None:
        self.client.table("subscriptions").update({
            "status": "canceled",
            "updated_at": _now(),
        }).eq("stripe_subscription_id", subscription.get("id")).execute()
        logger.info("Subscription canceled successfully")


billing_service = BillingService()
