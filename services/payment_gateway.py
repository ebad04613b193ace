"""Payment processor client used to open hosted checkout sessions."""

from __future__ import annotations

import asyncio
from typing import Any, Dict

import aiohttp

from core import BillingDefaults, TICKET_PACKAGES, get_logger
from core.constants import SUBSCRIPTION_PLAN
from core.exceptions import NotFoundError, PaymentProviderError, ValidationError
from database.repositories import UserRepository

logger = get_logger(__name__)


class StripeGateway:
    """Thin REST client for the processor's form-encoded API."""

    def __init__(self, secret_key: str, api_base: str, frontend_url: str,
                 timeout: int = BillingDefaults.REQUEST_TIMEOUT_SECONDS) -> None:
        self.secret_key = secret_key
        self.api_base = api_base.rstrip("/")
        self.frontend_url = frontend_url.rstrip("/")
        self.timeout = timeout

    async def _post(self, path: str, form: Dict[str, str]) -> Dict[str, Any]:
        if not self.secret_key:
            raise PaymentProviderError("Payment processor is not configured")
        headers = {"Authorization": f"Bearer {self.secret_key}"}
        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    f"{self.api_base}{path}",
                    data=form,
                    headers=headers,
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                ) as response:
                    body = await response.json(content_type=None)
                    if response.status >= 400:
                        message = (body.get("error") or {}).get("message") if isinstance(body, dict) else None
                        logger.error("Processor %s returned %s: %s", path, response.status, message)
                        raise PaymentProviderError()
                    return body
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            logger.error("Processor request %s failed: %s", path, exc)
            raise PaymentProviderError() from exc

    async def _customer_for(self, user_id: int) -> str:
        """Return the processor customer id of a user, creating it on first use."""
        user = await UserRepository.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")
        if user["stripe_customer_id"]:
            return user["stripe_customer_id"]
        customer = await self._post("/customers", {
            "email": user["email"],
            "metadata[user_id]": str(user_id),
        })
        await UserRepository.set_stripe_customer(user_id, customer["id"])
        logger.info("Created processor customer for user %s", user_id)
        return customer["id"]

    async def create_checkout_session(self, user_id: int, pack_type: Any) -> Dict[str, Any]:
        """Hosted checkout for a one-time ticket pack."""
        package = TICKET_PACKAGES.get(pack_type) if isinstance(pack_type, str) else None
        if package is None:
            raise ValidationError("Invalid pack type")
        customer_id = await self._customer_for(user_id)
        session = await self._post("/checkout/sessions", {
            "customer": customer_id,
            "mode": "payment",
            "payment_method_types[0]": "card",
            "line_items[0][quantity]": "1",
            "line_items[0][price_data][currency]": "usd",
            "line_items[0][price_data][unit_amount]": str(package["price"]),
            "line_items[0][price_data][product_data][name]": package["name"],
            "success_url": f"{self.frontend_url}/dashboard.html?payment=success",
            "cancel_url": f"{self.frontend_url}/tickets.html?payment=cancelled",
            "metadata[user_id]": str(user_id),
            "metadata[pack_type]": pack_type,
            "metadata[tickets]": str(package["tickets"]),
        })
        logger.info("Checkout session %s opened for user %s (%s)", session.get("id"), user_id, pack_type)
        return {"session_id": session.get("id"), "url": session.get("url")}

    async def create_subscription_session(self, user_id: int) -> Dict[str, Any]:
        """Hosted checkout for the monthly subscription."""
        customer_id = await self._customer_for(user_id)
        session = await self._post("/checkout/sessions", {
            "customer": customer_id,
            "mode": "subscription",
            "payment_method_types[0]": "card",
            "line_items[0][quantity]": "1",
            "line_items[0][price_data][currency]": "usd",
            "line_items[0][price_data][unit_amount]": str(SUBSCRIPTION_PLAN["price"]),
            "line_items[0][price_data][recurring][interval]": SUBSCRIPTION_PLAN["interval"],
            "line_items[0][price_data][product_data][name]": SUBSCRIPTION_PLAN["name"],
            "success_url": f"{self.frontend_url}/dashboard.html?subscription=success",
            "cancel_url": f"{self.frontend_url}/tickets.html?subscription=cancelled",
            "metadata[user_id]": str(user_id),
            "subscription_data[metadata][user_id]": str(user_id),
        })
        logger.info("Subscription session %s opened for user %s", session.get("id"), user_id)
        return {"session_id": session.get("id"), "url": session.get("url")}
