"""Per-application service instances built from configuration."""

from __future__ import annotations

from dataclasses import dataclass

from config import Config
from services.ads import AdRewardService
from services.auth_service import AuthService
from services.billing import BillingBridge
from services.lottery import WeightedLottery
from services.payment_gateway import StripeGateway


@dataclass
class Services:
    auth: AuthService
    ads: AdRewardService
    lottery: WeightedLottery
    billing: BillingBridge
    gateway: StripeGateway


def build_services(config: Config) -> Services:
    return Services(
        auth=AuthService(
            secret_key=config.secret_key,
            admin_email=config.admin_email,
            token_max_age_days=config.token_max_age_days,
        ),
        ads=AdRewardService(daily_limit=config.ad_daily_limit, callback_secret=config.adgate_secret),
        lottery=WeightedLottery(),
        billing=BillingBridge(
            webhook_secret=config.stripe_webhook_secret,
            bonus_tickets=config.subscription_bonus_tickets,
        ),
        gateway=StripeGateway(
            secret_key=config.stripe_secret_key,
            api_base=config.stripe_api_base,
            frontend_url=config.frontend_url,
        ),
    )
