"""Services package."""

from .async_runner import set_main_loop, run_coroutine_sync, start_background_loop
from .ledger import LedgerService
from .raffles import RaffleRegistry
from .entries import EntryService
from .ads import AdRewardService
from .lottery import WeightedLottery
from .auth_service import AuthService
from .billing import BillingBridge
from .payment_gateway import StripeGateway
from .admin_service import AdminService
from .container import Services, build_services

__all__ = [
    "set_main_loop",
    "run_coroutine_sync",
    "start_background_loop",
    "LedgerService",
    "RaffleRegistry",
    "EntryService",
    "AdRewardService",
    "WeightedLottery",
    "AuthService",
    "BillingBridge",
    "StripeGateway",
    "AdminService",
    "Services",
    "build_services",
]
