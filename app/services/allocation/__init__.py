"""Hosting account allocation and administration"""

from app.services.allocation.account_allocator import (
    AccountSnapshot,
    select_account,
    load_pool,
    reserve_account,
    release_slot,
    set_usage,
)
from app.services.allocation.account_service import AccountService, account_service

__all__ = [
    "AccountSnapshot",
    "select_account",
    "load_pool",
    "reserve_account",
    "release_slot",
    "set_usage",
    "AccountService",
    "account_service",
]
