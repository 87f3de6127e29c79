"""Repository layer over the account store."""

from .account import AccountRepository, AccountStore

__all__ = [
    "AccountRepository",
    "AccountStore",
]
