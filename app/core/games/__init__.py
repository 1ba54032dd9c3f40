"""Game modules for the ledger."""

from .coinflip import CoinflipGame

__all__ = [
    "CoinflipGame",
]
