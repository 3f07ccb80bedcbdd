"""HTLC Swap Registry - hashed time-locked atomic swap primitive."""

__version__ = "0.1.0"

from .chain import Chain
from .errors import (
    ExpiryInPast,
    InsufficientFunds,
    InvalidPreimage,
    SwapError,
    SwapIntentExpired,
    UnknownSwapIntent,
)
from .ledger import InMemoryLedger, Ledger
from .models import SwapIntent, SwapView
from .registry import SwapRegistry

__all__ = [
    "Chain",
    "ExpiryInPast",
    "InMemoryLedger",
    "InsufficientFunds",
    "InvalidPreimage",
    "Ledger",
    "SwapError",
    "SwapIntent",
    "SwapIntentExpired",
    "SwapRegistry",
    "SwapView",
    "UnknownSwapIntent",
]
