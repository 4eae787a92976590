"""Service layer exports."""

from .token_cipher import TokenCipherService
from .token_guard import RefreshFailurePolicy, TokenLifecycleGuard

__all__ = [
    "RefreshFailurePolicy",
    "TokenCipherService",
    "TokenLifecycleGuard",
]
