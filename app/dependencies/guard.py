"""
FastAPI dependency that runs the token lifecycle guard before protected routes.
"""

from typing import Annotated

from fastapi import Depends, HTTPException

from app.core.errors import RelayError
from app.dependencies.clients import get_token_guard
from app.models.credential import CredentialState
from app.services import TokenLifecycleGuard


async def require_ready_credentials(
    guard: Annotated[TokenLifecycleGuard, Depends(get_token_guard)],
) -> CredentialState:
    """Resolve to ready credentials or short-circuit with 401/500."""
    try:
        return await guard.ensure_ready()
    except RelayError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.detail) from exc


__all__ = ["require_ready_credentials"]
