"""FastAPI dependency providers for identity and role enforcement."""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request

from app.services.auth import AuthContext, get_current_account


async def require_auth(request: Request) -> AuthContext:
    """Require a gateway-supplied identity. Returns AuthContext."""
    return get_current_account(request)


def require_role(*allowed_roles: str):
    """Factory: returns a dependency that enforces role membership."""
    async def _check(auth: AuthContext = Depends(require_auth)) -> AuthContext:
        if auth.role not in allowed_roles:
            raise HTTPException(403, "Insufficient permissions")
        return auth
    return _check


async def require_ledger_account(auth: AuthContext = Depends(require_auth)) -> AuthContext:
    """Only sellers and contractors hold point balances."""
    if auth.role not in ("seller", "contractor"):
        raise HTTPException(403, "Only sellers and contractors hold point balances")
    return auth
