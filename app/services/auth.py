"""Caller identity supplied by the authentication gateway.

The gateway verifies credentials and forwards the account as trusted headers;
this service only reads them. It never inspects cookies or client storage.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from fastapi import Request, HTTPException

ACCOUNT_ID_HEADER = "X-Account-Id"
ACCOUNT_ROLE_HEADER = "X-Account-Role"

ROLES = ("seller", "contractor", "admin")


@dataclass
class AuthContext:
    account_id: str
    role: str  # 'seller' | 'contractor' | 'admin'


def account_from_headers(headers: Mapping[str, str]) -> AuthContext | None:
    """Identity from gateway headers, or None when absent or unknown."""
    account_id = (headers.get(ACCOUNT_ID_HEADER) or "").strip()
    role = (headers.get(ACCOUNT_ROLE_HEADER) or "").strip().lower()
    if not account_id or role not in ROLES:
        return None
    return AuthContext(account_id=account_id, role=role)


def get_current_account(request: Request) -> AuthContext:
    """Read the gateway headers, return AuthContext or raise 401."""
    auth = account_from_headers(request.headers)
    if auth is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return auth


def can_subscribe(auth: AuthContext, channel: str) -> bool:
    """Account channels belong to their owner; admins may watch any channel."""
    if auth.role == "admin":
        return True
    kind, _, rest = channel.partition(":")
    if kind == "account":
        return rest == f"{auth.role}:{auth.account_id}"
    return kind == "order" and bool(rest)
