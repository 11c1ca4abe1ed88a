from __future__ import annotations
from typing import Any
from pydantic import BaseModel


class WSMessage(BaseModel):
    event: str  # order_status_changed | balance_changed
    channel: str = ""
    data: dict[str, Any] = {}
