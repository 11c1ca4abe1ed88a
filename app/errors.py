"""Typed failures raised by the ledger, lifecycle and cancellation services.

Every failure carries a stable ``code`` and the HTTP status the API layer maps
it to; ``to_dict`` is the JSON body returned to callers.
"""

from __future__ import annotations

from typing import Any


class CoreError(Exception):
    code = "core_error"
    status_code = 400

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.context = context
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, **self.context}


class InvalidAmount(CoreError):
    code = "invalid_amount"
    status_code = 400

    def __init__(self, amount: int):
        super().__init__(f"Amount must be a positive integer, got {amount}", amount=amount)
        self.amount = amount


class InvalidAccountRole(CoreError):
    code = "invalid_account_role"
    status_code = 400

    def __init__(self, role: str):
        super().__init__(f"Unknown account role: {role!r}", role=role)
        self.role = role


class InsufficientBalance(CoreError):
    code = "insufficient_balance"
    status_code = 402

    def __init__(self, current_balance: int, required_amount: int):
        shortage = max(0, required_amount - current_balance)
        super().__init__(
            f"Insufficient balance: {current_balance} available, {required_amount} required",
            current_balance=current_balance,
            required_amount=required_amount,
            shortage=shortage,
        )
        self.current_balance = current_balance
        self.required_amount = required_amount
        self.shortage = shortage


class InvalidTransition(CoreError):
    code = "invalid_transition"
    status_code = 409

    def __init__(self, from_status: str, attempted: str):
        super().__init__(
            f"Cannot move work order from {from_status} to {attempted}",
            from_status=from_status,
            attempted=attempted,
        )
        self.from_status = from_status
        self.attempted = attempted


class AlreadyAssigned(CoreError):
    code = "already_assigned"
    status_code = 409

    def __init__(self, order_id: str):
        super().__init__(f"Work order {order_id} was already accepted", order_id=order_id)


class AlreadyDecided(CoreError):
    code = "already_decided"
    status_code = 409

    def __init__(self, request_id: str, status: str):
        super().__init__(
            f"Cancellation request {request_id} is already {status}",
            request_id=request_id,
            status=status,
        )


class CancellationAlreadyPending(CoreError):
    code = "cancellation_already_pending"
    status_code = 409

    def __init__(self, order_id: str):
        super().__init__(
            f"Work order {order_id} already has a pending cancellation request",
            order_id=order_id,
        )


class ConflictRetryExhausted(CoreError):
    code = "conflict_retry_exhausted"
    status_code = 503

    def __init__(self, operation: str, attempts: int):
        super().__init__(
            f"{operation} lost {attempts} concurrent write attempts",
            operation=operation,
            attempts=attempts,
        )


class WorkOrderNotFound(CoreError):
    code = "work_order_not_found"
    status_code = 404

    def __init__(self, order_id: str):
        super().__init__(f"Work order {order_id} not found", order_id=order_id)


class CancellationRequestNotFound(CoreError):
    code = "cancellation_request_not_found"
    status_code = 404

    def __init__(self, request_id: str):
        super().__init__(f"Cancellation request {request_id} not found", request_id=request_id)


class NotOrderParticipant(CoreError):
    code = "not_order_participant"
    status_code = 403

    def __init__(self, order_id: str, account_id: str):
        super().__init__(
            f"{account_id} is not a participant of work order {order_id}",
            order_id=order_id,
            account_id=account_id,
        )
