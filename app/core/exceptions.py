"""
Ledger error taxonomy.

Every failure the core reports is a LedgerError carrying a stable `code`
(the kind the presentation layer branches on), a `reason` naming the
specific cause, and the HTTP status the API maps it to.
"""

from typing import Any, Dict, Optional


class LedgerError(Exception):
    """Base class for all business-rule failures."""

    code = "ledger_error"
    status_code = 400

    def __init__(self, message: str, reason: str = None, **details: Any):
        self.message = message
        self.reason = reason or self.code
        self.details: Dict[str, Any] = details
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.code,
            "reason": self.reason,
            "message": self.message,
            **self.details,
        }


class NotFound(LedgerError):
    """Referenced account, room or game does not exist."""

    code = "not_found"
    status_code = 404


class InvalidState(LedgerError):
    """Operation attempted against a room in the wrong lifecycle state."""

    code = "invalid_state"
    status_code = 409


class InsufficientFunds(LedgerError):
    """Balance would go negative."""

    code = "insufficient_funds"
    status_code = 400

    def __init__(self, balance: int, required: int, message: str = "Insufficient balance"):
        super().__init__(message, balance=balance, required=required)
        self.balance = balance
        self.required = required


class InvalidArgument(LedgerError):
    """Non-positive stake or wager, zero delta, malformed identity."""

    code = "invalid_argument"
    status_code = 400


# ============ Specific causes ============

def account_not_found(identity: str) -> NotFound:
    return NotFound(f"Account {identity} not found", reason="account_not_found", identity=identity)


def room_not_found(room_id: str) -> NotFound:
    return NotFound(f"Room {room_id} not found", reason="room_not_found", room_id=room_id)


def game_not_found(room_id: str) -> NotFound:
    return NotFound(f"No game for room {room_id}", reason="game_not_found", room_id=room_id)


def room_not_in_state(room_id: str, expected: str, actual: Optional[str]) -> InvalidState:
    return InvalidState(
        f"Room {room_id} is {actual}, expected {expected}",
        reason=f"room_not_{expected.lower()}",
        room_id=room_id,
        status=actual,
    )
