"""Domain records returned by the ledger core."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel


class RoomStatus(str, Enum):
    WAITING = "WAITING"
    PLAYING = "PLAYING"
    FINISHED = "FINISHED"


ACTIVE_STATUSES = (RoomStatus.WAITING, RoomStatus.PLAYING)


class Account(BaseModel):
    id: str
    identity: str
    display_name: str
    balance: int
    created_at: str
    updated_at: str

    @classmethod
    def from_row(cls, row) -> "Account":
        return cls(
            id=row["id"],
            identity=row["identity"],
            display_name=row["display_name"],
            balance=row["balance"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


class BalanceChange(BaseModel):
    identity: str
    balance: int
    previous_balance: int
    change: int


class Room(BaseModel):
    id: str
    host_id: str
    stake: int
    status: RoomStatus
    created_at: str
    updated_at: str

    @classmethod
    def from_row(cls, row) -> "Room":
        return cls(
            id=row["id"],
            host_id=row["host_id"],
            stake=row["stake"],
            status=RoomStatus(row["status"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


class Game(BaseModel):
    id: str
    room_id: str
    player1_id: str
    player2_id: Optional[str] = None
    winner_id: Optional[str] = None
    stake: int
    played_at: str
    resolved_at: Optional[str] = None

    @classmethod
    def from_row(cls, row) -> "Game":
        return cls(
            id=row["id"],
            room_id=row["room_id"],
            player1_id=row["player1_id"],
            player2_id=row["player2_id"],
            winner_id=row["winner_id"],
            stake=row["stake"],
            played_at=row["played_at"],
            resolved_at=row["resolved_at"],
        )


class HostSummary(BaseModel):
    id: str
    display_name: str
    identity: str


class RoomSummary(BaseModel):
    """Room joined with its host, as shown in the lobby."""
    id: str
    stake: int
    status: RoomStatus
    created_at: str
    host: HostSummary
    game: Optional[Game] = None


class LedgerEntry(BaseModel):
    id: int
    kind: str
    amount: int
    balance_after: int
    room_id: Optional[str] = None
    created_at: str


class WagerResult(BaseModel):
    win: bool
    new_balance: int
    balance_change: int


class RoomResult(BaseModel):
    room_id: str
    winner: str
    loser: str
    stake: int
    winner_balance: int
    loser_balance: int
    host_won: bool
