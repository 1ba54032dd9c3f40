"""
Room Registry: manages the lifecycle of two-player rooms and their games.

    WAITING --join--> PLAYING --resolve--> FINISHED

Every transition is a compare-and-set on the current status inside one
transaction, so a room moves forward exactly once even under concurrent
requests. Stakes are checked against balances here but only moved at
resolution.
"""

from typing import List, Optional

from app.config import LedgerConfig, settings
from app.core.accounts import AccountManager
from app.core.database import Database
from app.core.exceptions import (
    InvalidArgument,
    InvalidState,
    game_not_found,
    room_not_found,
    room_not_in_state,
)
from app.core.logger import get_logger
from app.core.models import ACTIVE_STATUSES, Game, Room, RoomStatus

logger = get_logger("rooms")


class RoomRegistry:
    """Room and Game lifecycle manager."""

    def __init__(self, db: Database, accounts: AccountManager, config: LedgerConfig = None):
        self.db = db
        self.accounts = accounts
        self.config = config or settings.ledger

    def _validate_stake(self, stake) -> int:
        if isinstance(stake, bool) or not isinstance(stake, int):
            raise InvalidArgument("Stake must be an integer", reason="invalid_stake")
        if stake <= 0:
            raise InvalidArgument("Stake must be positive", reason="invalid_stake")
        if stake > self.config.max_stake:
            raise InvalidArgument(
                f"Stake must not exceed {self.config.max_stake}",
                reason="stake_too_large",
                max_stake=self.config.max_stake,
            )
        return stake

    def _load_room(self, room_id: str) -> Room:
        row = self.db.get_room(room_id)
        if row is None:
            raise room_not_found(room_id)
        return Room.from_row(row)

    # ==================== Creation ====================

    def create_room(self, host_identity: str, stake: int) -> Room:
        """
        Open a WAITING room hosted by `host_identity`.

        The host account is created on first reference. The host must hold
        at least `stake`, but nothing is reserved; the balance is checked
        again at join and at resolution.
        """
        stake = self._validate_stake(stake)

        with self.db.transaction():
            host = self.accounts.get_or_create(host_identity)
            self.accounts.require_funds(host, stake, "Insufficient balance to create room")
            room = Room.from_row(self.db.insert_room(host.id, stake))

        logger.info(
            "Room created",
            extra={"room_id": room.id, "identity": host.identity, "stake": stake},
        )
        return room

    # ==================== Joining ====================

    def join_room(self, room_id: str, joiner_identity: str) -> Game:
        """
        Join a WAITING room as the second player.

        Creates the room's Game and moves the room to PLAYING in one
        transaction.
        """
        with self.db.transaction():
            room = self._load_room(room_id)
            if room.status != RoomStatus.WAITING:
                logger.warning(
                    "Join rejected: room not waiting",
                    extra={"room_id": room_id, "status": room.status.value},
                )
                raise room_not_in_state(room_id, RoomStatus.WAITING.value, room.status.value)

            joiner = self.accounts.get_or_create(joiner_identity)
            if joiner.id == room.host_id:
                raise InvalidArgument("Host cannot join their own room", reason="own_room")
            self.accounts.require_funds(joiner, room.stake, "Insufficient balance to join room")

            if not self.db.compare_and_set_status(
                room_id, RoomStatus.WAITING.value, RoomStatus.PLAYING.value
            ):
                raise room_not_in_state(room_id, RoomStatus.WAITING.value, None)
            game = Game.from_row(self.db.insert_game(room_id, room.host_id, joiner.id, room.stake))

        logger.info(
            "Room joined",
            extra={"room_id": room_id, "identity": joiner.identity, "game_id": game.id},
        )
        return game

    # ==================== Queries ====================

    def get_room(self, room_id: str) -> Room:
        return self._load_room(room_id)

    def get_game(self, room_id: str) -> Optional[Game]:
        """The room's game, or None while it is still WAITING."""
        self._load_room(room_id)
        row = self.db.get_game_by_room(room_id)
        return Game.from_row(row) if row else None

    def list_active_rooms(self) -> List[Room]:
        """WAITING and PLAYING rooms, newest first."""
        rows = self.db.list_rooms(status.value for status in ACTIVE_STATUSES)
        return [Room.from_row(row) for row in rows]

    # ==================== Closing ====================

    def close_room(self, room_id: str, winner_identity: str) -> Game:
        """
        Record the winner and move a PLAYING room to FINISHED.

        Does not move balances; the outcome resolver settles stakes inside
        the same transaction when it closes a room.
        """
        with self.db.transaction():
            room = self._load_room(room_id)
            if room.status != RoomStatus.PLAYING:
                logger.warning(
                    "Close rejected: room not playing",
                    extra={"room_id": room_id, "status": room.status.value},
                )
                raise room_not_in_state(room_id, RoomStatus.PLAYING.value, room.status.value)

            game_row = self.db.get_game_by_room(room_id)
            if game_row is None:
                raise game_not_found(room_id)

            winner = self.accounts.get(winner_identity)
            if winner.id not in (game_row["player1_id"], game_row["player2_id"]):
                raise InvalidArgument(
                    "Winner must be a player in this room", reason="winner_not_player"
                )

            if not self.db.compare_and_set_status(
                room_id, RoomStatus.PLAYING.value, RoomStatus.FINISHED.value
            ) or not self.db.set_winner(room_id, winner.id):
                raise room_not_in_state(room_id, RoomStatus.PLAYING.value, None)

            game = Game.from_row(self.db.get_game_by_room(room_id))

        logger.info(
            "Room finished",
            extra={"room_id": room_id, "winner": winner.identity},
        )
        return game

    def update_room(
        self,
        room_id: str,
        status: Optional[RoomStatus] = None,
        winner_identity: Optional[str] = None,
    ) -> Room:
        """
        Administrative status/winner update.

        Only the forward move to FINISHED (with a winner) is accepted; joining
        is the only way into PLAYING and no room ever moves backwards.
        """
        room = self._load_room(room_id)
        if status is None and winner_identity is None:
            raise InvalidArgument("Nothing to update", reason="empty_update")
        if status is not None and status != RoomStatus.FINISHED:
            raise InvalidState(
                f"Room {room_id} cannot be set to {status.value}",
                reason="invalid_transition",
                room_id=room_id,
                status=room.status.value,
            )
        if winner_identity is None:
            raise InvalidArgument("A winner is required to finish a room", reason="winner_required")

        self.close_room(room_id, winner_identity)
        return self._load_room(room_id)

    # ==================== Deletion ====================

    def delete_room(self, room_id: str) -> bool:
        """Remove a room and its game regardless of state. False if absent."""
        deleted = self.db.delete_room(room_id)
        if deleted:
            logger.info("Room deleted", extra={"room_id": room_id})
        else:
            logger.warning("Delete skipped: room not found", extra={"room_id": room_id})
        return deleted
