"""Read-only lobby views. Every call reads the committed state; nothing is cached."""

from typing import Dict, List

from app.core.accounts import AccountManager
from app.core.database import Database
from app.core.exceptions import room_not_found
from app.core.models import ACTIVE_STATUSES, Game, HostSummary, RoomSummary


def _summary_from_row(row: Dict, game: Dict = None) -> RoomSummary:
    return RoomSummary(
        id=row["id"],
        stake=row["stake"],
        status=row["status"],
        created_at=row["created_at"],
        host=HostSummary(
            id=row["host_id"],
            display_name=row["host_display_name"],
            identity=row["host_identity"],
        ),
        game=Game.from_row(game) if game else None,
    )


class Lobby:
    def __init__(self, db: Database, accounts: AccountManager):
        self.db = db
        self.accounts = accounts

    def list_active_rooms(self) -> List[RoomSummary]:
        """WAITING and PLAYING rooms with their hosts, newest first."""
        rows = self.db.list_room_summaries(status.value for status in ACTIVE_STATUSES)
        return [_summary_from_row(row) for row in rows]

    def get_room(self, room_id: str) -> RoomSummary:
        row = self.db.get_room_summary(room_id)
        if row is None:
            raise room_not_found(room_id)
        return _summary_from_row(row, self.db.get_game_by_room(room_id))

    def get_balance(self, identity: str) -> int:
        return self.accounts.get_balance(identity)
