"""
Service container.

Builds the account manager, room registry, coin flip resolver and lobby
around one explicitly passed Database handle. The application owns the
container from startup to shutdown.
"""

from pathlib import Path
from typing import Optional

from app.config import AppConfig, settings
from app.core.accounts import AccountManager
from app.core.database import Database
from app.core.games.coinflip import CoinflipGame
from app.core.lobby import Lobby
from app.core.rng import CoinRNG
from app.core.rooms import RoomRegistry


class LedgerServices:
    def __init__(self, db: Database, rng: Optional[CoinRNG] = None, config: AppConfig = None):
        config = config or settings
        self.db = db
        self.accounts = AccountManager(db, config.ledger)
        self.rooms = RoomRegistry(db, self.accounts, config.ledger)
        self.coinflip = CoinflipGame(self.accounts, self.rooms, rng=rng, config=config.ledger)
        self.lobby = Lobby(db, self.accounts)

    @classmethod
    def open(
        cls,
        db_path: Optional[Path] = None,
        rng: Optional[CoinRNG] = None,
        config: AppConfig = None,
    ) -> "LedgerServices":
        config = config or settings
        db = Database(db_path or config.paths.get_db_path(), timeout=config.database.timeout)
        return cls(db, rng=rng, config=config)

    def close(self):
        self.db.close()
