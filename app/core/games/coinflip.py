"""
Coin flip resolution.

Two modes, one flip each:
- solo: an account against the house, wins or loses its wager;
- room: host against joiner, the loser pays the stake to the winner.

A flip is made once, inside the transaction that settles it, and is never
recomputed.
"""

from app.config import LedgerConfig, settings
from app.core.accounts import AccountManager
from app.core.exceptions import InvalidArgument, game_not_found, room_not_in_state
from app.core.logger import get_logger
from app.core.models import RoomResult, RoomStatus, WagerResult
from app.core.rng import CoinRNG, rng as default_rng
from app.core.rooms import RoomRegistry

logger = get_logger("coinflip")


class CoinflipGame:
    """
    Simple 50/50 coin flip, no house edge.
    """

    def __init__(
        self,
        accounts: AccountManager,
        rooms: RoomRegistry,
        rng: CoinRNG = None,
        config: LedgerConfig = None,
    ):
        self.accounts = accounts
        self.rooms = rooms
        self.rng = rng or default_rng
        self.config = config or settings.ledger
        self.db = accounts.db

    def _validate_wager(self, amount) -> int:
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise InvalidArgument("Wager must be an integer", reason="invalid_wager")
        if amount <= 0:
            raise InvalidArgument("Wager must be positive", reason="invalid_wager")
        if amount > self.config.max_stake:
            raise InvalidArgument(
                f"Wager must not exceed {self.config.max_stake}",
                reason="wager_too_large",
                max_stake=self.config.max_stake,
            )
        return amount

    def flip(self, identity: str, amount: int) -> WagerResult:
        """
        Flip against the house.

        Args:
            identity: Wallet identity of the player
            amount: Tokens wagered; won or lost in full

        Returns:
            WagerResult with win flag, new balance and applied delta
        """
        amount = self._validate_wager(amount)

        with self.db.transaction():
            account = self.accounts.get(identity)
            self.accounts.require_funds(account, amount)

            win = self.rng.flip()
            delta = amount if win else -amount
            change = self.accounts.apply_delta(
                account.identity, delta, kind="wager_win" if win else "wager_loss"
            )

        logger.info(
            "Wager resolved",
            extra={"identity": account.identity, "wager": amount, "win": win, "balance": change.balance},
        )
        return WagerResult(win=win, new_balance=change.balance, balance_change=delta)

    def resolve_room(self, room_id: str) -> RoomResult:
        """
        Flip for a PLAYING room and settle it.

        Both players must still cover the stake. The loser's debit, the
        winner's credit and the move to FINISHED commit together or not at all.
        """
        with self.db.transaction():
            room = self.rooms.get_room(room_id)
            if room.status != RoomStatus.PLAYING:
                logger.warning(
                    "Resolve rejected: room not playing",
                    extra={"room_id": room_id, "status": room.status.value},
                )
                raise room_not_in_state(room_id, RoomStatus.PLAYING.value, room.status.value)

            game = self.rooms.get_game(room_id)
            if game is None or game.player2_id is None:
                raise game_not_found(room_id)

            host = self.accounts.get_by_id(game.player1_id)
            joiner = self.accounts.get_by_id(game.player2_id)
            for player in (host, joiner):
                self.accounts.require_funds(player, game.stake, "Insufficient balance to settle room")

            host_won = self.rng.flip()
            winner, loser = (host, joiner) if host_won else (joiner, host)

            lost = self.accounts.apply_delta(loser.identity, -game.stake, kind="room_loss", room_id=room_id)
            won = self.accounts.apply_delta(winner.identity, game.stake, kind="room_win", room_id=room_id)
            self.rooms.close_room(room_id, winner.identity)

        logger.info(
            "Room resolved",
            extra={"room_id": room_id, "winner": winner.identity, "stake": game.stake},
        )
        return RoomResult(
            room_id=room_id,
            winner=winner.identity,
            loser=loser.identity,
            stake=game.stake,
            winner_balance=won.balance,
            loser_balance=lost.balance,
            host_won=host_won,
        )
