import random
import unittest

from app.core.exceptions import InsufficientFunds, InvalidArgument, InvalidState, NotFound
from app.core.models import RoomStatus
from app.core.rng import CoinRNG
from support import LedgerTestCase


class TestCoinRNG(unittest.TestCase):

    def test_seeded_source_is_reproducible(self):
        a = CoinRNG(random.Random(99))
        b = CoinRNG(random.Random(99))
        self.assertEqual([a.flip() for _ in range(50)], [b.flip() for _ in range(50)])

    def test_roughly_fair(self):
        coin = CoinRNG(random.Random(42))
        heads = sum(coin.flip() for _ in range(10_000))
        self.assertTrue(4700 < heads < 5300, heads)

    def test_default_source_flips(self):
        self.assertIn(CoinRNG().flip(), (True, False))


class TestSoloWager(LedgerTestCase):

    def test_insufficient_balance_no_flip(self):
        self.fund("0xsolo", 40)

        with self.assertRaises(InsufficientFunds):
            self.coinflip.flip("0xsolo", 50)

        self.assertEqual(self.accounts.get_balance("0xsolo"), 40)
        self.assertEqual(self.rng.calls, 0)

    def test_win_credits_wager(self):
        self.fund("0xsolo", 100)
        self.script(True)

        result = self.coinflip.flip("0xSOLO", 30)

        self.assertTrue(result.win)
        self.assertEqual(result.balance_change, 30)
        self.assertEqual(result.new_balance, 130)
        self.assertEqual(self.accounts.get_transactions("0xsolo")[0].kind, "wager_win")

    def test_loss_debits_wager(self):
        self.fund("0xsolo", 100)
        self.script(False)

        result = self.coinflip.flip("0xsolo", 100)

        self.assertFalse(result.win)
        self.assertEqual(result.balance_change, -100)
        self.assertEqual(result.new_balance, 0)
        self.assertEqual(self.accounts.get_transactions("0xsolo")[0].kind, "wager_loss")

    def test_invalid_wagers(self):
        self.fund("0xsolo", 100)
        for amount in (0, -10, 1.5, True):
            with self.assertRaises(InvalidArgument):
                self.coinflip.flip("0xsolo", amount)
        self.assertEqual(self.rng.calls, 0)

    def test_unknown_account(self):
        with self.assertRaises(NotFound):
            self.coinflip.flip("0xstranger", 1)

    def test_one_flip_per_wager(self):
        self.fund("0xsolo", 100)
        self.script(True, False, True)
        for _ in range(3):
            self.coinflip.flip("0xsolo", 10)
        self.assertEqual(self.rng.calls, 3)
        self.assertEqual(self.accounts.get_balance("0xsolo"), 110)


class TestRoomResolution(LedgerTestCase):

    def setUp(self):
        super().setUp()
        self.host = self.fund("0xhost", 150)
        self.joiner = self.fund("0xjoiner", 200)
        self.room = self.rooms.create_room("0xhost", 100)
        self.rooms.join_room(self.room.id, "0xjoiner")

    def test_host_wins(self):
        self.script(True)

        result = self.coinflip.resolve_room(self.room.id)

        self.assertTrue(result.host_won)
        self.assertEqual(result.winner, "0xhost")
        self.assertEqual(result.loser, "0xjoiner")
        self.assertEqual((result.winner_balance, result.loser_balance), (250, 100))
        self.assertEqual(self.accounts.get_balance("0xhost"), 250)
        self.assertEqual(self.accounts.get_balance("0xjoiner"), 100)
        self.assertEqual(self.rooms.get_room(self.room.id).status, RoomStatus.FINISHED)
        self.assertEqual(self.rooms.get_game(self.room.id).winner_id, self.host.id)

    def test_joiner_wins(self):
        self.script(False)

        result = self.coinflip.resolve_room(self.room.id)

        self.assertFalse(result.host_won)
        self.assertEqual(self.accounts.get_balance("0xhost"), 50)
        self.assertEqual(self.accounts.get_balance("0xjoiner"), 300)
        self.assertEqual(self.rooms.get_game(self.room.id).winner_id, self.joiner.id)

    def test_stake_is_conserved(self):
        self.script(random.Random(5).random() < 0.5)
        total = self.accounts.get_balance("0xhost") + self.accounts.get_balance("0xjoiner")

        result = self.coinflip.resolve_room(self.room.id)

        self.assertEqual(result.winner_balance + result.loser_balance, total)
        entries = self.accounts.get_transactions(result.winner)[0], self.accounts.get_transactions(result.loser)[0]
        self.assertEqual([e.kind for e in entries], ["room_win", "room_loss"])
        self.assertEqual([e.room_id for e in entries], [self.room.id, self.room.id])

    def test_second_resolution_rejected(self):
        self.script(True, False)
        self.coinflip.resolve_room(self.room.id)

        with self.assertRaises(InvalidState):
            self.coinflip.resolve_room(self.room.id)

        self.assertEqual(self.rng.calls, 1)
        self.assertEqual(self.rooms.get_game(self.room.id).winner_id, self.host.id)
        self.assertEqual(self.accounts.get_balance("0xhost"), 250)

    def test_waiting_room_cannot_resolve(self):
        waiting = self.rooms.create_room("0xjoiner", 10)
        with self.assertRaises(InvalidState):
            self.coinflip.resolve_room(waiting.id)
        self.assertEqual(self.rng.calls, 0)

    def test_missing_room(self):
        with self.assertRaises(NotFound):
            self.coinflip.resolve_room("missing")

    def test_player_who_cannot_cover_stake_blocks_settlement(self):
        self.accounts.apply_delta("0xjoiner", -150)

        with self.assertRaises(InsufficientFunds):
            self.coinflip.resolve_room(self.room.id)

        self.assertEqual(self.rng.calls, 0)
        self.assertEqual(self.rooms.get_room(self.room.id).status, RoomStatus.PLAYING)
        self.assertIsNone(self.rooms.get_game(self.room.id).winner_id)
        self.assertEqual(self.accounts.get_balance("0xhost"), 150)
        self.assertEqual(self.accounts.get_balance("0xjoiner"), 50)

    def test_failure_while_closing_rolls_back_balances(self):
        self.script(True)
        original = self.rooms.close_room

        def failing_close(room_id, winner_identity):
            raise RuntimeError("store went away")

        self.rooms.close_room = failing_close
        try:
            with self.assertRaises(RuntimeError):
                self.coinflip.resolve_room(self.room.id)
        finally:
            self.rooms.close_room = original

        self.assertEqual(self.accounts.get_balance("0xhost"), 150)
        self.assertEqual(self.accounts.get_balance("0xjoiner"), 200)
        self.assertEqual(self.rooms.get_room(self.room.id).status, RoomStatus.PLAYING)


if __name__ == "__main__":
    unittest.main()
