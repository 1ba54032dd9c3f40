"""Concurrent requests against one account or room, each thread on its own connection."""

import unittest
from concurrent.futures import ThreadPoolExecutor

from app.core.exceptions import InsufficientFunds, InvalidState, LedgerError
from app.core.models import RoomStatus
from support import LedgerTestCase, ScriptedRNG


def attempt(func, *args):
    try:
        return func(*args)
    except LedgerError as e:
        return e


class TestConcurrentRequests(LedgerTestCase):

    def test_parallel_withdrawals_cannot_overdraw(self):
        self.fund("0xshared", 100)

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda _: attempt(self.accounts.apply_delta, "0xshared", -10), range(25)))

        succeeded = [r for r in results if not isinstance(r, LedgerError)]
        rejected = [r for r in results if isinstance(r, InsufficientFunds)]
        self.assertEqual(len(succeeded), 10)
        self.assertEqual(len(rejected), 15)
        self.assertEqual(self.accounts.get_balance("0xshared"), 0)
        self.assertEqual(sorted(r.balance for r in succeeded), list(range(0, 100, 10)))

    def test_parallel_joins_admit_one_player(self):
        self.fund("0xhost", 50)
        room = self.rooms.create_room("0xhost", 50)
        joiners = [f"0xjoiner{i}" for i in range(10)]
        for identity in joiners:
            self.fund(identity, 50)

        with ThreadPoolExecutor(max_workers=10) as pool:
            results = list(pool.map(lambda who: attempt(self.rooms.join_room, room.id, who), joiners))

        games = [r for r in results if not isinstance(r, LedgerError)]
        self.assertEqual(len(games), 1)
        self.assertTrue(all(isinstance(r, InvalidState) for r in results if r not in games))
        self.assertEqual(self.rooms.get_game(room.id).player2_id, games[0].player2_id)
        self.assertEqual(self.rooms.get_room(room.id).status, RoomStatus.PLAYING)

    def test_parallel_resolutions_settle_once(self):
        self.fund("0xhost", 100)
        self.fund("0xjoiner", 100)
        room = self.rooms.create_room("0xhost", 100)
        self.rooms.join_room(room.id, "0xjoiner")
        self.coinflip.rng = ScriptedRNG([True] * 8)

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda _: attempt(self.coinflip.resolve_room, room.id), range(8)))

        settled = [r for r in results if not isinstance(r, LedgerError)]
        self.assertEqual(len(settled), 1)
        self.assertEqual(self.coinflip.rng.calls, 1)
        self.assertEqual(self.accounts.get_balance("0xhost"), 200)
        self.assertEqual(self.accounts.get_balance("0xjoiner"), 0)

    def test_parallel_wagers_cannot_spend_twice(self):
        self.fund("0xgambler", 50)
        self.coinflip.rng = ScriptedRNG([False] * 10)

        with ThreadPoolExecutor(max_workers=5) as pool:
            results = list(pool.map(lambda _: attempt(self.coinflip.flip, "0xgambler", 50), range(5)))

        self.assertEqual(sum(1 for r in results if not isinstance(r, LedgerError)), 1)
        self.assertEqual(self.accounts.get_balance("0xgambler"), 0)


if __name__ == "__main__":
    unittest.main()
