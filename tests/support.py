"""Shared fixtures for the ledger tests."""

import random
import shutil
import tempfile
import unittest
from pathlib import Path

from app.core.rng import CoinRNG
from app.core.services import LedgerServices


class ScriptedRNG(CoinRNG):
    """Replays a fixed sequence of flips and counts how many were made."""

    def __init__(self, outcomes=()):
        super().__init__(random.Random(0))
        self.outcomes = list(outcomes)
        self.calls = 0

    def flip(self) -> bool:
        if self.calls >= len(self.outcomes):
            raise AssertionError("Unexpected coin flip")
        outcome = bool(self.outcomes[self.calls])
        self.calls += 1
        return outcome


class LedgerTestCase(unittest.TestCase):
    """Fresh database file and service container per test."""

    def setUp(self):
        self.tmpdir = tempfile.mkdtemp(prefix="flip-ledger-")
        self.rng = ScriptedRNG()
        self.services = LedgerServices.open(Path(self.tmpdir) / "ledger.db", rng=self.rng)
        self.db = self.services.db
        self.accounts = self.services.accounts
        self.rooms = self.services.rooms
        self.coinflip = self.services.coinflip
        self.lobby = self.services.lobby

    def tearDown(self):
        self.services.close()
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def script(self, *outcomes):
        self.rng.outcomes.extend(outcomes)

    def fund(self, identity, amount):
        account = self.accounts.get_or_create(identity)
        if amount:
            self.accounts.apply_delta(identity, amount)
        return self.accounts.get(account.identity)
