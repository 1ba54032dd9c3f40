import random
from typing import Optional


class CoinRNG:
    """
    Unbiased coin for wagers and rooms.

    Backed by `random.SystemRandom` (os.urandom) unless a source is injected;
    tests pass a seeded `random.Random` so outcome sequences are reproducible.
    Any object with a `getrandbits(k)` method works as a source.
    """

    def __init__(self, source: Optional[random.Random] = None):
        self._source = source if source is not None else random.SystemRandom()

    def flip(self) -> bool:
        """Returns True or False with probability exactly 1/2 each."""
        # A single random bit, no float rounding involved
        return self._source.getrandbits(1) == 1


rng = CoinRNG()
