"""
Alea PRNG used for every settlement layout draw.

Based on Johannes Baagøe's Alea algorithm. A settlement seed string fully
determines the stream, so two generation runs for the same settlement draw
identical values in identical order.
"""

import math


def _uint32(n):
    """Convert to unsigned 32-bit integer."""
    return int(n) & 0xFFFFFFFF


class AleaPRNG:
    """
    Seeded Alea generator with the helpers the layout engines draw from.
    """

    def __init__(self, seed):
        """Initialize with seed string or number."""
        self.seed = seed
        self.call_count = 0
        self._seed_state(seed)

    def _seed_state(self, seed):
        if hasattr(seed, "__iter__") and not isinstance(seed, str):
            args = list(seed)
        else:
            args = [seed]

        mash_n = 0xEFC8249D  # 4022871197

        def mash(data):
            nonlocal mash_n
            data = str(data)
            for char in data:
                mash_n = mash_n + ord(char)
                h = 0.02519603282416938 * mash_n
                mash_n = _uint32(h)
                h -= mash_n
                h *= mash_n
                mash_n = _uint32(h)
                h -= mash_n
                mash_n += h * 0x100000000  # 2^32
            return _uint32(mash_n) * 2.3283064365386963e-10  # 2^-32

        self.s0 = mash(" ")
        self.s1 = mash(" ")
        self.s2 = mash(" ")
        self.c = 1

        for arg in args:
            self.s0 -= mash(arg)
            if self.s0 < 0:
                self.s0 += 1
            self.s1 -= mash(arg)
            if self.s1 < 0:
                self.s1 += 1
            self.s2 -= mash(arg)
            if self.s2 < 0:
                self.s2 += 1

    def random(self):
        """Generate next random number in [0, 1)."""
        self.call_count += 1
        t = 2091639 * self.s0 + self.c * 2.3283064365386963e-10  # 2^-32
        self.s0 = self.s1
        self.s1 = self.s2
        self.c = int(t)
        self.s2 = t - self.c
        return self.s2

    def range(self, low, high):
        """Uniform float in [low, high)."""
        return low + self.random() * (high - low)

    def randint(self, low, high):
        """Uniform integer in [low, high], both ends inclusive."""
        return int(math.floor(self.range(low, high + 1)))

    def choice(self, seq):
        """Choose a random element from a non-empty sequence."""
        if not seq:
            raise IndexError("Cannot choose from an empty sequence")
        return seq[int(self.random() * len(seq))]

    def shuffle(self, items):
        """Fisher-Yates shuffle in place, returns the same list."""
        for i in range(len(items) - 1, 0, -1):
            j = self.randint(0, i)
            items[i], items[j] = items[j], items[i]
        return items

    def weighted_choice(self, weights):
        """
        Pick a key from an ordered mapping of key -> weight.

        Walks the mapping in iteration order subtracting weights from a single
        draw, so the result only depends on the order the weights are given.
        """
        total = sum(weights.values())
        remaining = self.random() * total
        last = None
        for key, weight in weights.items():
            last = key
            remaining -= weight
            if remaining <= 0:
                return key
        return last

    def reset(self):
        """Rewind the stream to its seeded state."""
        self.call_count = 0
        self._seed_state(self.seed)
