from typing import NamedTuple


class NormalizedPair(NamedTuple):
    """Unordered pair of user ids in canonical (first < second) order."""
    first: str
    second: str

    def other(self, user_id: str) -> str:
        return self.second if user_id == self.first else self.first


def normalize(user_a: str, user_b: str) -> NormalizedPair:
    """Return the canonical ordering of two user ids.

    ``normalize(a, b) == normalize(b, a)`` for every pair; string comparison
    gives the total order, so every lookup and write for a pair lands on the
    same storage row regardless of who initiated it.
    """
    if user_a < user_b:
        return NormalizedPair(user_a, user_b)
    return NormalizedPair(user_b, user_a)
