from typing import List


def sorted_pair(user_a: str, user_b: str) -> List[str]:
    """Canonical ordering for an unordered pair of user ids."""
    return sorted([str(user_a), str(user_b)])


def pair_key(user_a: str, user_b: str) -> str:
    """Deterministic document id for an unordered pair (same in both orders)."""
    return "_".join(sorted_pair(user_a, user_b))
