from ..domain import User, UserPair


def canonical_pair(user_a: str, user_b: str) -> tuple[str, str]:
    return tuple(sorted((str(user_a), str(user_b))))


def unique_user_pairs(users: list[User]) -> list[UserPair]:
    """Every unordered pair of distinct users, each exactly once.

    Pairs are keyed by their sorted ids so (A, B) and (B, A) collapse and a
    user listed twice never pairs with itself. The lower id always lands in
    ``user_a``. Output is ordered by key so repeated runs insert rows in the
    same order.
    """
    by_key: dict[tuple[str, str], UserPair] = {}
    for i in range(len(users)):
        for j in range(i + 1, len(users)):
            a = users[i]
            b = users[j]
            if str(a.id) == str(b.id):
                continue
            key = canonical_pair(a.id, b.id)
            first, second = (a, b) if str(a.id) == key[0] else (b, a)
            by_key[key] = UserPair(user_a=first, user_b=second)
    return [by_key[k] for k in sorted(by_key)]
