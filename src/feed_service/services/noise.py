"""Deterministic per-item noise for ranking jitter and tie-breaks."""

UINT32_MASK = 0xFFFFFFFF
UINT32_RANGE = float(UINT32_MASK + 1)


def xorshift32(x: int) -> int:
    """One xorshift32 round (13, 17, 5) on an unsigned 32-bit value."""
    x &= UINT32_MASK
    x ^= (x << 13) & UINT32_MASK
    x ^= x >> 17
    x ^= (x << 5) & UINT32_MASK
    return x


def noise(item_id: int, session_seed: int) -> float:
    """Reproducible pseudo-random value in [0, 1) for an item in a session.

    Not suitable for anything security related.
    """
    return xorshift32(int(item_id) ^ int(session_seed)) / UINT32_RANGE
