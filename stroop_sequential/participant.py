"""Anonymous participant codes."""
from __future__ import annotations

import random
import string
import time
from typing import Optional

_BASE36 = string.digits + string.ascii_lowercase


def to_base36(value: int) -> str:
    """Lower-case base-36 rendering of a non-negative integer."""

    if value < 0:
        raise ValueError("Only non-negative integers can be encoded")
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


def generate_participant_id(
    first_name: str,
    last_name: str,
    *,
    epoch_ms: Optional[int] = None,
    rng: Optional[random.Random] = None,
) -> str:
    """Return ``<Initial><Initial>-<time token>-<random token>``.

    The time token is the epoch time in milliseconds in base 36 and the
    random token is four upper-case base-36 characters.  Codes are unique
    only with high probability.
    """

    first = first_name.strip()
    last = last_name.strip()
    if not first or not last:
        raise ValueError("Both name fragments are required to build a participant code")
    if epoch_ms is None:
        epoch_ms = int(time.time() * 1000)
    rng = rng or random.Random()
    random_token = "".join(rng.choice(_BASE36) for _ in range(4)).upper()
    return f"{first[0].upper()}{last[0].upper()}-{to_base36(epoch_ms)}-{random_token}"


__all__ = ["generate_participant_id", "to_base36"]
